"""Pytest plugin collecting and executing Gherkin feature files.

This module integrates `pytest-cuke` with pytest by:
- registering command-line options and ini keys;
- resolving runtime settings and a shared `DocumentParser` instance;
- collecting `.feature` files as executable test specifications.

Step and hook declarations are read from the scope registry named by
the `--cuke-registry` option, the `cuke_registry` ini key or the
`CUKE_REGISTRY` environment variable.
"""

from typing import TYPE_CHECKING, Any

from .spec import FeatureFile

if TYPE_CHECKING:
    from pathlib import Path

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.nodes import Node

#: Options accepting a value, with their ini help.
VALUE_OPTIONS = {
    'registry': 'Import path of the scope registry, e.g. `features.steps:registry`.',
    'world': 'Import path of the per-scenario world factory.',
    'tags': 'Tag expression selecting scenarios, e.g. `@smoke and not @slow`.',
    'timeout': 'Default scenario timeout in seconds.',
    'language': 'Default Gherkin dialect of feature files.',
}

#: Boolean flags, with their ini help.
FLAG_OPTIONS = {
    'strict': 'Fail the run when an event subscriber cannot be loaded.',
    'log_events': 'Write lifecycle events to the `pytest_cuke` logger.',
}


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options and ini keys for pytest-cuke.

    Args:
        parser: Pytest argument parser.
    """
    group = parser.getgroup('cuke', 'Gherkin feature files')

    for name, help_ in VALUE_OPTIONS.items():
        group.addoption(
            f'--cuke-{name.replace('_', '-')}',
            action='store',
            dest=f'cuke_{name}',
            default=None,
            help=help_,
        )
        parser.addini(f'cuke_{name}', help=help_)

    for name, help_ in FLAG_OPTIONS.items():
        group.addoption(
            f'--cuke-{name.replace('_', '-')}',
            action='store_true',
            dest=f'cuke_{name}',
            default=False,
            help=help_,
        )
        parser.addini(f'cuke_{name}', help=help_, type='bool', default=False)


def resolve_overrides(config: 'Config') -> dict[str, Any]:
    """Collect explicitly configured settings.

    Command-line options take precedence over ini keys. Unset values are
    omitted so that environment variables can provide them.

    Args:
        config: Pytest configuration object.

    Returns:
        Keyword arguments for `CukeSettings`.
    """
    overrides: dict[str, Any] = {}

    for name in VALUE_OPTIONS:
        value = config.getoption(f'cuke_{name}', default=None) or config.getini(f'cuke_{name}')
        if value:
            overrides[name] = value

    for name in FLAG_OPTIONS:
        if config.getoption(f'cuke_{name}', default=False) or config.getini(f'cuke_{name}'):
            overrides[name] = True

    return overrides


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-cuke integration.

    This hook resolves `CukeSettings` and attaches to the pytest
    configuration object:
    - `config.cuke_settings`: resolved settings;
    - `config.cuke_parser`: a shared `DocumentParser`;
    - `config.cuke_registry`: the scope registry, frozen on first use;
    - `config.cuke_dispatcher`: the event dispatcher.

    Args:
        config: Pytest configuration object.
    """
    from pytest_cuke.settings import CukeSettings  # noqa: PLC0415
    from pytest_cuke.spec import DocumentParser  # noqa: PLC0415

    settings = CukeSettings(**resolve_overrides(config))

    config.cuke_settings = settings  # type: ignore[attr-defined]
    config.cuke_parser = DocumentParser(settings.language)  # type: ignore[attr-defined]
    config.cuke_registry = settings.make_registry()  # type: ignore[attr-defined]
    config.cuke_dispatcher = settings.make_dispatcher()  # type: ignore[attr-defined]


def pytest_collect_file(parent: 'Node', file_path: 'Path') -> FeatureFile | None:
    """Collect Gherkin feature files.

    Args:
        parent: Parent pytest collection node.
        file_path: Path to the file being considered.

    Returns:
        A `FeatureFile` collector for `.feature` files, otherwise `None`.
    """
    if file_path.suffix == '.feature':
        return FeatureFile.from_parent(
            parent,
            path=file_path,
        )

    return None
