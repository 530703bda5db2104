"""Tests configurations and fixtures."""

from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest

from pytest_cuke.events import EventCollector, EventDispatcher
from pytest_cuke.plan import PlanBuilder
from pytest_cuke.runtime import ExecutionAdapter, RecordingRunner
from pytest_cuke.scopes import ScopeRegistry
from pytest_cuke.spec import DocumentParser

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType

if TYPE_CHECKING:
    from pytest_cuke.plan import TestPlan

pytest_plugins = ['pytester']


@pytest.fixture
def registry() -> ScopeRegistry:
    """Provide an empty, open scope registry."""
    return ScopeRegistry()


@pytest.fixture
def parser() -> DocumentParser:
    """Provide a document parser for the default dialect."""
    return DocumentParser()


@pytest.fixture
def collector() -> EventCollector:
    """Provide a subscriber recording every event."""
    return EventCollector()


@pytest.fixture
def dispatcher(collector: EventCollector) -> EventDispatcher:
    """Provide a dispatcher delivering to the collector."""
    return EventDispatcher([collector])


@pytest.fixture
def compile_plan(registry: ScopeRegistry,
                 parser: DocumentParser) -> 'Callable[..., TestPlan]':
    """Provide a factory compiling Gherkin sources into a test plan.

    The registry is frozen before building.
    """
    def compile_(*sources: str, **options: 'Any') -> 'TestPlan':
        registry.freeze()
        documents = [
            parser.parse(source, uri=f'test_{index}.feature')
            for index, source in enumerate(sources)
        ]
        return PlanBuilder(registry, **options).build(*documents)

    return compile_


@pytest.fixture
def run_plan(dispatcher: EventDispatcher) -> 'Callable[..., tuple[ExecutionAdapter, RecordingRunner, dict]]':
    """Provide a factory executing a test plan with a recording runner.

    Returns a callable producing the adapter, the runner and the final
    status of every test keyed by its path.
    """
    def run_(plan: 'TestPlan', **options: 'Any') -> tuple[ExecutionAdapter, RecordingRunner, dict]:
        runner = RecordingRunner()
        adapter = ExecutionAdapter(runner, dispatcher=dispatcher, **options)
        adapter.register(plan)
        return adapter, runner, runner.run()

    return run_


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate
    discovery of subscribers in the `cuke_subscribers` entry point group.

    The returned factory allows configuring:
    - successfully loadable subscribers,
    - or an exception raised during subscriber loading,
    - or an empty entry point list.
    """
    def patch(*subscribers: 'Any', raises: Exception | None = None) -> 'MockType':
        """Patch `entry_points` with a controlled subscriber configuration.

        Args:
            subscribers: Objects to be returned by `EntryPoint.load()`.
                If empty, no entry points are registered.
            raises: Exception to raise when `EntryPoint.load()` is called.
                Used to simulate subscriber load failures.

        Returns:
            A mock patch object produced by `mocker.patch` that replaces
            `importlib.metadata.entry_points` for the duration of the test.
        """
        entrypoints = []
        for subscriber in subscribers:
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = 'cuke_subscribers'
            ep.name = 'tests'
            ep.value = 'tests.subscribers:test'
            ep.load.return_value = subscriber
            if raises is not None:
                ep.load.side_effect = raises
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch
