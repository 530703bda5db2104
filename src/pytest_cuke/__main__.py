"""CLI utilities for pytest-cuke.

The commands inspect a scope registry and the test plan compiled from
feature files without running any step.
"""

from os import getcwd
from pathlib import Path
from sys import path as import_path
from typing import TYPE_CHECKING

from click import Path as PathParam
from click import argument, echo, group, option, pass_context

from pytest_cuke.plan import GroupNode, ScenarioNode
from pytest_cuke.settings import CukeSettings
from pytest_cuke.spec import DocumentParser

if TYPE_CHECKING:
    from collections.abc import Iterator

    from click import Context

    from pytest_cuke.plan import PlanNode, TestPlan
    from pytest_cuke.scopes import ScopeRegistry

INDENT = '  '

FeaturePath = PathParam(
    exists=True,
    dir_okay=False,
    readable=True,
    path_type=Path,
)


def load_registry(registry: str) -> 'ScopeRegistry':
    """Import and freeze a scope registry from the working directory."""
    if (cwd := getcwd()) not in import_path:
        import_path.insert(0, cwd)

    settings = CukeSettings(registry=registry)
    scopes = settings.make_registry()
    scopes.freeze()

    return scopes


def render_node(node: 'PlanNode', depth: int = 0) -> 'Iterator[str]':
    """Render a plan node and its children as indented lines."""
    indent = INDENT * depth

    if isinstance(node, ScenarioNode):
        line = f'{indent}{node.scenario.keyword}: {node.title} [{node.state}]'
        if node.reason:
            line += f' {node.reason}'
        yield line
        return

    keyword = getattr(node, node.kind).keyword  # type: ignore[attr-defined]
    yield f'{indent}{keyword}: {node.title}'

    if isinstance(node, GroupNode):
        for child in node.children:
            yield from render_node(child, depth + 1)


def render_plan(plan: 'TestPlan') -> 'Iterator[str]':
    """Render a whole test plan."""
    for feature in plan.features:
        yield from render_node(feature)


@group(help='Command-line utilities for pytest-cuke.')
def cli() -> None:
    """Root CLI group for pytest-cuke tools."""
    return None


@cli.command(
    name='plan',
    help='Compile feature files and print the test plan with scenario states.',
)
@option(
    '-r', '--registry',
    required=True,
    help='Import path of the scope registry, e.g. `features.steps:registry`.',
)
@option(
    '-t', '--tags',
    default=None,
    help='Tag expression selecting scenarios.',
)
@argument(
    'features',
    nargs=-1,
    required=True,
    type=FeaturePath,
)
@pass_context
def print_plan(ctx: 'Context', registry: str, tags: str | None,
               features: tuple[Path, ...]) -> None:
    """Print the compiled test plan.

    Exits with status 1 if any scenario is broken.
    """
    settings = CukeSettings(tags=tags)
    parser = DocumentParser(settings.language)

    plan = settings.make_builder(load_registry(registry)).build(
        *(parser.parse_file(feature) for feature in features),
    )

    for line in render_plan(plan):
        echo(line)

    broken = [scenario for scenario in plan.scenarios() if scenario.state == 'broken']
    for scenario in broken:
        echo(f'{scenario.error}', err=True)

    if broken:
        ctx.exit(1)


@cli.command(
    name='steps',
    help='List step definitions and hooks of a scope registry.',
)
@option(
    '-r', '--registry',
    required=True,
    help='Import path of the scope registry, e.g. `features.steps:registry`.',
)
def print_steps(registry: str) -> None:
    """Print step definitions and hooks per scope."""
    for scope in load_registry(registry).walk():
        echo(f'{scope.id} [{scope.mode}]')

        for definition in scope.steps.values():
            echo(f'{INDENT}{definition.keyword} {definition.key}')

        for kind, hooks in scope.hooks.items():
            for hook in hooks:
                name = getattr(hook.callback, '__qualname__', repr(hook.callback))
                echo(f'{INDENT}@{kind} {name}')


if __name__ == '__main__':
    cli()
