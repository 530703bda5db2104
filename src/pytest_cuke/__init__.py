"""Pytest plugin running Gherkin feature files against scoped step definitions.

The `pytest_cuke` package compiles `.feature` files into executable
pytest tests.

Key features:
- step and hook declarations scoped to features, rules and scenarios,
  with inner declarations shadowing outer ones;
- an immutable test plan with every step bound to exactly one definition;
- onion-ordered hooks, `@skip`/`@only` modes and tag filtering;
- a lifecycle event stream for reporters and loggers.

Step definitions are declared on a `ScopeRegistry`:

    from pytest_cuke import ScopeRegistry

    registry = ScopeRegistry()

    @registry.given('a counter at {value:d}')
    def counter(value, world):
        world.counter = value
"""

from pytest_cuke.errors import StepPending
from pytest_cuke.scopes import ScopeRegistry
from pytest_cuke.world import World

__all__ = (
    'ScopeRegistry',
    'StepPending',
    'World',
)
