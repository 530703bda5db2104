"""Default per-scenario context object.

A fresh world is created for every scenario run and passed by reference
to its steps and hooks, so steps can hand values forward within the same
scenario. Worlds are never shared between scenarios.
"""

from typing import Any


class World(dict[str, Any]):
    """Scenario context with attribute access.

    Values are stored as mapping items and exposed as attributes:

        >>> world = World()
        >>> world.counter = 0
        >>> world['counter']
        0
    """

    def __getattr__(self, name: str) -> Any:  # noqa: ANN401
        """Return an item as an attribute."""
        try:
            return self[name]

        except KeyError as base:
            raise AttributeError(name) from base

    def __setattr__(self, name: str, value: Any) -> None:  # noqa: ANN401
        """Store an attribute as an item."""
        self[name] = value

    def __delattr__(self, name: str) -> None:
        """Remove an item through attribute deletion."""
        try:
            del self[name]

        except KeyError as base:
            raise AttributeError(name) from base
