"""Lifecycle event records."""

from datetime import UTC, datetime
from typing import Any, Literal, get_args
from uuid import uuid4

from pydantic import Field

from pytest_cuke.models import SchemaModel
from pytest_cuke.spec.nodes import DataTable, DocString  # noqa: TC001

#: Lifecycle event types.
type EventType = Literal[
    'feature.started', 'feature.completed',
    'rule.started', 'rule.completed',
    'scenario_outline.started', 'scenario_outline.completed',
    'examples.started', 'examples.completed',
    'scenario.started', 'scenario.completed',
    'background.started', 'background.completed',
    'step.started', 'step.completed',
    'hook.started', 'hook.completed',
    'status.changed',
    'error',
]

EVENT_TYPES: tuple[str, ...] = get_args(EventType.__value__)


class Event(SchemaModel):
    """Immutable lifecycle event.

    The subject is a reference to the plan element the event is about:
    a plan node, a step binding or a hook definition.
    """

    id: str = Field(
        default_factory=lambda: uuid4().hex,
        title='Identifier',
        description='Unique event identifier.',
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        title='Timestamp',
        description='Creation time, timezone-aware UTC.',
    )

    type: EventType

    subject: Any = Field(
        default=None,
        title='Subject',
        description='Plan element the event refers to.',
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        title='Metadata',
        description='Free-form details, e.g. the status or the error.',
    )

    tags: tuple[str, ...] = ()

    table: DataTable | None = None
    docstring: DocString | None = None

    @property
    def handler_name(self) -> str:
        """Return the subscriber method name handling this event type."""
        return f'on_{self.type.replace('.', '_')}'

    @property
    def subject_name(self) -> str:
        """Return a human-readable name of the subject."""
        subject = self.subject
        if (title := getattr(subject, 'title', None)) is not None:
            return f'{title}'

        if (step := getattr(subject, 'step', None)) is not None:
            return f'{step.literal}'

        if (callback := getattr(subject, 'callback', None)) is not None:
            return f'{getattr(callback, '__qualname__', callback)!s}'

        return f'{subject!r}'
