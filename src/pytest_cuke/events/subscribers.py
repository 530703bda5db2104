"""Built-in event subscribers."""

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from logging import Logger

    from .models import Event

logger = getLogger('pytest_cuke')


class LoggingSubscriber:
    """Subscriber writing every event to a logger.

    Started events are logged at debug level, error events at error
    level, everything else at info level.
    """

    def __init__(self, target: 'Logger | None' = None) -> None:
        """Initialize the subscriber.

        Args:
            target: Logger to write to, `pytest_cuke` by default.
        """
        self.logger = target or logger

    def on_event(self, event: 'Event') -> None:
        """Log a single event."""
        if event.type == 'error':
            self.logger.error(
                '%s %s: %s',
                event.type,
                event.subject_name,
                event.metadata.get('error'),
            )
        elif event.type.endswith('.started'):
            self.logger.debug('%s %s', event.type, event.subject_name)
        elif event.type == 'status.changed':
            self.logger.info(
                '%s %s: %s',
                event.type,
                event.subject_name,
                event.metadata.get('status'),
            )
        else:
            self.logger.info('%s %s', event.type, event.subject_name)


class EventCollector:
    """Subscriber keeping every delivered event in memory."""

    def __init__(self) -> None:
        """Initialize an empty collector."""
        self.events: list[Event] = []

    def on_event(self, event: 'Event') -> None:
        """Store an event."""
        self.events.append(event)

    def types(self) -> list[str]:
        """Return types of collected events in delivery order."""
        return [event.type for event in self.events]

    def of_type(self, event_type: str) -> list['Event']:
        """Return collected events of one type."""
        return [event for event in self.events if event.type == event_type]
