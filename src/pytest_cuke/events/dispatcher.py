"""Synchronous event dispatcher.

Subscribers are plain objects exposing any subset of handler methods
named after event types (`on_scenario_started`, `on_step_completed`,
`on_status_changed`, `on_error`, ...) and, optionally, a generic
`on_event` handler receiving every event.

Delivery is synchronous and follows the subscription order. A failing
handler never interrupts delivery to other subscribers and never alters
the outcome of the element the event is about: the failure is reported
as a `SubscriberWarning`.

Third-party subscribers are discovered through the `cuke_subscribers`
entry point group.
"""

from typing import TYPE_CHECKING, Any
from warnings import warn

from pytest_cuke.errors import SubscriberError, SubscriberWarning

from .models import EVENT_TYPES, Event

if TYPE_CHECKING:
    from collections.abc import Iterable
    from importlib.metadata import EntryPoint

    from .models import EventType

#: Entry point group of third-party subscribers.
SUBSCRIBERS_GROUP = 'cuke_subscribers'

#: Handler receiving events of every type.
GENERIC_HANDLER = 'on_event'


class SubscribersLoaderMixin:
    """Mixin defining subscriber discovery via entry points.

    Entry points may reference a subscriber instance or a subscriber
    class constructible without arguments.

    Attributes:
        subscribers: Registered subscribers in delivery order.
        strict_mode: If True, any loading issue raises an error.
            If False, issues are emitted as warnings and loading continues.
    """

    subscribers: list[Any]
    strict_mode: bool = False

    def subscribe(self, subscriber: Any) -> None:  # noqa: ANN401
        """Append a subscriber to the delivery list."""
        self.subscribers.append(subscriber)

    def emit_subscriber_issue(self, message: str,
                              entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Emit a subscriber warning or return the exception.

        Args:
            message: Warning message to emit.
            entrypoint: Entry point the subscriber was loaded from.

        Returns:
            SubscriberError on strict mode, otherwise `None`
                with producing a SubscriberWarning.
        """
        if self.strict_mode:
            return SubscriberError(message, entrypoint=entrypoint)

        warn(message, category=SubscriberWarning, stacklevel=2)

        return None

    def _load_subscriber(self, entrypoint: 'EntryPoint') -> None:
        """Load and register a single subscriber entry point.

        Args:
            entrypoint: Entry point describing the subscriber.

        Raises:
            SubscriberError: If any loading issues occur on strict mode.
        """
        try:
            subscriber = entrypoint.load()
            if isinstance(subscriber, type):
                subscriber = subscriber()

        except Exception as base:
            if error := self.emit_subscriber_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        if not any(
            callable(getattr(subscriber, name, None))
            for name in (GENERIC_HANDLER, *handler_names())
        ):
            if error := self.emit_subscriber_issue(
                f'Loaded from entrypoint {entrypoint.name!r} object has no event handlers',
                entrypoint,
            ):
                raise error
            return None

        self.subscribe(subscriber)

    def load_subscribers(self) -> None:
        """Load subscribers registered via entry points.

        Raises:
            SubscriberError: If any loading issues occur on strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=SUBSCRIBERS_GROUP):
            self._load_subscriber(entrypoint)


def handler_names() -> tuple[str, ...]:
    """Return names of all type-specific handler methods."""
    return tuple(f'on_{name.replace('.', '_')}' for name in EVENT_TYPES)


class EventDispatcher(SubscribersLoaderMixin):
    """Fan-out of lifecycle events to subscribers."""

    def __init__(self, subscribers: 'Iterable[Any]' = (), *,
                 strict: bool = False) -> None:
        """Initialize the dispatcher.

        Args:
            subscribers: Initial subscribers in delivery order.
            strict: Whether subscriber loading issues are fatal.
        """
        self.subscribers: list[Any] = list(subscribers)
        self.strict_mode = strict

    def unsubscribe(self, subscriber: Any) -> None:  # noqa: ANN401
        """Remove a subscriber, if registered."""
        if subscriber in self.subscribers:
            self.subscribers.remove(subscriber)

    def dispatch(self, event_type: 'EventType', subject: Any = None,  # noqa: ANN401
                 **payload: Any) -> Event:  # noqa: ANN401
        """Build an event and deliver it to every subscriber.

        Args:
            event_type: Event type, e.g. `scenario.started`.
            subject: Plan element the event refers to.
            **payload: Extra event fields: `metadata`, `tags`,
                `table` or `docstring`.

        Returns:
            The delivered event.
        """
        event = Event(type=event_type, subject=subject, **payload)

        for subscriber in tuple(self.subscribers):
            for name in (event.handler_name, GENERIC_HANDLER):
                if (handler := getattr(subscriber, name, None)) is None:
                    continue

                try:
                    handler(event)

                except Exception as error:  # noqa: BLE001
                    warn(
                        f'Subscriber {subscriber!r} failed on {event.type!r}: {error!r}',
                        category=SubscriberWarning,
                        stacklevel=2,
                    )

        return event
