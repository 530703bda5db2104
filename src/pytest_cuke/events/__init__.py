"""Lifecycle events and their delivery to subscribers."""

from .dispatcher import SUBSCRIBERS_GROUP, EventDispatcher
from .models import EVENT_TYPES, Event
from .subscribers import EventCollector, LoggingSubscriber

__all__ = (
    'EVENT_TYPES',
    'SUBSCRIBERS_GROUP',
    'Event',
    'EventCollector',
    'EventDispatcher',
    'LoggingSubscriber',
)
