"""Underlying modules for events and time advancement.

This module provides the foundational data structures of the simulation kernel.
The EventList class is a priority queue maintaining scheduled events in chronological
order. Key features:

- An explicit event lifecycle (pending, triggered, processed, aborted)
- Deterministic ordering of same-time events by insertion order
- Efficient event insertion and removal using a heap queue
- Conditions combining events with any/all rules
"""

from .conditions import AllOf, AnyOf, Condition
from .events import Event, EventList, EventState, ScheduledEntry

__all__ = [
    "AllOf",
    "AnyOf",
    "Condition",
    "Event",
    "EventList",
    "EventState",
    "ScheduledEntry",
]
