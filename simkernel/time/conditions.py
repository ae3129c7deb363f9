"""Events derived from a set of other events.

A condition is an ordinary pending event that registers itself as a callback on
each of the events it watches, and triggers itself once its rule is satisfied:

- AnyOf: triggered as soon as one of the events is processed
- AllOf: triggered once every one of the events is processed

Events that are already processed when the condition is built are fed through
the same check right away, so they count exactly like events processed later.
An aborted event is never processed and therefore never counts.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from simkernel.time.events import Event

if TYPE_CHECKING:
    from simkernel.simulation import Simulation


class Condition(Event):
    """Base class for events aggregating other events.

    Attributes:
        events (tuple[Event, ...]): The events watched by the condition
    """

    def __init__(self, simulation: Simulation, events: Iterable[Event]) -> None:
        """Initialize a condition.

        Args:
            simulation: the simulation the condition belongs to
            events: the events to watch

        Raises:
            ValueError: if any of the events belongs to another simulation
        """
        super().__init__(simulation)
        self.events = tuple(events)

        for event in self.events:
            if event.simulation is not simulation:
                raise ValueError(
                    f"{event!r} belongs to another simulation and cannot be combined"
                )

        for event in self.events:
            if event.ready:
                self._check(event)
            else:
                event.add_callback(self._check)

    def _check(self, event: Event) -> None:
        raise NotImplementedError


class AnyOf(Condition):
    """An event triggered once any of the given events is processed.

    The value of the condition is the event that was processed first.
    """

    def __init__(self, simulation: Simulation, events: Iterable[Event]) -> None:
        """Initialize an AnyOf condition.

        Args:
            simulation: the simulation the condition belongs to
            events: the events to watch, at least one

        Raises:
            ValueError: if no events are given, since such a condition could never trigger
        """
        events = list(events)
        if not events:
            raise ValueError("any_of requires at least one event")
        super().__init__(simulation, events)

    def _check(self, event: Event) -> None:
        # trigger() is a no-op once the condition left the pending state
        self.trigger(event)


class AllOf(Condition):
    """An event triggered once all of the given events are processed.

    The value of the condition is the list of the values of the events, in the
    order the events were given. Without events it triggers immediately.
    """

    def __init__(self, simulation: Simulation, events: Iterable[Event]) -> None:
        """Initialize an AllOf condition.

        Args:
            simulation: the simulation the condition belongs to
            events: the events to watch
        """
        events = list(events)
        self._remaining = len(events)
        super().__init__(simulation, events)

        if not events:
            self.trigger([])

    def _check(self, event: Event) -> None:
        self._remaining -= 1
        if self._remaining == 0:
            self.trigger([e.value for e in self.events])
