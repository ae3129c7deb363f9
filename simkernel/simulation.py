"""The simulation controls time advancement and event processing.

This module provides the Simulation class, which owns the simulation clock and the
event list. It uses next event time progression: the earliest scheduled entry is
popped, the clock jumps to its time, and its event is processed, resuming the
processes waiting on it. Those processes schedule new events in turn, until the
event list is exhausted or a stop time is reached.

Key features:
- Deterministic ordering: same-time events are processed in scheduling order
- Relative scheduling with timeouts
- Processes written as generators or coroutines
- any_of / all_of conditions over events
- Seeded random number generators so that runs can be replicated
"""

from __future__ import annotations

import logging
import math
import sys
import warnings
from collections.abc import Iterable
from random import Random
from typing import Any

import numpy as np

from simkernel.process import Process, ProcessBody
from simkernel.time import AllOf, AnyOf, Event, EventList

logger = logging.getLogger(__name__)


class Simulation:
    """The Simulation controls the time advancement of a model.

    Attributes:
        start_time (float): The time at which the simulation started
        rng (np.random.Generator): Seeded numpy random number generator
        random (Random): Seeded stdlib random number generator

    """

    def __init__(
        self,
        start_time: float = 0.0,
        rng: int | np.random.Generator | None = None,
    ) -> None:
        """Initialize a Simulation instance.

        Args:
            start_time: the start time of the simulation
            rng: seed or generator for the random number generators. Identical seeds
                give identical draws, and therefore identical runs.
        """
        self.start_time = start_time
        self._now = start_time
        self._event_list = EventList()
        self._active_process: Process | None = None

        self.rng: np.random.Generator = np.random.default_rng(rng)
        self.random = Random(int(self.rng.integers(sys.maxsize)))

    @property
    def now(self) -> float:
        """Return the current simulation time."""
        return self._now

    @property
    def active_process(self) -> Process | None:
        """Return the process whose body is currently running, if any."""
        return self._active_process

    @property
    def event_list(self) -> EventList:
        """Return the event list."""
        return self._event_list

    def schedule(self, event: Event, delay: float = 0) -> None:
        """Schedule an event for the current time plus the delay.

        Args:
            event (Event): the event to schedule
            delay (float): the time delta, at least zero

        Raises:
            ValueError: if the delay is negative or NaN, or the event belongs to another
                simulation or has already been processed or aborted

        """
        if not delay >= 0:
            raise ValueError(
                f"Cannot schedule event in the past: delay ({delay}) "
                f"would result in event time ({self._now + delay}) "
                f"before current time ({self._now})"
            )
        if event.simulation is not self:
            raise ValueError(f"{event!r} belongs to another simulation")
        if event.processed or event.aborted:
            raise ValueError(f"cannot schedule {event!r}")

        entry = self._event_list.push(self._now + delay, event)
        logger.debug("t=%s scheduled %r at t=%s", self._now, event, entry.time)

    def event(self) -> Event:
        """Return a new pending event."""
        return Event(self)

    def timeout(self, delay: float, value: Any = None) -> Event:
        """Return a pending event that is processed after the delay.

        Args:
            delay (float): the time delta, at least zero
            value (Any): the value handed to processes waiting on the timeout

        Returns:
            Event: the scheduled event

        """
        event = Event(self)
        self.schedule(event, delay)
        event.value = value
        return event

    def process(self, body: ProcessBody, name: str | None = None) -> Process:
        """Start a process. The body runs from the next step onwards.

        Args:
            body: a generator or coroutine object
            name: name of the process

        Returns:
            Process: the completion event of the process

        """
        return Process(self, body, name=name)

    def any_of(self, events: Iterable[Event]) -> AnyOf:
        """Return an event triggered once any of the events is processed."""
        return AnyOf(self, events)

    def all_of(self, events: Iterable[Event]) -> AllOf:
        """Return an event triggered once all of the events are processed."""
        return AllOf(self, events)

    def peek(self) -> float:
        """Return the time of the next scheduled event, or infinity if there is none."""
        try:
            return self._event_list.peek().time
        except IndexError:
            return math.inf

    def step(self) -> bool:
        """Process the next event.

        Returns:
            bool: False if there was no event to process

        """
        try:
            entry = self._event_list.pop()
        except IndexError:
            return False

        self._now = entry.time
        logger.debug("t=%s processing %r", self._now, entry.event)
        entry.event._process()
        return True

    def run(self, until: float = math.inf) -> None:
        """Run the simulation until the end time or until no events are left.

        Events scheduled exactly at the end time are processed. When the end time is
        finite the clock is moved to it afterwards.

        Args:
            until (float): The end time for stopping the simulation

        """
        if until < self._now:
            warnings.warn(
                f"simulation time ({self._now}) is already past the end time ({until})",
                RuntimeWarning,
                stacklevel=2,
            )
            return

        while not self._event_list.is_empty() and self.peek() <= until:
            self.step()

        if math.isfinite(until):
            self._now = until

    def run_for(self, time_delta: float) -> None:
        """Run the simulation for the specified time delta.

        Args:
            time_delta (float): How far to advance the clock from the current time

        """
        self.run(self._now + time_delta)

    def __len__(self) -> int:
        """Return the number of scheduled events."""
        return len(self._event_list)

    def __repr__(self) -> str:
        """Return a string representation of the simulation."""
        return f"Simulation(now={self._now}, scheduled={len(self)})"
