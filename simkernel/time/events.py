"""Core event management functionality for simkernel's discrete event simulation kernel.

This module provides the foundational data structures of the kernel. An Event is a
handle to something that will, may, or has happened at some instant of simulated
time. Processes wait on events, callbacks are attached to them, and the simulation
processes them in time order. Key features:

- An explicit lifecycle: pending, triggered, processed, or aborted
- Waiters and callbacks that fire at most once, in registration order
- A heap-based queue with a total (time, sequence) ordering for deterministic replay
- Lazy deletion of queue entries whose event was aborted while queued

The module contains four main components:
- EventState: An enumeration of the lifecycle states of an event
- Event: A shared handle to an occurrence, with its waiter and callback lists
- ScheduledEntry: A (time, sequence, event) entry in the simulation queue
- EventList: A heap-based priority queue managing the chronological ordering of entries
"""

from __future__ import annotations

import contextlib
import itertools
import logging
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from enum import IntEnum
from heapq import heappop, heappush
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from simkernel.simulation import Simulation

logger = logging.getLogger(__name__)


class EventState(IntEnum):
    """Enumeration of event lifecycle states."""

    PENDING = 0
    TRIGGERED = 1
    PROCESSED = 2
    ABORTED = 3


_SETTLED = (EventState.PROCESSED, EventState.ABORTED)


def _raise_collected(errors: list[Exception], message: str) -> None:
    if len(errors) == 1:
        raise errors[0]
    if errors:
        raise ExceptionGroup(f"{len(errors)} {message}", errors)


class Continuation(Protocol):
    """A computation suspended on an event, such as a process at a wait-point."""

    def resume(self, event: Event) -> None:
        """Continue past the wait-point once ``event`` has been processed."""

    def destroy(self) -> None:
        """Discard the suspended computation without ever continuing it."""


class Event:
    """A simulation event.

    Every holder of an event shares the same object, so a state change is seen by
    all of them. An event starts out pending. Triggering it schedules it for
    processing at the current simulation time. Processing it resumes everything
    waiting on it and calls its callbacks. Aborting a pending event discards the
    waiters and callbacks so that they never run.

    Attributes:
        simulation (Simulation): The simulation this event belongs to
        value (Any): The value handed to processes waiting on this event

    Notes:
        Once an event is processed or aborted its state never changes again.
        Waiters and callbacks each run at most once; both lists are emptied when
        the event settles.

    """

    def __init__(self, simulation: Simulation) -> None:
        """Initialize a pending event.

        Args:
            simulation: the simulation the event belongs to

        Raises:
            TypeError: if no simulation is given
        """
        if simulation is None:
            raise TypeError("an event must belong to a simulation")

        self.simulation = simulation
        self.value: Any = None
        self._state = EventState.PENDING
        self._waiters: list[Continuation] = []
        self._callbacks: list[Callable[[Event], None]] = []

    @property
    def state(self) -> EventState:
        """Return the lifecycle state of the event."""
        return self._state

    @property
    def pending(self) -> bool:
        """Return whether the event is neither triggered nor aborted."""
        return self._state == EventState.PENDING

    @property
    def triggered(self) -> bool:
        """Return whether the event is triggered or already processed."""
        return self._state in (EventState.TRIGGERED, EventState.PROCESSED)

    @property
    def processed(self) -> bool:
        """Return whether the event is processed."""
        return self._state == EventState.PROCESSED

    @property
    def aborted(self) -> bool:
        """Return whether the event is aborted."""
        return self._state == EventState.ABORTED

    @property
    def ready(self) -> bool:
        """Return whether waiting on this event can continue without suspending."""
        return self._state == EventState.PROCESSED

    def trigger(self, value: Any = None) -> Event:
        """Trigger the event and schedule it for processing at the current time.

        Nothing happens if the event is not pending.

        Args:
            value: the value handed to processes waiting on the event

        Returns:
            Self for method chaining
        """
        if not self.pending:
            return self

        self.simulation.schedule(self)
        self.value = value
        self._state = EventState.TRIGGERED
        return self

    def abort(self) -> None:
        """Abort the event.

        Every suspended waiter is destroyed and every callback dropped. Nothing
        happens if the event is not pending.
        """
        if not self.pending:
            return

        self._state = EventState.ABORTED
        waiters, self._waiters = self._waiters, []
        self._callbacks.clear()
        if waiters:
            logger.debug("aborted %r, discarding %d waiters", self, len(waiters))
        errors: list[Exception] = []
        for waiter in waiters:
            try:
                waiter.destroy()
            except Exception as exc:  # noqa: PERF203
                errors.append(exc)
        _raise_collected(errors, f"failures while aborting {self!r}")

    def add_callback(self, callback: Callable[[Event], None]) -> None:
        """Add a callback invoked with this event once it is processed.

        Callbacks added to a processed or aborted event are ignored.

        Args:
            callback: the callable to invoke
        """
        if self._state in _SETTLED:
            return
        self._callbacks.append(callback)

    def suspend(self, continuation: Continuation) -> None:
        """Suspend a continuation until this event is processed.

        A continuation suspended on an aborted event is destroyed immediately.

        Args:
            continuation: the continuation to resume once the event is processed
        """
        if self.aborted:
            continuation.destroy()
            return
        self._waiters.append(continuation)

    def _remove_waiter(self, continuation: Continuation) -> None:
        # the list is detached while the event is being processed
        with contextlib.suppress(ValueError):
            self._waiters.remove(continuation)

    def _process(self) -> None:
        """Process the event: resume all waiters, then invoke all callbacks.

        Only the simulation calls this. Every waiter and callback runs even if an
        earlier one raises; failures are re-raised once all of them ran.

        Raises:
            RuntimeError: if the event was already processed or aborted
        """
        if self._state in _SETTLED:
            raise RuntimeError(f"{self!r} has already been {self._state.name.lower()}")

        self._state = EventState.PROCESSED
        waiters, self._waiters = self._waiters, []
        callbacks, self._callbacks = self._callbacks, []

        errors: list[Exception] = []
        for waiter in waiters:
            try:
                waiter.resume(self)
            except Exception as exc:  # noqa: PERF203
                errors.append(exc)
        for callback in callbacks:
            try:
                callback(self)
            except Exception as exc:  # noqa: PERF203
                errors.append(exc)

        _raise_collected(errors, f"failures while processing {self!r}")

    def __await__(self) -> Generator[Event, Any, Any]:
        """Wait for the event from inside a coroutine process."""
        if not self.ready:
            yield self
        return self.value

    def __or__(self, other: Event) -> Event:
        """Return an event triggered once this event or ``other`` is processed."""
        return self.simulation.any_of([self, other])

    def __and__(self, other: Event) -> Event:
        """Return an event triggered once this event and ``other`` are processed."""
        return self.simulation.all_of([self, other])

    def __repr__(self) -> str:
        """Return a string representation of the event."""
        return f"<{type(self).__name__} {self._state.name.lower()}>"


@dataclass(frozen=True, slots=True, order=True)
class ScheduledEntry:
    """An event scheduled at an instant of simulated time.

    Entries are ordered by time and then by sequence number, so entries for the
    same instant come out in the order they were scheduled.

    Attributes:
        time: The simulation time at which the event is processed
        sequence: Insertion counter breaking ties between equal times
        event: The scheduled event
    """

    time: float
    sequence: int
    event: Event = field(compare=False)

    @property
    def stale(self) -> bool:
        """Return whether the event settled since the entry was made."""
        return self.event.state in _SETTLED


class EventList:
    """An event list.

    Scheduled entries are kept in a binary heap and always taken from the front. The
    ordering key is the simulation time followed by the sequence number handed out on
    insertion, so two entries for the same instant come out in the order they went in.
    Entries whose event settled in the meantime are dropped when they reach the front.

    """

    def __init__(self) -> None:
        """Initialize an event list."""
        self._entries: list[ScheduledEntry] = []
        self._sequence = itertools.count()

    def push(self, time: float, event: Event) -> ScheduledEntry:
        """Add the event to the event list.

        Args:
            time (float): The simulation time at which to process the event
            event (Event): The event to be added

        Returns:
            ScheduledEntry: the entry that was added

        """
        entry = ScheduledEntry(time, next(self._sequence), event)
        heappush(self._entries, entry)
        return entry

    def _prune(self) -> None:
        # we cannot simply remove entries of aborted events because this breaks
        # the heap invariant, so stale entries are dropped once they reach the front
        while self._entries and self._entries[0].stale:
            heappop(self._entries)

    def peek(self) -> ScheduledEntry:
        """Return the first live entry without removing it.

        Raises:
            IndexError: If the event list is empty

        """
        self._prune()
        if not self._entries:
            raise IndexError("event list is empty")
        return self._entries[0]

    def pop(self) -> ScheduledEntry:
        """Pop the first live entry from the event list.

        Raises:
            IndexError: If the event list is empty

        """
        while self._entries:
            entry = heappop(self._entries)
            if not entry.stale:
                return entry
        raise IndexError("event list is empty")

    def is_empty(self) -> bool:
        """Return whether the event list holds no live entries."""
        self._prune()
        return not self._entries

    def __contains__(self, event: Event) -> bool:  # noqa
        return any(entry.event is event and not entry.stale for entry in self._entries)

    def __len__(self) -> int:  # noqa
        return sum(1 for entry in self._entries if not entry.stale)

    def __repr__(self) -> str:
        """Return a string representation of the event list."""
        entries_str = ", ".join(
            [
                f"ScheduledEntry(time={e.time}, sequence={e.sequence}, event={e.event!r})"
                for e in sorted(self._entries)
                if not e.stale
            ]
        )
        return f"EventList([{entries_str}])"

    def clear(self) -> None:
        """Clear the event list."""
        self._entries.clear()
