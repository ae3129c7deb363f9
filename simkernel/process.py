"""Processes: sequential code that suspends at events and resumes later.

A process body is either a generator that yields events or a coroutine that
awaits them::

    def clerk(simulation):
        yield simulation.timeout(5)
        return "done"

    async def customer(simulation):
        await simulation.timeout(5)

The suspended generator or coroutine frame is the continuation: it keeps every
local variable across wait-points, and closing it runs its ``finally`` and
``with`` exit code without ever continuing past the wait-point.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Coroutine, Generator
from typing import TYPE_CHECKING, Any, TypeAlias

from simkernel.time.events import Event

if TYPE_CHECKING:
    from simkernel.simulation import Simulation

logger = logging.getLogger(__name__)

ProcessBody: TypeAlias = Generator[Event, Any, Any] | Coroutine[Event, Any, Any]


class Process(Event):
    """A running process, represented by its completion event.

    The body does not run on creation. It starts when the simulation processes an
    internal start event scheduled at the current time, and the process event is
    triggered with the body's return value once the body returns.

    Attributes:
        name (str): Name of the process, used in logs and error notes
    """

    def __init__(
        self, simulation: Simulation, body: ProcessBody, name: str | None = None
    ) -> None:
        """Create a process and schedule its first step.

        Args:
            simulation: the simulation the process runs in
            body: a generator or coroutine object
            name: name of the process, defaults to the name of the body

        Raises:
            TypeError: if body is not a generator or coroutine
        """
        if not (inspect.isgenerator(body) or inspect.iscoroutine(body)):
            raise TypeError(f"{body!r} is not a generator or coroutine")

        super().__init__(simulation)
        self.name = name if name is not None else body.__qualname__
        self._body: ProcessBody | None = body

        start = Event(simulation).trigger()
        self._target: Event | None = start
        start.suspend(self)

    @property
    def target(self) -> Event | None:
        """Return the event the process is waiting on."""
        return self._target

    @property
    def is_alive(self) -> bool:
        """Return whether the body has neither returned nor been discarded."""
        return self._body is not None

    def resume(self, event: Event) -> None:
        """Run the body up to its next wait-point, sending it the value of ``event``.

        Called by the kernel once the awaited event is processed. Events that are
        already processed are passed straight back into the body without suspending.
        """
        if self._body is None:
            return

        simulation = self.simulation
        previous, simulation._active_process = simulation._active_process, self
        self._target = None
        value = event.value
        try:
            while True:
                try:
                    target = self._body.send(value)
                except StopIteration as stop:
                    self._body = None
                    logger.debug("t=%s process %s finished", simulation.now, self.name)
                    self.trigger(stop.value)
                    return
                except Exception as exc:
                    self._fail(exc)
                    raise

                if not isinstance(target, Event) or target.simulation is not simulation:
                    self._body.close()
                    error = TypeError(
                        f"process {self.name!r} waited on {target!r}, "
                        "which is not an event of its simulation"
                    )
                    self._fail(error)
                    raise error

                if not target.ready:
                    self._target = target
                    target.suspend(self)
                    return
                value = target.value
        finally:
            simulation._active_process = previous

    def destroy(self) -> None:
        """Discard the body without resuming it and abort the process.

        Called by the kernel when the event the process waits on is aborted.
        """
        self._target = None
        try:
            self._close()
        finally:
            super().abort()

    def abort(self) -> None:
        """Abort the process.

        The process stops waiting, its body is closed so that pending ``finally``
        blocks and context managers run, and everything waiting on the process is
        destroyed in turn. Nothing happens if the process already finished.

        Raises:
            RuntimeError: if called from the body of the process itself
        """
        if not self.pending:
            return
        if self.simulation.active_process is self:
            raise RuntimeError(f"process {self.name!r} cannot abort itself")

        if self._target is not None:
            self._target._remove_waiter(self)
            self._target = None
        try:
            self._close()
        finally:
            super().abort()

    def _close(self) -> None:
        body, self._body = self._body, None
        if body is not None:
            body.close()

    def _fail(self, exc: Exception) -> None:
        self._body = None
        now = self.simulation.now
        logger.error("t=%s process %s failed: %r", now, self.name, exc)
        exc.add_note(f"raised in process {self.name!r} at simulation time {now}")
        super().abort()

    def __repr__(self) -> str:
        """Return a string representation of the process."""
        return f"<Process {self.name} {self.state.name.lower()}>"
