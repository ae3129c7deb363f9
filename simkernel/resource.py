"""Capacity-limited shared resources.

A Resource hands out a fixed number of slots. Requests are granted strictly in
arrival order; a request that cannot be granted right away waits in a FIFO queue
until a holder releases its slot. A queued request can be given up by aborting it,
which removes it from the queue without disturbing the requests behind it.

Inside a process a request is typically used as a context manager, so the slot is
released (or the queued request withdrawn) however the block is left::

    async def customer(simulation, counter):
        with counter.request() as request:
            await request
            await simulation.timeout(5)
"""

from __future__ import annotations

from collections import deque
from types import TracebackType
from typing import TYPE_CHECKING

from simkernel.time.events import Event

if TYPE_CHECKING:
    from simkernel.simulation import Simulation


class Request(Event):
    """A request for one slot of a resource, triggered when the slot is granted.

    Attributes:
        resource (Resource): The resource the request was made to

    Notes:
        Leaving a ``with`` block releases a granted slot, so a request used as a
        context manager must not also be released by hand.
    """

    def __init__(self, resource: Resource) -> None:  # noqa: D107
        super().__init__(resource.simulation)
        self.resource = resource

    def abort(self) -> None:
        """Give up the request if it has not been granted yet."""
        if self.pending:
            self.resource._withdraw(self)
        super().abort()

    def __enter__(self) -> Request:  # noqa: D105
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Release the slot if it was granted, otherwise withdraw the request."""
        if self.triggered:
            self.resource.release()
        else:
            self.abort()


class Resource:
    """A resource with a fixed number of slots, granted in FIFO order.

    Attributes:
        simulation (Simulation): The simulation the resource belongs to

    Notes:
        A slot released while requests are queued passes directly to the request at
        the head of the queue, so no slot is ever idle while a request waits.
    """

    def __init__(self, simulation: Simulation, capacity: int = 1) -> None:
        """Initialize a resource.

        Args:
            simulation: the simulation the resource belongs to
            capacity: the number of slots

        Raises:
            ValueError: if capacity is not a positive integer
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")

        self.simulation = simulation
        self._capacity = capacity
        self._count = 0
        self._queue: deque[Request] = deque()

    @property
    def capacity(self) -> int:
        """Return the number of slots."""
        return self._capacity

    @property
    def count(self) -> int:
        """Return the number of granted slots."""
        return self._count

    @property
    def available(self) -> int:
        """Return the number of free slots."""
        return self._capacity - self._count

    @property
    def queue(self) -> tuple[Request, ...]:
        """Return the requests waiting for a slot, in arrival order."""
        return tuple(self._queue)

    def request(self) -> Request:
        """Request a slot.

        Returns:
            Request: triggered right away if a slot is free, pending and queued otherwise

        """
        request = Request(self)
        if self._count < self._capacity:
            self._count += 1
            request.trigger()
        else:
            self._queue.append(request)
        return request

    def release(self) -> None:
        """Release a granted slot, passing it to the first queued request if there is one.

        Raises:
            RuntimeError: if no slot is currently granted

        """
        if self._count == 0:
            raise RuntimeError("release() called on a resource without granted slots")

        if self._queue:
            self._queue.popleft().trigger()
        else:
            self._count -= 1

    def _withdraw(self, request: Request) -> None:
        self._queue.remove(request)

    def __repr__(self) -> str:
        """Return a string representation of the resource."""
        return (
            f"Resource(capacity={self._capacity}, count={self._count}, "
            f"queued={len(self._queue)})"
        )
