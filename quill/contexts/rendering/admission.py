"""
Concurrency admission control.

Each compiler process costs 100-200MB and most of a CPU core for several
seconds, so only a fixed number may run at once. Further requests wait in
arrival order up to a bounded queue depth and are rejected immediately beyond
it.

Invariant: outstanding (unreleased) tickets never exceed max_concurrent.
A released slot is handed straight to the oldest waiter, so a newcomer can
never overtake the queue.
"""

import asyncio
import itertools
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque

from quill.contexts.rendering.exceptions import OverloadedError
from quill.contexts.rendering.logger import _log_debug


@dataclass(eq=False)
class AdmissionTicket:
    """One reserved compilation slot. Releasing twice is a no-op."""

    ticket_id: int
    admitted_at: float
    controller: "AdmissionController" = field(repr=False)
    released: bool = False

    def release(self) -> None:
        self.controller.release(self)


class AdmissionController:
    """
    FIFO slot allocator for compiler processes.

    Args:
        max_concurrent: Slots available (>= 1)
        max_queue: Waiters allowed before admit() raises OverloadedError (>= 0)

    Example:
        admission = AdmissionController(max_concurrent=1, max_queue=8)
        async with admission.slot():
            await run_compiler()
    """

    def __init__(self, max_concurrent: int = 1, max_queue: int = 8):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got: {max_concurrent}")
        if max_queue < 0:
            raise ValueError(f"max_queue must be >= 0, got: {max_queue}")

        self.max_concurrent = max_concurrent
        self.max_queue = max_queue
        self.peak_active = 0
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()
        self._ids = itertools.count(1)

    @property
    def active(self) -> int:
        """Slots currently held."""
        return self._active

    @property
    def queued(self) -> int:
        """Callers waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    def _ticket(self) -> AdmissionTicket:
        return AdmissionTicket(ticket_id=next(self._ids), admitted_at=time.monotonic(), controller=self)

    def _occupy(self) -> AdmissionTicket:
        self._active += 1
        self.peak_active = max(self.peak_active, self._active)
        return self._ticket()

    async def admit(self) -> AdmissionTicket:
        """
        Reserve a slot, waiting in FIFO order if none is free.

        Raises:
            OverloadedError: If max_queue callers are already waiting
        """
        if self._active < self.max_concurrent and not self.queued:
            return self._occupy()

        if self.queued >= self.max_queue:
            raise OverloadedError(active=self._active, queued=self.queued)

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        _log_debug(f"Queued for a compilation slot ({self.queued} waiting)")

        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just as we were cancelled; pass it on
                waiter.result().release()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def release(self, ticket: AdmissionTicket) -> None:
        """Return a slot, handing it to the oldest live waiter if there is one."""
        if ticket.released:
            _log_debug(f"Ticket {ticket.ticket_id} already released")
            return
        ticket.released = True

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot transfers directly; active count is unchanged
                waiter.set_result(self._ticket())
                return

        self._active -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[AdmissionTicket]:
        """Hold a slot for the duration of the block; released on every exit path."""
        ticket = await self.admit()
        try:
            yield ticket
        finally:
            ticket.release()

    def stats(self) -> dict:
        return {
            "active": self.active,
            "queued": self.queued,
            "max_concurrent": self.max_concurrent,
            "max_queue": self.max_queue,
            "peak_active": self.peak_active,
        }
