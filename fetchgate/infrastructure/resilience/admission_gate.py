"""Implementation of the admission gate.

Bounds how many upstream fetches may be in flight at once. Requests beyond
the limit queue and are admitted strictly in arrival order.
"""

import asyncio
import itertools
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Deque

from fetchgate.domain.models.errors import PermitError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 4

@dataclass(eq=False)
class Permit:
    """One unit of concurrency budget. Must be released exactly once."""
    permit_id: int
    gate_id: int
    released: bool = False

class AdmissionGate:
    """FIFO counting gate for concurrent upstream fetches."""

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        """Initializes the gate.

        Args:
            max_concurrent: Number of slots, fixed for the gate's lifetime.
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self._capacity = max_concurrent
        self._available = max_concurrent
        self._waiters: Deque[asyncio.Future] = deque()
        self._ids = itertools.count(1)
        logger.info(f"AdmissionGate initialized: {max_concurrent} concurrent slots")

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._capacity - self._available

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def _issue(self) -> Permit:
        return Permit(permit_id=next(self._ids), gate_id=id(self))

    async def acquire(self) -> Permit:
        """Waits until a slot is free and returns its permit.

        Cancelling the caller while queued withdraws it from the queue; if the
        slot had already been handed over, it is passed on to the next waiter.
        """
        if self._available > 0 and not self._waiters:
            self._available -= 1
            return self._issue()

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(f"Admission deferred, {len(self._waiters)} request(s) queued.")
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                self.release(waiter.result())
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def release(self, permit: Permit) -> None:
        """Returns a slot, handing it straight to the oldest live waiter.

        Raises:
            PermitError: If the permit was already released or belongs to another gate.
        """
        if permit.gate_id != id(self):
            raise PermitError(f"Permit {permit.permit_id} was not issued by this gate")
        if permit.released:
            raise PermitError(f"Permit {permit.permit_id} released twice")
        permit.released = True

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(self._issue())
                return
        self._available += 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[Permit]:
        """Holds one slot for the duration of the ``async with`` block."""
        permit = await self.acquire()
        try:
            yield permit
        finally:
            self.release(permit)
