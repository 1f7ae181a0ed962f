import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, TypeVar

from rifler.core.settings import DEFAULT_MAX_CONCURRENCY

T = TypeVar("T")


class ConcurrencyLimiter:
    """
    Counting admission gate for filesystem operations.

    At most `max_in_flight` operations run at once; the rest wait in FIFO order.
    A released slot is handed straight to the oldest waiter so late arrivals
    cannot overtake it. One instance may be shared by every call a caller makes.
    """

    def __init__(self, max_in_flight: int = DEFAULT_MAX_CONCURRENCY):
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self.max_in_flight = max_in_flight
        self._in_flight = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def queued(self) -> int:
        # Cancelled waiters remove themselves; handed-over ones are popped
        return len(self._waiters)

    async def _acquire(self) -> None:
        if self._in_flight < self.max_in_flight and not self._waiters:
            self._in_flight += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was already handed over; pass it on
                self._release()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # In-flight count stays the same: the slot changes owner
                waiter.set_result(None)
                return
        self._in_flight -= 1

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        await self._acquire()
        try:
            return await operation()
        finally:
            self._release()
