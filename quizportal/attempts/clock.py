from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Source of delayed callbacks driving timer ticks and autosave debounces."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class LoopScheduler:
    """Schedules callbacks on the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(max(0.0, delay), callback)


@dataclass(order=True, slots=True)
class ManualHandle:
    when: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler advanced explicitly by tests and simulations."""

    def __init__(self, *, start: float = 0.0) -> None:
        self.now = start
        self._queue: list[ManualHandle] = []
        self._sequence = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(
            when=self.now + max(0.0, delay),
            sequence=next(self._sequence),
            callback=callback,
        )
        heapq.heappush(self._queue, handle)
        return handle

    @property
    def pending_count(self) -> int:
        return sum(1 for handle in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due callbacks in order. Returns the number fired."""
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0].when <= target:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = handle.when
            handle.callback()
            fired += 1
        self.now = target
        return fired
