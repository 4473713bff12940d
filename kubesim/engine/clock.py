"""Simulated time.

SimulationClock -- Monotonic simulated seconds, advanced only by ticks.
TimerQueue      -- Min-heap of callbacks keyed to a future simulated time.

Time is derived from a tick counter (``now = ticks * step``) rather than
accumulated float additions, so long runs do not drift.
"""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


class SimulationClock:
    def __init__(self, step: float, start: float = 0.0) -> None:
        if step <= 0:
            raise ValueError(f"Clock step must be positive, got {step}")
        self._step = step
        self._start = start
        self._ticks = 0

    @property
    def step(self) -> float:
        return self._step

    @property
    def ticks(self) -> int:
        return self._ticks

    def now(self) -> float:
        return self._start + self._ticks * self._step

    def advance(self, ticks: int = 1) -> float:
        self._ticks += ticks
        return self.now()

    def reset(self, start: float = 0.0) -> None:
        self._start = start
        self._ticks = 0

    def __call__(self) -> float:
        return self.now()


@dataclass(order=True)
class _Timer:
    due: float
    sequence: int
    callback: Callable[[], Any] = field(compare=False)
    label: str = field(default="", compare=False)
    cancelled: bool = field(default=False, compare=False)


class TimerHandle:
    """Returned by ``TimerQueue.schedule``; lets the caller cancel the timer."""

    __slots__ = ("_timer",)

    def __init__(self, timer: _Timer) -> None:
        self._timer = timer

    @property
    def due(self) -> float:
        return self._timer.due

    @property
    def label(self) -> str:
        return self._timer.label

    def cancel(self) -> None:
        self._timer.cancelled = True


class TimerQueue:
    """Callbacks fire in due-time order; equal times keep scheduling order."""

    def __init__(self) -> None:
        self._heap: list[_Timer] = []
        self._counter = itertools.count()

    def __len__(self) -> int:
        return sum(1 for timer in self._heap if not timer.cancelled)

    def schedule(self, due: float, callback: Callable[[], Any], label: str = "") -> TimerHandle:
        timer = _Timer(due, next(self._counter), callback, label)
        heapq.heappush(self._heap, timer)
        return TimerHandle(timer)

    def next_due(self) -> float | None:
        while self._heap and self._heap[0].cancelled:
            heapq.heappop(self._heap)
        return self._heap[0].due if self._heap else None

    def pop_due(self, now: float) -> list[Callable[[], Any]]:
        """Remove and return every live callback due at or before *now*."""
        due: list[Callable[[], Any]] = []
        while self._heap and self._heap[0].due <= now:
            timer = heapq.heappop(self._heap)
            if not timer.cancelled:
                due.append(timer.callback)
        return due

    def run_due(self, now: float) -> int:
        """Invoke due callbacks in order; callbacks may schedule further timers."""
        fired = 0
        while True:
            batch = self.pop_due(now)
            if not batch:
                return fired
            for callback in batch:
                callback()
                fired += 1

    def clear(self) -> None:
        self._heap.clear()
