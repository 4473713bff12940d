"""Control-loop engine: simulated time, scheduling, pod lifecycle and chaos."""

from __future__ import annotations

from kubesim.engine.clock import SimulationClock, TimerHandle, TimerQueue
from kubesim.engine.control_loop import ControlLoopEngine
from kubesim.engine.predicates import PredicateWatcher

__all__ = [
    "ControlLoopEngine",
    "PredicateWatcher",
    "SimulationClock",
    "TimerHandle",
    "TimerQueue",
]
