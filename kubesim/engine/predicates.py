"""Guarded predicate watches evaluated between ticks.

A predicate is a best-effort callable over the store (objective checks,
test waits). Evaluation errors are logged and treated as "not yet
satisfied"; they never interrupt the simulation.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from kubesim.notifications import EventBus, Topic
from kubesim.notifications.payloads import PredicateSatisfied
from kubesim.observability.logging import get_logger
from kubesim.store import ClusterStore

_logger = get_logger("engine.predicates")

Predicate = Callable[[ClusterStore], bool]


@dataclass
class _Watch:
    predicate: Predicate
    once: bool
    satisfied_at: float | None = None
    failures: int = 0


class PredicateWatcher:
    def __init__(self, store: ClusterStore, bus: EventBus) -> None:
        self._store = store
        self._bus = bus
        self._watches: dict[str, _Watch] = {}

    def watch(self, predicate_id: str, predicate: Predicate, *, once: bool = True) -> None:
        self._watches[predicate_id] = _Watch(predicate, once)

    def unwatch(self, predicate_id: str) -> bool:
        return self._watches.pop(predicate_id, None) is not None

    def satisfied_at(self, predicate_id: str) -> float | None:
        watch = self._watches.get(predicate_id)
        return watch.satisfied_at if watch else None

    def check(self, predicate_id: str) -> bool:
        """Evaluate one predicate under the guard, without publishing."""
        watch = self._watches.get(predicate_id)
        return watch is not None and self._evaluate(predicate_id, watch)

    def evaluate(self, now: float) -> list[str]:
        """Evaluate every watch; returns the ids satisfied on this pass."""
        satisfied: list[str] = []
        for predicate_id, watch in list(self._watches.items()):
            if watch.once and watch.satisfied_at is not None:
                continue
            if not self._evaluate(predicate_id, watch):
                continue
            watch.satisfied_at = now
            satisfied.append(predicate_id)
            self._bus.publish(Topic.PREDICATE_SATISFIED, PredicateSatisfied(predicate_id=predicate_id, sim_time=now))
        return satisfied

    def clear(self) -> None:
        self._watches.clear()

    def _evaluate(self, predicate_id: str, watch: _Watch) -> bool:
        try:
            return bool(watch.predicate(self._store))
        except Exception as exc:
            watch.failures += 1
            _logger.warning(
                "predicate_error",
                predicate=predicate_id,
                error=str(exc),
                error_type=type(exc).__name__,
                failures=watch.failures,
            )
            return False
