"""Advisory quota enforcement.

Alerts on the transition into violation; a namespace that stays over its
quota is not re-announced until it has recovered first. Nothing is evicted.
"""

from __future__ import annotations

from kubesim.controllers.base import ReconcileContext
from kubesim.models.quota import QuotaCheckResult
from kubesim.notifications import Topic
from kubesim.notifications.payloads import QuotaExceeded
from kubesim.observability.logging import get_logger

_logger = get_logger("engine.quota")


class QuotaMonitor:
    def __init__(self) -> None:
        self._violating: set[str] = set()

    @property
    def violating(self) -> frozenset[str]:
        return frozenset(self._violating)

    def enforce(self, ctx: ReconcileContext) -> dict[str, QuotaCheckResult]:
        results: dict[str, QuotaCheckResult] = {}
        for namespace in ctx.store.quota_namespaces():
            result = ctx.store.check_quota(namespace)
            results[namespace] = result
            if result.allowed:
                self._violating.discard(namespace)
                continue
            if namespace in self._violating:
                continue
            self._violating.add(namespace)
            _logger.warning("quota_exceeded", namespace=namespace, violations=result.violations)
            ctx.bus.publish(
                Topic.QUOTA_EXCEEDED,
                QuotaExceeded(namespace=namespace, violations=tuple(result.violations), usage=result.usage),
            )
        self._violating &= set(results)
        return results

    def reset(self) -> None:
        self._violating.clear()
