"""Namespace quota accounting.

Usage is recomputed by summing the requests and limits of active pods
(Running or Pending) every time it is asked for. Checks are advisory: they
report violations and never reject or evict.
"""

from __future__ import annotations

from collections.abc import Iterable

from kubesim.models.quota import QuotaCheckResult, QuotaSpec, QuotaUsage
from kubesim.models.resources import PodPhase, Resource

_QUOTA_PHASES = frozenset({PodPhase.RUNNING, PodPhase.PENDING})


def compute_usage(pods: Iterable[Resource]) -> QuotaUsage:
    cpu = 0.0
    memory = 0.0
    limits_cpu = 0.0
    limits_memory = 0.0
    count = 0
    for pod in pods:
        if pod.status.phase not in _QUOTA_PHASES:
            continue
        requests = pod.spec.requests()
        limits = pod.spec.limits()
        cpu += requests.cpu
        memory += requests.memory
        limits_cpu += limits.cpu
        limits_memory += limits.memory
        count += 1
    return QuotaUsage(cpu=cpu, memory=memory, pods=count, limits_cpu=limits_cpu, limits_memory=limits_memory)


def evaluate(
    hard: QuotaSpec | None,
    usage: QuotaUsage,
    cpu: float = 0.0,
    memory: float = 0.0,
    pods: int = 0,
) -> QuotaCheckResult:
    """Compare projected usage (current plus the request) against *hard*.

    *cpu* and *memory* are the requests of the prospective pods; limit
    budgets are checked against current usage only.
    """
    if hard is None:
        return QuotaCheckResult(allowed=True, usage=usage)

    violations: list[str] = []
    projected_cpu = usage.cpu + cpu
    projected_memory = usage.memory + memory
    projected_pods = usage.pods + pods
    if hard.cpu is not None and projected_cpu > hard.cpu:
        violations.append(f"CPU quota exceeded: {projected_cpu:g}m > {hard.cpu:g}m")
    if hard.memory is not None and projected_memory > hard.memory:
        violations.append(f"Memory quota exceeded: {projected_memory:g}Mi > {hard.memory:g}Mi")
    if hard.pods is not None and projected_pods > hard.pods:
        violations.append(f"Pod count exceeded: {projected_pods} > {hard.pods}")
    if hard.limits_cpu is not None and usage.limits_cpu > hard.limits_cpu:
        violations.append(f"CPU limits quota exceeded: {usage.limits_cpu:g}m > {hard.limits_cpu:g}m")
    if hard.limits_memory is not None and usage.limits_memory > hard.limits_memory:
        violations.append(f"Memory limits quota exceeded: {usage.limits_memory:g}Mi > {hard.limits_memory:g}Mi")
    return QuotaCheckResult(allowed=not violations, violations=violations, usage=usage, hard=hard)
