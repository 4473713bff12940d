"""Namespace quota models.

Usage is never tracked incrementally; it is recomputed from active pods on
every check. ``cpu``/``memory`` budget container requests and
``limits_cpu``/``limits_memory`` budget container limits, the way a
ResourceQuota's ``requests.*`` and ``limits.*`` keys do.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class QuotaSpec:
    """Hard limits for one namespace; ``None`` leaves a dimension unlimited."""

    cpu: float | None = None
    memory: float | None = None
    pods: int | None = None
    limits_cpu: float | None = None
    limits_memory: float | None = None


@dataclass(frozen=True)
class QuotaUsage:
    cpu: float = 0.0
    memory: float = 0.0
    pods: int = 0
    limits_cpu: float = 0.0
    limits_memory: float = 0.0


@dataclass(frozen=True)
class QuotaCheckResult:
    allowed: bool
    violations: list[str] = field(default_factory=list)
    usage: QuotaUsage = field(default_factory=QuotaUsage)
    hard: QuotaSpec | None = None
