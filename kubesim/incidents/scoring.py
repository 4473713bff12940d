"""Resolution rewards: base XP per severity, combo multiplier, fast bonus."""

from __future__ import annotations

import math
from dataclasses import dataclass

from kubesim.incidents.catalog import SEVERITY_XP

COMBO_STEP = 0.25
FAST_RESOLVE_MULTIPLIER = 1.5


def base_xp(severity: int) -> int:
    return SEVERITY_XP.get(severity, SEVERITY_XP[1])


def apply_combo(xp: int, combo: int) -> int:
    return math.floor(xp * (1 + combo * COMBO_STEP))


def apply_fast_bonus(xp: int, resolution_time: float, threshold: float) -> int:
    if resolution_time < threshold:
        return math.floor(xp * FAST_RESOLVE_MULTIPLIER)
    return xp


@dataclass
class ComboTracker:
    """Counts resolves that land within ``window`` seconds of the previous one."""

    window: float
    count: int = 0
    last_resolve_at: float | None = None

    def register(self, now: float) -> bool:
        """Record a resolve at *now*; returns True when it extended the combo."""
        chained = self.last_resolve_at is not None and now - self.last_resolve_at < self.window
        self.count = self.count + 1 if chained else 1
        self.last_resolve_at = now
        return chained

    def reset(self) -> None:
        self.count = 0
        self.last_resolve_at = None


def score_resolution(
    severity: int,
    resolution_time: float,
    combo: ComboTracker,
    now: float,
    fast_threshold: float,
) -> int:
    xp = base_xp(severity)
    if combo.register(now):
        xp = apply_combo(xp, combo.count)
    return apply_fast_bonus(xp, resolution_time, fast_threshold)
