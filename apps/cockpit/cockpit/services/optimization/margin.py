"""Margin adjustment policy.

Strong performers absorb more margin under "increase" and lose less under
"decrease". Weak performers are shielded from extra margin but squeezed when
the goal is to push volume.
"""

from __future__ import annotations

from cockpit.services.optimization.base import MarginGoal, PerformanceSignal

DEFAULT_MARGIN_FLOOR = 5.0
DEFAULT_MARGIN_CEILING = 95.0

STRONG_RATIO = 1.2
TARGET_RATIO = 1.0


class MarginAdjuster:
    """Derive a new margin percentage from a performance signal and goal."""

    def __init__(
        self,
        *,
        floor: float = DEFAULT_MARGIN_FLOOR,
        ceiling: float = DEFAULT_MARGIN_CEILING,
    ) -> None:
        self.floor = floor
        self.ceiling = ceiling

    def step(self, signal: PerformanceSignal, goal: MarginGoal) -> float:
        """Margin delta in percentage points, before clamping."""
        if signal.is_missing:
            return 0.0

        ratio = signal.ratio
        if goal is MarginGoal.INCREASE:
            if ratio >= STRONG_RATIO:
                return 5.0
            if ratio >= TARGET_RATIO:
                return 2.0
            return 0.0

        if ratio >= STRONG_RATIO:
            return -2.0
        return -5.0

    def adjust(
        self,
        margin_pct: float,
        signal: PerformanceSignal,
        goal: MarginGoal,
    ) -> float:
        new_margin = margin_pct + self.step(signal, goal)
        return round(self.clamp(new_margin), 2)

    def clamp(self, margin_pct: float) -> float:
        return min(self.ceiling, max(self.floor, margin_pct))
