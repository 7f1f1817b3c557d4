"""Sold CPM adjustment strategies.

Two interchangeable strategies share one interface: a ceiling-aware one that
nudges each line toward, never past, the portfolio CPM ceiling, and a simple
one with coarser steps and no ceiling at all.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from cockpit.services.optimization.base import (
    LineItem,
    MarginGoal,
    OptimizationParameters,
    PerformanceSignal,
)
from cockpit.services.optimization.portfolio import weighted_cpm_revenue

logger = logging.getLogger(__name__)


class RevenueCpmAdjuster(ABC):
    """Abstract base for CPM adjustment strategies."""

    name: str = ""

    @property
    def ceiling(self) -> float | None:
        """The enforced CPM ceiling, or ``None`` when unconstrained."""
        return None

    def portfolio_average(self, items: Sequence[LineItem]) -> float | None:
        """Current spend-weighted CPM when the strategy needs it, else ``None``."""
        return None

    @abstractmethod
    def adjust(
        self,
        cpm_revenue: float,
        signal: PerformanceSignal,
        goal: MarginGoal,
    ) -> float:
        """Return the new sold CPM for one line."""
        ...


class CeilingAwareCpmAdjuster(RevenueCpmAdjuster):
    """Step toward the ceiling; the step shrinks as the line approaches it.

    Each tier is ``(min_ratio, multiplier, bound)`` where ``bound`` is a
    fraction of the ceiling, or ``None`` for no bound.
    """

    name = "ceiling_aware"

    INCREASE_TIERS: tuple[tuple[float, float, float | None], ...] = (
        (1.2, 1.05, 1.0),
        (1.0, 1.03, 0.95),
        (0.8, 1.01, 0.85),
        (float("-inf"), 0.97, None),
    )
    DECREASE_TIERS: tuple[tuple[float, float, float | None], ...] = (
        (1.0, 0.98, 0.95),
        (float("-inf"), 0.95, None),
    )

    def __init__(self, cpm_ceiling: float) -> None:
        self._ceiling = cpm_ceiling

    @property
    def ceiling(self) -> float:
        return self._ceiling

    def portfolio_average(self, items: Sequence[LineItem]) -> float:
        return weighted_cpm_revenue(items)

    def adjust(
        self,
        cpm_revenue: float,
        signal: PerformanceSignal,
        goal: MarginGoal,
    ) -> float:
        if self._ceiling <= 0:
            return cpm_revenue

        tiers = self.INCREASE_TIERS if goal is MarginGoal.INCREASE else self.DECREASE_TIERS
        new_cpm = cpm_revenue
        for min_ratio, multiplier, bound in tiers:
            if signal.ratio >= min_ratio:
                new_cpm = cpm_revenue * multiplier
                if bound is not None:
                    new_cpm = min(new_cpm, self._ceiling * bound)
                break

        return min(round(new_cpm, 4), self._ceiling)


class SimpleCpmAdjuster(RevenueCpmAdjuster):
    """Coarse steps for strong performers only; no ceiling."""

    name = "simple"

    def adjust(
        self,
        cpm_revenue: float,
        signal: PerformanceSignal,
        goal: MarginGoal,
    ) -> float:
        ratio = signal.ratio
        if goal is MarginGoal.INCREASE:
            if ratio >= 1.2:
                return round(cpm_revenue * 1.08, 4)
            if ratio >= 1.0:
                return round(cpm_revenue * 1.05, 4)
            return cpm_revenue

        if ratio >= 1.0:
            return round(cpm_revenue * 0.97, 4)
        return cpm_revenue


def build_cpm_adjuster(params: OptimizationParameters) -> RevenueCpmAdjuster:
    """Pick the strategy matching ``params.respect_ceiling``."""
    if not params.respect_ceiling:
        return SimpleCpmAdjuster()
    if params.cpm_ceiling <= 0:
        logger.warning(
            "CPM ceiling %.4f is not positive; sold CPMs will be left unchanged",
            params.cpm_ceiling,
        )
    return CeilingAwareCpmAdjuster(params.cpm_ceiling)
