"""Budget reallocation across unlocked line items.

The unlocked share of total spend is split in proportion to allocation
scores, then blended with each line's prior spend so a single pass never
shocks the budget. Lines with no usable cost signal sit outside the pool and
keep only a fixed fraction of their spend.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Sequence

from cockpit.services.optimization.base import ScoredLineItem

logger = logging.getLogger(__name__)

DEFAULT_DAMPING_WEIGHT = 0.7  # share of the ideal allocation in the blend
DEFAULT_ZERO_SIGNAL_RETENTION = 0.1  # share of spend kept by no-signal lines


@dataclass(frozen=True)
class ReallocationTotals:
    total_spend: float
    locked_spend: float
    available_spend: float
    total_score: float

    def to_dict(self) -> dict:
        return {
            "total_spend": round(self.total_spend, 2),
            "locked_spend": round(self.locked_spend, 2),
            "available_spend": round(self.available_spend, 2),
            "total_score": round(self.total_score, 6),
        }


class BudgetReallocator:
    def __init__(
        self,
        *,
        damping_weight: float = DEFAULT_DAMPING_WEIGHT,
        zero_signal_retention: float = DEFAULT_ZERO_SIGNAL_RETENTION,
    ) -> None:
        self.damping_weight = damping_weight
        self.zero_signal_retention = zero_signal_retention

    @staticmethod
    def totals(lines: Sequence[ScoredLineItem]) -> ReallocationTotals:
        total = sum(li.item.spend for li in lines)
        locked = sum(li.item.spend for li in lines if li.locked)
        score = sum(li.allocation_score for li in lines if not li.locked)
        return ReallocationTotals(
            total_spend=total,
            locked_spend=locked,
            available_spend=max(0.0, total - locked),
            total_score=score,
        )

    def reallocate(
        self, lines: Sequence[ScoredLineItem]
    ) -> tuple[list[ScoredLineItem], ReallocationTotals]:
        """Return *lines* with ``final_spend`` set, in the same order."""
        totals = self.totals(lines)
        if totals.total_score <= 0:
            logger.warning(
                "No unlocked line has a positive allocation score; "
                "keeping current spend for scored lines"
            )

        result: list[ScoredLineItem] = []
        for line in lines:
            result.append(replace(line, final_spend=self._final_spend(line, totals)))
        return result, totals

    def _final_spend(self, line: ScoredLineItem, totals: ReallocationTotals) -> float:
        spend = line.item.spend
        if line.locked:
            return spend

        if line.signal.is_missing:
            value = spend * self.zero_signal_retention
        else:
            if totals.total_score > 0:
                theoretical = (
                    line.allocation_score / totals.total_score
                ) * totals.available_spend
            else:
                theoretical = spend
            value = self.damping_weight * theoretical + (1 - self.damping_weight) * spend

        if math.isnan(value):
            logger.warning("Spend for line %s is NaN; setting it to 0", line.item.id)
            return 0.0
        return round(value, 2)
