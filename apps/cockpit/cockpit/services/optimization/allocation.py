"""Allocation scoring.

Squares the performance ratio so outperformers are rewarded super-linearly,
then biases toward lines already moving in the desired margin direction and,
in ceiling mode, toward lines whose new CPM helps the portfolio average.
"""

from __future__ import annotations

from dataclasses import replace

from cockpit.services.optimization.base import MarginGoal, ScoredLineItem

PERF_RATIO_FLOOR = 0.1
BONUS_MIN = 0.5
BONUS_MAX = 1.5
BONUS_SLOPE = 0.5


def cap_alignment_bonus(
    new_cpm_revenue: float,
    *,
    cpm_ceiling: float,
    portfolio_cpm: float,
) -> float:
    """Reward lines that move the blended CPM toward the ceiling.

    Below the ceiling, lines pricing higher are favoured; at or above it,
    lines pulling the average down are. A non-positive ceiling gives 1.0.
    """
    if cpm_ceiling <= 0:
        return 1.0
    ratio = new_cpm_revenue / cpm_ceiling
    if portfolio_cpm < cpm_ceiling:
        bonus = 1 + (ratio - 1) * BONUS_SLOPE
    else:
        bonus = 1 + (1 - ratio) * BONUS_SLOPE
    return min(BONUS_MAX, max(BONUS_MIN, bonus))


class AllocationScorer:
    def __init__(
        self,
        goal: MarginGoal,
        *,
        cpm_ceiling: float | None = None,
        portfolio_cpm: float | None = None,
    ) -> None:
        self.goal = goal
        self.cpm_ceiling = cpm_ceiling
        self.portfolio_cpm = portfolio_cpm

    @property
    def ceiling_mode(self) -> bool:
        return self.cpm_ceiling is not None and self.portfolio_cpm is not None

    def margin_weight(self, new_margin: float) -> float:
        if self.goal is MarginGoal.INCREASE:
            return 1 + new_margin / 100
        return 1 + (100 - new_margin) / 100

    def score(self, line: ScoredLineItem) -> ScoredLineItem:
        """Return *line* with ``allocation_score`` and bonus filled in."""
        bonus = 1.0
        if self.ceiling_mode:
            bonus = cap_alignment_bonus(
                line.new_cpm_revenue,
                cpm_ceiling=self.cpm_ceiling,
                portfolio_cpm=self.portfolio_cpm,
            )

        if line.signal.is_missing:
            return replace(line, allocation_score=0.0, cap_alignment_bonus=bonus)

        perf_score = max(PERF_RATIO_FLOOR, line.signal.ratio) ** 2
        allocation_score = perf_score * bonus * self.margin_weight(line.new_margin)
        return replace(line, allocation_score=allocation_score, cap_alignment_bonus=bonus)
