"""Portfolio-level aggregates over a set of line items."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from cockpit.services.optimization.base import LineItem


def weighted_cpm_revenue(items: Sequence[LineItem]) -> float:
    """Spend-weighted average sold CPM.

    With no spend to weight by, falls back to the plain mean of the line
    CPMs (0.0 for an empty portfolio).
    """
    spend = sum(li.spend for li in items)
    if spend > 0:
        return sum(li.cpm_revenue * li.spend for li in items) / spend
    if not items:
        return 0.0
    return sum(li.cpm_revenue for li in items) / len(items)


def weighted_margin_pct(items: Sequence[LineItem]) -> float:
    spend = sum(li.spend for li in items)
    if spend > 0:
        return sum(li.margin_pct * li.spend for li in items) / spend
    if not items:
        return 0.0
    return sum(li.margin_pct for li in items) / len(items)


@dataclass(frozen=True)
class PortfolioMetrics:
    """Headline numbers recorded alongside each applied optimization."""

    line_count: int
    total_spend: float
    cpm_revenue: float
    margin_pct: float
    gain: float

    @classmethod
    def from_items(cls, items: Sequence[LineItem]) -> "PortfolioMetrics":
        spend = sum(li.spend for li in items)
        return cls(
            line_count=len(items),
            total_spend=round(spend, 2),
            cpm_revenue=round(weighted_cpm_revenue(items), 4),
            margin_pct=round(weighted_margin_pct(items), 2),
            gain=round(sum(li.spend * li.margin_pct / 100 for li in items), 2),
        )

    def to_dict(self) -> dict:
        return {
            "line_count": self.line_count,
            "total_spend": self.total_spend,
            "cpm_revenue": self.cpm_revenue,
            "margin_pct": self.margin_pct,
            "gain": self.gain,
        }
