"""Core value types for the line item reallocation optimizer.

Everything here is immutable: a pass operates over one snapshot and produces
new objects rather than mutating its inputs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Iterable


class KpiKind(str, enum.Enum):
    """Orientation of a KPI: cost-type is lower-is-better, quality-type higher."""

    COST = "cost"
    QUALITY = "quality"


class MarginGoal(str, enum.Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


# KPI names the dashboard treats as quality-type; anything else is a cost.
QUALITY_KPI_NAMES = frozenset({"viewability", "vtr", "ctr"})


def kpi_kind_for(kpi_name: str) -> KpiKind:
    """Classify a KPI name such as ``"CPC"`` or ``"CTR"``."""
    if kpi_name.strip().lower() in QUALITY_KPI_NAMES:
        return KpiKind.QUALITY
    return KpiKind.COST


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItem:
    """One sub-budget of a campaign."""

    id: str
    name: str
    spend: float
    cpm_revenue: float
    margin_pct: float
    kpi_actual: float


@dataclass(frozen=True)
class OptimizationParameters:
    target_kpi: float
    kpi_kind: KpiKind
    margin_goal: MarginGoal | None = None
    cpm_ceiling: float = 0.0
    respect_ceiling: bool = False
    locked_ids: frozenset[str] = field(default_factory=frozenset)

    def is_locked(self, line_id: str) -> bool:
        return line_id in self.locked_ids


# ---------------------------------------------------------------------------
# Performance signal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerformanceSignal:
    """Either ``Missing`` (cost KPI with no observed value) or a measured ratio.

    ``ratio`` is oriented so that > 1 means the line beats its target. A
    missing signal reports ``ratio == 0.0`` so that tier tables keyed on the
    ratio still select a row, but callers that must treat it differently
    check ``is_missing``.
    """

    ratio: float
    is_missing: bool = False

    @classmethod
    def missing(cls) -> "PerformanceSignal":
        return cls(ratio=0.0, is_missing=True)

    @classmethod
    def measured(cls, ratio: float) -> "PerformanceSignal":
        return cls(ratio=ratio, is_missing=False)


# ---------------------------------------------------------------------------
# Derived per-pass values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoredLineItem:
    """A line item plus everything computed for it during one pass."""

    item: LineItem
    signal: PerformanceSignal
    locked: bool
    new_margin: float
    new_cpm_revenue: float
    allocation_score: float = 0.0
    cap_alignment_bonus: float = 1.0
    final_spend: float | None = None

    @property
    def perf_ratio(self) -> float:
        return self.signal.ratio

    def to_line_item(self) -> LineItem:
        """Project back onto a ``LineItem``; ``kpi_actual`` is carried over."""
        spend = self.item.spend if self.final_spend is None else self.final_spend
        return replace(
            self.item,
            spend=spend,
            cpm_revenue=self.new_cpm_revenue,
            margin_pct=self.new_margin,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.item.id,
            "perf_ratio": round(self.signal.ratio, 6),
            "signal_missing": self.signal.is_missing,
            "locked": self.locked,
            "new_margin": self.new_margin,
            "new_cpm_revenue": self.new_cpm_revenue,
            "allocation_score": round(self.allocation_score, 6),
            "cap_alignment_bonus": round(self.cap_alignment_bonus, 6),
            "final_spend": self.final_spend,
        }


def total_spend(items: Iterable[LineItem]) -> float:
    return sum(item.spend for item in items)
