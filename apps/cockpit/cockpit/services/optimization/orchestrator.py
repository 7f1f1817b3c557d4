"""Two-phase optimization workflow: propose, then apply.

Pipeline for ``propose``:
  1. Preconditions    : margin goal selected, positive target KPI
  2. Performance      : one signal per line
  3. Margin & CPM     : new margin and sold CPM per line
  4. Allocation score : one weight per line
  5. Reallocation     : damped proportional split of unlocked spend
  6. Guardrails       : invariant checks recorded on the proposal

``propose`` is pure: it reads one snapshot and returns a
``ProposedOptimization`` value that the caller holds. ``apply`` takes that
value back, recomputes it from the stored collection, refuses anything that
differs and commits the line items and one history entry together.
"""

from __future__ import annotations

import enum
import logging
import math
import uuid as uuid_mod
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from cockpit.services.campaign_store import CampaignStore, HistoryRecord
from cockpit.services.optimization.allocation import AllocationScorer
from cockpit.services.optimization.base import (
    LineItem,
    OptimizationParameters,
    ScoredLineItem,
)
from cockpit.services.optimization.cpm import build_cpm_adjuster
from cockpit.services.optimization.exceptions import (
    InvariantViolationError,
    MissingMarginGoalError,
    PreconditionFailure,
    StaleProposalError,
)
from cockpit.services.optimization.guardrails import (
    GuardrailCheckResult,
    check_cpm_ceiling,
    check_line_identity,
    check_locked_spend,
    check_margin_bounds,
    check_non_negative_spend,
)
from cockpit.services.optimization.margin import MarginAdjuster
from cockpit.services.optimization.performance import score_performance
from cockpit.services.optimization.portfolio import PortfolioMetrics
from cockpit.services.optimization.reallocation import (
    BudgetReallocator,
    ReallocationTotals,
)
from cockpit.settings import settings

logger = logging.getLogger(__name__)

HISTORY_ACTION = "OPTIMIZATION"

# Posted values are JSON round-tripped; compare within this tolerance
VALUE_TOLERANCE = 1e-6


class OptimizationState(str, enum.Enum):
    PROPOSED = "proposed"
    APPLIED = "applied"


# ---------------------------------------------------------------------------
# State values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProposedOptimization:
    """A candidate line item set, not yet committed."""

    params: OptimizationParameters
    line_items: tuple[LineItem, ...]
    original: tuple[LineItem, ...] = ()
    scored: tuple[ScoredLineItem, ...] = ()
    totals: ReallocationTotals | None = None
    checks: tuple[GuardrailCheckResult, ...] = ()

    state = OptimizationState.PROPOSED

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def cpm_ceiling(self) -> float | None:
        return self.params.cpm_ceiling if self.params.respect_ceiling else None

    def summary(self) -> str:
        goal = self.params.margin_goal.value if self.params.margin_goal else "none"
        before = PortfolioMetrics.from_items(self.original)
        after = PortfolioMetrics.from_items(self.line_items)
        return (
            f"Multi-line optimization, margin goal '{goal}': "
            f"{after.line_count} line(s), "
            f"spend {before.total_spend:.2f} -> {after.total_spend:.2f}, "
            f"margin {before.margin_pct:.2f}% -> {after.margin_pct:.2f}%"
        )


@dataclass(frozen=True)
class AppliedOptimization:
    """A committed optimization and its audit entry."""

    proposal: ProposedOptimization
    history_id: uuid_mod.UUID
    applied_at: datetime | None
    note: str
    metrics: PortfolioMetrics

    state = OptimizationState.APPLIED

    @property
    def line_items(self) -> tuple[LineItem, ...]:
        return self.proposal.line_items


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class OptimizationOrchestrator:
    """Sequences the optimizer components; owns no mutable state."""

    def __init__(
        self,
        *,
        margin_adjuster: MarginAdjuster | None = None,
        reallocator: BudgetReallocator | None = None,
    ) -> None:
        self.margin_adjuster = margin_adjuster or MarginAdjuster()
        self.reallocator = reallocator or BudgetReallocator()

    # ---- propose --------------------------------------------------------------

    def propose(
        self,
        items: Sequence[LineItem],
        params: OptimizationParameters,
    ) -> ProposedOptimization:
        """Compute a candidate set. Raises ``PreconditionFailure`` subclasses."""
        goal = params.margin_goal
        if goal is None:
            raise MissingMarginGoalError()
        if params.target_kpi <= 0:
            raise PreconditionFailure(
                "Target KPI must be positive",
                details={"target_kpi": params.target_kpi},
            )

        snapshot = tuple(items)
        cpm_adjuster = build_cpm_adjuster(params)
        scorer = AllocationScorer(
            goal,
            cpm_ceiling=cpm_adjuster.ceiling,
            portfolio_cpm=cpm_adjuster.portfolio_average(snapshot),
        )

        scored: list[ScoredLineItem] = []
        for item in snapshot:
            signal = score_performance(
                item, target_kpi=params.target_kpi, kpi_kind=params.kpi_kind
            )
            line = ScoredLineItem(
                item=item,
                signal=signal,
                locked=params.is_locked(item.id),
                new_margin=self.margin_adjuster.adjust(item.margin_pct, signal, goal),
                new_cpm_revenue=cpm_adjuster.adjust(item.cpm_revenue, signal, goal),
            )
            scored.append(scorer.score(line))

        reallocated, totals = self.reallocator.reallocate(scored)
        proposed = tuple(line.to_line_item() for line in reallocated)

        proposal = ProposedOptimization(
            params=params,
            line_items=proposed,
            original=snapshot,
            scored=tuple(reallocated),
            totals=totals,
            checks=tuple(self.check(snapshot, proposed, params)),
        )
        logger.info(
            "Proposed %s optimization over %d line(s) (%d locked, strategy=%s)",
            goal.value,
            len(snapshot),
            len(params.locked_ids),
            cpm_adjuster.name,
        )
        return proposal

    def check(
        self,
        current: Sequence[LineItem],
        proposed: Sequence[LineItem],
        params: OptimizationParameters,
    ) -> list[GuardrailCheckResult]:
        return [
            check_line_identity(current, proposed),
            check_margin_bounds(
                proposed,
                floor=self.margin_adjuster.floor,
                ceiling=self.margin_adjuster.ceiling,
            ),
            check_non_negative_spend(proposed),
            check_locked_spend(current, proposed, params.locked_ids),
            check_cpm_ceiling(
                proposed, params.cpm_ceiling if params.respect_ceiling else None
            ),
        ]

    # ---- apply ----------------------------------------------------------------

    def apply(
        self,
        store: CampaignStore,
        campaign_id: uuid_mod.UUID,
        proposal: ProposedOptimization,
    ) -> AppliedOptimization:
        """Commit *proposal* as the campaign's full line item collection.

        The proposal is recomputed from the stored snapshot with its own
        parameters; only a set identical to that recomputation is written.

        Raises ``MissingMarginGoalError`` without a goal,
        ``StaleProposalError`` when the stored collection no longer yields
        the posted set and ``InvariantViolationError`` when any check fails.
        Nothing is written in those cases.
        """
        goal = proposal.params.margin_goal
        if goal is None:
            raise MissingMarginGoalError()

        current = store.load_line_items(campaign_id)
        identity = check_line_identity(current, proposal.line_items)
        if not identity.passed:
            raise StaleProposalError(identity.message, details=identity.details)

        committed = self.propose(current, proposal.params)
        drifted = _drifted_ids(committed.line_items, proposal.line_items)
        if drifted:
            raise StaleProposalError(
                "Posted line items do not match a proposal for the stored collection",
                details={"mismatched": drifted},
            )

        failed = [c for c in committed.checks if not c.passed]
        if failed:
            raise InvariantViolationError(
                "; ".join(c.message for c in failed),
                details={"checks": [c.to_dict() for c in failed]},
            )

        before = PortfolioMetrics.from_items(current)
        after = PortfolioMetrics.from_items(committed.line_items)
        note = committed.summary()

        entry = store.replace_line_items(
            campaign_id,
            committed.line_items,
            HistoryRecord(
                action=HISTORY_ACTION,
                note=note,
                margin_goal=goal.value,
                budget_spent=after.total_spend,
                margin_pct=after.margin_pct,
                cpm_revenue_actual=after.cpm_revenue,
                gain_realized=after.gain,
                details={
                    "margin_goal": goal.value,
                    "respect_ceiling": proposal.params.respect_ceiling,
                    "cpm_ceiling": committed.cpm_ceiling,
                    "locked_ids": sorted(proposal.params.locked_ids),
                    "before": before.to_dict(),
                    "after": after.to_dict(),
                },
            ),
            expected=current,
        )
        logger.info("Applied %s optimization to campaign %s", goal.value, campaign_id)
        return AppliedOptimization(
            proposal=committed,
            history_id=entry.id,
            applied_at=entry.created_at,
            note=note,
            metrics=after,
        )


def _drifted_ids(
    expected: Sequence[LineItem],
    posted: Sequence[LineItem],
) -> list[str]:
    """Ids whose posted values differ from the recomputed ones."""
    drifted = []
    for want, got in zip(expected, posted):
        same = want.name == got.name and all(
            math.isclose(getattr(want, f), getattr(got, f), abs_tol=VALUE_TOLERANCE)
            for f in ("spend", "cpm_revenue", "margin_pct", "kpi_actual")
        )
        if not same:
            drifted.append(want.id)
    return drifted


def build_orchestrator() -> OptimizationOrchestrator:
    """Build an orchestrator configured from application settings."""
    return OptimizationOrchestrator(
        margin_adjuster=MarginAdjuster(
            floor=settings.OPTIMIZATION_MARGIN_FLOOR,
            ceiling=settings.OPTIMIZATION_MARGIN_CEILING,
        ),
        reallocator=BudgetReallocator(
            damping_weight=settings.OPTIMIZATION_DAMPING_WEIGHT,
            zero_signal_retention=settings.OPTIMIZATION_ZERO_SIGNAL_RETENTION,
        ),
    )
