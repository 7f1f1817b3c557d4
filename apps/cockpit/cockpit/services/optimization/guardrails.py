"""Invariant checks for proposed line item sets.

Standalone pure-logic functions, each returning a ``GuardrailCheckResult``.
They run on every proposal and again on apply, where any failure blocks the
commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from cockpit.services.optimization.base import LineItem
from cockpit.services.optimization.margin import (
    DEFAULT_MARGIN_CEILING,
    DEFAULT_MARGIN_FLOOR,
)


@dataclass(frozen=True)
class GuardrailCheckResult:
    """Outcome of a single guardrail check."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_name": self.rule_name,
            "passed": self.passed,
            "message": self.message,
            "details": self.details,
        }


# ---------------------------------------------------------------------------
# 1. Line identity
# ---------------------------------------------------------------------------


def check_line_identity(
    current: Sequence[LineItem],
    proposed: Sequence[LineItem],
) -> GuardrailCheckResult:
    """The proposal keeps the same ids in the same order."""
    current_ids = [li.id for li in current]
    proposed_ids = [li.id for li in proposed]
    if current_ids != proposed_ids:
        return GuardrailCheckResult(
            passed=False,
            rule_name="line_identity",
            message="Proposed line items do not match the current ids and order",
            details={
                "missing": sorted(set(current_ids) - set(proposed_ids)),
                "unexpected": sorted(set(proposed_ids) - set(current_ids)),
                "current_count": len(current_ids),
                "proposed_count": len(proposed_ids),
            },
        )

    return GuardrailCheckResult(
        passed=True,
        rule_name="line_identity",
        message=f"{len(proposed_ids)} line item(s) preserved in order",
    )


# ---------------------------------------------------------------------------
# 2. Margin bounds
# ---------------------------------------------------------------------------


def check_margin_bounds(
    proposed: Sequence[LineItem],
    *,
    floor: float = DEFAULT_MARGIN_FLOOR,
    ceiling: float = DEFAULT_MARGIN_CEILING,
) -> GuardrailCheckResult:
    """Every margin stays within ``[floor, ceiling]``."""
    violations = [
        {"id": li.id, "margin_pct": li.margin_pct}
        for li in proposed
        if not floor <= li.margin_pct <= ceiling
    ]
    if violations:
        return GuardrailCheckResult(
            passed=False,
            rule_name="margin_bounds",
            message=(
                f"{len(violations)} line(s) outside the "
                f"{floor:g}-{ceiling:g}% margin range"
            ),
            details={"violations": violations, "floor": floor, "ceiling": ceiling},
        )

    return GuardrailCheckResult(
        passed=True,
        rule_name="margin_bounds",
        message="All margins within range",
    )


# ---------------------------------------------------------------------------
# 3. Non-negative spend
# ---------------------------------------------------------------------------


def check_non_negative_spend(proposed: Sequence[LineItem]) -> GuardrailCheckResult:
    violations = [{"id": li.id, "spend": li.spend} for li in proposed if li.spend < 0]
    if violations:
        return GuardrailCheckResult(
            passed=False,
            rule_name="non_negative_spend",
            message=f"{len(violations)} line(s) with negative spend",
            details={"violations": violations},
        )

    return GuardrailCheckResult(
        passed=True,
        rule_name="non_negative_spend",
        message="All spends non-negative",
    )


# ---------------------------------------------------------------------------
# 4. Locked spend
# ---------------------------------------------------------------------------


def check_locked_spend(
    current: Sequence[LineItem],
    proposed: Sequence[LineItem],
    locked_ids: frozenset[str],
) -> GuardrailCheckResult:
    """Locked lines keep exactly the spend they started with."""
    if not locked_ids:
        return GuardrailCheckResult(
            passed=True,
            rule_name="locked_spend",
            message="No locked lines",
        )

    before = {li.id: li.spend for li in current}
    violations = [
        {"id": li.id, "current": before[li.id], "proposed": li.spend}
        for li in proposed
        if li.id in locked_ids and li.id in before and li.spend != before[li.id]
    ]
    if violations:
        return GuardrailCheckResult(
            passed=False,
            rule_name="locked_spend",
            message=f"Spend changed on {len(violations)} locked line(s)",
            details={"violations": violations},
        )

    return GuardrailCheckResult(
        passed=True,
        rule_name="locked_spend",
        message=f"{len(locked_ids)} locked line(s) untouched",
    )


# ---------------------------------------------------------------------------
# 5. CPM ceiling
# ---------------------------------------------------------------------------


def check_cpm_ceiling(
    proposed: Sequence[LineItem],
    cpm_ceiling: float | None,
) -> GuardrailCheckResult:
    """No sold CPM above the ceiling when one is enforced."""
    if cpm_ceiling is None or cpm_ceiling <= 0:
        return GuardrailCheckResult(
            passed=True,
            rule_name="cpm_ceiling",
            message="No CPM ceiling enforced",
        )

    violations = [
        {"id": li.id, "cpm_revenue": li.cpm_revenue}
        for li in proposed
        if li.cpm_revenue > cpm_ceiling
    ]
    if violations:
        return GuardrailCheckResult(
            passed=False,
            rule_name="cpm_ceiling",
            message=f"{len(violations)} line(s) above the {cpm_ceiling:.2f} CPM ceiling",
            details={"violations": violations, "cpm_ceiling": cpm_ceiling},
        )

    return GuardrailCheckResult(
        passed=True,
        rule_name="cpm_ceiling",
        message=f"All CPMs at or below {cpm_ceiling:.2f}",
    )
