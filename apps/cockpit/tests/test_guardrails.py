"""Tests for the invariant checks run on proposals."""

from __future__ import annotations

from cockpit.services.optimization.base import LineItem
from cockpit.services.optimization.guardrails import (
    check_cpm_ceiling,
    check_line_identity,
    check_locked_spend,
    check_margin_bounds,
    check_non_negative_spend,
)


def _li(line_id: str, **overrides) -> LineItem:
    defaults = dict(
        id=line_id,
        name=f"Line {line_id}",
        spend=100.0,
        cpm_revenue=5.0,
        margin_pct=20.0,
        kpi_actual=1.0,
    )
    defaults.update(overrides)
    return LineItem(**defaults)


class TestGuardrails:
    def test_identity_passes(self):
        current = [_li("a"), _li("b")]
        result = check_line_identity(current, [_li("a", spend=50.0), _li("b")])
        assert result.passed is True

    def test_identity_detects_reorder(self):
        result = check_line_identity([_li("a"), _li("b")], [_li("b"), _li("a")])
        assert result.passed is False
        assert result.details["missing"] == []

    def test_identity_detects_missing_and_unexpected(self):
        result = check_line_identity([_li("a"), _li("b")], [_li("a"), _li("z")])
        assert result.passed is False
        assert result.details["missing"] == ["b"]
        assert result.details["unexpected"] == ["z"]

    def test_margin_bounds(self):
        assert check_margin_bounds([_li("a", margin_pct=5.0), _li("b", margin_pct=95.0)]).passed
        result = check_margin_bounds([_li("a", margin_pct=4.99), _li("b", margin_pct=96.0)])
        assert result.passed is False
        assert len(result.details["violations"]) == 2
        assert "margin range" in result.message

    def test_non_negative_spend(self):
        assert check_non_negative_spend([_li("a", spend=0.0)]).passed
        assert not check_non_negative_spend([_li("a", spend=-0.01)]).passed

    def test_locked_spend(self):
        current = [_li("a", spend=600.0), _li("b")]
        assert check_locked_spend(current, [_li("a", spend=600.0), _li("b", spend=1.0)], frozenset({"a"})).passed
        result = check_locked_spend(current, [_li("a", spend=600.01), _li("b")], frozenset({"a"}))
        assert result.passed is False
        assert result.details["violations"][0]["id"] == "a"

    def test_locked_spend_no_locks(self):
        result = check_locked_spend([_li("a")], [_li("a", spend=1.0)], frozenset())
        assert result.passed is True
        assert result.message == "No locked lines"

    def test_cpm_ceiling(self):
        assert check_cpm_ceiling([_li("a", cpm_revenue=9.0)], None).passed
        assert check_cpm_ceiling([_li("a", cpm_revenue=10.0)], 10.0).passed
        result = check_cpm_ceiling([_li("a", cpm_revenue=10.01)], 10.0)
        assert result.passed is False
        assert result.rule_name == "cpm_ceiling"
