"""Pydantic schemas for line item optimization endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from cockpit.services.optimization.base import MarginGoal


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class LineItemIn(BaseModel):
    id: str
    name: str
    spend: float
    cpm_revenue: float
    margin_pct: float
    kpi_actual: float


class LineItemOut(LineItemIn):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ScoredLineItemOut(BaseModel):
    id: str
    perf_ratio: float
    signal_missing: bool
    locked: bool
    new_margin: float
    new_cpm_revenue: float
    allocation_score: float
    cap_alignment_bonus: float
    final_spend: float | None = None


class GuardrailCheckOut(BaseModel):
    rule_name: str
    passed: bool
    message: str
    details: dict[str, Any] = {}


class PortfolioMetricsOut(BaseModel):
    line_count: int
    total_spend: float
    cpm_revenue: float
    margin_pct: float
    gain: float


class ProposalOut(BaseModel):
    """A proposed line item set; hand ``line_items`` back to apply it."""

    state: str
    margin_goal: MarginGoal
    respect_ceiling: bool
    cpm_ceiling: float | None = None
    locked_ids: list[str] = []
    line_items: list[LineItemOut]
    scoring: list[ScoredLineItemOut] = []
    totals: dict[str, float] = {}
    checks: list[GuardrailCheckOut] = []
    before: PortfolioMetricsOut
    after: PortfolioMetricsOut
    summary: str


class HistoryEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    campaign_id: uuid.UUID
    action: str
    note: str
    margin_goal: str | None = None
    budget_spent: float
    margin_pct: float
    cpm_revenue_actual: float
    gain_realized: float
    details_json: dict[str, Any] = {}
    created_at: datetime


class ApplyResultOut(BaseModel):
    state: str
    line_items: list[LineItemOut]
    history: HistoryEntryOut


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ProposeRequest(BaseModel):
    """Parameters for one reallocation pass.

    ``target_kpi``, ``kpi_type`` and ``cpm_ceiling`` default to the
    campaign's own settings when omitted.
    """

    margin_goal: MarginGoal | None = None
    locked_ids: list[str] = []
    respect_ceiling: bool = False
    target_kpi: float | None = None
    kpi_type: str | None = None
    cpm_ceiling: float | None = None


class ApplyRequest(ProposeRequest):
    """A proposed set to commit, posted with the parameters it was proposed with.

    The set is recomputed from the stored line items; anything that differs
    is rejected.
    """

    line_items: list[LineItemIn]
