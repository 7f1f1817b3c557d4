"""FastAPI router for line item optimization endpoints.

Sync endpoints with ``get_db``. Proposals are returned to the caller and
never stored; applying one means posting its line items back.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cockpit.db import get_db
from cockpit.models import Campaign, CampaignHistory
from cockpit.optimization_schemas import (
    ApplyRequest,
    ApplyResultOut,
    HistoryEntryOut,
    LineItemOut,
    ProposalOut,
    ProposeRequest,
)
from cockpit.services.campaign_store import CampaignStore
from cockpit.services.optimization.base import (
    LineItem,
    OptimizationParameters,
    kpi_kind_for,
)
from cockpit.services.optimization.exceptions import (
    CampaignNotFoundError,
    InvariantViolationError,
    PreconditionFailure,
    StaleProposalError,
)
from cockpit.services.optimization.orchestrator import (
    ProposedOptimization,
    build_orchestrator,
)
from cockpit.services.optimization.portfolio import PortfolioMetrics

optimization_router = APIRouter(
    prefix="/api/cockpit",
    tags=["optimization"],
)


def _load_campaign(store: CampaignStore, campaign_id: uuid.UUID) -> Campaign:
    try:
        return store.get_campaign(campaign_id)
    except CampaignNotFoundError:
        raise HTTPException(status_code=404, detail="Campaign not found")


def _build_params(campaign: Campaign, payload: ProposeRequest) -> OptimizationParameters:
    """Resolve request parameters, falling back to the campaign's settings."""
    return OptimizationParameters(
        target_kpi=(
            payload.target_kpi
            if payload.target_kpi is not None
            else float(campaign.target_kpi or 0)
        ),
        kpi_kind=kpi_kind_for(payload.kpi_type or campaign.kpi_type),
        margin_goal=payload.margin_goal,
        cpm_ceiling=(
            payload.cpm_ceiling
            if payload.cpm_ceiling is not None
            else float(campaign.cpm_sold_cap or 0)
        ),
        respect_ceiling=payload.respect_ceiling,
        locked_ids=frozenset(payload.locked_ids),
    )


def _line_item_out(item: LineItem) -> LineItemOut:
    return LineItemOut(
        id=item.id,
        name=item.name,
        spend=item.spend,
        cpm_revenue=item.cpm_revenue,
        margin_pct=item.margin_pct,
        kpi_actual=item.kpi_actual,
    )


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------


@optimization_router.get(
    "/campaigns/{campaign_id}/line-items",
    response_model=list[LineItemOut],
)
def list_line_items(
    campaign_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    """List a campaign's line items in display order."""
    store = CampaignStore(db)
    _load_campaign(store, campaign_id)
    return [_line_item_out(li) for li in store.load_line_items(campaign_id)]


# ---------------------------------------------------------------------------
# Propose / apply
# ---------------------------------------------------------------------------


@optimization_router.post(
    "/campaigns/{campaign_id}/optimization/propose",
    response_model=ProposalOut,
)
def propose_optimization(
    campaign_id: uuid.UUID,
    payload: ProposeRequest,
    db: Session = Depends(get_db),
):
    """Compute a reallocation proposal. Nothing is written."""
    store = CampaignStore(db)
    campaign = _load_campaign(store, campaign_id)
    items = store.load_line_items(campaign_id)
    params = _build_params(campaign, payload)

    try:
        proposal = build_orchestrator().propose(items, params)
    except PreconditionFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    before = PortfolioMetrics.from_items(proposal.original)
    after = PortfolioMetrics.from_items(proposal.line_items)
    return ProposalOut(
        state=proposal.state.value,
        margin_goal=params.margin_goal,
        respect_ceiling=params.respect_ceiling,
        cpm_ceiling=proposal.cpm_ceiling,
        locked_ids=sorted(params.locked_ids),
        line_items=[_line_item_out(li) for li in proposal.line_items],
        scoring=[line.to_dict() for line in proposal.scored],
        totals=proposal.totals.to_dict() if proposal.totals else {},
        checks=[c.to_dict() for c in proposal.checks],
        before=before.to_dict(),
        after=after.to_dict(),
        summary=proposal.summary(),
    )


@optimization_router.post(
    "/campaigns/{campaign_id}/optimization/apply",
    response_model=ApplyResultOut,
)
def apply_optimization(
    campaign_id: uuid.UUID,
    payload: ApplyRequest,
    db: Session = Depends(get_db),
):
    """Replace the campaign's line items with a proposed set and log it."""
    store = CampaignStore(db)
    campaign = _load_campaign(store, campaign_id)

    proposal = ProposedOptimization(
        params=_build_params(campaign, payload),
        line_items=tuple(LineItem(**li.model_dump()) for li in payload.line_items),
    )

    try:
        applied = build_orchestrator().apply(store, campaign_id, proposal)
    except PreconditionFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StaleProposalError as exc:
        raise HTTPException(
            status_code=409, detail={"message": str(exc), **exc.details}
        )
    except InvariantViolationError as exc:
        raise HTTPException(
            status_code=422, detail={"message": str(exc), **exc.details}
        )

    entry = db.get(CampaignHistory, applied.history_id)
    return ApplyResultOut(
        state=applied.state.value,
        line_items=[_line_item_out(li) for li in applied.line_items],
        history=HistoryEntryOut.model_validate(entry),
    )


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@optimization_router.get(
    "/campaigns/{campaign_id}/history",
    response_model=list[HistoryEntryOut],
)
def list_history(
    campaign_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    """List applied optimizations for a campaign, newest first."""
    store = CampaignStore(db)
    _load_campaign(store, campaign_id)
    return store.list_history(campaign_id)
