"""SQLAlchemy-backed campaign store.

Loads immutable line item snapshots for the optimizer and commits applied
optimizations: line item replacement and the history entry share a single
transaction, so readers never observe a partially updated collection.
"""

from __future__ import annotations

import logging
import uuid as uuid_mod
from dataclasses import dataclass, field
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from cockpit.models import Campaign, CampaignHistory, LineItemRow
from cockpit.services.optimization.base import LineItem
from cockpit.services.optimization.exceptions import (
    CampaignNotFoundError,
    OptimizationError,
    StaleProposalError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryRecord:
    """Audit entry to append alongside a line item replacement."""

    action: str
    note: str
    margin_goal: str | None = None
    budget_spent: float = 0.0
    margin_pct: float = 0.0
    cpm_revenue_actual: float = 0.0
    gain_realized: float = 0.0
    details: dict[str, Any] = field(default_factory=dict)


def row_to_line_item(row: LineItemRow) -> LineItem:
    return LineItem(
        id=row.id,
        name=row.name,
        spend=float(row.spend),
        cpm_revenue=float(row.cpm_revenue),
        margin_pct=float(row.margin_pct),
        kpi_actual=float(row.kpi_actual),
    )


class CampaignStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ---- queries --------------------------------------------------------------

    def get_campaign(self, campaign_id: uuid_mod.UUID) -> Campaign:
        campaign = self.db.get(Campaign, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(
                f"Campaign {campaign_id} not found",
                details={"campaign_id": str(campaign_id)},
            )
        return campaign

    def _rows(self, campaign_id: uuid_mod.UUID) -> list[LineItemRow]:
        return list(
            self.db.execute(
                select(LineItemRow)
                .where(LineItemRow.campaign_id == campaign_id)
                .order_by(LineItemRow.position)
                .execution_options(populate_existing=True)
            ).scalars().all()
        )

    def load_line_items(self, campaign_id: uuid_mod.UUID) -> list[LineItem]:
        """Snapshot of the campaign's line items, in display order."""
        self.get_campaign(campaign_id)
        return [row_to_line_item(row) for row in self._rows(campaign_id)]

    def list_history(self, campaign_id: uuid_mod.UUID) -> list[CampaignHistory]:
        self.get_campaign(campaign_id)
        return list(
            self.db.execute(
                select(CampaignHistory)
                .where(CampaignHistory.campaign_id == campaign_id)
                .order_by(CampaignHistory.created_at.desc())
            ).scalars().all()
        )

    # ---- mutation -------------------------------------------------------------

    def replace_line_items(
        self,
        campaign_id: uuid_mod.UUID,
        items: Sequence[LineItem],
        history: HistoryRecord,
        expected: Sequence[LineItem] | None = None,
    ) -> CampaignHistory:
        """Overwrite every line item and append *history* in one commit.

        When *expected* is given the stored values must still equal it, so a
        result computed from an older snapshot is never written. Only the
        optimized fields (spend, CPM, margin) are updated.

        On any failure the transaction is rolled back and the error re-raised;
        the previously committed state is left intact.
        """
        try:
            self.get_campaign(campaign_id)
            rows = self._rows(campaign_id)
            if [row.id for row in rows] != [li.id for li in items]:
                raise StaleProposalError(
                    "Line items changed since the proposal was computed",
                    details={
                        "stored_ids": [row.id for row in rows],
                        "proposed_ids": [li.id for li in items],
                    },
                )
            if expected is not None and [row_to_line_item(r) for r in rows] != list(expected):
                raise StaleProposalError(
                    "Line items were modified since they were loaded",
                    details={"campaign_id": str(campaign_id)},
                )

            for row, item in zip(rows, items):
                row.spend = item.spend
                row.cpm_revenue = item.cpm_revenue
                row.margin_pct = item.margin_pct

            entry = CampaignHistory(
                campaign_id=campaign_id,
                action=history.action,
                note=history.note,
                margin_goal=history.margin_goal,
                budget_spent=history.budget_spent,
                margin_pct=history.margin_pct,
                cpm_revenue_actual=history.cpm_revenue_actual,
                gain_realized=history.gain_realized,
                details_json=history.details,
            )
            self.db.add(entry)
            self.db.commit()
        except OptimizationError:
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            logger.exception("Failed to apply line items for campaign %s", campaign_id)
            raise

        self.db.refresh(entry)
        return entry
