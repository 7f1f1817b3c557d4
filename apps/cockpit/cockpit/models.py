import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from cockpit.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="EUR")
    kpi_type: Mapped[str] = mapped_column(Text, nullable=False, default="CPC")
    target_kpi: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    cpm_sold_cap: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    budget_total: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    line_items: Mapped[list["LineItemRow"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="LineItemRow.position",
    )
    history: Mapped[list["CampaignHistory"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
    )


class LineItemRow(Base):
    __tablename__ = "line_items"
    __table_args__ = (UniqueConstraint("campaign_id", "position"),)

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    spend: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    cpm_revenue: Mapped[float] = mapped_column(Numeric, nullable=False)
    margin_pct: Mapped[float] = mapped_column(Numeric, nullable=False)
    kpi_actual: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)

    campaign: Mapped[Campaign] = relationship(back_populates="line_items")


class CampaignHistory(Base):
    """Audit trail: one row per applied optimization."""

    __tablename__ = "campaign_history"
    __table_args__ = (
        Index("ix_campaign_history_campaign_created", "campaign_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    margin_goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    budget_spent: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    margin_pct: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    cpm_revenue_actual: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    gain_realized: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    details_json: Mapped[dict] = mapped_column(
        JSONB().with_variant(JSON, "sqlite"), nullable=False, default=dict
    )
    # Microsecond precision; history is listed newest first on this column
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    campaign: Mapped[Campaign] = relationship(back_populates="history")
