from __future__ import annotations

import uuid
from typing import Any, Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cockpit import models  # noqa: F401  -- ensure all models are registered
from cockpit.db import Base
from cockpit.models import Campaign, LineItemRow


# ---------------------------------------------------------------------------
# Reference portfolio
# ---------------------------------------------------------------------------

# Three lines against a cost KPI target of 10: A beats target, B misses it,
# C has no observed KPI at all.
REFERENCE_LINES: list[dict[str, Any]] = [
    {"id": "A", "name": "Line A", "spend": 600.0, "cpm_revenue": 5.0, "margin_pct": 20.0, "kpi_actual": 8.0},
    {"id": "B", "name": "Line B", "spend": 300.0, "cpm_revenue": 5.0, "margin_pct": 20.0, "kpi_actual": 12.0},
    {"id": "C", "name": "Line C", "spend": 100.0, "cpm_revenue": 5.0, "margin_pct": 20.0, "kpi_actual": 0.0},
]


# ---------------------------------------------------------------------------
# Sync test DB
# ---------------------------------------------------------------------------


def setup_test_db():
    """Create an in-memory SQLite engine and session factory for sync tests."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)
    return engine, TestingSessionLocal


@pytest.fixture
def session_factory():
    engine, TestingSessionLocal = setup_test_db()
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def make_campaign() -> Callable[..., uuid.UUID]:
    """Return a helper that seeds a campaign with line items and returns its id."""

    def _make(
        db: Session,
        lines: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> uuid.UUID:
        defaults = dict(
            name="Test Campaign",
            kpi_type="CPA",
            target_kpi=10.0,
            cpm_sold_cap=5.2,
            budget_total=1000.0,
        )
        defaults.update(kwargs)
        campaign = Campaign(**defaults)
        db.add(campaign)
        db.flush()

        for position, line in enumerate(REFERENCE_LINES if lines is None else lines):
            db.add(LineItemRow(campaign_id=campaign.id, position=position, **line))

        db.commit()
        return campaign.id

    return _make
