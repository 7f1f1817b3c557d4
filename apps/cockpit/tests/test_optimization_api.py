"""Tests for the propose/apply/history HTTP endpoints."""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from cockpit.db import get_db
from cockpit.main import app


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def campaign_id(session_factory, make_campaign) -> uuid.UUID:
    db = session_factory()
    cid = make_campaign(db)
    db.close()
    return cid


def _base(campaign_id) -> str:
    return f"/api/cockpit/campaigns/{campaign_id}"


# ---------------------------------------------------------------------------
# API tests
# ---------------------------------------------------------------------------


class TestLineItemsAPI:
    def test_list_line_items(self, client, campaign_id):
        resp = client.get(f"{_base(campaign_id)}/line-items")
        assert resp.status_code == 200
        data = resp.json()
        assert [li["id"] for li in data] == ["A", "B", "C"]
        assert data[0]["spend"] == 600.0

    def test_unknown_campaign(self, client):
        resp = client.get(f"{_base(uuid.uuid4())}/line-items")
        assert resp.status_code == 404


class TestProposeAPI:
    def test_propose(self, client, campaign_id):
        resp = client.post(
            f"{_base(campaign_id)}/optimization/propose",
            json={"margin_goal": "increase"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "proposed"
        assert data["margin_goal"] == "increase"
        spends = {li["id"]: li["spend"] for li in data["line_items"]}
        assert spends["A"] == pytest.approx(670.65, abs=0.01)
        assert spends["B"] == pytest.approx(299.35, abs=0.01)
        assert spends["C"] == 10.0
        assert data["before"]["total_spend"] == 1000.0
        assert data["after"]["total_spend"] == pytest.approx(980.0, abs=0.02)
        assert all(c["passed"] for c in data["checks"])
        assert len(data["scoring"]) == 3

    def test_propose_uses_campaign_ceiling(self, client, campaign_id):
        resp = client.post(
            f"{_base(campaign_id)}/optimization/propose",
            json={"margin_goal": "increase", "respect_ceiling": True},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["cpm_ceiling"] == 5.2
        assert all(li["cpm_revenue"] <= 5.2 for li in data["line_items"])

    def test_propose_with_lock(self, client, campaign_id):
        resp = client.post(
            f"{_base(campaign_id)}/optimization/propose",
            json={"margin_goal": "increase", "locked_ids": ["A"]},
        )
        assert resp.status_code == 200
        spends = {li["id"]: li["spend"] for li in resp.json()["line_items"]}
        assert spends["A"] == 600.0
        assert spends["B"] == pytest.approx(370.0)

    def test_propose_without_goal(self, client, campaign_id):
        resp = client.post(f"{_base(campaign_id)}/optimization/propose", json={})
        assert resp.status_code == 400
        assert "margin goal" in resp.json()["detail"].lower()

        history = client.get(f"{_base(campaign_id)}/history")
        assert history.json() == []

    def test_propose_does_not_write(self, client, campaign_id):
        client.post(
            f"{_base(campaign_id)}/optimization/propose",
            json={"margin_goal": "decrease"},
        )
        items = client.get(f"{_base(campaign_id)}/line-items").json()
        assert [li["spend"] for li in items] == [600.0, 300.0, 100.0]
        assert client.get(f"{_base(campaign_id)}/history").json() == []

    def test_propose_unknown_campaign(self, client):
        resp = client.post(
            f"{_base(uuid.uuid4())}/optimization/propose",
            json={"margin_goal": "increase"},
        )
        assert resp.status_code == 404


class TestApplyAPI:
    def _propose(self, client, campaign_id, **body):
        body.setdefault("margin_goal", "increase")
        resp = client.post(f"{_base(campaign_id)}/optimization/propose", json=body)
        assert resp.status_code == 200
        return resp.json()

    def test_apply_roundtrip(self, client, campaign_id):
        proposal = self._propose(client, campaign_id)
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"margin_goal": "increase", "line_items": proposal["line_items"]},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "applied"
        assert data["history"]["action"] == "OPTIMIZATION"
        assert data["history"]["margin_goal"] == "increase"

        items = client.get(f"{_base(campaign_id)}/line-items").json()
        assert items == proposal["line_items"]

        history = client.get(f"{_base(campaign_id)}/history").json()
        assert len(history) == 1
        assert history[0]["id"] == data["history"]["id"]

    def test_apply_with_lock(self, client, campaign_id):
        proposal = self._propose(client, campaign_id, locked_ids=["A"])
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={
                "margin_goal": "increase",
                "line_items": proposal["line_items"],
                "locked_ids": ["A"],
            },
        )
        assert resp.status_code == 200
        assert resp.json()["history"]["details_json"]["locked_ids"] == ["A"]

    def test_apply_without_goal(self, client, campaign_id):
        proposal = self._propose(client, campaign_id)
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"line_items": proposal["line_items"]},
        )
        assert resp.status_code == 400

    def test_apply_stale(self, client, campaign_id):
        proposal = self._propose(client, campaign_id)
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"margin_goal": "increase", "line_items": proposal["line_items"][:2]},
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["missing"] == ["C"]

    def test_apply_edited_margin(self, client, campaign_id):
        proposal = self._propose(client, campaign_id)
        items = proposal["line_items"]
        items[0]["margin_pct"] = 2.0
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"margin_goal": "increase", "line_items": items},
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["mismatched"] == ["A"]
        assert client.get(f"{_base(campaign_id)}/history").json() == []

    def test_apply_edited_spend_kpi_and_goal(self, client, campaign_id):
        proposal = self._propose(client, campaign_id)
        items = proposal["line_items"]
        items[0]["spend"] = 999999.0
        items[1]["kpi_actual"] = 1.0
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"margin_goal": "decrease", "line_items": items},
        )
        assert resp.status_code == 409

        stored = client.get(f"{_base(campaign_id)}/line-items").json()
        assert [(li["id"], li["spend"], li["kpi_actual"]) for li in stored] == [
            ("A", 600.0, 8.0),
            ("B", 300.0, 12.0),
            ("C", 100.0, 0.0),
        ]
        assert client.get(f"{_base(campaign_id)}/history").json() == []

    def test_apply_goal_mismatch(self, client, campaign_id):
        proposal = self._propose(client, campaign_id)
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"margin_goal": "decrease", "line_items": proposal["line_items"]},
        )
        assert resp.status_code == 409

    def test_apply_dropped_lock(self, client, campaign_id):
        proposal = self._propose(client, campaign_id, locked_ids=["A"])
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"margin_goal": "increase", "line_items": proposal["line_items"]},
        )
        assert resp.status_code == 409

    def test_apply_ceiling_not_proposed_with(self, client, campaign_id):
        proposal = self._propose(client, campaign_id)
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={
                "margin_goal": "increase",
                "line_items": proposal["line_items"],
                "respect_ceiling": True,
                "cpm_ceiling": 5.0,
            },
        )
        # Line A was priced at 5.4 by the unconstrained strategy.
        assert resp.status_code == 409

    def test_apply_with_target_override(self, client, campaign_id):
        proposal = self._propose(client, campaign_id, target_kpi=9.0, kpi_type="CPC")
        body = {"margin_goal": "increase", "line_items": proposal["line_items"]}

        resp = client.post(f"{_base(campaign_id)}/optimization/apply", json=body)
        assert resp.status_code == 409

        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={**body, "target_kpi": 9.0, "kpi_type": "CPC"},
        )
        assert resp.status_code == 200

    def test_reapply_outdated_proposal(self, client, campaign_id):
        first = self._propose(client, campaign_id)
        url = f"{_base(campaign_id)}/optimization/apply"
        body = {"margin_goal": "increase", "line_items": first["line_items"]}
        assert client.post(url, json=body).status_code == 200

        second = self._propose(client, campaign_id)
        assert client.post(
            url, json={"margin_goal": "increase", "line_items": second["line_items"]}
        ).status_code == 200

        resp = client.post(url, json=body)
        assert resp.status_code == 409
        stored = client.get(f"{_base(campaign_id)}/line-items").json()
        assert stored == second["line_items"]

    def test_history_newest_first(self, client, campaign_id):
        url = f"{_base(campaign_id)}/optimization/apply"
        for goal in ("increase", "decrease"):
            proposal = self._propose(client, campaign_id, margin_goal=goal)
            resp = client.post(
                url, json={"margin_goal": goal, "line_items": proposal["line_items"]}
            )
            assert resp.status_code == 200

        history = client.get(f"{_base(campaign_id)}/history").json()
        assert [h["margin_goal"] for h in history] == ["decrease", "increase"]

    def test_apply_failing_invariants(self, client, session_factory, make_campaign):
        db = session_factory()
        campaign_id = make_campaign(
            db,
            lines=[
                {"id": "A", "name": "Line A", "spend": 600.0, "cpm_revenue": 5.0, "margin_pct": 20.0, "kpi_actual": 8.0},
                {"id": "N", "name": "Refund", "spend": -50.0, "cpm_revenue": 5.0, "margin_pct": 20.0, "kpi_actual": 0.0},
            ],
        )
        db.close()

        proposal = self._propose(client, campaign_id)
        resp = client.post(
            f"{_base(campaign_id)}/optimization/apply",
            json={"margin_goal": "increase", "line_items": proposal["line_items"]},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["checks"][0]["rule_name"] == "non_negative_spend"
        assert client.get(f"{_base(campaign_id)}/history").json() == []

    def test_apply_unknown_campaign(self, client):
        resp = client.post(
            f"{_base(uuid.uuid4())}/optimization/apply",
            json={"margin_goal": "increase", "line_items": []},
        )
        assert resp.status_code == 404
