"""
Tests for the acceptance REST router.

Drives the full pay / open / vote / close / distribute flow over HTTP and
checks how acceptance errors map onto status codes.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from accredit.api.routers.acceptance import register_error_handlers, router
from accredit.config import AccreditConfig, GovernanceConfig
from accredit.systems.acceptance.service import AcceptanceService

CHAIRMAN = "0xchair"
HEADER = "X-Accredit-Principal"
NOW = datetime(2023, 3, 21, 12, 0, tzinfo=timezone.utc)


def as_(principal: str) -> dict[str, str]:
    return {HEADER: principal}


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(router)
    app.state.config = AccreditConfig()
    app.state.acceptance = AcceptanceService(
        config=GovernanceConfig(chairman=CHAIRMAN),
        clock=lambda: NOW,
    )
    return TestClient(app)


def seed_poll(client: TestClient) -> None:
    for member in ("0xm1", "0xm2"):
        assert client.post(f"/api/v1/acceptance/committee/{member}", headers=as_(CHAIRMAN)).status_code == 200
    resp = client.post("/api/v1/acceptance/applications/0/fee", json={"payer": "0xapplicant", "value": "5"})
    assert resp.status_code == 200
    assert client.post("/api/v1/acceptance/polls/0/open").status_code == 200


# ─── Committee ───────────────────────────────────────────────────


class TestCommittee:
    def test_chairman_adds_member(self, client):
        resp = client.post("/api/v1/acceptance/committee/0xm1", headers=as_(CHAIRMAN))
        assert resp.status_code == 200
        assert resp.json()["data"]["count"] == 2

        body = client.get("/api/v1/acceptance/committee").json()
        assert body["data"]["members"] == [CHAIRMAN, "0xm1"]

    def test_non_chairman_forbidden(self, client):
        resp = client.post("/api/v1/acceptance/committee/0xm1", headers=as_("0xm9"))
        assert resp.status_code == 403
        assert resp.json() == {
            "status": "error",
            "error": "not_chairman",
            "reason": "Only Chairman can call this function",
        }

    def test_missing_principal_header(self, client):
        resp = client.post("/api/v1/acceptance/committee/0xm1")
        assert resp.status_code == 401

    def test_remove_unknown_member_conflicts(self, client):
        resp = client.delete("/api/v1/acceptance/committee/0xm1", headers=as_(CHAIRMAN))
        assert resp.status_code == 409
        assert resp.json()["reason"] == "User is not a current committee Member"


# ─── Voting Flow ─────────────────────────────────────────────────


class TestVotingFlow:
    def test_wrong_fee_is_unprocessable(self, client):
        resp = client.post("/api/v1/acceptance/applications/0/fee", json={"payer": "0xa", "value": "4"})
        assert resp.status_code == 422
        assert resp.json()["reason"] == "Application fee is 5 ETH"

    def test_open_without_fee(self, client):
        resp = client.post("/api/v1/acceptance/polls/0/open")
        assert resp.status_code == 409
        assert resp.json()["reason"] == "Applicant has not paid the application fee"

    def test_full_flow_approves(self, client):
        seed_poll(client)
        for member in ("0xm1", "0xm2"):
            resp = client.post(
                "/api/v1/acceptance/polls/0/ballots",
                json={"criteria": [True] * 5},
                headers=as_(member),
            )
            assert resp.status_code == 200
            assert resp.json()["data"]["score"] == 5

        early = client.post("/api/v1/acceptance/polls/0/close", json={"threshold": 9})
        assert early.status_code == 425
        assert early.json()["reason"] == "Deadline not up"

        assert client.post("/api/v1/acceptance/polls/0/deadline").status_code == 200
        closed = client.post("/api/v1/acceptance/polls/0/close", json={"threshold": 9})
        assert closed.status_code == 200
        assert closed.json()["data"]["affirmative_score"] == 10
        assert closed.json()["data"]["outcome"] == "approved"

        state = client.get("/api/v1/acceptance/polls/0/state").json()["data"]
        assert state == {"state": "CLOSED", "value": 1}
        status = client.get("/api/v1/acceptance/institutions/0/status").json()["data"]
        assert status == {"status": "APPROVED", "value": 0}

        distribution = client.post("/api/v1/acceptance/polls/0/distribution")
        assert distribution.status_code == 200
        data = distribution.json()["data"]
        assert data["recipients"] == ["0xm1", "0xm2"]
        assert data["failed_recipients"] == []

        again = client.post("/api/v1/acceptance/polls/0/distribution")
        assert again.status_code == 409
        assert again.json()["reason"] == "Fee has already been distributed"

    def test_non_member_ballot_forbidden(self, client):
        seed_poll(client)
        resp = client.post(
            "/api/v1/acceptance/polls/0/ballots",
            json={"criteria": [True] * 5},
            headers=as_("0xoutsider"),
        )
        assert resp.status_code == 403
        assert resp.json()["reason"] == "You are not a committee member"

    def test_ballot_needs_five_criteria(self, client):
        seed_poll(client)
        resp = client.post(
            "/api/v1/acceptance/polls/0/ballots",
            json={"criteria": [True] * 4},
            headers=as_("0xm1"),
        )
        assert resp.status_code == 422

    def test_unknown_poll(self, client):
        assert client.get("/api/v1/acceptance/polls/7").status_code == 404
        state = client.get("/api/v1/acceptance/polls/7/state").json()["data"]
        assert state["state"] == "UNDETERMINED"
        status = client.get("/api/v1/acceptance/institutions/7/status").json()["data"]
        assert status["status"] == "PENDING"


def test_service_missing_returns_503():
    app = FastAPI()
    app.include_router(router)
    app.state.config = AccreditConfig()
    resp = TestClient(app).get("/api/v1/acceptance/committee")
    assert resp.status_code == 503
