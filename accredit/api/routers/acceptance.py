"""
Accredit -- Acceptance REST Router

Exposes the accreditation committee, fee escrow and voting operations.
The caller's principal is read from the configured principal header
(default X-Accredit-Principal).

Endpoints:
  GET    /api/v1/acceptance/committee                  -- members and count
  POST   /api/v1/acceptance/committee/{principal}      -- add member (chairman)
  DELETE /api/v1/acceptance/committee/{principal}      -- remove member (chairman)
  POST   /api/v1/acceptance/applications/{id}/fee      -- pay the application fee
  POST   /api/v1/acceptance/polls/{id}/open            -- open the vote
  POST   /api/v1/acceptance/polls/{id}/deadline        -- force-expire the deadline
  POST   /api/v1/acceptance/polls/{id}/ballots         -- cast a ballot (member)
  POST   /api/v1/acceptance/polls/{id}/close           -- close against a threshold
  POST   /api/v1/acceptance/polls/{id}/distribution    -- pay the fee out to voters
  GET    /api/v1/acceptance/polls/{id}                 -- poll snapshot
  GET    /api/v1/acceptance/polls/{id}/state           -- Open / Closed / Undetermined
  GET    /api/v1/acceptance/institutions/{id}/status   -- Pending / Approved / Rejected
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from accredit.systems.acceptance.errors import AcceptanceError, ErrorCategory

if TYPE_CHECKING:
    from accredit.primitives.acceptance import FeeDistribution, Poll
    from accredit.systems.acceptance.service import AcceptanceService

logger = structlog.get_logger("accredit.api.acceptance")

router = APIRouter(prefix="/api/v1/acceptance")

_STATUS_CODES: dict[ErrorCategory, int] = {
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.STATE: 409,
    ErrorCategory.TIMING: 425,
    ErrorCategory.INPUT: 422,
}


# ─── Request Bodies ──────────────────────────────────────────────


class FeePayment(BaseModel):
    payer: str
    value: Decimal


class BallotRequest(BaseModel):
    criteria: list[bool] = Field(min_length=5, max_length=5)


class CloseRequest(BaseModel):
    threshold: int


# ─── Error Handling ──────────────────────────────────────────────


async def acceptance_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AcceptanceError)
    return JSONResponse(
        status_code=_STATUS_CODES[exc.category],
        content={"status": "error", "error": exc.kind.value, "reason": exc.reason},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AcceptanceError, acceptance_error_handler)


# ─── Helpers ─────────────────────────────────────────────────────


def _service(request: Request) -> AcceptanceService:
    service = getattr(request.app.state, "acceptance", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Acceptance not initialized")
    return service


def _caller(request: Request, required: bool = True) -> str | None:
    header = request.app.state.config.server.principal_header
    caller = request.headers.get(header)
    if required and not caller:
        raise HTTPException(status_code=401, detail=f"Missing {header} header")
    return caller


def _serialize_poll(poll: Poll) -> dict[str, Any]:
    return {
        "institution_id": poll.institution_id,
        "is_open": poll.is_open,
        "is_closed": poll.is_closed,
        "deadline": poll.deadline.isoformat() if poll.deadline else None,
        "affirmative_score": poll.affirmative_score,
        "threshold": poll.threshold,
        "outcome": poll.outcome.value,
        "voters": poll.voters,
    }


def _serialize_distribution(distribution: FeeDistribution) -> dict[str, Any]:
    return {
        "institution_id": distribution.institution_id,
        "total": str(distribution.total),
        "share": str(distribution.share),
        "retained": str(distribution.retained),
        "recipients": distribution.recipients,
        "failed_recipients": distribution.failed_recipients,
    }


# ─── Committee ───────────────────────────────────────────────────


@router.get("/committee")
async def get_committee(request: Request) -> dict[str, Any]:
    service = _service(request)
    return {
        "status": "ok",
        "data": {
            "chairman": service.chairman,
            "count": service.get_amount_of_committee_members(),
            "members": service.committee_members(),
        },
    }


@router.post("/committee/{principal}")
async def add_committee_member(principal: str, request: Request) -> dict[str, Any]:
    count = await _service(request).add_committee_member(_caller(request), principal)
    return {"status": "ok", "data": {"member": principal, "count": count}}


@router.delete("/committee/{principal}")
async def remove_committee_member(principal: str, request: Request) -> dict[str, Any]:
    count = await _service(request).remove_committee_member(_caller(request), principal)
    return {"status": "ok", "data": {"member": principal, "count": count}}


# ─── Escrow ──────────────────────────────────────────────────────


@router.post("/applications/{institution_id}/fee")
async def pay_fee(institution_id: int, body: FeePayment, request: Request) -> dict[str, Any]:
    service = _service(request)
    record = await service.pay_fee(
        institution_id, body.payer, body.value, caller=_caller(request, required=False)
    )
    return {
        "status": "ok",
        "data": {
            "institution_id": institution_id,
            "payer": record.payer,
            "escrowed": str(record.amount_escrowed),
        },
    }


# ─── Voting ──────────────────────────────────────────────────────


@router.post("/polls/{institution_id}/open")
async def open_vote(institution_id: int, request: Request) -> dict[str, Any]:
    poll = await _service(request).open_vote(institution_id, caller=_caller(request, required=False))
    return {"status": "ok", "data": _serialize_poll(poll)}


@router.post("/polls/{institution_id}/deadline")
async def change_deadline(institution_id: int, request: Request) -> dict[str, Any]:
    poll = await _service(request).change_deadline(
        institution_id, caller=_caller(request, required=False)
    )
    return {"status": "ok", "data": _serialize_poll(poll)}


@router.post("/polls/{institution_id}/ballots")
async def cast_ballot(institution_id: int, body: BallotRequest, request: Request) -> dict[str, Any]:
    caller = _caller(request)
    ballot = await _service(request).cast_ballot(caller, institution_id, body.criteria)
    return {
        "status": "ok",
        "data": {"voter": ballot.voter, "criteria": list(ballot.criteria), "score": ballot.score},
    }


@router.post("/polls/{institution_id}/close")
async def close_vote(institution_id: int, body: CloseRequest, request: Request) -> dict[str, Any]:
    poll = await _service(request).close_vote(
        institution_id, body.threshold, caller=_caller(request, required=False)
    )
    return {"status": "ok", "data": _serialize_poll(poll)}


@router.post("/polls/{institution_id}/distribution")
async def distribute_fee(institution_id: int, request: Request) -> dict[str, Any]:
    distribution = await _service(request).distribute_fee(
        institution_id, caller=_caller(request, required=False)
    )
    return {"status": "ok", "data": _serialize_distribution(distribution)}


@router.get("/polls/{institution_id}")
async def get_poll(institution_id: int, request: Request) -> dict[str, Any]:
    poll = _service(request).get_poll(institution_id)
    if poll is None:
        raise HTTPException(status_code=404, detail="Vote does not exist")
    return {"status": "ok", "data": _serialize_poll(poll)}


@router.get("/polls/{institution_id}/state")
async def get_voting_state(institution_id: int, request: Request) -> dict[str, Any]:
    state = _service(request).get_voting_state(institution_id)
    return {"status": "ok", "data": {"state": state.name, "value": state.value}}


@router.get("/institutions/{institution_id}/status")
async def get_institution_status(institution_id: int, request: Request) -> dict[str, Any]:
    status = _service(request).resolve_status(institution_id)
    return {"status": "ok", "data": {"status": status.name, "value": status.value}}
