"""
Accredit -- Acceptance Error Hierarchy

All exceptions raised by the accreditation voting and fee-escrow engine.

Every error carries a closed ErrorKind with a fixed reason string. The
reason strings are part of the public contract and must stay verbatim:
callers and tests branch on them. Any error aborts the whole operation;
AcceptanceService restores the pre-operation state before re-raising.
"""

from __future__ import annotations

import enum
from decimal import Decimal


class ErrorCategory(str, enum.Enum):
    AUTHORIZATION = "authorization"
    STATE = "state"
    TIMING = "timing"
    INPUT = "input"


class ErrorKind(str, enum.Enum):
    NOT_CHAIRMAN = "not_chairman"
    ALREADY_MEMBER = "already_member"
    NOT_MEMBER = "not_member"
    ALREADY_PAID = "already_paid"
    INSUFFICIENT_FEE = "insufficient_fee"
    NOT_PAID = "not_paid"
    ALREADY_OPEN = "already_open"
    NOT_COMMITTEE_MEMBER = "not_committee_member"
    POLL_NOT_OPEN = "poll_not_open"
    DUPLICATE_BALLOT = "duplicate_ballot"
    DEADLINE_NOT_REACHED = "deadline_not_reached"
    ALREADY_CLOSED = "already_closed"
    POLL_NOT_FOUND = "poll_not_found"
    POLL_NOT_CLOSED = "poll_not_closed"
    ALREADY_DISTRIBUTED = "already_distributed"


REASONS: dict[ErrorKind, str] = {
    ErrorKind.NOT_CHAIRMAN: "Only Chairman can call this function",
    ErrorKind.ALREADY_MEMBER: "User is already a current committee Member",
    ErrorKind.NOT_MEMBER: "User is not a current committee Member",
    ErrorKind.ALREADY_PAID: "Applicant fee has been paid",
    ErrorKind.INSUFFICIENT_FEE: "Application fee is {fee} {currency}",
    ErrorKind.NOT_PAID: "Applicant has not paid the application fee",
    ErrorKind.ALREADY_OPEN: "Vote is already open",
    ErrorKind.NOT_COMMITTEE_MEMBER: "You are not a committee member",
    ErrorKind.POLL_NOT_OPEN: "Applicant is not open for voting",
    ErrorKind.DUPLICATE_BALLOT: "You have already voted",
    ErrorKind.DEADLINE_NOT_REACHED: "Deadline not up",
    ErrorKind.ALREADY_CLOSED: "Vote has already been closed",
    ErrorKind.POLL_NOT_FOUND: "Vote does not exist",
    ErrorKind.POLL_NOT_CLOSED: "Vote has not been closed",
    ErrorKind.ALREADY_DISTRIBUTED: "Fee has already been distributed",
}


class AcceptanceError(RuntimeError):
    """Base for all acceptance engine errors."""

    kind: ErrorKind
    category: ErrorCategory = ErrorCategory.STATE

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or REASONS[self.kind]
        super().__init__(self.reason)


# ─── Authorization ────────────────────────────────────────────────


class AuthorizationError(AcceptanceError):
    """Caller is not the chairman."""

    kind = ErrorKind.NOT_CHAIRMAN
    category = ErrorCategory.AUTHORIZATION


class NotCommitteeMemberError(AcceptanceError):
    """Ballot submitted by a principal outside the committee."""

    kind = ErrorKind.NOT_COMMITTEE_MEMBER
    category = ErrorCategory.AUTHORIZATION


# ─── State ────────────────────────────────────────────────────────


class AlreadyMemberError(AcceptanceError):
    kind = ErrorKind.ALREADY_MEMBER


class NotMemberError(AcceptanceError):
    kind = ErrorKind.NOT_MEMBER


class AlreadyPaidError(AcceptanceError):
    kind = ErrorKind.ALREADY_PAID


class NotPaidError(AcceptanceError):
    kind = ErrorKind.NOT_PAID


class AlreadyOpenError(AcceptanceError):
    kind = ErrorKind.ALREADY_OPEN


class PollNotOpenError(AcceptanceError):
    kind = ErrorKind.POLL_NOT_OPEN


class DuplicateBallotError(AcceptanceError):
    kind = ErrorKind.DUPLICATE_BALLOT


class AlreadyClosedError(AcceptanceError):
    kind = ErrorKind.ALREADY_CLOSED


class PollNotFoundError(AcceptanceError):
    kind = ErrorKind.POLL_NOT_FOUND


class PollNotClosedError(AcceptanceError):
    kind = ErrorKind.POLL_NOT_CLOSED


class AlreadyDistributedError(AcceptanceError):
    kind = ErrorKind.ALREADY_DISTRIBUTED


# ─── Timing ───────────────────────────────────────────────────────


class DeadlineNotReachedError(AcceptanceError):
    kind = ErrorKind.DEADLINE_NOT_REACHED
    category = ErrorCategory.TIMING


# ─── Input ────────────────────────────────────────────────────────


class InsufficientFeeError(AcceptanceError):
    """Attached value differs from the application fee."""

    kind = ErrorKind.INSUFFICIENT_FEE
    category = ErrorCategory.INPUT

    def __init__(self, fee: Decimal, currency: str = "ETH") -> None:
        super().__init__(
            REASONS[ErrorKind.INSUFFICIENT_FEE].format(fee=_format_amount(fee), currency=currency)
        )


def _format_amount(amount: Decimal) -> str:
    # Decimal("5.00") -> "5", Decimal("0.5") -> "0.5"
    text = format(amount.normalize(), "f")
    return text
