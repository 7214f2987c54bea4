"""
Accredit -- Acceptance Primitives

Data types for the accreditation voting and fee-escrow engine: application
records, polls and ballots, fee distributions, emitted events, and the
ordered log of accepted operations.

Key design choices:
  - Decimal for all monetary values (fee-units, no float rounding on money)
  - Pydantic BaseModel so the whole state store can be deep-copied for
    transactional rollback and serialised for the HTTP surface
  - Integer enums whose values match the wire values of the original
    registry (an approved institution reads as 0)
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field

from accredit.primitives.common import AccreditBaseModel, Identified, Principal, utc_now

# Five independent boolean criteria per ballot.
CRITERIA_COUNT: int = 5

Criteria = tuple[bool, bool, bool, bool, bool]


# ─── Enums ────────────────────────────────────────────────────────


class VotingState(int, enum.Enum):
    OPEN = 0
    CLOSED = 1
    UNDETERMINED = 2


class PollOutcome(str, enum.Enum):
    """Set exactly once, when the poll closes. Terminal."""

    UNDETERMINED = "undetermined"
    APPROVED = "approved"
    REJECTED = "rejected"


class InstitutionStatus(int, enum.Enum):
    APPROVED = 0
    PENDING = 1
    REJECTED = 2
    DELETED = 3


# ─── Escrow ───────────────────────────────────────────────────────


class ApplicationRecord(AccreditBaseModel):
    """An applicant's fee payment for one institution id."""

    institution_id: int
    paid: bool = False
    payer: Principal = ""
    amount_escrowed: Decimal = Decimal("0")
    paid_at: datetime | None = None


# ─── Voting ───────────────────────────────────────────────────────


class Ballot(AccreditBaseModel):
    voter: Principal
    criteria: Criteria
    cast_at: datetime = Field(default_factory=utc_now)

    @property
    def score(self) -> int:
        """Number of criteria the voter marked true."""
        return sum(1 for c in self.criteria if c)


class Poll(AccreditBaseModel):
    """
    The voting session for one institution's accreditation attempt.

    One-to-one with an ApplicationRecord. Created on first open and never
    destroyed; a closed poll is never re-opened.
    """

    institution_id: int
    is_open: bool = False
    is_closed: bool = False
    deadline: datetime | None = None
    ballots: dict[Principal, Ballot] = Field(default_factory=dict)
    affirmative_score: int = 0
    threshold: int | None = None
    outcome: PollOutcome = PollOutcome.UNDETERMINED
    opened_at: datetime | None = None
    closed_at: datetime | None = None

    def has_voted(self, principal: Principal) -> bool:
        return principal in self.ballots

    @property
    def voters(self) -> list[Principal]:
        """Principals that cast a ballot, in the order they voted."""
        return list(self.ballots.keys())


# ─── Fee Distribution ─────────────────────────────────────────────


class FeeTransfer(AccreditBaseModel):
    """Result of paying one voter's share."""

    recipient: Principal
    amount: Decimal
    succeeded: bool = False
    error: str = ""


class FeeDistribution(AccreditBaseModel):
    """
    Finalised bookkeeping for one institution's fee payout.

    Recorded before any transfer is attempted. Transfer results are filled
    in afterwards and never change the totals.
    """

    institution_id: int
    total: Decimal
    share: Decimal
    recipients: list[Principal] = Field(default_factory=list)
    retained: Decimal = Decimal("0")
    distributed_at: datetime = Field(default_factory=utc_now)
    transfers: list[FeeTransfer] = Field(default_factory=list)

    @property
    def failed_recipients(self) -> list[Principal]:
        return [t.recipient for t in self.transfers if not t.succeeded]


# ─── State Store ──────────────────────────────────────────────────


class AcceptanceState(AccreditBaseModel):
    """
    Everything the engine owns. Mutated only through AcceptanceService.

    `version` increases by one for every committed operation.
    """

    version: int = 0
    chairman: Principal
    # Ordered set: dict keys keep insertion order, values unused.
    members: dict[Principal, datetime] = Field(default_factory=dict)
    applications: dict[int, ApplicationRecord] = Field(default_factory=dict)
    polls: dict[int, Poll] = Field(default_factory=dict)
    distributions: dict[int, FeeDistribution] = Field(default_factory=dict)
    retained_balance: Decimal = Decimal("0")


# ─── Events & Operation Log ───────────────────────────────────────


class AcceptanceEvent(Identified):
    """A structured event emitted by a successful operation."""

    name: str  # "new_committee_member" | "applicant_paid" | "voted" | ...
    institution_id: int | None = None
    principal: Principal | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    version: int = 0
    timestamp: datetime = Field(default_factory=utc_now)


class OperationRecord(AccreditBaseModel):
    """One accepted operation in the global serialization order."""

    sequence: int
    operation: str
    caller: Principal | None = None
    arguments: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
