"""
Accredit -- Acceptance Service

The accreditation voting and fee-escrow engine. Coordinates five
sub-systems over one shared state store:

  CommitteeRegistry          -- chairman-curated voter set
  ApplicationEscrow          -- applicant fee custody
  VotingPoll                 -- per-institution ballots and closing
  FeeDistributor             -- pays the fee out to participating voters
  InstitutionStatusResolver  -- Pending / Approved / Rejected for consumers

Every public operation is one atomic transaction behind a single
asyncio.Lock: the state is snapshotted, the operation runs to completion,
and either commits (version bump, operation log entry, events published)
or rolls back to the snapshot and re-raises. Which of two concurrent
callers wins the lock is up to the event loop; each accepted operation
still observes a consistent prior state.

Fee transfers are the one interaction with the outside world. They run
after the distribution has committed and the lock has been released, so
a recipient that calls back into the service sees the finalised state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from accredit.config import GovernanceConfig
from accredit.primitives.acceptance import (
    AcceptanceEvent,
    AcceptanceState,
    ApplicationRecord,
    Ballot,
    FeeDistribution,
    InstitutionStatus,
    OperationRecord,
    Poll,
    VotingState,
)
from accredit.primitives.common import Principal, utc_now
from accredit.systems.acceptance.committee import CommitteeRegistry
from accredit.systems.acceptance.distributor import FeeDistributor
from accredit.systems.acceptance.errors import AcceptanceError
from accredit.systems.acceptance.escrow import ApplicationEscrow
from accredit.systems.acceptance.payout import InMemoryPayoutGateway, PayoutGateway
from accredit.systems.acceptance.poll import Clock, VotingPoll
from accredit.systems.acceptance.resolver import InstitutionStatusResolver
from accredit.systems.acceptance.store import AcceptanceStore

if TYPE_CHECKING:
    from accredit.primitives.acceptance import FeeTransfer

logger = structlog.get_logger("accredit.systems.acceptance")

T = TypeVar("T")

EventListener = Callable[[AcceptanceEvent], None]


class AcceptanceService:
    """
    Acceptance -- the accreditation committee.

    Admits institutions through a committee vote funded by an escrowed
    application fee, and answers the one question credential issuance
    cares about: is this institution approved?
    """

    system_id: str = "acceptance"

    def __init__(
        self,
        config: GovernanceConfig,
        gateway: PayoutGateway | None = None,
        clock: Clock = utc_now,
        max_history: int = 10_000,
    ) -> None:
        self._config = config
        self._clock = clock
        self._gateway: PayoutGateway = gateway or InMemoryPayoutGateway()
        self._logger = logger.bind(system="acceptance")
        self._lock = asyncio.Lock()

        state = AcceptanceState(chairman=config.chairman)
        if config.chairman_is_member:
            state.members[config.chairman] = clock()
        self._store = AcceptanceStore(state)

        self._committee = CommitteeRegistry(self._store, clock=clock)
        self._escrow = ApplicationEscrow(
            self._store,
            application_fee=config.application_fee,
            fee_currency=config.fee_currency,
            clock=clock,
        )
        self._poll = VotingPoll(
            self._store,
            self._committee,
            self._escrow,
            voting_window=timedelta(seconds=config.voting_window_seconds),
            clock=clock,
        )
        self._distributor = FeeDistributor(
            self._store,
            self._escrow,
            self._gateway,
            fee_precision=config.fee_precision,
        )
        self._resolver = InstitutionStatusResolver(self._store)

        self._listeners: list[EventListener] = []
        self._events: list[AcceptanceEvent] = []
        self._operations: list[OperationRecord] = []
        self._max_history = max_history
        self._rejected: int = 0

    # ─── Committee ──────────────────────────────────────────────────

    async def add_committee_member(self, caller: Principal, principal: Principal) -> int:
        """Returns the new member count."""

        def _add() -> int:
            self._committee.add_member(caller, principal)
            return self._committee.member_count()

        return await self._transact("add_committee_member", caller, {"principal": principal}, _add)

    async def remove_committee_member(self, caller: Principal, principal: Principal) -> int:
        """Returns the new member count."""

        def _remove() -> int:
            self._committee.remove_member(caller, principal)
            return self._committee.member_count()

        return await self._transact("remove_committee_member", caller, {"principal": principal}, _remove)

    def get_amount_of_committee_members(self) -> int:
        return self._committee.member_count()

    def is_committee_member(self, principal: Principal) -> bool:
        return self._committee.is_member(principal)

    def committee_members(self) -> list[Principal]:
        return self._committee.members()

    @property
    def chairman(self) -> Principal:
        return self._committee.chairman

    # ─── Escrow ─────────────────────────────────────────────────────

    async def pay_fee(
        self,
        institution_id: int,
        payer: Principal,
        value: Decimal,
        caller: Principal | None = None,
    ) -> ApplicationRecord:
        record = await self._transact(
            "pay_fee",
            caller or payer,
            {"institution_id": institution_id, "payer": payer, "value": str(value)},
            lambda: self._escrow.pay_fee(institution_id, payer, value),
        )
        return record.model_copy()

    def escrowed_balance(self, institution_id: int) -> Decimal:
        return self._escrow.escrowed_balance(institution_id)

    def total_held(self) -> Decimal:
        return self._escrow.total_held()

    def get_application(self, institution_id: int) -> ApplicationRecord | None:
        record = self._escrow.get_record(institution_id)
        return record.model_copy() if record is not None else None

    # ─── Voting ─────────────────────────────────────────────────────

    async def open_vote(self, institution_id: int, caller: Principal | None = None) -> Poll:
        poll = await self._transact(
            "open_vote",
            caller,
            {"institution_id": institution_id},
            lambda: self._poll.open_vote(institution_id),
        )
        return poll.model_copy(deep=True)

    async def change_deadline(self, institution_id: int, caller: Principal | None = None) -> Poll:
        poll = await self._transact(
            "change_deadline",
            caller,
            {"institution_id": institution_id},
            lambda: self._poll.change_deadline(institution_id),
        )
        return poll.model_copy(deep=True)

    async def vote(
        self,
        caller: Principal,
        institution_id: int,
        c1: bool,
        c2: bool,
        c3: bool,
        c4: bool,
        c5: bool,
    ) -> Ballot:
        return await self.cast_ballot(caller, institution_id, (c1, c2, c3, c4, c5))

    async def cast_ballot(self, caller: Principal, institution_id: int, criteria: Sequence[bool]) -> Ballot:
        ballot = await self._transact(
            "vote",
            caller,
            {"institution_id": institution_id, "criteria": [bool(c) for c in criteria]},
            lambda: self._poll.vote(caller, institution_id, criteria),
        )
        return ballot.model_copy()

    async def close_vote(
        self,
        institution_id: int,
        threshold: int,
        caller: Principal | None = None,
    ) -> Poll:
        """
        Close the poll against `threshold`.

        With `distribute_on_close` the fee distribution is finalised in the
        same transaction and paid out once it commits.
        """

        def _close() -> tuple[Poll, FeeDistribution | None]:
            poll = self._poll.close_vote(institution_id, threshold)
            distribution = None
            if self._config.distribute_on_close:
                distribution = self._distributor.finalize(institution_id)
            return poll, distribution

        poll, distribution = await self._transact(
            "close_vote",
            caller,
            {"institution_id": institution_id, "threshold": threshold},
            _close,
        )
        closed = poll.model_copy(deep=True)
        if distribution is not None:
            await self._pay_out(distribution)
        return closed

    def get_voting_state(self, institution_id: int) -> VotingState:
        return self._poll.get_voting_state(institution_id)

    def get_poll(self, institution_id: int) -> Poll | None:
        poll = self._poll.get_poll(institution_id)
        return poll.model_copy(deep=True) if poll is not None else None

    # ─── Distribution ───────────────────────────────────────────────

    async def distribute_fee(self, institution_id: int, caller: Principal | None = None) -> FeeDistribution:
        distribution = await self._transact(
            "distribute_fee",
            caller,
            {"institution_id": institution_id},
            lambda: self._distributor.finalize(institution_id),
        )
        return await self._pay_out(distribution)

    def get_distribution(self, institution_id: int) -> FeeDistribution | None:
        distribution = self._distributor.get_distribution(institution_id)
        return distribution.model_copy(deep=True) if distribution is not None else None

    # ─── Status (consumed by the institution store) ─────────────────

    def resolve_status(self, institution_id: int) -> InstitutionStatus:
        return self._resolver.resolve(institution_id)

    def is_approved(self, institution_id: int) -> bool:
        return self._resolver.is_approved(institution_id)

    @property
    def resolver(self) -> InstitutionStatusResolver:
        return self._resolver

    # ─── Events & History ───────────────────────────────────────────

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def events(self, name: str | None = None) -> list[AcceptanceEvent]:
        if name is None:
            return list(self._events)
        return [e for e in self._events if e.name == name]

    @property
    def operation_log(self) -> list[OperationRecord]:
        return list(self._operations)

    @property
    def version(self) -> int:
        return self._store.state.version

    def snapshot(self) -> AcceptanceState:
        """Deep copy of the full engine state, for inspection only."""
        return self._store.state.model_copy(deep=True)

    # ─── Internal ───────────────────────────────────────────────────

    async def _transact(
        self,
        operation: str,
        caller: Principal | None,
        arguments: dict[str, Any],
        body: Callable[[], T],
    ) -> T:
        async with self._lock:
            self._store.begin()
            try:
                result = body()
            except Exception as exc:
                self._store.rollback()
                self._rejected += 1
                if isinstance(exc, AcceptanceError):
                    self._logger.info(
                        "operation_rejected",
                        operation=operation,
                        caller=caller,
                        kind=exc.kind.value,
                        reason=exc.reason,
                    )
                else:
                    self._logger.error(
                        "operation_failed",
                        operation=operation,
                        caller=caller,
                        error=str(exc),
                    )
                raise
            events = self._store.commit()
            self._record(operation, caller, arguments)

        self._publish(events)
        return result

    def _record(self, operation: str, caller: Principal | None, arguments: dict[str, Any]) -> None:
        self._operations.append(OperationRecord(
            sequence=self._store.state.version,
            operation=operation,
            caller=caller,
            arguments=arguments,
            timestamp=self._clock(),
        ))
        if len(self._operations) > self._max_history:
            self._operations = self._operations[-self._max_history:]

    def _publish(self, events: list[AcceptanceEvent]) -> None:
        for event in events:
            self._events.append(event)
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    self._logger.warning("event_listener_failed", event=event.name, exc_info=True)
        if len(self._events) > self._max_history:
            self._events = self._events[-self._max_history:]

    async def _pay_out(self, distribution: FeeDistribution) -> FeeDistribution:
        transfers = await self._distributor.pay_out(distribution)
        return await self._transact(
            "record_payouts",
            None,
            {"institution_id": distribution.institution_id},
            lambda: self._record_transfers(distribution.institution_id, transfers),
        )

    def _record_transfers(self, institution_id: int, transfers: list[FeeTransfer]) -> FeeDistribution:
        stored = self._store.state.distributions[institution_id]
        stored.transfers = transfers
        return stored.model_copy(deep=True)

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "version": self._store.state.version,
            "operations": len(self._operations),
            "rejected": self._rejected,
            "events": len(self._events),
            "committee": self._committee.stats,
            "escrow": self._escrow.stats,
            "polls": self._poll.stats,
            "distribution": self._distributor.stats,
        }
