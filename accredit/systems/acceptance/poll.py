"""
Accredit -- Voting Poll

Per-institution voting sessions. Committee members each cast one ballot
of five independent boolean criteria; every true criterion adds one point
to the poll's affirmative score. Once the deadline has passed, anyone may
close the poll against a threshold supplied with the closing call, which
fixes the terminal outcome.

Lifecycle:
  open_vote()       -- requires a paid application; starts the voting window
  vote()            -- one ballot per committee member per poll
  change_deadline() -- administrative override: deadline becomes "now"
  close_vote()      -- after the deadline; outcome = score >= threshold

A closed poll is never re-opened. Re-application needs a new institution id.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Any

import structlog

from accredit.primitives.acceptance import (
    CRITERIA_COUNT,
    Ballot,
    Poll,
    PollOutcome,
    VotingState,
)
from accredit.primitives.common import Principal, utc_now
from accredit.systems.acceptance.committee import CommitteeRegistry
from accredit.systems.acceptance.errors import (
    AlreadyClosedError,
    AlreadyOpenError,
    DeadlineNotReachedError,
    DuplicateBallotError,
    NotCommitteeMemberError,
    NotPaidError,
    PollNotFoundError,
    PollNotOpenError,
)
from accredit.systems.acceptance.escrow import ApplicationEscrow
from accredit.systems.acceptance.store import AcceptanceStore

logger = structlog.get_logger("accredit.systems.acceptance.poll")

Clock = Callable[[], datetime]


class VotingPoll:
    def __init__(
        self,
        store: AcceptanceStore,
        committee: CommitteeRegistry,
        escrow: ApplicationEscrow,
        voting_window: timedelta = timedelta(days=7),
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._committee = committee
        self._escrow = escrow
        self._voting_window = voting_window
        self._clock = clock
        self._logger = logger.bind(component="voting_poll")

    # ─── Lifecycle ──────────────────────────────────────────────────

    def open_vote(self, institution_id: int) -> Poll:
        if not self._escrow.is_paid(institution_id):
            raise NotPaidError()

        polls = self._store.state.polls
        poll = polls.get(institution_id)
        if poll is not None and poll.is_open:
            raise AlreadyOpenError()
        if poll is not None and poll.is_closed:
            raise AlreadyClosedError()

        now = self._clock()
        poll = poll or Poll(institution_id=institution_id)
        poll.is_open = True
        poll.opened_at = now
        poll.deadline = now + self._voting_window
        polls[institution_id] = poll

        self._store.emit(
            "vote_open",
            institution_id=institution_id,
            deadline=poll.deadline.isoformat(),
        )
        self._logger.info(
            "vote_opened",
            institution_id=institution_id,
            deadline=poll.deadline.isoformat(),
        )
        return poll

    def change_deadline(self, institution_id: int) -> Poll:
        """Force-expire the deadline so the poll can be closed right away."""
        poll = self._require_poll(institution_id)
        if poll.is_closed:
            raise AlreadyClosedError()
        poll.deadline = self._clock()
        self._logger.info(
            "vote_deadline_forced",
            institution_id=institution_id,
            deadline=poll.deadline.isoformat(),
        )
        return poll

    def vote(self, caller: Principal, institution_id: int, criteria: Sequence[bool]) -> Ballot:
        if len(criteria) != CRITERIA_COUNT:
            # Arity is fixed by the operation signature, not a runtime condition.
            raise ValueError(f"Expected {CRITERIA_COUNT} criteria, got {len(criteria)}")

        if not self._committee.is_member(caller):
            raise NotCommitteeMemberError()

        poll = self._store.state.polls.get(institution_id)
        if poll is None or not poll.is_open or poll.is_closed:
            raise PollNotOpenError()
        if poll.has_voted(caller):
            raise DuplicateBallotError()

        ballot = Ballot(voter=caller, criteria=tuple(bool(c) for c in criteria), cast_at=self._clock())
        poll.ballots[caller] = ballot
        poll.affirmative_score += ballot.score

        self._store.emit(
            "voted",
            institution_id=institution_id,
            principal=caller,
            criteria=list(ballot.criteria),
            score=ballot.score,
        )
        self._logger.info(
            "ballot_cast",
            institution_id=institution_id,
            voter=caller,
            score=ballot.score,
            running_score=poll.affirmative_score,
        )
        return ballot

    def close_vote(self, institution_id: int, threshold: int) -> Poll:
        """
        Close the poll and fix its outcome.

        The threshold travels with the closing call, so the passing bar is
        an explicit, auditable parameter of each close (e.g. 9 out of the
        10 points two voters can award).
        """
        poll = self._require_poll(institution_id)
        now = self._clock()
        if poll.deadline is not None and now < poll.deadline:
            raise DeadlineNotReachedError()
        if poll.is_closed:
            raise AlreadyClosedError()

        poll.is_closed = True
        poll.is_open = False
        poll.closed_at = now
        poll.threshold = threshold
        poll.outcome = (
            PollOutcome.APPROVED if poll.affirmative_score >= threshold else PollOutcome.REJECTED
        )

        self._store.emit(
            "vote_close",
            institution_id=institution_id,
            score=poll.affirmative_score,
            threshold=threshold,
            outcome=poll.outcome.value,
            voters=len(poll.ballots),
        )
        self._logger.info(
            "vote_closed",
            institution_id=institution_id,
            score=poll.affirmative_score,
            threshold=threshold,
            outcome=poll.outcome.value,
        )
        return poll

    # ─── Queries ────────────────────────────────────────────────────

    def get_poll(self, institution_id: int) -> Poll | None:
        return self._store.state.polls.get(institution_id)

    def get_voting_state(self, institution_id: int) -> VotingState:
        poll = self._store.state.polls.get(institution_id)
        if poll is None:
            return VotingState.UNDETERMINED
        if poll.is_closed:
            return VotingState.CLOSED
        if poll.is_open:
            return VotingState.OPEN
        return VotingState.UNDETERMINED

    def max_score(self) -> int:
        """Highest score a poll could reach with the current committee."""
        return self._committee.member_count() * CRITERIA_COUNT

    # ─── Internal ───────────────────────────────────────────────────

    def _require_poll(self, institution_id: int) -> Poll:
        poll = self._store.state.polls.get(institution_id)
        if poll is None:
            raise PollNotFoundError()
        return poll

    @property
    def stats(self) -> dict[str, Any]:
        polls = self._store.state.polls.values()
        return {
            "voting_window_seconds": int(self._voting_window.total_seconds()),
            "open_polls": sum(1 for p in polls if p.is_open),
            "closed_polls": sum(1 for p in polls if p.is_closed),
        }
