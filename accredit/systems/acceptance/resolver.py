"""
Accredit -- Institution Status Resolver

The one read the institution record store calls to refresh its status
field. PENDING until the institution's poll has closed, then the poll's
terminal outcome forever after. Never mutates poll state.
"""

from __future__ import annotations

from accredit.primitives.acceptance import InstitutionStatus, PollOutcome
from accredit.systems.acceptance.store import AcceptanceStore

_OUTCOME_STATUS: dict[PollOutcome, InstitutionStatus] = {
    PollOutcome.APPROVED: InstitutionStatus.APPROVED,
    PollOutcome.REJECTED: InstitutionStatus.REJECTED,
}


class InstitutionStatusResolver:
    def __init__(self, store: AcceptanceStore) -> None:
        self._store = store

    def resolve(self, institution_id: int) -> InstitutionStatus:
        poll = self._store.state.polls.get(institution_id)
        if poll is None or not poll.is_closed:
            return InstitutionStatus.PENDING
        return _OUTCOME_STATUS.get(poll.outcome, InstitutionStatus.PENDING)

    def is_approved(self, institution_id: int) -> bool:
        return self.resolve(institution_id) == InstitutionStatus.APPROVED
