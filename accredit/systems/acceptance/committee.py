"""
Accredit -- Committee Registry

The closed, admin-curated set of principals allowed to vote on
accreditation polls. Only the chairman may change it. The chairman is
fixed at initialization and never needs to be a member to exercise that
right.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from accredit.primitives.common import Principal, utc_now
from accredit.systems.acceptance.errors import (
    AlreadyMemberError,
    AuthorizationError,
    NotMemberError,
)
from accredit.systems.acceptance.store import AcceptanceStore

logger = structlog.get_logger("accredit.systems.acceptance.committee")


class CommitteeRegistry:
    """
    Tracks the current committee.

    Membership is a set (unique, order-insensitive for checks) but
    enumerates in insertion order so the count and listing are stable.
    """

    def __init__(self, store: AcceptanceStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._logger = logger.bind(component="committee_registry")

    @property
    def chairman(self) -> Principal:
        return self._store.state.chairman

    def add_member(self, caller: Principal, principal: Principal) -> None:
        self._require_chairman(caller)
        members = self._store.state.members
        if principal in members:
            raise AlreadyMemberError()

        members[principal] = self._clock()
        self._store.emit("new_committee_member", principal=principal, member_count=len(members))
        self._logger.info("committee_member_added", member=principal, member_count=len(members))

    def remove_member(self, caller: Principal, principal: Principal) -> None:
        self._require_chairman(caller)
        members = self._store.state.members
        if principal not in members:
            raise NotMemberError()

        del members[principal]
        self._store.emit("remove_committee_member", principal=principal, member_count=len(members))
        self._logger.info("committee_member_removed", member=principal, member_count=len(members))

    def is_member(self, principal: Principal) -> bool:
        return principal in self._store.state.members

    def member_count(self) -> int:
        return len(self._store.state.members)

    def members(self) -> list[Principal]:
        return list(self._store.state.members.keys())

    def _require_chairman(self, caller: Principal) -> None:
        if caller != self._store.state.chairman:
            raise AuthorizationError()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "chairman": self.chairman,
            "member_count": self.member_count(),
        }
