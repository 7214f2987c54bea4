"""
Unit tests for the CommitteeRegistry.

Tests chairman-only mutation, duplicate/absent member handling, and the
stable member count.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from accredit.primitives.acceptance import AcceptanceState
from accredit.systems.acceptance.committee import CommitteeRegistry
from accredit.systems.acceptance.errors import (
    AlreadyMemberError,
    AuthorizationError,
    NotMemberError,
)
from accredit.systems.acceptance.store import AcceptanceStore

CHAIRMAN = "0xchair"


# ─── Fixtures ────────────────────────────────────────────────────


def make_registry(seed_chairman: bool = False) -> tuple[CommitteeRegistry, AcceptanceStore]:
    state = AcceptanceState(chairman=CHAIRMAN)
    store = AcceptanceStore(state)
    registry = CommitteeRegistry(store)
    if seed_chairman:
        store.begin()
        registry.add_member(CHAIRMAN, CHAIRMAN)
        store.commit()
    return registry, store


def run(store: AcceptanceStore, fn):
    store.begin()
    try:
        result = fn()
    except Exception:
        store.rollback()
        raise
    return result, store.commit()


# ─── Add ─────────────────────────────────────────────────────────


class TestAddMember:
    def test_membership_stamped_by_injected_clock(self):
        joined = datetime(2023, 3, 21, 12, 0, tzinfo=timezone.utc)
        store = AcceptanceStore(AcceptanceState(chairman=CHAIRMAN))
        registry = CommitteeRegistry(store, clock=lambda: joined)

        run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))

        assert store.state.members["0xa"] == joined

    def test_chairman_adds_member(self):
        registry, store = make_registry()
        _, events = run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))

        assert registry.is_member("0xa")
        assert registry.member_count() == 1
        assert [e.name for e in events] == ["new_committee_member"]
        assert events[0].principal == "0xa"

    def test_non_chairman_rejected(self):
        registry, store = make_registry()
        with pytest.raises(AuthorizationError) as exc_info:
            run(store, lambda: registry.add_member("0xa", "0xb"))

        assert exc_info.value.reason == "Only Chairman can call this function"
        assert registry.member_count() == 0

    def test_member_cannot_add_even_when_member(self):
        registry, store = make_registry()
        run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))

        with pytest.raises(AuthorizationError):
            run(store, lambda: registry.add_member("0xa", "0xb"))

    def test_duplicate_rejected(self):
        registry, store = make_registry()
        run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))

        with pytest.raises(AlreadyMemberError) as exc_info:
            run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))

        assert str(exc_info.value) == "User is already a current committee Member"
        assert registry.member_count() == 1

    def test_chairman_need_not_be_member(self):
        registry, store = make_registry()
        assert not registry.is_member(CHAIRMAN)
        run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))
        assert registry.members() == ["0xa"]


# ─── Remove ──────────────────────────────────────────────────────


class TestRemoveMember:
    def test_chairman_removes_member(self):
        registry, store = make_registry(seed_chairman=True)
        for p in ("0xa", "0xb", "0xc"):
            run(store, lambda p=p: registry.add_member(CHAIRMAN, p))
        assert registry.member_count() == 4

        _, events = run(store, lambda: registry.remove_member(CHAIRMAN, "0xc"))

        assert registry.member_count() == 3
        assert not registry.is_member("0xc")
        assert events[0].name == "remove_committee_member"

    def test_non_chairman_rejected(self):
        registry, store = make_registry()
        run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))

        with pytest.raises(AuthorizationError):
            run(store, lambda: registry.remove_member("0xa", "0xa"))
        assert registry.is_member("0xa")

    def test_absent_member_rejected(self):
        registry, store = make_registry()
        with pytest.raises(NotMemberError) as exc_info:
            run(store, lambda: registry.remove_member(CHAIRMAN, "0xnobody"))

        assert exc_info.value.reason == "User is not a current committee Member"

    def test_removed_member_can_be_added_again(self):
        registry, store = make_registry()
        run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))
        run(store, lambda: registry.remove_member(CHAIRMAN, "0xa"))
        run(store, lambda: registry.add_member(CHAIRMAN, "0xa"))
        assert registry.is_member("0xa")


# ─── Enumeration ─────────────────────────────────────────────────


class TestEnumeration:
    def test_members_in_insertion_order(self):
        registry, store = make_registry()
        for p in ("0xc", "0xa", "0xb"):
            run(store, lambda p=p: registry.add_member(CHAIRMAN, p))

        assert registry.members() == ["0xc", "0xa", "0xb"]
        assert registry.member_count() == 3

    def test_stats(self):
        registry, _ = make_registry(seed_chairman=True)
        assert registry.stats == {"chairman": CHAIRMAN, "member_count": 1}
