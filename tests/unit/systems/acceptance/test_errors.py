"""
Unit tests for the acceptance error taxonomy.

Reason strings are part of the public contract; these pin them verbatim.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from accredit.systems.acceptance import errors
from accredit.systems.acceptance.errors import (
    REASONS,
    AcceptanceError,
    ErrorCategory,
    ErrorKind,
    InsufficientFeeError,
)

CONTRACT_REASONS = {
    errors.AuthorizationError: "Only Chairman can call this function",
    errors.AlreadyMemberError: "User is already a current committee Member",
    errors.NotMemberError: "User is not a current committee Member",
    errors.AlreadyPaidError: "Applicant fee has been paid",
    errors.PollNotOpenError: "Applicant is not open for voting",
    errors.DeadlineNotReachedError: "Deadline not up",
    errors.NotCommitteeMemberError: "You are not a committee member",
}


class TestReasons:
    @pytest.mark.parametrize("error_cls,reason", list(CONTRACT_REASONS.items()))
    def test_contract_reasons_verbatim(self, error_cls, reason):
        err = error_cls()
        assert err.reason == reason
        assert str(err) == reason

    def test_fee_reason(self):
        assert str(InsufficientFeeError(Decimal("5"))) == "Application fee is 5 ETH"
        assert str(InsufficientFeeError(Decimal("5.000"), "ETH")) == "Application fee is 5 ETH"

    def test_every_kind_has_a_distinct_reason(self):
        assert set(REASONS) == set(ErrorKind)
        assert len(set(REASONS.values())) == len(REASONS)

    def test_every_kind_has_exactly_one_class(self):
        kinds = [cls.kind for cls in AcceptanceError.__subclasses__()]
        assert sorted(k.value for k in kinds) == sorted(k.value for k in ErrorKind)


class TestCategories:
    def test_authorization(self):
        assert errors.AuthorizationError.category == ErrorCategory.AUTHORIZATION
        assert errors.NotCommitteeMemberError.category == ErrorCategory.AUTHORIZATION

    def test_timing(self):
        assert errors.DeadlineNotReachedError.category == ErrorCategory.TIMING

    def test_input(self):
        assert InsufficientFeeError.category == ErrorCategory.INPUT

    def test_state_is_default(self):
        assert errors.AlreadyDistributedError.category == ErrorCategory.STATE
        assert errors.DuplicateBallotError.category == ErrorCategory.STATE
