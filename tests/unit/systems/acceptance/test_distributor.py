"""
Unit tests for the FeeDistributor.

Tests the closed-poll gate, single distribution per institution, equal
shares with retained remainders, and per-recipient transfer failures.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from accredit.primitives.acceptance import AcceptanceState, Ballot, Poll
from accredit.systems.acceptance.distributor import FeeDistributor
from accredit.systems.acceptance.errors import AlreadyDistributedError, PollNotClosedError
from accredit.systems.acceptance.escrow import ApplicationEscrow
from accredit.systems.acceptance.payout import InMemoryPayoutGateway, PayoutError
from accredit.systems.acceptance.store import AcceptanceStore

ALL_TRUE = (True, True, True, True, True)


# ─── Fixtures ────────────────────────────────────────────────────


class FlakyGateway(InMemoryPayoutGateway):
    """Fails every transfer to the listed recipients."""

    def __init__(self, failing: set[str]) -> None:
        super().__init__()
        self._failing = failing

    async def transfer(self, recipient, amount):
        if recipient in self._failing:
            raise PayoutError(f"{recipient} rejected the transfer")
        return await super().transfer(recipient, amount)


def run(store: AcceptanceStore, fn):
    store.begin()
    try:
        result = fn()
    except Exception:
        store.rollback()
        raise
    return result, store.commit()


def make_distributor(
    voters: tuple[str, ...] = ("0xm1", "0xm2"),
    closed: bool = True,
    gateway: InMemoryPayoutGateway | None = None,
    precision: int = 18,
    fee: Decimal = Decimal("5"),
) -> tuple[FeeDistributor, AcceptanceStore, InMemoryPayoutGateway]:
    store = AcceptanceStore(AcceptanceState(chairman="0xchair"))
    escrow = ApplicationEscrow(store, application_fee=fee)
    gateway = gateway or InMemoryPayoutGateway()
    distributor = FeeDistributor(store, escrow, gateway, fee_precision=precision)

    run(store, lambda: escrow.pay_fee(0, "0xapplicant", fee))
    poll = Poll(institution_id=0, is_open=not closed, is_closed=closed)
    for v in voters:
        poll.ballots[v] = Ballot(voter=v, criteria=ALL_TRUE)
    store.state.polls[0] = poll
    return distributor, store, gateway


# ─── Bookkeeping ─────────────────────────────────────────────────


class TestFinalize:
    def test_requires_closed_poll(self):
        distributor, store, _ = make_distributor(closed=False)
        with pytest.raises(PollNotClosedError) as exc_info:
            run(store, lambda: distributor.finalize(0))

        assert exc_info.value.reason == "Vote has not been closed"
        assert store.state.applications[0].amount_escrowed == Decimal("5")

    def test_requires_existing_poll(self):
        distributor, store, _ = make_distributor()
        with pytest.raises(PollNotClosedError):
            run(store, lambda: distributor.finalize(7))

    def test_equal_shares(self):
        distributor, store, _ = make_distributor()
        distribution, events = run(store, lambda: distributor.finalize(0))

        assert distribution.total == Decimal("5")
        assert distribution.share == Decimal("2.5")
        assert distribution.recipients == ["0xm1", "0xm2"]
        assert distribution.retained == Decimal("0")
        assert store.state.applications[0].amount_escrowed == Decimal("0")
        assert events[0].name == "fee_distributed"

    def test_indivisible_remainder_is_retained(self):
        distributor, store, _ = make_distributor(voters=("0xa", "0xb", "0xc"), precision=2)
        distribution, _ = run(store, lambda: distributor.finalize(0))

        assert distribution.share == Decimal("1.66")
        assert distribution.retained == Decimal("0.02")
        assert distribution.share * 3 + distribution.retained == Decimal("5")
        assert store.state.retained_balance == Decimal("0.02")

    def test_large_fee_split_at_full_precision(self):
        fee = Decimal("10000000000")
        distributor, store, _ = make_distributor(voters=("0xa", "0xb", "0xc"), fee=fee)
        distribution, _ = run(store, lambda: distributor.finalize(0))

        assert distribution.share == Decimal("3333333333.333333333333333333")
        assert distribution.retained == Decimal("0.000000000000000001")
        assert distribution.share * 3 + distribution.retained == fee

    @pytest.mark.asyncio
    async def test_large_fee_single_recipient_paid_in_full(self):
        fee = Decimal("10000000000")
        distributor, store, gateway = make_distributor(voters=("0xa",), fee=fee)
        distribution, _ = run(store, lambda: distributor.finalize(0))

        transfers = await distributor.pay_out(distribution)

        assert distribution.retained == Decimal("0")
        assert transfers[0].succeeded
        assert gateway.balance_of("0xa") == fee

    def test_no_voters_retains_everything(self):
        distributor, store, _ = make_distributor(voters=())
        distribution, _ = run(store, lambda: distributor.finalize(0))

        assert distribution.share == Decimal("0")
        assert distribution.retained == Decimal("5")
        assert store.state.retained_balance == Decimal("5")

    def test_second_distribution_rejected(self):
        distributor, store, _ = make_distributor()
        run(store, lambda: distributor.finalize(0))

        with pytest.raises(AlreadyDistributedError) as exc_info:
            run(store, lambda: distributor.finalize(0))

        assert exc_info.value.reason == "Fee has already been distributed"

    def test_compute_share_rounds_down(self):
        distributor, _, _ = make_distributor(precision=0)
        assert distributor.compute_share(Decimal("5"), 2) == Decimal("2")
        assert distributor.compute_share(Decimal("5"), 0) == Decimal("0")


# ─── Transfers ───────────────────────────────────────────────────


class TestPayOut:
    @pytest.mark.asyncio
    async def test_pays_each_recipient(self):
        distributor, store, gateway = make_distributor()
        distribution, _ = run(store, lambda: distributor.finalize(0))

        transfers = await distributor.pay_out(distribution)

        assert all(t.succeeded for t in transfers)
        assert gateway.balance_of("0xm1") == Decimal("2.5")
        assert gateway.balance_of("0xm2") == Decimal("2.5")

    @pytest.mark.asyncio
    async def test_failed_recipient_does_not_block_others(self):
        distributor, store, gateway = make_distributor(
            voters=("0xm1", "0xm2", "0xm3"),
            gateway=FlakyGateway(failing={"0xm2"}),
        )
        distribution, _ = run(store, lambda: distributor.finalize(0))

        transfers = await distributor.pay_out(distribution)

        assert [t.succeeded for t in transfers] == [True, False, True]
        assert "rejected the transfer" in transfers[1].error
        assert gateway.balance_of("0xm1") == distribution.share
        assert gateway.balance_of("0xm2") == Decimal("0")
        assert gateway.balance_of("0xm3") == distribution.share
        # Bookkeeping stays final.
        assert store.state.applications[0].amount_escrowed == Decimal("0")
        assert 0 in store.state.distributions

    @pytest.mark.asyncio
    async def test_nothing_to_pay_without_voters(self):
        distributor, store, gateway = make_distributor(voters=())
        distribution, _ = run(store, lambda: distributor.finalize(0))

        assert await distributor.pay_out(distribution) == []
        assert gateway.receipts == []
