"""
Accredit -- Fee Distributor

Splits an institution's escrowed fee equally among the committee members
who cast a ballot in its poll.

Distribution runs in two phases, effects before interaction:
  1. finalize()  -- inside the transaction: zero the escrow, compute the
                    shares, record the distribution. After this commits, a
                    second distribution for the id is impossible.
  2. pay_out()   -- after commit, outside the lock: one transfer per
                    recipient. A failing recipient is recorded and skipped;
                    it never undoes the bookkeeping or other payouts.

Shares are rounded down to the fee precision. The indivisible remainder,
and the whole fee when nobody voted, stays with the system.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Any

import structlog

from accredit.primitives.acceptance import FeeDistribution, FeeTransfer
from accredit.systems.acceptance.errors import AlreadyDistributedError, PollNotClosedError
from accredit.systems.acceptance.escrow import ApplicationEscrow
from accredit.systems.acceptance.payout import PayoutGateway
from accredit.systems.acceptance.store import AcceptanceStore

logger = structlog.get_logger("accredit.systems.acceptance.distributor")


class FeeDistributor:
    def __init__(
        self,
        store: AcceptanceStore,
        escrow: ApplicationEscrow,
        gateway: PayoutGateway,
        fee_precision: int = 18,
    ) -> None:
        self._store = store
        self._escrow = escrow
        self._gateway = gateway
        self._fee_precision = fee_precision
        self._quantum = Decimal(1).scaleb(-fee_precision)
        self._logger = logger.bind(component="fee_distributor")

    # ─── Phase 1: Bookkeeping ───────────────────────────────────────

    def finalize(self, institution_id: int) -> FeeDistribution:
        state = self._store.state
        poll = state.polls.get(institution_id)
        if poll is None or not poll.is_closed:
            raise PollNotClosedError()
        if institution_id in state.distributions:
            raise AlreadyDistributedError()

        recipients = poll.voters
        total = self._escrow.debit(institution_id)
        share = self.compute_share(total, len(recipients))
        with localcontext() as ctx:
            ctx.prec = self._precision_for(total + state.retained_balance)
            retained = total - share * len(recipients)
            state.retained_balance += retained

        distribution = FeeDistribution(
            institution_id=institution_id,
            total=total,
            share=share,
            recipients=recipients,
            retained=retained,
        )
        state.distributions[institution_id] = distribution

        self._store.emit(
            "fee_distributed",
            institution_id=institution_id,
            total=str(total),
            share=str(share),
            recipients=recipients,
            retained=str(retained),
        )
        self._logger.info(
            "fee_distribution_finalized",
            institution_id=institution_id,
            total=str(total),
            share=str(share),
            recipients=len(recipients),
            retained=str(retained),
        )
        return distribution

    def compute_share(self, total: Decimal, recipients: int) -> Decimal:
        if recipients <= 0:
            return Decimal("0")
        with localcontext() as ctx:
            ctx.prec = self._precision_for(total)
            return (total / recipients).quantize(self._quantum, rounding=ROUND_DOWN)

    def _precision_for(self, amount: Decimal) -> int:
        """Significant digits needed to hold `amount` at the fee precision exactly."""
        integer_digits = max(amount.adjusted() + 1, 1)
        return max(integer_digits + self._fee_precision + 2, 28)

    # ─── Phase 2: Transfers ─────────────────────────────────────────

    async def pay_out(self, distribution: FeeDistribution) -> list[FeeTransfer]:
        """Transfer each recipient's share. Must run after finalize() committed."""
        results: list[FeeTransfer] = []
        if distribution.share <= 0:
            return results

        for recipient in distribution.recipients:
            try:
                await self._gateway.transfer(recipient, distribution.share)
            except Exception as exc:
                self._logger.warning(
                    "payout_failed",
                    institution_id=distribution.institution_id,
                    recipient=recipient,
                    amount=str(distribution.share),
                    error=str(exc),
                )
                results.append(FeeTransfer(
                    recipient=recipient,
                    amount=distribution.share,
                    succeeded=False,
                    error=str(exc),
                ))
                continue
            results.append(FeeTransfer(recipient=recipient, amount=distribution.share, succeeded=True))

        self._logger.info(
            "fee_distributed",
            institution_id=distribution.institution_id,
            paid=sum(1 for r in results if r.succeeded),
            failed=sum(1 for r in results if not r.succeeded),
        )
        return results

    # ─── Queries ────────────────────────────────────────────────────

    def get_distribution(self, institution_id: int) -> FeeDistribution | None:
        return self._store.state.distributions.get(institution_id)

    @property
    def stats(self) -> dict[str, Any]:
        state = self._store.state
        return {
            "distributions": len(state.distributions),
            "retained_balance": str(state.retained_balance),
        }
