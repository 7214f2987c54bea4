"""
Accredit -- Application Escrow

Records that an applicant paid the fixed application fee for an
institution id, and holds the fee in custody until FeeDistributor pays it
out. Nothing is forwarded at payment time.

Invariants:
  - Exactly one successful payment per institution id
  - The attached value must equal the fee exactly; any other amount is
    rejected and leaves no record behind
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog

from accredit.primitives.acceptance import ApplicationRecord
from accredit.primitives.common import Principal, utc_now
from accredit.systems.acceptance.errors import AlreadyPaidError, InsufficientFeeError
from accredit.systems.acceptance.store import AcceptanceStore

logger = structlog.get_logger("accredit.systems.acceptance.escrow")


class ApplicationEscrow:
    def __init__(
        self,
        store: AcceptanceStore,
        application_fee: Decimal = Decimal("5"),
        fee_currency: str = "ETH",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock
        self._fee = application_fee
        self._currency = fee_currency
        self._logger = logger.bind(component="application_escrow")

    @property
    def application_fee(self) -> Decimal:
        return self._fee

    def pay_fee(self, institution_id: int, applicant: Principal, value: Decimal) -> ApplicationRecord:
        """Take the applicant's fee into custody for `institution_id`."""
        applications = self._store.state.applications
        existing = applications.get(institution_id)
        if existing is not None and existing.paid:
            raise AlreadyPaidError()
        if Decimal(value) != self._fee:
            raise InsufficientFeeError(self._fee, self._currency)

        record = existing or ApplicationRecord(institution_id=institution_id)
        record.paid = True
        record.payer = applicant
        record.amount_escrowed = Decimal(value)
        record.paid_at = self._clock()
        applications[institution_id] = record

        self._store.emit(
            "applicant_paid",
            institution_id=institution_id,
            principal=applicant,
            amount=str(record.amount_escrowed),
        )
        self._logger.info(
            "fee_escrowed",
            institution_id=institution_id,
            applicant=applicant,
            amount=str(record.amount_escrowed),
        )
        return record

    # ─── Queries ────────────────────────────────────────────────────

    def get_record(self, institution_id: int) -> ApplicationRecord | None:
        return self._store.state.applications.get(institution_id)

    def is_paid(self, institution_id: int) -> bool:
        record = self._store.state.applications.get(institution_id)
        return record is not None and record.paid

    def escrowed_balance(self, institution_id: int) -> Decimal:
        record = self._store.state.applications.get(institution_id)
        if record is None:
            return Decimal("0")
        return record.amount_escrowed

    def total_held(self) -> Decimal:
        """Everything in custody: undistributed fees plus retained remainders."""
        state = self._store.state
        escrowed = sum((r.amount_escrowed for r in state.applications.values()), Decimal("0"))
        return escrowed + state.retained_balance

    # ─── Internal (FeeDistributor) ──────────────────────────────────

    def debit(self, institution_id: int) -> Decimal:
        """Zero the escrowed balance for `institution_id` and return what it held."""
        record = self._store.state.applications[institution_id]
        amount = record.amount_escrowed
        record.amount_escrowed = Decimal("0")
        return amount

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "application_fee": str(self._fee),
            "paid_applications": sum(1 for r in self._store.state.applications.values() if r.paid),
            "total_held": str(self.total_held()),
        }
