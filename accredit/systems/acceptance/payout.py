"""
Accredit -- Payout Gateway

Outbound value transfers for fee distribution. The engine never moves
value itself; it asks a PayoutGateway to credit a recipient. Every
transfer may fail independently.

InMemoryPayoutGateway keeps per-principal balances in process and is what
the application runs with by default; a wallet-backed gateway only has to
implement `transfer()`.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

import structlog

from accredit.primitives.common import Principal, new_id

logger = structlog.get_logger("accredit.systems.acceptance.payout")


class PayoutError(RuntimeError):
    """A single outbound transfer failed."""


class TransferReceipt:
    """Outcome of one successful transfer."""

    __slots__ = ("transfer_id", "recipient", "amount")

    def __init__(self, transfer_id: str, recipient: Principal, amount: Decimal) -> None:
        self.transfer_id = transfer_id
        self.recipient = recipient
        self.amount = amount

    def __repr__(self) -> str:
        return f"TransferReceipt({self.recipient} +{self.amount})"


class PayoutGateway(Protocol):
    async def transfer(self, recipient: Principal, amount: Decimal) -> TransferReceipt: ...


class InMemoryPayoutGateway:
    """Credits recipients in a local balance book."""

    def __init__(self) -> None:
        self._balances: dict[Principal, Decimal] = {}
        self._receipts: list[TransferReceipt] = []

    async def transfer(self, recipient: Principal, amount: Decimal) -> TransferReceipt:
        if not recipient:
            raise PayoutError("Recipient cannot be empty")
        if amount < 0:
            raise PayoutError(f"Cannot transfer a negative amount ({amount})")

        self._balances[recipient] = self._balances.get(recipient, Decimal("0")) + amount
        receipt = TransferReceipt(transfer_id=new_id(), recipient=recipient, amount=amount)
        self._receipts.append(receipt)
        logger.debug("payout_credited", recipient=recipient, amount=str(amount))
        return receipt

    def balance_of(self, principal: Principal) -> Decimal:
        return self._balances.get(principal, Decimal("0"))

    @property
    def receipts(self) -> list[TransferReceipt]:
        return list(self._receipts)
