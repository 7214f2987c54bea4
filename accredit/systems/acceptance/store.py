"""
Accredit -- Acceptance State Store

The single owner of the engine's shared state: the committee set, the
application records, the polls and the fee distributions.

Sub-managers read and write `store.state` directly, but only inside a
transaction opened by AcceptanceService. A transaction snapshots the state
(deep copy) on begin; rollback restores the snapshot and discards every
event emitted since, commit bumps the version and hands the buffered
events back for publication.

Thread-safety: NOT thread-safe. Serialization is the caller's job
(AcceptanceService holds one asyncio.Lock around every transaction).
"""

from __future__ import annotations

from typing import Any

import structlog

from accredit.primitives.acceptance import AcceptanceEvent, AcceptanceState
from accredit.primitives.common import Principal

logger = structlog.get_logger("accredit.systems.acceptance.store")


class TransactionError(RuntimeError):
    """Transaction misuse: nested begin, or commit/rollback with none open."""


class AcceptanceStore:
    """Versioned state holder with snapshot/restore transactions."""

    def __init__(self, state: AcceptanceState) -> None:
        self.state = state
        self._snapshot: AcceptanceState | None = None
        self._pending: list[AcceptanceEvent] = []
        self._logger = logger.bind(component="acceptance_store")

    @property
    def in_transaction(self) -> bool:
        return self._snapshot is not None

    def begin(self) -> None:
        if self._snapshot is not None:
            raise TransactionError("Transaction already open")
        self._snapshot = self.state.model_copy(deep=True)
        self._pending = []

    def commit(self) -> list[AcceptanceEvent]:
        """Finalise the open transaction. Returns the events it emitted."""
        if self._snapshot is None:
            raise TransactionError("No open transaction")
        self.state.version += 1
        events = self._pending
        for event in events:
            event.version = self.state.version
        self._snapshot = None
        self._pending = []
        return events

    def rollback(self) -> None:
        if self._snapshot is None:
            raise TransactionError("No open transaction")
        self.state = self._snapshot
        discarded = len(self._pending)
        self._snapshot = None
        self._pending = []
        self._logger.debug("transaction_rolled_back", discarded_events=discarded)

    def emit(
        self,
        name: str,
        institution_id: int | None = None,
        principal: Principal | None = None,
        **payload: Any,
    ) -> AcceptanceEvent:
        """Buffer an event. It is published only if the transaction commits."""
        if self._snapshot is None:
            raise TransactionError("Events can only be emitted inside a transaction")
        event = AcceptanceEvent(
            name=name,
            institution_id=institution_id,
            principal=principal,
            payload=payload,
        )
        self._pending.append(event)
        return event
