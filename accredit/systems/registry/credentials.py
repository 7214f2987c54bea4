"""
Accredit -- Credential Registry

Student credential records issued by institutions. Issuance is gated on
two independent rules: a minimum payment per credential, and the issuing
institution's committee approval (asked of the InstitutionStatusResolver,
never of the institution record alone). Overpayment is handed back to the
issuer as change.

Status lifecycle: ACTIVE -> DELETED | REVOKED. Both are terminal.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog

from accredit.primitives.acceptance import InstitutionStatus
from accredit.primitives.common import AccreditBaseModel, Principal, Timestamped, utc_now
from accredit.systems.registry.errors import (
    NotApprovedError,
    NotFoundError,
    PaymentError,
    StateError,
    ValidationError,
)
from accredit.systems.registry.institutions import InstitutionRegistry, StatusResolver

logger = structlog.get_logger("accredit.systems.registry.credentials")

ZERO_ADDRESS = "0x" + "0" * 40


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CredentialStatus(int, enum.Enum):
    ACTIVE = 0
    DELETED = 1
    REVOKED = 2


class Credential(Timestamped):
    credential_id: int
    issuer: Principal
    institution_id: int
    student_name: str
    student_number: str
    course_name: str
    degree_level: str
    endorser_name: str
    issuance_date: datetime
    expiry_date: datetime | None = None
    student_address: Principal
    status: CredentialStatus = CredentialStatus.ACTIVE


class IssuanceReceipt(AccreditBaseModel):
    credential: Credential
    fee: Decimal
    change: Decimal = Decimal("0")


class CredentialRegistry:
    def __init__(
        self,
        institutions: InstitutionRegistry,
        resolver: StatusResolver,
        min_payment: Decimal = Decimal("0.01"),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._institutions = institutions
        self._resolver = resolver
        self._min_payment = min_payment
        self._clock = clock
        self._credentials: list[Credential] = []
        self._collected = Decimal("0")
        self._events: list[dict[str, Any]] = []
        self._logger = logger.bind(component="credential_registry")

    def add_credential(
        self,
        caller: Principal,
        student_name: str,
        student_number: str,
        course_name: str,
        degree_level: str,
        endorser_name: str,
        institution_id: int,
        issuance_date: datetime | None,
        expiry_date: datetime | None,
        student_address: Principal,
        value: Decimal,
    ) -> IssuanceReceipt:
        value = Decimal(value)
        if value < self._min_payment:
            raise PaymentError(f"At least {self._min_payment}ETH needed to create credential")
        if not self._is_approved(institution_id):
            raise NotApprovedError("The institution must be approved to perform this function")

        for label, text in (
            ("Student name", student_name),
            ("Student number", student_number),
            ("Course name", course_name),
            ("Degree level", degree_level),
            ("Endorser name", endorser_name),
        ):
            if not text:
                raise ValidationError(f"{label} cannot be empty")
        if issuance_date is None:
            raise ValidationError("Issuance date cannot be empty")
        issuance_date = _as_utc(issuance_date)
        if expiry_date is not None:
            expiry_date = _as_utc(expiry_date)
        if issuance_date > self._clock():
            raise ValidationError(
                "Issuance date cannot be a future date. "
                "Please enter an issuance date that is today or in the past."
            )
        if not student_address or student_address == ZERO_ADDRESS:
            raise ValidationError("Student address cannot be empty")

        credential = Credential(
            credential_id=len(self._credentials),
            issuer=caller,
            institution_id=institution_id,
            student_name=student_name,
            student_number=student_number,
            course_name=course_name,
            degree_level=degree_level,
            endorser_name=endorser_name,
            issuance_date=issuance_date,
            expiry_date=expiry_date,
            student_address=student_address,
        )
        self._credentials.append(credential)
        self._collected += self._min_payment
        change = value - self._min_payment

        self._emit("add_credential", credential, change=str(change))
        return IssuanceReceipt(credential=credential, fee=self._min_payment, change=change)

    def delete_credential(self, credential_id: int) -> Credential:
        credential = self.get_credential(credential_id)
        if credential.status == CredentialStatus.DELETED:
            raise StateError("Credential has already been deleted.")
        if credential.status != CredentialStatus.ACTIVE:
            raise StateError("Only active credentials can be deleted")

        credential.status = CredentialStatus.DELETED
        self._emit("delete_credential", credential)
        return credential

    def revoke_credential(self, credential_id: int) -> Credential:
        credential = self.get_credential(credential_id)
        if credential.status == CredentialStatus.REVOKED:
            raise StateError("Credential has already been revoked.")
        if credential.status != CredentialStatus.ACTIVE:
            raise StateError("Only active credentials can be revoked")

        credential.status = CredentialStatus.REVOKED
        self._emit("revoke_credential", credential)
        return credential

    # ─── Queries ────────────────────────────────────────────────────

    def get_credential(self, credential_id: int) -> Credential:
        if credential_id < 0 or credential_id >= len(self._credentials):
            raise NotFoundError("Credential does not exist")
        return self._credentials[credential_id]

    def credentials_for_student(self, student_address: Principal) -> list[Credential]:
        return [
            c for c in self._credentials
            if c.student_address == student_address and c.status == CredentialStatus.ACTIVE
        ]

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [e for e in self._events if name is None or e["event"] == name]

    @property
    def collected_fees(self) -> Decimal:
        return self._collected

    # ─── Internal ───────────────────────────────────────────────────

    def _is_approved(self, institution_id: int) -> bool:
        if not self._institutions.exists(institution_id):
            return False
        if self._institutions.get_institution_state(institution_id) == InstitutionStatus.DELETED:
            return False
        return self._resolver.resolve(institution_id) == InstitutionStatus.APPROVED

    def _emit(self, event: str, credential: Credential, **extra: Any) -> None:
        self._events.append({
            "event": event,
            "credential_id": credential.credential_id,
            "institution_id": credential.institution_id,
            **extra,
        })
        self._logger.info(
            event,
            credential_id=credential.credential_id,
            institution_id=credential.institution_id,
            status=credential.status.name,
            **extra,
        )
