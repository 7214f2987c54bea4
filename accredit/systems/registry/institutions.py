"""
Accredit -- Institution Registry

Plain keyed records for applicant institutions. The only non-trivial
field is `status`, which this store never decides on its own: it copies
the committee's determination from the InstitutionStatusResolver when
update_institution_status() is called. A deleted institution stays
deleted whatever the committee later decides.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

import structlog
from pydantic import Field

from accredit.primitives.acceptance import InstitutionStatus
from accredit.primitives.common import Principal, Timestamped, utc_now
from accredit.systems.registry.errors import NotFoundError, StateError, ValidationError

logger = structlog.get_logger("accredit.systems.registry.institutions")


class StatusResolver(Protocol):
    def resolve(self, institution_id: int) -> InstitutionStatus: ...


class Institution(Timestamped):
    institution_id: int
    owner: Principal
    name: str
    country: str
    city: str
    latitude: str
    longitude: str
    status: InstitutionStatus = InstitutionStatus.PENDING
    updated_at: datetime = Field(default_factory=utc_now)


_STATUS_EVENTS: dict[InstitutionStatus, str] = {
    InstitutionStatus.APPROVED: "approve_institution",
    InstitutionStatus.REJECTED: "rejected_institution",
    InstitutionStatus.PENDING: "pending_institution",
}


class InstitutionRegistry:
    def __init__(self, resolver: StatusResolver) -> None:
        self._resolver = resolver
        self._institutions: list[Institution] = []
        self._events: list[dict[str, Any]] = []
        self._logger = logger.bind(component="institution_registry")

    def add_institution(
        self,
        caller: Principal,
        name: str,
        country: str,
        city: str,
        latitude: str,
        longitude: str,
    ) -> Institution:
        for field_name, value in (
            ("name", name),
            ("country", country),
            ("city", city),
            ("latitude", latitude),
            ("longitude", longitude),
        ):
            if not value:
                raise ValidationError(f"Institution {field_name} cannot be empty")

        institution = Institution(
            institution_id=len(self._institutions),
            owner=caller,
            name=name,
            country=country,
            city=city,
            latitude=latitude,
            longitude=longitude,
        )
        self._institutions.append(institution)
        self._emit("add_institution", institution)
        return institution

    def delete_institution(self, institution_id: int) -> Institution:
        institution = self.get_institution(institution_id)
        if institution.status == InstitutionStatus.DELETED:
            raise StateError("Institution has already been deleted from the system.")

        institution.status = InstitutionStatus.DELETED
        institution.updated_at = utc_now()
        self._emit("delete_institution", institution)
        return institution

    def update_institution_status(self, institution_id: int) -> InstitutionStatus:
        """Refresh the record from the committee's determination."""
        institution = self.get_institution(institution_id)
        if institution.status == InstitutionStatus.DELETED:
            return institution.status

        status = self._resolver.resolve(institution_id)
        institution.status = status
        institution.updated_at = utc_now()
        self._emit(_STATUS_EVENTS[status], institution)
        return status

    # ─── Queries ────────────────────────────────────────────────────

    def get_institution(self, institution_id: int) -> Institution:
        if institution_id < 0 or institution_id >= len(self._institutions):
            raise NotFoundError("Institution does not exist")
        return self._institutions[institution_id]

    def get_institution_state(self, institution_id: int) -> InstitutionStatus:
        return self.get_institution(institution_id).status

    def exists(self, institution_id: int) -> bool:
        return 0 <= institution_id < len(self._institutions)

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [e for e in self._events if name is None or e["event"] == name]

    @property
    def count(self) -> int:
        return len(self._institutions)

    def _emit(self, event: str, institution: Institution) -> None:
        self._events.append({
            "event": event,
            "institution_id": institution.institution_id,
            "status": institution.status.name,
        })
        self._logger.info(
            event,
            institution_id=institution.institution_id,
            status=institution.status.name,
        )
