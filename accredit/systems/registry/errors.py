"""
Accredit -- Registry Errors

Raised by the institution and credential record stores. The message is
the stable reason string callers match on.
"""

from __future__ import annotations


class RegistryError(RuntimeError):
    """Base for institution and credential record store errors."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class ValidationError(RegistryError):
    """A required field is missing or out of range."""


class NotFoundError(RegistryError):
    """No record exists under the requested id."""


class StateError(RegistryError):
    """The record is in a status that forbids the action."""


class PaymentError(RegistryError):
    """The attached payment is below the minimum."""


class NotApprovedError(RegistryError):
    """The issuing institution has not been approved by the committee."""
