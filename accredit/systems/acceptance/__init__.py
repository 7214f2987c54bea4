"""
Accredit -- Acceptance System

The accreditation voting and fee-escrow engine: committee membership,
applicant fee escrow, five-criterion committee voting, deadline-gated
closing, outcome derivation and fee distribution.
"""

from accredit.systems.acceptance.service import AcceptanceService

__all__ = ["AcceptanceService"]
