"""
Accredit -- Registry System

Institution and credential record stores. Both consume the acceptance
engine's status determination; neither writes acceptance state.
"""

from accredit.systems.registry.credentials import CredentialRegistry
from accredit.systems.registry.institutions import InstitutionRegistry

__all__ = ["CredentialRegistry", "InstitutionRegistry"]
