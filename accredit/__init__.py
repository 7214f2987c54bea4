"""
Accredit -- institution accreditation registry.

Committee-voted admission of institutions, escrowed application fees,
and the approval gate that credential issuance depends on.
"""

__version__ = "0.1.0"
