"""
E-Invoice Format Detection & Validation Service

A Python service that detects the dialect of e-invoice XML documents
(XRechnung UBL/CII, ZUGFeRD, Factur-X), maps them into a canonical invoice
and validates it against EN 16931-style business rules.
"""

__version__ = "0.1.0"
__author__ = "Invoice QC Team"

from .schemas import (
    CanonicalInvoice,
    Dialect,
    LineItem,
    PartyInfo,
    ValidationIssue,
    ValidationResult,
    ValidationStatus,
    ValidationSummary,
)
from .errors import MalformedXml, MissingRequiredStructure, UnsupportedDialect
from .detector import detect_dialect
from .mappers import map_document
from .validator import validate_invoice, validate_document, process_document, process_batch

__all__ = [
    "CanonicalInvoice",
    "Dialect",
    "LineItem",
    "PartyInfo",
    "ValidationIssue",
    "ValidationResult",
    "ValidationStatus",
    "ValidationSummary",
    "MalformedXml",
    "MissingRequiredStructure",
    "UnsupportedDialect",
    "detect_dialect",
    "map_document",
    "validate_invoice",
    "validate_document",
    "process_document",
    "process_batch",
]
