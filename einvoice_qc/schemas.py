"""
Pydantic models for canonical invoices and validation results.

This module defines the core data structures used throughout the E-Invoice QC Service:
- Dialect enumeration produced by the format detector
- CanonicalInvoice and its parts, the shape every dialect is mapped into
- ValidationIssue / ValidationResult produced by the rule engine
- DocumentReport / ValidationSummary / ValidationReport for batch runs
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Dialect(str, Enum):
    """E-invoice XML dialects recognised by the detector."""
    UBL_XRECHNUNG = "UBL_XRECHNUNG"
    CII_XRECHNUNG = "CII_XRECHNUNG"
    CII_ZUGFERD = "CII_ZUGFERD"
    CII_FACTURX = "CII_FACTURX"
    UNKNOWN = "UNKNOWN"


# ============================================================================
# Canonical Invoice
# ============================================================================

class Address(BaseModel):
    """Postal address of a party. Only the country is mandatory."""
    country: str = Field("", description="ISO 3166-1 alpha-2 country code")
    city: Optional[str] = None
    postal_code: Optional[str] = None
    street: Optional[str] = None


class Contact(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class PartyInfo(BaseModel):
    """
    Seller or buyer of an invoice.

    Attributes:
        name: Trading or legal name
        vat_id: VAT / tax registration identifier (first one if several)
        address: Postal address
        contact: Optional contact details
    """
    name: str = Field("", description="Trading or legal name of the party")
    vat_id: Optional[str] = Field(None, description="VAT or tax registration ID")
    address: Address = Field(default_factory=Address)
    contact: Optional[Contact] = None


class Totals(BaseModel):
    """Header-level monetary totals. None marks a total that was never supplied."""
    net: Optional[Decimal] = Field(None, description="Sum before tax")
    tax: Optional[Decimal] = Field(None, description="Total tax amount")
    gross: Optional[Decimal] = Field(None, description="Amount including tax")


class LineItem(BaseModel):
    """
    A single invoice line.

    Attributes:
        id: 1-based position of the line in the document
        description: Item name or description
        quantity: Invoiced quantity
        unit: UN/CEFACT unit of measure code
        unit_price: Net price per unit
        net_amount: Line net amount
        tax_rate: Tax rate percentage
        tax_amount: Tax amount for the line
    """
    id: str
    description: str = ""
    quantity: Decimal = Decimal("0")
    unit: str = "C62"
    unit_price: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")


class PaymentMeans(BaseModel):
    iban: Optional[str] = None
    bic: Optional[str] = None
    account_holder: Optional[str] = None


class PaymentTerms(BaseModel):
    due_date: Optional[str] = Field(None, description="Payment due date (ISO 8601)")
    payment_means: Optional[PaymentMeans] = None
    terms: Optional[str] = Field(None, description="Free-text payment terms")


class References(BaseModel):
    purchase_order: Optional[str] = None
    contract: Optional[str] = None


class CanonicalInvoice(BaseModel):
    """
    The normalized invoice every dialect is mapped into.

    Absent document fields are represented as empty strings, zero amounts
    or None, never as errors. Whether the data is acceptable is decided by
    the validation rules, not by this model.
    """
    invoice_number: str = Field("", description="Invoice identifier assigned by the seller")
    issue_date: str = Field("", description="Issue date, ISO 8601 (YYYY-MM-DD)")
    currency: str = Field("", description="ISO 4217 currency code")
    seller: PartyInfo = Field(default_factory=PartyInfo)
    buyer: PartyInfo = Field(default_factory=PartyInfo)
    totals: Totals = Field(default_factory=Totals)
    line_items: list[LineItem] = Field(
        default_factory=list,
        description="Invoice lines in document order",
    )
    payment_terms: Optional[PaymentTerms] = None
    references: Optional[References] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "invoice_number": "RE-2024-0815",
                    "issue_date": "2024-03-01",
                    "currency": "EUR",
                    "seller": {
                        "name": "Muster GmbH",
                        "vat_id": "DE123456789",
                        "address": {"country": "DE", "city": "Berlin", "postal_code": "10115"},
                        "contact": {"email": "rechnung@muster.de"},
                    },
                    "buyer": {
                        "name": "Kunde AG",
                        "address": {"country": "DE", "city": "München"},
                    },
                    "totals": {"net": "100.00", "tax": "19.00", "gross": "119.00"},
                    "line_items": [
                        {
                            "id": "1",
                            "description": "Beratung",
                            "quantity": "10",
                            "unit": "HUR",
                            "unit_price": "10.00",
                            "net_amount": "100.00",
                            "tax_rate": "19",
                            "tax_amount": "19.00",
                        }
                    ],
                }
            ]
        }
    }


# ============================================================================
# Validation Results
# ============================================================================

class ValidationStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class ValidationIssue(BaseModel):
    """A single rule violation, immutable once produced."""
    code: str = Field(..., description="Stable rule identifier, e.g. 'SUM-02'")
    message: str = Field(..., description="Human-readable explanation")
    path: Optional[str] = Field(None, description="Location in the invoice")
    value: Optional[Any] = Field(None, description="Diagnostic payload")

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """
    Validation outcome for a single invoice.

    status is FAIL if and only if errors is non-empty; warnings never
    change the status.
    """
    status: ValidationStatus
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.status == ValidationStatus.PASS

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "FAIL",
                    "errors": [
                        {
                            "code": "SUM-02",
                            "message": "Invoice totals are inconsistent: net (100.00) + tax (19.00) != gross (120.00)",
                            "path": "totals",
                            "value": {"net": "100.00", "tax": "19.00", "gross": "120.00", "calculated": "119.00"},
                        }
                    ],
                    "warnings": [
                        {"code": "REF-02", "message": "Contract reference is recommended", "path": "references.contract"}
                    ],
                }
            ]
        }
    }


# ============================================================================
# Batch Reporting
# ============================================================================

class DocumentReport(BaseModel):
    """
    Outcome of running one document through detection, mapping and validation.

    When the document cannot be mapped (unknown dialect, missing structure),
    invoice and validation are None and error describes the failure.
    """
    source: str = Field(..., description="File name or other identifier of the document")
    dialect: Dialect = Dialect.UNKNOWN
    invoice: Optional[CanonicalInvoice] = None
    validation: Optional[ValidationResult] = None
    error: Optional[str] = Field(None, description="Pipeline error, if processing aborted")

    @property
    def is_valid(self) -> bool:
        return self.validation is not None and self.validation.is_valid


class ValidationSummary(BaseModel):
    """Aggregated statistics for a batch of documents."""
    total_documents: int = Field(..., ge=0)
    passed: int = Field(..., ge=0, description="Documents with status PASS")
    failed: int = Field(..., ge=0, description="Documents with status FAIL")
    rejected: int = Field(
        0,
        ge=0,
        description="Documents that could not be detected or mapped",
    )
    dialect_counts: dict[str, int] = Field(default_factory=dict)
    error_counts: dict[str, int] = Field(default_factory=dict)
    warning_counts: dict[str, int] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "total_documents": 3,
                    "passed": 1,
                    "failed": 1,
                    "rejected": 1,
                    "dialect_counts": {"UBL_XRECHNUNG": 1, "CII_ZUGFERD": 1, "UNKNOWN": 1},
                    "error_counts": {"TAX-04": 1},
                    "warning_counts": {"REF-02": 2},
                }
            ]
        }
    }


class ValidationReport(BaseModel):
    """Complete report containing per-document results and summary."""
    summary: ValidationSummary
    documents: list[DocumentReport] = Field(default_factory=list)
