"""
EN 16931-style validation rules for canonical invoices.

This module defines the fixed rule catalogue, organized by category:
- Invoice / currency rules: Identification and ISO code checks
- Totals rules: Presence and arithmetic consistency of header totals
- Line item rules: Per-line completeness and arithmetic
- Party rules: Seller and buyer identification
- Tax rules: Tax breakdown presence and line/header agreement
- Advisory rules (WARN): Payment, reference and contact information

Each rule is implemented as a function that receives the invoice and a
context dict and returns a (possibly empty) list of ValidationIssue objects.
Rules never see each other's output.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

from .config import (
    AMOUNT_TOLERANCE,
    DATE_FORMATS,
    SUPPORTED_CURRENCIES,
    TAX_TOLERANCE,
    RuleCategory,
    RuleSeverity,
)
from .schemas import CanonicalInvoice, ValidationIssue


# Type alias for rule check functions
# The function takes a CanonicalInvoice and optional context dict, returns issues found
RuleCheckFn = Callable[[CanonicalInvoice, Optional[dict]], list[ValidationIssue]]


@dataclass(frozen=True)
class ValidationRule:
    """
    Represents a single validation rule.

    Attributes:
        code: Stable rule identifier (e.g., "SUM-02")
        description: Human-readable description of the rule
        category: Area of the invoice the rule inspects
        severity: FAIL rules produce errors, WARN rules produce warnings
        check: Function that performs the validation check
    """
    code: str
    description: str
    category: RuleCategory
    severity: RuleSeverity
    check: RuleCheckFn


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def parse_issue_date(value: str) -> Optional[date]:
    """Parse a canonical date string, or return None if it is not a calendar date."""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def _today(context: Optional[dict]) -> date:
    if context and context.get("today") is not None:
        return context["today"]
    return date.today()


# ============================================================================
# Invoice Rules
# ============================================================================

def check_invoice_number(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Every invoice must have a non-empty invoice number."""
    if _is_blank(invoice.invoice_number):
        return [ValidationIssue(
            code="INV-01",
            message="Invoice number is required",
            path="invoice_number",
        )]
    return []


def check_issue_date_present(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Issue date must be present."""
    if _is_blank(invoice.issue_date):
        return [ValidationIssue(
            code="INV-02",
            message="Invoice issue date is required",
            path="issue_date",
        )]
    return []


def check_issue_date_valid(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """
    Issue date must be a real calendar date and not lie in the future.

    The comparison is against the end of "today" taken from the context,
    so an invoice dated today is always accepted.
    """
    if _is_blank(invoice.issue_date):
        return []

    issue_date = parse_issue_date(invoice.issue_date)
    if issue_date is None:
        return [ValidationIssue(
            code="INV-03",
            message="Invoice issue date must be a valid date",
            path="issue_date",
            value=invoice.issue_date,
        )]

    if issue_date > _today(context):
        return [ValidationIssue(
            code="INV-03",
            message="Invoice issue date must not be in the future",
            path="issue_date",
            value=invoice.issue_date,
        )]
    return []


# ============================================================================
# Currency Rules
# ============================================================================

def check_currency_present(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Currency must be present."""
    if _is_blank(invoice.currency):
        return [ValidationIssue(
            code="CUR-01",
            message="Currency code is required",
            path="currency",
        )]
    return []


def check_currency_supported(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Currency must be one of the supported ISO 4217 codes."""
    if _is_blank(invoice.currency):
        return []

    currency = invoice.currency.strip().upper()
    if currency not in SUPPORTED_CURRENCIES:
        return [ValidationIssue(
            code="CUR-02",
            message=f"Currency code must be a valid ISO 4217 code (e.g., EUR, USD). Found: {currency}",
            path="currency",
            value=currency,
        )]
    return []


# ============================================================================
# Totals Rules
# ============================================================================

def check_totals_present(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Net, tax and gross totals must all be present."""
    totals = invoice.totals
    if totals.net is None or totals.tax is None or totals.gross is None:
        return [ValidationIssue(
            code="SUM-01",
            message="Invoice totals (net, tax, gross) are required",
            path="totals",
        )]
    return []


def check_totals_consistency(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """
    net + tax must equal gross within AMOUNT_TOLERANCE.

    Rationale: This is the fundamental invoice equation. Any mismatch
    indicates a calculation or mapping error in the source document.
    """
    net, tax, gross = invoice.totals.net, invoice.totals.tax, invoice.totals.gross
    if net is None or tax is None or gross is None:
        return []

    calculated = net + tax
    if abs(calculated - gross) > AMOUNT_TOLERANCE:
        return [ValidationIssue(
            code="SUM-02",
            message=f"Invoice totals are inconsistent: net ({net}) + tax ({tax}) != gross ({gross})",
            path="totals",
            value={"net": net, "tax": tax, "gross": gross, "calculated": calculated},
        )]
    return []


def check_gross_non_negative(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Gross total must not be negative for a standard invoice."""
    gross = invoice.totals.gross
    if gross is not None and gross < 0:
        return [ValidationIssue(
            code="SUM-03",
            message="Total gross amount cannot be negative for standard invoices",
            path="totals.gross",
            value=gross,
        )]
    return []


# ============================================================================
# Line Item Rules
# ============================================================================

def check_line_items_present(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Invoice must contain at least one line item."""
    if not invoice.line_items:
        return [ValidationIssue(
            code="LIN-01",
            message="Invoice must contain at least one line item",
            path="line_items",
        )]
    return []


def check_line_descriptions(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    issues = []
    for i, item in enumerate(invoice.line_items):
        if _is_blank(item.description):
            issues.append(ValidationIssue(
                code="LIN-02",
                message=f"Line item {item.id} is missing a description",
                path=f"line_items[{i}].description",
            ))
    return issues


def check_line_quantities(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    issues = []
    for i, item in enumerate(invoice.line_items):
        if item.quantity <= 0:
            issues.append(ValidationIssue(
                code="LIN-03",
                message=f"Line item {item.id} must have a quantity greater than zero",
                path=f"line_items[{i}].quantity",
                value=item.quantity,
            ))
    return issues


def check_line_unit_prices(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    issues = []
    for i, item in enumerate(invoice.line_items):
        if item.unit_price < 0:
            issues.append(ValidationIssue(
                code="LIN-04",
                message=f"Line item {item.id} must not have a negative unit price",
                path=f"line_items[{i}].unit_price",
                value=item.unit_price,
            ))
    return issues


def check_line_amounts(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """
    Each line item should have quantity × unit_price ≈ net_amount.

    Both the calculated and the stated amount are attached to the issue.
    """
    issues = []
    for i, item in enumerate(invoice.line_items):
        calculated = item.quantity * item.unit_price
        if abs(calculated - item.net_amount) > AMOUNT_TOLERANCE:
            issues.append(ValidationIssue(
                code="LIN-05",
                message=(
                    f"Line item {item.id}: quantity × price != line total "
                    f"({item.quantity} × {item.unit_price} = {calculated}, got {item.net_amount})"
                ),
                path=f"line_items[{i}].net_amount",
                value={"calculated": calculated, "actual": item.net_amount},
            ))
    return issues


# ============================================================================
# Party Rules
# ============================================================================

def check_seller_name(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    if _is_blank(invoice.seller.name):
        return [ValidationIssue(code="SELL-01", message="Seller name is required", path="seller.name")]
    return []


def check_seller_country(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    if _is_blank(invoice.seller.address.country):
        return [ValidationIssue(
            code="SELL-02",
            message="Seller postal address (minimum: country) is required",
            path="seller.address.country",
        )]
    return []


def check_seller_vat_id(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    if _is_blank(invoice.seller.vat_id):
        return [ValidationIssue(
            code="SELL-03",
            message="Seller VAT ID or tax registration number is required",
            path="seller.vat_id",
        )]
    return []


def check_buyer_name(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    if _is_blank(invoice.buyer.name):
        return [ValidationIssue(code="BUY-01", message="Buyer name is required", path="buyer.name")]
    return []


def check_buyer_country(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    if _is_blank(invoice.buyer.address.country):
        return [ValidationIssue(
            code="BUY-02",
            message="Buyer postal address (minimum: country) is required",
            path="buyer.address.country",
        )]
    return []


# ============================================================================
# Tax Rules
# ============================================================================

def _line_tax_total(invoice: CanonicalInvoice) -> Decimal:
    return sum((item.tax_amount for item in invoice.line_items), Decimal("0"))


def check_tax_breakdown_present(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """
    Some tax must be stated, either per line or in the header.

    A missing header tax total is reported by SUM-01 and not repeated here.
    """
    if invoice.totals.tax is None:
        return []
    if _line_tax_total(invoice) == 0 and invoice.totals.tax == 0:
        return [ValidationIssue(
            code="TAX-01",
            message="Tax breakdown is required (categories, rates, amounts)",
            path="totals.tax",
        )]
    return []


def check_tax_sum_consistency(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    """Sum of line tax amounts must match the header tax total within TAX_TOLERANCE."""
    invoice_tax = invoice.totals.tax
    if invoice_tax is None:
        return []

    line_tax = _line_tax_total(invoice)
    if abs(line_tax - invoice_tax) > TAX_TOLERANCE:
        return [ValidationIssue(
            code="TAX-04",
            message=f"Sum of line item taxes does not match invoice tax total ({line_tax} vs {invoice_tax})",
            path="totals.tax",
            value={"line_total": line_tax, "invoice_total": invoice_tax},
        )]
    return []


# ============================================================================
# Advisory Rules (WARN)
# ============================================================================

def check_payment_instructions(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    terms = invoice.payment_terms
    iban = terms.payment_means.iban if terms and terms.payment_means else None
    free_text = terms.terms if terms else None
    if _is_blank(iban) and _is_blank(free_text):
        return [ValidationIssue(
            code="PAY-01",
            message="Payment instructions (bank details or terms) are recommended for faster payment",
            path="payment_terms.payment_means",
        )]
    return []


def check_payment_due_date(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    due_date = invoice.payment_terms.due_date if invoice.payment_terms else None
    if _is_blank(due_date):
        return [ValidationIssue(
            code="PAY-02",
            message="Payment due date is missing; consider adding it to improve cash flow",
            path="payment_terms.due_date",
        )]
    return []


def check_purchase_order_reference(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    purchase_order = invoice.references.purchase_order if invoice.references else None
    if _is_blank(purchase_order):
        return [ValidationIssue(
            code="REF-01",
            message="Purchase order reference is missing; include it if provided by buyer",
            path="references.purchase_order",
        )]
    return []


def check_contract_reference(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    contract = invoice.references.contract if invoice.references else None
    if _is_blank(contract):
        return [ValidationIssue(
            code="REF-02",
            message="Contract reference is recommended for contracted services",
            path="references.contract",
        )]
    return []


def check_seller_contact(invoice: CanonicalInvoice, context: Optional[dict] = None) -> list[ValidationIssue]:
    contact = invoice.seller.contact
    if contact is None or (_is_blank(contact.email) and _is_blank(contact.phone)):
        return [ValidationIssue(
            code="CONT-01",
            message="Seller contact information (email/phone) is recommended for inquiries",
            path="seller.contact",
        )]
    return []


# ============================================================================
# Rule Registry
# ============================================================================

# All validation rules in execution order
VALIDATION_RULES: list[ValidationRule] = [
    ValidationRule(
        code="INV-01",
        description="Invoice number must be present",
        category=RuleCategory.INVOICE,
        severity=RuleSeverity.FAIL,
        check=check_invoice_number,
    ),
    ValidationRule(
        code="INV-02",
        description="Invoice issue date must be present",
        category=RuleCategory.INVOICE,
        severity=RuleSeverity.FAIL,
        check=check_issue_date_present,
    ),
    ValidationRule(
        code="INV-03",
        description="Issue date must be a valid date and not in the future",
        category=RuleCategory.INVOICE,
        severity=RuleSeverity.FAIL,
        check=check_issue_date_valid,
    ),
    ValidationRule(
        code="CUR-01",
        description="Currency code must be present",
        category=RuleCategory.CURRENCY,
        severity=RuleSeverity.FAIL,
        check=check_currency_present,
    ),
    ValidationRule(
        code="CUR-02",
        description="Currency must be a supported ISO 4217 code",
        category=RuleCategory.CURRENCY,
        severity=RuleSeverity.FAIL,
        check=check_currency_supported,
    ),
    ValidationRule(
        code="SUM-01",
        description="Net, tax and gross totals must be present",
        category=RuleCategory.TOTALS,
        severity=RuleSeverity.FAIL,
        check=check_totals_present,
    ),
    ValidationRule(
        code="SUM-02",
        description="net + tax must equal gross (tolerance 0.01)",
        category=RuleCategory.TOTALS,
        severity=RuleSeverity.FAIL,
        check=check_totals_consistency,
    ),
    ValidationRule(
        code="SUM-03",
        description="Gross total must not be negative",
        category=RuleCategory.TOTALS,
        severity=RuleSeverity.FAIL,
        check=check_gross_non_negative,
    ),
    ValidationRule(
        code="LIN-01",
        description="Invoice must contain at least one line item",
        category=RuleCategory.LINE_ITEMS,
        severity=RuleSeverity.FAIL,
        check=check_line_items_present,
    ),
    ValidationRule(
        code="LIN-02",
        description="Each line item must have a description",
        category=RuleCategory.LINE_ITEMS,
        severity=RuleSeverity.FAIL,
        check=check_line_descriptions,
    ),
    ValidationRule(
        code="LIN-03",
        description="Each line item must have a quantity greater than zero",
        category=RuleCategory.LINE_ITEMS,
        severity=RuleSeverity.FAIL,
        check=check_line_quantities,
    ),
    ValidationRule(
        code="LIN-04",
        description="Each line item must have a non-negative unit price",
        category=RuleCategory.LINE_ITEMS,
        severity=RuleSeverity.FAIL,
        check=check_line_unit_prices,
    ),
    ValidationRule(
        code="LIN-05",
        description="quantity × unit price must equal line net amount (tolerance 0.01)",
        category=RuleCategory.LINE_ITEMS,
        severity=RuleSeverity.FAIL,
        check=check_line_amounts,
    ),
    ValidationRule(
        code="SELL-01",
        description="Seller name must be present",
        category=RuleCategory.SELLER,
        severity=RuleSeverity.FAIL,
        check=check_seller_name,
    ),
    ValidationRule(
        code="SELL-02",
        description="Seller address country must be present",
        category=RuleCategory.SELLER,
        severity=RuleSeverity.FAIL,
        check=check_seller_country,
    ),
    ValidationRule(
        code="SELL-03",
        description="Seller VAT ID or tax registration must be present",
        category=RuleCategory.SELLER,
        severity=RuleSeverity.FAIL,
        check=check_seller_vat_id,
    ),
    ValidationRule(
        code="BUY-01",
        description="Buyer name must be present",
        category=RuleCategory.BUYER,
        severity=RuleSeverity.FAIL,
        check=check_buyer_name,
    ),
    ValidationRule(
        code="BUY-02",
        description="Buyer address country must be present",
        category=RuleCategory.BUYER,
        severity=RuleSeverity.FAIL,
        check=check_buyer_country,
    ),
    ValidationRule(
        code="TAX-01",
        description="Line or header tax amounts must be stated",
        category=RuleCategory.TAX,
        severity=RuleSeverity.FAIL,
        check=check_tax_breakdown_present,
    ),
    ValidationRule(
        code="TAX-04",
        description="Sum of line taxes must equal header tax total (tolerance 0.05)",
        category=RuleCategory.TAX,
        severity=RuleSeverity.FAIL,
        check=check_tax_sum_consistency,
    ),
    ValidationRule(
        code="PAY-01",
        description="Payment means (IBAN) or payment terms should be present",
        category=RuleCategory.PAYMENT,
        severity=RuleSeverity.WARN,
        check=check_payment_instructions,
    ),
    ValidationRule(
        code="PAY-02",
        description="Payment due date should be present",
        category=RuleCategory.PAYMENT,
        severity=RuleSeverity.WARN,
        check=check_payment_due_date,
    ),
    ValidationRule(
        code="REF-01",
        description="Purchase order reference should be present",
        category=RuleCategory.REFERENCE,
        severity=RuleSeverity.WARN,
        check=check_purchase_order_reference,
    ),
    ValidationRule(
        code="REF-02",
        description="Contract reference should be present",
        category=RuleCategory.REFERENCE,
        severity=RuleSeverity.WARN,
        check=check_contract_reference,
    ),
    ValidationRule(
        code="CONT-01",
        description="Seller contact (email or phone) should be present",
        category=RuleCategory.CONTACT,
        severity=RuleSeverity.WARN,
        check=check_seller_contact,
    ),
]


def get_rules_by_category(category: RuleCategory) -> list[ValidationRule]:
    """Get all rules belonging to a specific category."""
    return [rule for rule in VALIDATION_RULES if rule.category == category]


def get_rule(code: str) -> Optional[ValidationRule]:
    for rule in VALIDATION_RULES:
        if rule.code == code:
            return rule
    return None


def get_rule_descriptions() -> dict[str, str]:
    """Get a mapping of rule codes to their descriptions."""
    return {rule.code: rule.description for rule in VALIDATION_RULES}
