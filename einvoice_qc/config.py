"""
Configuration constants and enums for the E-Invoice QC Service.
"""

import logging
import os
from decimal import Decimal
from enum import Enum
from typing import Final

# ============================================================================
# Supported Currencies
# ============================================================================

# ISO 4217 codes accepted by CUR-02 (European focus)
SUPPORTED_CURRENCIES: Final[frozenset[str]] = frozenset({
    "EUR",  # Euro
    "USD",  # US Dollar
    "GBP",  # British Pound
    "CHF",  # Swiss Franc
    "SEK",  # Swedish Krona
    "NOK",  # Norwegian Krone
    "DKK",  # Danish Krone
    "PLN",  # Polish Zloty
    "CZK",  # Czech Koruna
    "HUF",  # Hungarian Forint
    "RON",  # Romanian Leu
    "BGN",  # Bulgarian Lev
    "HRK",  # Croatian Kuna
    "RSD",  # Serbian Dinar
    "MKD",  # Macedonian Denar
    "ALL",  # Albanian Lek
    "BAM",  # Bosnia-Herzegovina Convertible Mark
    "MDL",  # Moldovan Leu
    "UAH",  # Ukrainian Hryvnia
})

# ============================================================================
# Mapping Defaults
# ============================================================================

# Used when a document carries no currency code
DEFAULT_CURRENCY: Final[str] = "EUR"

# UN/CEFACT Recommendation 20 code for "one" (piece)
DEFAULT_UNIT_CODE: Final[str] = "C62"

# ============================================================================
# Dialect Markers
# ============================================================================

UBL_INVOICE_NAMESPACE: Final[str] = "urn:oasis:names:specification:ubl:schema:xsd:Invoice"

# ============================================================================
# Validation Tolerances
# ============================================================================

# Absolute tolerance for amount comparisons (net + tax ≈ gross, qty × price ≈ net)
AMOUNT_TOLERANCE: Final[Decimal] = Decimal("0.01")

# Tolerance for the sum of line tax amounts vs. the header tax total
TAX_TOLERANCE: Final[Decimal] = Decimal("0.05")

# ============================================================================
# Date Formats
# ============================================================================

# Formats accepted for the canonical issue date
DATE_FORMATS: Final[list[str]] = [
    "%Y-%m-%d",      # ISO format: 2024-01-15
]

# UN/CEFACT date format code 102 (CCYYMMDD) used by CII DateTimeString
CII_DATE_FORMAT: Final[str] = "%Y%m%d"


# ============================================================================
# Rule Classification
# ============================================================================

class RuleSeverity(str, Enum):
    """Whether a rule violation invalidates the invoice or is advisory."""
    FAIL = "FAIL"
    WARN = "WARN"


class RuleCategory(str, Enum):
    """Categories for validation rules."""
    INVOICE = "invoice"
    CURRENCY = "currency"
    TOTALS = "totals"
    LINE_ITEMS = "line_items"
    SELLER = "seller"
    BUYER = "buyer"
    TAX = "tax"
    PAYMENT = "payment"
    REFERENCE = "reference"
    CONTACT = "contact"


# ============================================================================
# API Configuration
# ============================================================================

API_HOST: Final[str] = os.getenv("API_HOST", "0.0.0.0")
API_PORT: Final[int] = int(os.getenv("API_PORT", "8000"))
MAX_UPLOAD_SIZE_MB: Final[int] = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("einvoice_qc")


logger = setup_logging()
