"""
Shared fixtures for the E-Invoice QC test suite.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from einvoice_qc.schemas import (
    Address,
    CanonicalInvoice,
    Contact,
    LineItem,
    PartyInfo,
    PaymentMeans,
    PaymentTerms,
    References,
    Totals,
)

SAMPLES_DIR = Path(__file__).parent / "samples"

# Reference date used by tests that depend on the issue date freshness check
TODAY = date(2026, 1, 15)


def load_sample(name: str) -> bytes:
    return (SAMPLES_DIR / name).read_bytes()


@pytest.fixture
def samples_dir() -> Path:
    return SAMPLES_DIR


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def ubl_xrechnung() -> bytes:
    return load_sample("xrechnung_ubl.xml")


@pytest.fixture
def cii_xrechnung() -> bytes:
    return load_sample("xrechnung_cii.xml")


@pytest.fixture
def cii_zugferd() -> bytes:
    return load_sample("zugferd.xml")


@pytest.fixture
def cii_facturx() -> bytes:
    return load_sample("facturx.xml")


@pytest.fixture
def valid_invoice() -> CanonicalInvoice:
    """A fully populated, internally consistent canonical invoice."""
    return CanonicalInvoice(
        invoice_number="INV-2024-001",
        issue_date="2024-01-15",
        currency="EUR",
        seller=PartyInfo(
            name="Acme GmbH",
            vat_id="DE123456789",
            address=Address(country="DE", city="Berlin", postal_code="10115"),
            contact=Contact(email="billing@acme.example"),
        ),
        buyer=PartyInfo(
            name="Global AG",
            address=Address(country="AT", city="Wien"),
        ),
        totals=Totals(net=Decimal("100.00"), tax=Decimal("19.00"), gross=Decimal("119.00")),
        line_items=[
            LineItem(
                id="1",
                description="Consulting",
                quantity=Decimal("10"),
                unit="HUR",
                unit_price=Decimal("10.00"),
                net_amount=Decimal("100.00"),
                tax_rate=Decimal("19"),
                tax_amount=Decimal("19.00"),
            )
        ],
        payment_terms=PaymentTerms(
            due_date="2024-02-14",
            payment_means=PaymentMeans(iban="DE89370400440532013000"),
        ),
        references=References(purchase_order="PO-1", contract="CT-1"),
    )
