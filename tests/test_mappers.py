"""
Tests for the dialect mappers.

These tests verify the projection of UBL and CII documents into the
canonical invoice, the fallbacks for optional elements and the hard
structural requirements.
"""

from decimal import Decimal

import pytest

from einvoice_qc.errors import MalformedXml, MissingRequiredStructure, UnsupportedDialect
from einvoice_qc.mappers import (
    DIALECT_MAPPERS,
    CiiMapper,
    UblMapper,
    get_mapper,
    map_document,
)
from einvoice_qc.schemas import Dialect


MINIMAL_UBL = b"""<Invoice xmlns="urn:oasis:names:specification:ubl:schema:xsd:Invoice-2">
  <AccountingSupplierParty><Party/></AccountingSupplierParty>
  <AccountingCustomerParty><Party/></AccountingCustomerParty>
  <LegalMonetaryTotal/>
</Invoice>"""

MINIMAL_CII = b"""<CrossIndustryInvoice>
  <SupplyChainTradeTransaction>
    <ApplicableHeaderTradeAgreement>
      <SellerTradeParty/>
      <BuyerTradeParty/>
    </ApplicableHeaderTradeAgreement>
    <ApplicableHeaderTradeSettlement>
      <SpecifiedTradeSettlementHeaderMonetarySummation/>
    </ApplicableHeaderTradeSettlement>
  </SupplyChainTradeTransaction>
</CrossIndustryInvoice>"""


# ============================================================================
# Mapper Selection
# ============================================================================

class TestMapperSelection:
    """Tests for dialect to mapper dispatch."""

    def test_every_known_dialect_has_a_mapper(self):
        for dialect in Dialect:
            if dialect is Dialect.UNKNOWN:
                continue
            assert dialect in DIALECT_MAPPERS

    def test_ubl_mapper(self):
        assert isinstance(get_mapper(Dialect.UBL_XRECHNUNG), UblMapper)

    @pytest.mark.parametrize("dialect", [
        Dialect.CII_XRECHNUNG,
        Dialect.CII_ZUGFERD,
        Dialect.CII_FACTURX,
    ])
    def test_cii_family_shares_one_mapper(self, dialect):
        assert isinstance(get_mapper(dialect), CiiMapper)

    def test_string_value_is_accepted(self):
        assert isinstance(get_mapper("CII_FACTURX"), CiiMapper)

    def test_unknown_dialect_raises(self):
        with pytest.raises(UnsupportedDialect) as exc_info:
            get_mapper(Dialect.UNKNOWN)
        assert exc_info.value.dialect == Dialect.UNKNOWN

    def test_unrecognised_value_raises(self):
        with pytest.raises(UnsupportedDialect):
            map_document(MINIMAL_UBL, "EDIFACT_INVOIC")


# ============================================================================
# UBL
# ============================================================================

class TestUblMapper:
    """Tests for the UBL XRechnung sample and UBL fallbacks."""

    @pytest.fixture
    def invoice(self, ubl_xrechnung):
        return map_document(ubl_xrechnung, Dialect.UBL_XRECHNUNG)

    def test_header_fields(self, invoice):
        assert invoice.invoice_number == "RE-2024-0815"
        assert invoice.issue_date == "2024-02-01"
        assert invoice.currency == "EUR"

    def test_seller(self, invoice):
        seller = invoice.seller
        assert seller.name == "Muster Software GmbH"
        assert seller.vat_id == "DE123456789"
        assert seller.address.country == "DE"
        assert seller.address.city == "Berlin"
        assert seller.address.postal_code == "10115"
        assert seller.address.street == "Hauptstraße 1"
        assert seller.contact.email == "rechnung@muster-software.de"
        assert seller.contact.phone == "+49 30 1234567"

    def test_buyer(self, invoice):
        assert invoice.buyer.name == "Beispiel AG"
        assert invoice.buyer.vat_id == "DE987654321"
        assert invoice.buyer.address.city == "München"
        assert invoice.buyer.contact is None

    def test_totals(self, invoice):
        assert invoice.totals.net == Decimal("1000.00")
        assert invoice.totals.tax == Decimal("190.00")
        assert invoice.totals.gross == Decimal("1190.00")

    def test_line_items(self, invoice):
        first, second = invoice.line_items
        assert first.id == "1"
        assert first.description == "Softwareentwicklung"
        assert first.quantity == Decimal("10")
        assert first.unit == "HUR"
        assert first.unit_price == Decimal("80.00")
        assert first.net_amount == Decimal("800.00")
        assert first.tax_rate == Decimal("19")
        assert first.tax_amount == Decimal("152.00")

        assert second.id == "2"
        assert second.description == "Lizenz Modul A, Jahresabonnement"
        assert second.unit == "C62"
        assert second.tax_amount == Decimal("38.00")

    def test_payment_terms(self, invoice):
        terms = invoice.payment_terms
        assert terms.due_date == "2024-02-15"
        assert terms.terms == "Zahlbar innerhalb von 14 Tagen ohne Abzug"
        assert terms.payment_means.iban == "DE89370400440532013000"
        assert terms.payment_means.bic == "COBADEFFXXX"
        assert terms.payment_means.account_holder == "Muster Software GmbH"

    def test_references(self, invoice):
        assert invoice.references.purchase_order == "PO-4711"
        assert invoice.references.contract == "CT-2024-01"

    def test_minimal_document_degrades_to_defaults(self):
        invoice = map_document(MINIMAL_UBL, Dialect.UBL_XRECHNUNG)
        assert invoice.invoice_number == ""
        assert invoice.issue_date == ""
        assert invoice.currency == "EUR"
        assert invoice.seller.name == ""
        assert invoice.seller.vat_id is None
        assert invoice.seller.address.country == ""
        assert invoice.totals.net == Decimal("0")
        assert invoice.totals.tax == Decimal("0")
        assert invoice.totals.gross == Decimal("0")
        assert invoice.line_items == []
        assert invoice.payment_terms is None
        assert invoice.references.purchase_order is None

    def test_gross_falls_back_to_tax_inclusive(self):
        data = MINIMAL_UBL.replace(
            b"<LegalMonetaryTotal/>",
            b"<LegalMonetaryTotal>"
            b"<TaxExclusiveAmount>50.00</TaxExclusiveAmount>"
            b"<TaxInclusiveAmount>59.50</TaxInclusiveAmount>"
            b"</LegalMonetaryTotal>",
        )
        totals = map_document(data, Dialect.UBL_XRECHNUNG).totals
        assert totals.net == Decimal("50.00")
        assert totals.tax == Decimal("9.50")
        assert totals.gross == Decimal("59.50")

    def test_party_fallbacks(self):
        data = MINIMAL_UBL.replace(
            b"<AccountingSupplierParty><Party/></AccountingSupplierParty>",
            b"<AccountingSupplierParty><Party>"
            b"<PostalAddress><CountryIdentificationCode>AT</CountryIdentificationCode></PostalAddress>"
            b"<PartyLegalEntity><RegistrationName>Alpen KG</RegistrationName></PartyLegalEntity>"
            b"</Party></AccountingSupplierParty>",
        )
        seller = map_document(data, Dialect.UBL_XRECHNUNG).seller
        assert seller.name == "Alpen KG"
        assert seller.address.country == "AT"
        assert seller.address.city is None

    def test_line_without_tax_total_has_zero_tax(self):
        data = MINIMAL_UBL.replace(
            b"<LegalMonetaryTotal/>",
            b"<LegalMonetaryTotal/>"
            b"<InvoiceLine>"
            b"<InvoicedQuantity>abc</InvoicedQuantity>"
            b"<Item><ClassifiedTaxCategory><Percent>7</Percent></ClassifiedTaxCategory></Item>"
            b"</InvoiceLine>",
        )
        (item,) = map_document(data, Dialect.UBL_XRECHNUNG).line_items
        assert item.description == ""
        assert item.quantity == Decimal("0")
        assert item.tax_rate == Decimal("0")
        assert item.tax_amount == Decimal("0")

    def test_datetime_issue_date_is_truncated(self):
        data = MINIMAL_UBL.replace(
            b"<LegalMonetaryTotal/>",
            b"<IssueDate>2024-01-15T10:30:00</IssueDate><LegalMonetaryTotal/>",
        )
        assert map_document(data, Dialect.UBL_XRECHNUNG).issue_date == "2024-01-15"

    @pytest.mark.parametrize("block,element", [
        (b"<AccountingSupplierParty><Party/></AccountingSupplierParty>", "Party"),
        (b"<AccountingCustomerParty><Party/></AccountingCustomerParty>", "Party"),
        (b"<LegalMonetaryTotal/>", "LegalMonetaryTotal"),
    ])
    def test_missing_required_blocks(self, block, element):
        data = MINIMAL_UBL.replace(block, b"")
        with pytest.raises(MissingRequiredStructure) as exc_info:
            map_document(data, Dialect.UBL_XRECHNUNG)
        assert exc_info.value.element == element

    def test_wrong_root(self):
        with pytest.raises(MissingRequiredStructure):
            map_document(MINIMAL_CII, Dialect.UBL_XRECHNUNG)

    def test_malformed_xml(self):
        with pytest.raises(MalformedXml):
            map_document(b"<Invoice>", Dialect.UBL_XRECHNUNG)

    def test_unknown_encoding_is_malformed(self):
        with pytest.raises(MalformedXml):
            map_document(b'<?xml version="1.0" encoding="foo"?><Invoice/>', Dialect.UBL_XRECHNUNG)

    def test_issue_date_timezone_is_dropped(self, ubl_xrechnung):
        data = ubl_xrechnung.replace(
            b"<cbc:IssueDate>2024-02-01</cbc:IssueDate>",
            b"<cbc:IssueDate>2024-02-01+01:00</cbc:IssueDate>",
        )
        assert map_document(data, Dialect.UBL_XRECHNUNG).issue_date == "2024-02-01"


# ============================================================================
# CII
# ============================================================================

class TestCiiMapper:
    """Tests for the CII sample documents and CII fallbacks."""

    @pytest.fixture
    def invoice(self, cii_xrechnung):
        return map_document(cii_xrechnung, Dialect.CII_XRECHNUNG)

    def test_header_fields(self, invoice):
        assert invoice.invoice_number == "XR-CII-2024-042"
        assert invoice.issue_date == "2024-03-05"
        assert invoice.currency == "EUR"

    def test_seller(self, invoice):
        seller = invoice.seller
        assert seller.name == "Nordlicht IT Services GmbH"
        assert seller.vat_id == "DE111222333"
        assert seller.address.country == "DE"
        assert seller.address.city == "Hamburg"
        assert seller.address.postal_code == "20095"
        assert seller.address.street == "Mönckebergstraße 7"
        assert seller.contact.email == "buchhaltung@nordlicht-it.de"

    def test_buyer(self, invoice):
        assert invoice.buyer.name == "Stadtverwaltung Kiel"
        assert invoice.buyer.address.postal_code == "24103"

    def test_totals(self, invoice):
        assert invoice.totals.net == Decimal("100.00")
        assert invoice.totals.tax == Decimal("19.00")
        assert invoice.totals.gross == Decimal("119.00")

    def test_line_items(self, invoice):
        (item,) = invoice.line_items
        assert item.id == "1"
        assert item.description == "Wartungspauschale März"
        assert item.quantity == Decimal("5")
        assert item.unit == "HUR"
        assert item.unit_price == Decimal("20.00")
        assert item.net_amount == Decimal("100.00")
        assert item.tax_rate == Decimal("19.00")
        assert item.tax_amount == Decimal("19.00")

    def test_payment_terms(self, invoice):
        terms = invoice.payment_terms
        assert terms.due_date == "2024-04-04"
        assert terms.terms == "Zahlbar innerhalb von 30 Tagen"
        assert terms.payment_means.iban == "DE02120300000000202051"
        assert terms.payment_means.account_holder == "Nordlicht IT Services GmbH"
        assert terms.payment_means.bic is None

    def test_references(self, invoice):
        assert invoice.references.purchase_order == "BEST-2024-77"
        assert invoice.references.contract is None

    def test_zugferd_sample(self, cii_zugferd):
        invoice = map_document(cii_zugferd, Dialect.CII_ZUGFERD)
        assert invoice.invoice_number == "ZF-10023"
        assert invoice.issue_date == "2024-06-10"
        assert [item.unit for item in invoice.line_items] == ["KGM", "C62"]
        assert invoice.seller.contact.phone == "+49 221 998877"
        assert invoice.seller.contact.email is None
        assert invoice.payment_terms is None
        assert invoice.totals.gross == Decimal("168.76")

    def test_facturx_sample(self, cii_facturx):
        invoice = map_document(cii_facturx, Dialect.CII_FACTURX)
        assert invoice.seller.address.country == "FR"
        assert invoice.references.contract == "CTR-2024-SEC"
        assert invoice.payment_terms.payment_means.iban == "FR7630006000011234567890189"
        assert invoice.payment_terms.payment_means.bic is None
        assert invoice.payment_terms.due_date == "2024-10-20"

    def test_minimal_document_degrades_to_defaults(self):
        invoice = map_document(MINIMAL_CII, Dialect.CII_ZUGFERD)
        assert invoice.invoice_number == ""
        assert invoice.currency == "EUR"
        assert invoice.seller.contact is None
        assert invoice.totals.gross == Decimal("0")
        assert invoice.line_items == []
        assert invoice.payment_terms is None

    def test_flat_line_layout(self):
        data = MINIMAL_CII.replace(
            b"<ApplicableHeaderTradeAgreement>",
            b"<IncludedSupplyChainTradeLineItem>"
            b"<SpecifiedTradeProduct><Description>Support</Description></SpecifiedTradeProduct>"
            b"<BilledQuantity unitCode='HUR'>3</BilledQuantity>"
            b"<NetPriceProductTradePrice><ChargeAmount>40</ChargeAmount></NetPriceProductTradePrice>"
            b"<LineTotalAmount>120</LineTotalAmount>"
            b"<ApplicableTradeTax><RateApplicablePercent>19</RateApplicablePercent>"
            b"<CalculatedAmount>22.80</CalculatedAmount></ApplicableTradeTax>"
            b"</IncludedSupplyChainTradeLineItem>"
            b"<ApplicableHeaderTradeAgreement>",
        )
        (item,) = map_document(data, Dialect.CII_FACTURX).line_items
        assert item.description == "Support"
        assert item.quantity == Decimal("3")
        assert item.unit == "HUR"
        assert item.unit_price == Decimal("40")
        assert item.net_amount == Decimal("120")
        assert item.tax_amount == Decimal("22.80")

    def test_direct_debit_mandate_as_iban(self):
        data = MINIMAL_CII.replace(
            b"<ApplicableHeaderTradeSettlement>",
            b"<ApplicableHeaderTradeSettlement>"
            b"<SpecifiedTradePaymentTerms><DirectDebitMandateID>MANDATE-1</DirectDebitMandateID>"
            b"</SpecifiedTradePaymentTerms>",
        )
        terms = map_document(data, Dialect.CII_XRECHNUNG).payment_terms
        assert terms.payment_means.iban == "MANDATE-1"
        assert terms.due_date is None

    def test_currency_from_agreement(self):
        data = MINIMAL_CII.replace(
            b"<SellerTradeParty/>",
            b"<InvoiceCurrencyCode>CHF</InvoiceCurrencyCode><SellerTradeParty/>",
        )
        assert map_document(data, Dialect.CII_XRECHNUNG).currency == "CHF"

    @pytest.mark.parametrize("block,element", [
        (b"<SellerTradeParty/>", "SellerTradeParty"),
        (b"<BuyerTradeParty/>", "BuyerTradeParty"),
        (
            b"<SpecifiedTradeSettlementHeaderMonetarySummation/>",
            "SpecifiedTradeSettlementHeaderMonetarySummation",
        ),
    ])
    def test_missing_required_blocks(self, block, element):
        data = MINIMAL_CII.replace(block, b"")
        with pytest.raises(MissingRequiredStructure) as exc_info:
            map_document(data, Dialect.CII_ZUGFERD)
        assert exc_info.value.element == element

    def test_missing_transaction(self):
        data = b"<CrossIndustryInvoice><ExchangedDocument/></CrossIndustryInvoice>"
        with pytest.raises(MissingRequiredStructure) as exc_info:
            map_document(data, Dialect.CII_FACTURX)
        assert exc_info.value.element == "SupplyChainTradeTransaction"
