"""
Dialect mappers projecting e-invoice XML into the canonical invoice model.

Two structural families are supported:
- UBL (list-oriented): XRechnung UBL Invoice documents
- CII (tree-oriented): CrossIndustryInvoice documents, shared by XRechnung
  CII, ZUGFeRD and Factur-X, which differ only in their guideline identifier

Only the root element, the seller and buyer party blocks and the monetary
summation block are mandatory. Everything below degrades to empty values.
"""

from typing import Optional, Union

from .config import DEFAULT_CURRENCY, DEFAULT_UNIT_CODE, logger
from .errors import MissingRequiredStructure, UnsupportedDialect
from .schemas import (
    Address,
    CanonicalInvoice,
    Contact,
    Dialect,
    LineItem,
    PartyInfo,
    PaymentMeans,
    PaymentTerms,
    References,
    Totals,
)
from .xmltree import XmlNode, first_node, first_text, normalize_date, parse_amount, parse_xml


def _require(node: Optional[XmlNode], path: str) -> XmlNode:
    """Resolve path below node or raise MissingRequiredStructure."""
    found = node.find(path) if node is not None else None
    if found is None:
        raise MissingRequiredStructure(path.rsplit("/", 1)[-1])
    return found


def _contact(email: Optional[str], phone: Optional[str]) -> Optional[Contact]:
    if email is None and phone is None:
        return None
    return Contact(email=email, phone=phone)


# ============================================================================
# UBL
# ============================================================================

class UblMapper:
    """Maps UBL 2.1 Invoice documents (XRechnung UBL syntax)."""

    root_name = "Invoice"

    def map(self, data: bytes) -> CanonicalInvoice:
        root = parse_xml(data)
        if root.local_name != self.root_name:
            raise MissingRequiredStructure(self.root_name)

        return CanonicalInvoice(
            invoice_number=root.text_at("ID") or "",
            issue_date=normalize_date(root.text_at("IssueDate")),
            currency=root.text_at("DocumentCurrencyCode") or DEFAULT_CURRENCY,
            seller=self.extract_party(_require(root, "AccountingSupplierParty/Party")),
            buyer=self.extract_party(_require(root, "AccountingCustomerParty/Party")),
            totals=self.extract_totals(_require(root, "LegalMonetaryTotal")),
            line_items=self.extract_line_items(root),
            payment_terms=self.extract_payment_terms(root),
            references=self.extract_references(root),
        )

    def extract_party(self, party: XmlNode) -> PartyInfo:
        tax_schemes = party.children_named("PartyTaxScheme")
        vat_id = tax_schemes[0].text_at("CompanyID") if tax_schemes else None
        address = party.find("PostalAddress")

        return PartyInfo(
            name=first_text(party, "PartyName/Name", "PartyLegalEntity/RegistrationName") or "",
            vat_id=vat_id,
            address=Address(
                country=first_text(
                    address, "Country/IdentificationCode", "CountryIdentificationCode"
                ) or "",
                city=first_text(address, "CityName"),
                postal_code=first_text(address, "PostalZone"),
                street=first_text(address, "StreetName"),
            ),
            contact=_contact(
                party.text_at("Contact/ElectronicMail"),
                party.text_at("Contact/Telephone"),
            ),
        )

    def extract_totals(self, monetary_total: XmlNode) -> Totals:
        tax_exclusive = parse_amount(monetary_total.text_at("TaxExclusiveAmount"))
        tax_inclusive = parse_amount(monetary_total.text_at("TaxInclusiveAmount"))
        payable = monetary_total.text_at("PayableAmount")

        return Totals(
            net=tax_exclusive,
            tax=tax_inclusive - tax_exclusive,
            gross=parse_amount(payable) if payable is not None else tax_inclusive,
        )

    def extract_line_items(self, root: XmlNode) -> list[LineItem]:
        items: list[LineItem] = []
        for index, line in enumerate(root.children_named("InvoiceLine")):
            quantity = line.find("InvoicedQuantity")
            tax_total = line.find("TaxTotal")
            tax_rate = parse_amount(first_text(tax_total, "TaxSubtotal/Percent"))
            tax_amount = parse_amount(first_text(tax_total, "TaxAmount"))

            items.append(LineItem(
                id=str(index + 1),
                description=first_text(line, "Item/Description", "Item/Name") or "",
                quantity=parse_amount(quantity.text if quantity is not None else None),
                unit=(quantity.get("unitCode") if quantity is not None else None) or DEFAULT_UNIT_CODE,
                unit_price=parse_amount(line.text_at("Price/PriceAmount")),
                net_amount=parse_amount(line.text_at("LineExtensionAmount")),
                tax_rate=tax_rate,
                tax_amount=tax_amount,
            ))
        return items

    def extract_payment_terms(self, root: XmlNode) -> Optional[PaymentTerms]:
        payment_means = root.find("PaymentMeans")
        terms = root.find("PaymentTerms")
        if payment_means is None and terms is None:
            return None

        means = None
        if payment_means is not None:
            account = payment_means.find("PayeeFinancialAccount")
            means = PaymentMeans(
                iban=first_text(account, "ID"),
                bic=first_text(account, "FinancialInstitutionBranch/ID"),
                account_holder=first_text(account, "Name"),
            )

        due_date = first_text(root, "PaymentTerms/PaymentDueDate", "DueDate")
        return PaymentTerms(
            due_date=normalize_date(due_date) or None,
            payment_means=means,
            terms=first_text(terms, "Note"),
        )

    def extract_references(self, root: XmlNode) -> References:
        return References(
            purchase_order=root.text_at("OrderReference/ID"),
            contract=root.text_at("ContractDocumentReference/ID"),
        )


# ============================================================================
# CII
# ============================================================================

class CiiMapper:
    """Maps UN/CEFACT CrossIndustryInvoice documents (XRechnung CII, ZUGFeRD, Factur-X)."""

    root_name = "CrossIndustryInvoice"

    def map(self, data: bytes) -> CanonicalInvoice:
        root = parse_xml(data)
        if root.local_name != self.root_name:
            raise MissingRequiredStructure(self.root_name)

        transaction = _require(root, "SupplyChainTradeTransaction")
        agreement = transaction.find("ApplicableHeaderTradeAgreement")
        settlement = transaction.find("ApplicableHeaderTradeSettlement")

        return CanonicalInvoice(
            invoice_number=root.text_at("ExchangedDocument/ID") or "",
            issue_date=normalize_date(root.text_at("ExchangedDocument/IssueDateTime/DateTimeString")),
            currency=(
                first_text(settlement, "InvoiceCurrencyCode")
                or first_text(agreement, "InvoiceCurrencyCode")
                or DEFAULT_CURRENCY
            ),
            seller=self.extract_party(
                _require(transaction, "ApplicableHeaderTradeAgreement/SellerTradeParty")
            ),
            buyer=self.extract_party(
                _require(transaction, "ApplicableHeaderTradeAgreement/BuyerTradeParty")
            ),
            totals=self.extract_totals(_require(
                transaction,
                "ApplicableHeaderTradeSettlement/SpecifiedTradeSettlementHeaderMonetarySummation",
            )),
            line_items=self.extract_line_items(transaction),
            payment_terms=self.extract_payment_terms(settlement),
            references=self.extract_references(agreement),
        )

    def extract_party(self, party: XmlNode) -> PartyInfo:
        address = party.find("PostalTradeAddress")
        contact = party.find("DefinedTradeContact")

        return PartyInfo(
            name=party.text_at("Name") or "",
            vat_id=party.text_at("SpecifiedTaxRegistration/ID"),
            address=Address(
                country=first_text(address, "CountryID") or "",
                city=first_text(address, "CityName"),
                postal_code=first_text(address, "PostcodeCode"),
                street=first_text(address, "LineOne"),
            ),
            contact=_contact(
                first_text(
                    contact,
                    "EmailURIUniversalCommunication/URIID",
                    "EmailAddressURI",
                ),
                first_text(contact, "TelephoneUniversalCommunication/CompleteNumber"),
            ),
        )

    def extract_totals(self, summation: XmlNode) -> Totals:
        return Totals(
            net=parse_amount(summation.text_at("TaxBasisTotalAmount")),
            tax=parse_amount(summation.text_at("TaxTotalAmount")),
            gross=parse_amount(summation.text_at("GrandTotalAmount")),
        )

    def extract_line_items(self, transaction: XmlNode) -> list[LineItem]:
        items: list[LineItem] = []
        for index, line in enumerate(transaction.children_named("IncludedSupplyChainTradeLineItem")):
            quantity = first_node(
                line, "SpecifiedLineTradeDelivery/BilledQuantity", "BilledQuantity"
            )
            trade_tax = first_node(
                line, "SpecifiedLineTradeSettlement/ApplicableTradeTax", "ApplicableTradeTax"
            )

            items.append(LineItem(
                id=str(index + 1),
                description=first_text(
                    line, "SpecifiedTradeProduct/Name", "SpecifiedTradeProduct/Description"
                ) or "",
                quantity=parse_amount(quantity.text if quantity is not None else None),
                unit=(quantity.get("unitCode") if quantity is not None else None) or DEFAULT_UNIT_CODE,
                unit_price=parse_amount(first_text(
                    line,
                    "SpecifiedLineTradeAgreement/NetPriceProductTradePrice/ChargeAmount",
                    "NetPriceProductTradePrice/ChargeAmount",
                )),
                net_amount=parse_amount(first_text(
                    line,
                    "SpecifiedLineTradeSettlement/SpecifiedTradeSettlementLineMonetarySummation/LineTotalAmount",
                    "LineTotalAmount",
                )),
                tax_rate=parse_amount(first_text(trade_tax, "RateApplicablePercent")),
                tax_amount=parse_amount(first_text(trade_tax, "CalculatedAmount")),
            ))
        return items

    def extract_payment_terms(self, settlement: Optional[XmlNode]) -> Optional[PaymentTerms]:
        if settlement is None:
            return None
        terms = settlement.find("SpecifiedTradePaymentTerms")
        payment_means = settlement.find("SpecifiedTradeSettlementPaymentMeans")
        if terms is None and payment_means is None:
            return None

        # CII carries no BIC in the canonical projection
        means = PaymentMeans(
            iban=(
                first_text(payment_means, "PayeePartyCreditorFinancialAccount/IBANID")
                or first_text(terms, "DirectDebitMandateID")
            ),
            account_holder=first_text(payment_means, "PayeePartyCreditorFinancialAccount/AccountName"),
        )

        due_date = first_text(terms, "DueDateDateTime/DateTimeString")
        return PaymentTerms(
            due_date=normalize_date(due_date) or None,
            payment_means=means,
            terms=first_text(terms, "Description"),
        )

    def extract_references(self, agreement: Optional[XmlNode]) -> References:
        return References(
            purchase_order=first_text(agreement, "BuyerOrderReferencedDocument/IssuerAssignedID"),
            contract=first_text(agreement, "ContractReferencedDocument/IssuerAssignedID"),
        )


# ============================================================================
# Mapper Registry
# ============================================================================

_UBL_MAPPER = UblMapper()
_CII_MAPPER = CiiMapper()

InvoiceMapper = Union[UblMapper, CiiMapper]

DIALECT_MAPPERS: dict[Dialect, InvoiceMapper] = {
    Dialect.UBL_XRECHNUNG: _UBL_MAPPER,
    Dialect.CII_XRECHNUNG: _CII_MAPPER,
    Dialect.CII_ZUGFERD: _CII_MAPPER,
    Dialect.CII_FACTURX: _CII_MAPPER,
}

_unbound = [d for d in Dialect if d is not Dialect.UNKNOWN and d not in DIALECT_MAPPERS]
if _unbound:
    raise RuntimeError(f"No mapper bound for dialect(s): {_unbound}")


def get_mapper(dialect: Dialect) -> InvoiceMapper:
    """
    Select the mapper for a dialect.

    Raises:
        UnsupportedDialect: for Dialect.UNKNOWN or any unrecognised value
    """
    try:
        return DIALECT_MAPPERS[Dialect(dialect)]
    except (KeyError, ValueError):
        raise UnsupportedDialect(dialect) from None


def map_document(data: bytes, dialect: Dialect) -> CanonicalInvoice:
    """
    Map raw XML into a CanonicalInvoice using the mapper for dialect.

    Raises:
        UnsupportedDialect: if no mapper handles dialect
        MissingRequiredStructure: if a mandatory block is absent
        MalformedXml: if the bytes are not well-formed XML
    """
    mapper = get_mapper(dialect)
    invoice = mapper.map(data)
    logger.debug(
        f"Mapped {Dialect(dialect).value} invoice {invoice.invoice_number!r} "
        f"with {len(invoice.line_items)} line(s)"
    )
    return invoice
