"""
Format detection for e-invoice XML documents.

Dialect predicates are evaluated in a fixed order and the first match wins.
The CII-based dialects share one root structure and differ only in the
guideline identifier of the document context, so their order decides which
dialect an ambiguous identifier resolves to.
"""

from typing import Callable, Optional

from .config import UBL_INVOICE_NAMESPACE, logger
from .errors import MalformedXml
from .schemas import Dialect
from .xmltree import XmlNode, parse_xml


GUIDELINE_PATH = "ExchangedDocumentContext/GuidelineSpecifiedDocumentContextParameter/ID"


def _cii_guideline(root: XmlNode) -> Optional[str]:
    """Guideline identifier of a CrossIndustryInvoice, or None for other roots."""
    if root.local_name != "CrossIndustryInvoice":
        return None
    return root.text_at(GUIDELINE_PATH)


def is_ubl_xrechnung(root: XmlNode) -> bool:
    if root.local_name != "Invoice":
        return False
    namespace = root.namespace or ""
    if UBL_INVOICE_NAMESPACE in namespace:
        return True
    customization_id = root.text_at("CustomizationID")
    return customization_id is not None and "xrechnung" in customization_id.lower()


def is_cii_xrechnung(root: XmlNode) -> bool:
    guideline = _cii_guideline(root)
    return guideline is not None and "xrechnung" in guideline.lower()


def is_cii_zugferd(root: XmlNode) -> bool:
    guideline = _cii_guideline(root)
    if guideline is None:
        return False
    # BASIC and EN16931 are matched case-sensitively, unlike the other markers
    return (
        "zugferd" in guideline.lower()
        or "BASIC" in guideline
        or "EN16931" in guideline
    )


def is_cii_facturx(root: XmlNode) -> bool:
    guideline = _cii_guideline(root)
    return guideline is not None and "factur-x" in guideline.lower()


# Evaluation order matters, see module docstring
DIALECT_PREDICATES: list[tuple[Dialect, Callable[[XmlNode], bool]]] = [
    (Dialect.UBL_XRECHNUNG, is_ubl_xrechnung),
    (Dialect.CII_XRECHNUNG, is_cii_xrechnung),
    (Dialect.CII_ZUGFERD, is_cii_zugferd),
    (Dialect.CII_FACTURX, is_cii_facturx),
]


def detect_dialect(data: bytes) -> Dialect:
    """
    Classify an XML document into one of the supported dialects.

    Never raises: malformed input and unrecognised documents both yield
    Dialect.UNKNOWN.

    Args:
        data: Raw XML bytes

    Returns:
        The first matching Dialect, or Dialect.UNKNOWN
    """
    try:
        root = parse_xml(data)
    except MalformedXml as e:
        logger.warning(f"Failed to parse XML for format detection: {e}")
        return Dialect.UNKNOWN

    for dialect, predicate in DIALECT_PREDICATES:
        if predicate(root):
            return dialect

    return Dialect.UNKNOWN


def guideline_id(data: bytes) -> Optional[str]:
    """
    Guideline identifier a document claims conformance to.

    CustomizationID for UBL, the document context guideline ID for CII.
    Returns None for malformed or unrelated documents.
    """
    try:
        root = parse_xml(data)
    except MalformedXml:
        return None
    if root.local_name == "Invoice":
        return root.text_at("CustomizationID")
    return _cii_guideline(root)
