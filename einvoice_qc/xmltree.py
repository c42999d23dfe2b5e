"""
Generic XML tree and optional-path lookups shared by the detector and mappers.

The parser runs expat without namespace processing, so every element keeps
the qualified name the producer wrote (``rsm:CrossIndustryInvoice`` or just
``Invoice``) and undeclared prefixes do not abort parsing. Lookups compare
local names, which makes prefixed and unprefixed documents equivalent.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from xml.parsers import expat

from .config import CII_DATE_FORMAT
from .errors import MalformedXml


# xs:date timezone suffix: Z or +hh:mm / -hh:mm
TIMEZONE_SUFFIX = re.compile(r"(Z|[+-]\d{2}:\d{2})$")


@dataclass
class XmlNode:
    """An element with its attributes, text content and ordered children."""
    tag: str
    attrib: dict[str, str] = field(default_factory=dict)
    text: str = ""
    children: list["XmlNode"] = field(default_factory=list)
    parent: Optional["XmlNode"] = field(default=None, repr=False, compare=False)

    @property
    def prefix(self) -> Optional[str]:
        if ":" in self.tag:
            return self.tag.split(":", 1)[0]
        return None

    @property
    def local_name(self) -> str:
        return self.tag.rsplit(":", 1)[-1]

    @property
    def namespace(self) -> Optional[str]:
        """URI bound to this element's prefix (or the default namespace)."""
        declaration = f"xmlns:{self.prefix}" if self.prefix else "xmlns"
        node: Optional[XmlNode] = self
        while node is not None:
            if declaration in node.attrib:
                return node.attrib[declaration]
            node = node.parent
        return None

    def get(self, name: str) -> Optional[str]:
        """Attribute value by local name."""
        if name in self.attrib:
            return self.attrib[name]
        for key, value in self.attrib.items():
            if key.rsplit(":", 1)[-1] == name:
                return value
        return None

    def children_named(self, name: str) -> list["XmlNode"]:
        return [c for c in self.children if c.local_name == name]

    def child(self, name: str) -> Optional["XmlNode"]:
        for c in self.children:
            if c.local_name == name:
                return c
        return None

    def find(self, path: str) -> Optional["XmlNode"]:
        """
        Follow a '/'-separated path of local names, taking the first match
        at each step. Returns None as soon as a step is missing.
        """
        node: Optional[XmlNode] = self
        for step in path.split("/"):
            if node is None:
                return None
            node = node.child(step)
        return node

    def find_all(self, path: str) -> list["XmlNode"]:
        """All nodes matching the last step of path, below the first match of the rest."""
        head, _, last = path.rpartition("/")
        parent = self.find(head) if head else self
        if parent is None:
            return []
        return parent.children_named(last)

    def text_at(self, path: str) -> Optional[str]:
        """Stripped text at path, or None when the node is absent or empty."""
        node = self.find(path)
        if node is None:
            return None
        value = node.text.strip()
        return value or None


def parse_xml(data: bytes) -> XmlNode:
    """
    Parse raw bytes into an XmlNode tree.

    Raises:
        MalformedXml: if the bytes are not well-formed XML
    """
    stack: list[XmlNode] = []
    root: list[XmlNode] = []
    text_parts: list[list[str]] = []

    def start_element(tag: str, attrs: dict[str, str]) -> None:
        node = XmlNode(tag=tag, attrib=dict(attrs), parent=stack[-1] if stack else None)
        if stack:
            stack[-1].children.append(node)
        else:
            root.append(node)
        stack.append(node)
        text_parts.append([])

    def end_element(tag: str) -> None:
        node = stack.pop()
        node.text = "".join(text_parts.pop())

    def character_data(data: str) -> None:
        if text_parts:
            text_parts[-1].append(data)

    parser = expat.ParserCreate()
    parser.StartElementHandler = start_element
    parser.EndElementHandler = end_element
    parser.CharacterDataHandler = character_data

    try:
        parser.Parse(data, True)
    except (expat.ExpatError, LookupError, ValueError) as e:
        raise MalformedXml(str(e)) from e

    if not root:
        raise MalformedXml("document has no root element")
    return root[0]


# ============================================================================
# Value Helpers
# ============================================================================

def first_text(node: Optional[XmlNode], *paths: str) -> Optional[str]:
    """Text at the first of the alternative paths that has any."""
    if node is None:
        return None
    for path in paths:
        value = node.text_at(path)
        if value is not None:
            return value
    return None


def first_node(node: Optional[XmlNode], *paths: str) -> Optional[XmlNode]:
    if node is None:
        return None
    for path in paths:
        found = node.find(path)
        if found is not None:
            return found
    return None


def parse_amount(text: Optional[str]) -> Decimal:
    """
    Parse a numeric XML value into a Decimal.

    Missing, blank or malformed text yields Decimal("0").
    """
    if text is None:
        return Decimal("0")
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        return Decimal("0")
    if not value.is_finite():
        return Decimal("0")
    return value


def normalize_date(text: Optional[str]) -> str:
    """
    Reduce a date or date-time value to an ISO 8601 date.

    '2024-01-15T10:30:00' -> '2024-01-15'
    '2024-01-15+01:00'    -> '2024-01-15'
    '20240115'            -> '2024-01-15' (UN/CEFACT format 102)

    Anything else is returned unchanged so the validator can report it.
    """
    if not text:
        return ""
    value = TIMEZONE_SUFFIX.sub("", text.strip().split("T", 1)[0])
    if len(value) == 8 and value.isdigit():
        try:
            return datetime.strptime(value, CII_DATE_FORMAT).date().isoformat()
        except ValueError:
            return value
    return value
