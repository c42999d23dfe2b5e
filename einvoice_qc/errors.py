"""
Exception types raised by the e-invoice processing pipeline.

Only structural failures are exceptions. Business-rule violations are
reported as ValidationIssue objects inside a ValidationResult.
"""


class EInvoiceError(Exception):
    """Base class for all pipeline errors."""


class MalformedXml(EInvoiceError):
    """The input bytes could not be parsed as XML."""


class UnsupportedDialect(EInvoiceError):
    """No mapper exists for the requested dialect."""

    def __init__(self, dialect: object):
        self.dialect = dialect
        super().__init__(f"Unsupported invoice dialect: {getattr(dialect, 'value', dialect)}")


class MissingRequiredStructure(EInvoiceError):
    """A structurally required element is absent from the document."""

    def __init__(self, element: str):
        self.element = element
        super().__init__(f"Missing required element: {element}")
