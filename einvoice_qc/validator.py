"""
Validation engine and document pipeline for e-invoice quality control.

This module orchestrates the rule catalogue against canonical invoices,
composes detection, mapping and validation for raw documents, and produces
both per-document reports and aggregated batch summaries.
"""

from collections import Counter
from datetime import date
from typing import Iterable, Optional

from .config import RuleSeverity, logger
from .detector import detect_dialect
from .errors import EInvoiceError
from .mappers import map_document
from .rules import VALIDATION_RULES, ValidationRule
from .schemas import (
    CanonicalInvoice,
    Dialect,
    DocumentReport,
    ValidationIssue,
    ValidationReport,
    ValidationResult,
    ValidationStatus,
    ValidationSummary,
)


def validate_invoice(
    invoice: CanonicalInvoice,
    today: Optional[date] = None,
    rules: Optional[list[ValidationRule]] = None,
) -> ValidationResult:
    """
    Validate a canonical invoice against all defined rules.

    Every rule runs regardless of the outcome of the others. FAIL-tier
    issues are collected into errors and WARN-tier issues into warnings,
    both in catalogue order.

    Args:
        invoice: The CanonicalInvoice to validate
        today: Reference date for the issue date freshness check (defaults to date.today())
        rules: Optional list of rules to apply (defaults to all VALIDATION_RULES)

    Returns:
        ValidationResult with status FAIL iff any error was found
    """
    if rules is None:
        rules = VALIDATION_RULES

    context = {"today": today or date.today()}

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    for rule in rules:
        try:
            issues = rule.check(invoice, context)
        except Exception as e:
            logger.error(f"Error running rule {rule.code} on invoice {invoice.invoice_number!r}: {e}")
            issues = [ValidationIssue(
                code=rule.code,
                message=f"Rule {rule.code} could not be evaluated: {e}",
                value={"exception": type(e).__name__},
            )]

        if rule.severity == RuleSeverity.WARN:
            warnings.extend(issues)
        else:
            errors.extend(issues)

    return ValidationResult(
        status=ValidationStatus.FAIL if errors else ValidationStatus.PASS,
        errors=errors,
        warnings=warnings,
    )


def validate_document(
    data: bytes,
    dialect: Dialect,
    today: Optional[date] = None,
) -> tuple[CanonicalInvoice, ValidationResult]:
    """
    Map a raw document with the mapper for dialect and validate the result.

    Args:
        data: Raw XML bytes
        dialect: Dialect previously returned by detect_dialect (or forced by the caller)
        today: Reference date for the issue date freshness check

    Returns:
        Tuple of (canonical invoice, validation result)

    Raises:
        UnsupportedDialect: if dialect is UNKNOWN or not a known dialect
        MissingRequiredStructure: if a mandatory block is absent
    """
    invoice = map_document(data, dialect)
    result = validate_invoice(invoice, today=today)
    logger.info(
        f"Invoice {invoice.invoice_number!r} ({Dialect(dialect).value}): {result.status.value}, "
        f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
    )
    return invoice, result


def process_document(
    data: bytes,
    source: str,
    dialect: Optional[Dialect] = None,
    today: Optional[date] = None,
) -> DocumentReport:
    """
    Run one document through detection, mapping and validation.

    Pipeline errors are captured in the report instead of being raised, so
    a batch never stops at a bad document.

    Args:
        data: Raw XML bytes
        source: File name or identifier used in the report
        dialect: Force a dialect instead of detecting it
        today: Reference date for the issue date freshness check
    """
    if dialect is None:
        dialect = detect_dialect(data)
        logger.debug(f"Detected {dialect.value} for {source}")

    try:
        invoice, result = validate_document(data, dialect, today=today)
    except EInvoiceError as e:
        logger.warning(f"Could not process {source}: {e}")
        return DocumentReport(source=source, dialect=_as_dialect(dialect), error=str(e))

    return DocumentReport(
        source=source,
        dialect=dialect,
        invoice=invoice,
        validation=result,
    )


def _as_dialect(value: object) -> Dialect:
    try:
        return Dialect(value)
    except ValueError:
        return Dialect.UNKNOWN


def process_batch(
    documents: Iterable[tuple[str, bytes]],
    today: Optional[date] = None,
) -> tuple[list[DocumentReport], ValidationSummary]:
    """
    Process a batch of documents and produce an aggregated summary.

    Documents are independent; each one is detected, mapped and validated
    on its own.

    Args:
        documents: Iterable of (source, bytes) pairs
        today: Reference date for the issue date freshness check

    Returns:
        Tuple of (list of per-document reports, batch summary)
    """
    reports = [process_document(data, source, today=today) for source, data in documents]
    logger.info(f"Processed batch of {len(reports)} document(s)")
    summary = summarize_reports(reports)
    logger.info(
        f"Validation complete: {summary.passed} passed, {summary.failed} failed, "
        f"{summary.rejected} rejected"
    )
    return reports, summary


def summarize_reports(reports: list[DocumentReport]) -> ValidationSummary:
    """Aggregate per-document reports into a ValidationSummary."""
    error_codes: list[str] = []
    warning_codes: list[str] = []
    passed = failed = rejected = 0

    for report in reports:
        if report.validation is None:
            rejected += 1
            continue
        if report.validation.is_valid:
            passed += 1
        else:
            failed += 1
        error_codes.extend(issue.code for issue in report.validation.errors)
        warning_codes.extend(issue.code for issue in report.validation.warnings)

    return ValidationSummary(
        total_documents=len(reports),
        passed=passed,
        failed=failed,
        rejected=rejected,
        dialect_counts=dict(Counter(report.dialect.value for report in reports)),
        error_counts=dict(Counter(error_codes)),
        warning_counts=dict(Counter(warning_codes)),
    )


def create_validation_report(
    documents: Iterable[tuple[str, bytes]],
    today: Optional[date] = None,
) -> ValidationReport:
    """
    Create a complete validation report for a batch of documents.

    Args:
        documents: Iterable of (source, bytes) pairs
        today: Reference date for the issue date freshness check

    Returns:
        ValidationReport containing summary and per-document results
    """
    reports, summary = process_batch(documents, today=today)

    return ValidationReport(
        summary=summary,
        documents=reports,
    )


def get_top_errors(summary: ValidationSummary, n: int = 5) -> list[tuple[str, int]]:
    """
    Get the top N most frequent error codes from a summary.

    Args:
        summary: ValidationSummary to analyze
        n: Number of top errors to return

    Returns:
        List of (error_code, count) tuples, sorted by count descending
    """
    sorted_errors = sorted(
        summary.error_counts.items(),
        key=lambda x: x[1],
        reverse=True
    )
    return sorted_errors[:n]


def format_summary_text(summary: ValidationSummary) -> str:
    """
    Format a ValidationSummary as human-readable text for CLI output.

    Args:
        summary: ValidationSummary to format

    Returns:
        Formatted string for display
    """
    lines = [
        "=" * 50,
        "VALIDATION SUMMARY",
        "=" * 50,
        f"Total documents processed: {summary.total_documents}",
        f"Passed:                    {summary.passed}",
        f"Failed:                    {summary.failed}",
        f"Rejected:                  {summary.rejected}",
        "",
    ]

    if summary.dialect_counts:
        lines.append("Dialects:")
        lines.append("-" * 40)
        for dialect, count in sorted(summary.dialect_counts.items()):
            lines.append(f"  {dialect}: {count}")
        lines.append("")

    if summary.error_counts:
        lines.append("Top Error Codes:")
        lines.append("-" * 40)
        for error_code, count in get_top_errors(summary):
            lines.append(f"  {error_code}: {count}")
        lines.append("")

    if summary.warning_counts:
        lines.append("Warnings:")
        lines.append("-" * 40)
        for warning_code, count in sorted(summary.warning_counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {warning_code}: {count}")
        lines.append("")

    lines.append("=" * 50)

    return "\n".join(lines)


def format_result_text(report: DocumentReport, verbose: bool = False) -> str:
    """
    Format a single DocumentReport for CLI output.

    Args:
        report: DocumentReport to format
        verbose: Also show the canonical path of each issue

    Returns:
        Formatted string for display
    """
    lines = [f"Document: {report.source}", f"Dialect:  {report.dialect.value}"]

    if report.error is not None or report.invoice is None or report.validation is None:
        lines.append(f"Error:    {report.error}")
        return "\n".join(lines)

    invoice, result = report.invoice, report.validation
    lines.extend([
        f"Number:   {invoice.invoice_number}",
        f"Date:     {invoice.issue_date}",
        f"Currency: {invoice.currency}",
        f"Seller:   {invoice.seller.name}",
        f"Buyer:    {invoice.buyer.name}",
        f"Total:    {invoice.totals.gross} {invoice.currency}",
        "",
        f"Status:   {result.status.value}",
    ])

    for title, issues in (("Errors", result.errors), ("Warnings", result.warnings)):
        if not issues:
            continue
        lines.append("")
        lines.append(f"{title}:")
        for index, issue in enumerate(issues, start=1):
            lines.append(f"  {index}. {issue.code}: {issue.message}")
            if verbose and issue.path:
                lines.append(f"     Path: {issue.path}")

    return "\n".join(lines)
