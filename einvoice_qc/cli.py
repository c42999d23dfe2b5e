"""
Command-line interface for the E-Invoice QC Service.

Provides the following commands:
- detect: Print the dialect of an XML invoice
- validate: Validate a single XML invoice against the rule catalogue
- validate-dir: Validate every XML invoice in a directory and write a report
- rules: List the validation rules
"""

import json
from pathlib import Path
from typing import Optional

import typer

from .config import RuleCategory, logger
from .detector import detect_dialect, guideline_id
from .rules import get_rules_by_category
from .schemas import Dialect, ValidationReport
from .validator import (
    format_result_text,
    format_summary_text,
    process_batch,
    process_document,
)


# Create Typer app
app = typer.Typer(
    name="einvoice-qc",
    help="E-Invoice Format Detection & Validation CLI",
    add_completion=False,
)


@app.command()
def detect(
    xml_file: Path = typer.Argument(
        ...,
        help="Path to the invoice XML file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """
    Detect the e-invoice dialect of an XML file.

    Exits with status 1 when the dialect is UNKNOWN.
    """
    data = xml_file.read_bytes()
    dialect = detect_dialect(data)

    typer.echo(f"Dialect:   {dialect.value}")
    guideline = guideline_id(data)
    if guideline:
        typer.echo(f"Guideline: {guideline}")

    if dialect == Dialect.UNKNOWN:
        raise typer.Exit(code=1)


@app.command()
def validate(
    xml_file: Path = typer.Argument(
        ...,
        help="Path to the invoice XML file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    dialect: Optional[Dialect] = typer.Option(
        None,
        "--format",
        "-f",
        help="Force a dialect instead of detecting it",
        case_sensitive=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show the canonical path of each issue",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the full report as JSON",
    ),
) -> None:
    """
    Validate an e-invoice file against the EN 16931 rule catalogue.

    Exits with status 0 on PASS and 1 on FAIL or when the document
    cannot be processed.
    """
    try:
        report = process_document(xml_file.read_bytes(), xml_file.name, dialect=dialect)
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        typer.echo(format_result_text(report, verbose=verbose))

    if report.error is not None:
        if report.dialect == Dialect.UNKNOWN and dialect is None:
            typer.echo("Could not detect invoice format; try --format", err=True)
        raise typer.Exit(code=1)

    if not report.is_valid:
        raise typer.Exit(code=1)


@app.command("validate-dir")
def validate_dir(
    xml_dir: Path = typer.Option(
        ...,
        "--xml-dir",
        "-d",
        help="Directory containing invoice XML files",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    report: Path = typer.Option(
        "validation_report.json",
        "--report",
        "-r",
        help="Output validation report JSON file path",
    ),
    fail_on_invalid: bool = typer.Option(
        False,
        "--fail-on-invalid",
        help="Exit with non-zero status if any document failed or was rejected",
    ),
) -> None:
    """
    Validate every XML file in a directory.

    Writes a JSON report with per-document results and summary statistics.
    """
    xml_files = sorted(xml_dir.glob("*.xml"))
    if not xml_files:
        typer.echo(f"No XML files found in: {xml_dir}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Validating {len(xml_files)} document(s) from: {xml_dir}")

    try:
        reports, summary = process_batch((path.name, path.read_bytes()) for path in xml_files)

        validation_report = ValidationReport(summary=summary, documents=reports)
        with open(report, 'w', encoding='utf-8') as f:
            json.dump(validation_report.model_dump(mode="json"), f, indent=2)
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Directory validation failed")
        raise typer.Exit(code=1)

    # Print summary
    typer.echo("\n" + format_summary_text(summary))
    typer.echo(f"\n[OK] Validation report saved to: {report}")

    # Show failing document details
    problem_reports = [r for r in reports if not r.is_valid]
    if problem_reports:
        typer.echo("\nProblem Documents:")
        for r in problem_reports[:5]:  # Show first 5
            typer.echo(f"  {r.source}:")
            if r.error is not None:
                typer.echo(f"    - {r.error}")
                continue
            for issue in r.validation.errors:
                typer.echo(f"    - {issue.code}: {issue.message}")
        if len(problem_reports) > 5:
            typer.echo(f"  ... and {len(problem_reports) - 5} more")

    if fail_on_invalid and (summary.failed > 0 or summary.rejected > 0):
        raise typer.Exit(code=1)


@app.command()
def rules() -> None:
    """List all validation rules by category."""
    for category in RuleCategory:
        category_rules = get_rules_by_category(category)
        if not category_rules:
            continue
        typer.echo(f"{category.value}:")
        for rule in category_rules:
            typer.echo(f"  {rule.code:<8} [{rule.severity.value}] {rule.description}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"E-Invoice QC Service v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
