"""
FastAPI application for the E-Invoice QC Service.

Provides REST API endpoints for:
- Health check
- Dialect detection of an uploaded XML invoice
- Validation of one or more uploaded XML invoices
- Validation of invoices supplied as canonical JSON
- Listing the rule catalogue
"""

from typing import List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import logger, API_HOST, API_PORT, MAX_UPLOAD_SIZE_MB, RuleCategory
from .detector import detect_dialect, guideline_id
from .rules import VALIDATION_RULES, get_rules_by_category
from .schemas import CanonicalInvoice, Dialect, DocumentReport, ValidationReport, ValidationResult
from .validator import process_document, summarize_reports, validate_invoice


# ============================================================================
# FastAPI App Configuration
# ============================================================================

app = FastAPI(
    title="E-Invoice QC Service API",
    description="""
    E-Invoice Format Detection & Validation API.

    Accepts XRechnung (UBL and CII), ZUGFeRD and Factur-X XML documents,
    maps them into a canonical invoice and checks it against EN 16931-style
    business rules.

    ## Features

    - **Detect**: Identify the dialect of an XML invoice
    - **Validate XML**: Upload XML invoices for mapping and validation
    - **Validate JSON**: Validate invoices already in the canonical model
    - **Batch Processing**: Validate multiple documents in a single request
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Request/Response Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ValidateJsonRequest(BaseModel):
    """Request body for validating canonical invoices directly."""
    invoices: List[CanonicalInvoice]


class ValidateJsonResponse(BaseModel):
    """Per-invoice verdicts for the JSON validation endpoint."""
    total_invoices: int
    passed: int
    failed: int
    results: List[ValidationResult]


class DetectResponse(BaseModel):
    """Response for the dialect detection endpoint."""
    filename: str
    dialect: Dialect
    guideline_id: Optional[str] = None


# ============================================================================
# Helpers
# ============================================================================

async def _read_upload(file: UploadFile) -> bytes:
    """Read an upload, enforcing the configured size limit."""
    content = await file.read()
    if len(content) > MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"{file.filename}: File too large (max {MAX_UPLOAD_SIZE_MB}MB)",
        )
    return content


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns the service status and version information.
    """
    from . import __version__
    return HealthResponse(status="ok", version=__version__)


@app.post(
    "/detect",
    response_model=DetectResponse,
    tags=["Detection"],
    summary="Detect the dialect of an XML invoice",
)
async def detect(file: UploadFile = File(..., description="XML invoice file")) -> DetectResponse:
    """
    Identify which e-invoice dialect an uploaded XML document uses.

    Malformed or unrelated XML yields dialect UNKNOWN rather than an error.
    """
    content = await _read_upload(file)
    return DetectResponse(
        filename=file.filename or "upload.xml",
        dialect=detect_dialect(content),
        guideline_id=guideline_id(content),
    )


@app.post(
    "/validate-xml",
    response_model=ValidationReport,
    tags=["Validation"],
    summary="Validate XML invoices",
)
async def validate_xml(
    files: List[UploadFile] = File(..., description="XML invoice files to process")
) -> ValidationReport:
    """
    Detect, map and validate uploaded XML invoices.

    **Processing Steps:**
    1. Detect the dialect of each document
    2. Map it into the canonical invoice model
    3. Run the validation rule catalogue
    4. Return per-document results with an aggregated summary

    Documents that cannot be processed (unknown dialect, missing required
    structure, file too large) are reported with an error instead of failing
    the whole request.
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")

    reports: List[DocumentReport] = []

    for file in files:
        filename = file.filename or "upload.xml"
        try:
            content = await _read_upload(file)
        except HTTPException as e:
            reports.append(DocumentReport(source=filename, error=str(e.detail)))
            continue
        finally:
            await file.seek(0)  # Reset file position

        reports.append(process_document(content, filename))
        logger.info(f"Processed upload: {filename}")

    return ValidationReport(
        summary=summarize_reports(reports),
        documents=reports,
    )


@app.post(
    "/validate-json",
    response_model=ValidateJsonResponse,
    tags=["Validation"],
    summary="Validate canonical invoice JSON",
)
async def validate_json(request: ValidateJsonRequest) -> ValidateJsonResponse:
    """
    Validate invoices already in the canonical model, skipping detection
    and mapping.

    Returns one ValidationResult per invoice, in request order.
    """
    logger.info(f"Received validation request for {len(request.invoices)} invoice(s)")

    results = [validate_invoice(invoice) for invoice in request.invoices]
    passed = sum(1 for result in results if result.is_valid)

    return ValidateJsonResponse(
        total_invoices=len(results),
        passed=passed,
        failed=len(results) - passed,
        results=results,
    )


@app.get("/rules", tags=["System"])
async def list_rules():
    """
    List all validation rules applied by the service.

    Returns the complete list of validation rules with their codes,
    severities and descriptions, organized by category.
    """
    rules_by_category = {}
    for category in RuleCategory:
        category_rules = get_rules_by_category(category)
        if category_rules:
            rules_by_category[category.value] = [
                {
                    "code": rule.code,
                    "severity": rule.severity.value,
                    "description": rule.description,
                }
                for rule in category_rules
            ]

    return {
        "total_rules": len(VALIDATION_RULES),
        "rules_by_category": rules_by_category,
    }


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# ============================================================================
# Main Entry Point
# ============================================================================

def run_server():
    """Run the API server using uvicorn."""
    import uvicorn
    logger.info(f"E-Invoice QC Service API starting on {API_HOST}:{API_PORT}")
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run_server()
