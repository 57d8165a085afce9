"""
Readmission Risk Agent - FastAPI Application

This module provides the REST API for the document intake and readmission
risk service. It accepts uploaded clinical documents, extracts their text and
returns an explainable risk assessment.

================================================================================
API DESIGN FOR CLINICAL DECISION SUPPORT
================================================================================

This API is designed for integration with:
1. The document upload flow of the clinician portal
2. Case management dashboards reviewing discharge summaries
3. The central orchestrator for multi-agent coordination

Key Design Principles:
─────────────────────
1. EXPLAINABILITY: Every score lists the keywords that produced it
2. NO PERSISTENCE: Storage of files and analysis records stays with the caller
3. DEGRADE, DON'T FAIL: Unsupported or unreadable documents return 200 with
   `extraction_failed: true` so the caller decides what to store
4. AUDIT TRAIL: All analyses are logged with request identifiers

================================================================================
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import settings
from .extraction import SourceFile, tesseract_version
from .formats import SUPPORTED_SUFFIXES, SUFFIX_KINDS
from .model import (
    FINDING_PROBES,
    FALLBACK_FINDING,
    RECOMMENDATIONS,
    ReadmissionRiskEngine,
    RiskAssessment,
    RiskLevel,
)
from .pipeline import DocumentPipeline, PipelineResult

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# PYDANTIC MODELS (Request/Response Schemas)
# =============================================================================

class TextAnalysisRequest(BaseModel):
    """Request schema for scoring text that was extracted elsewhere."""

    text: str = Field(
        ...,
        description="Plain text of a clinical document"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "text": "Elderly patient with chronic COPD, readmitted in March. "
                        "Discharge on home oxygen therapy with follow-up in 7 days."
            }
        }


class FindingResponse(BaseModel):
    """Response schema for a clinical finding."""

    type: str
    value: str
    status: str


class AssessmentResponse(BaseModel):
    """Response schema for a readmission risk assessment."""

    risk_score: int = Field(
        ge=0,
        le=100,
        description="Readmission risk score (0-100)"
    )
    risk_level: str = Field(
        description="low, medium or high"
    )
    explanation: str
    findings: List[FindingResponse]
    recommendations: List[str]
    high_risk_matches: List[str]
    medium_risk_matches: List[str]


class ExtractionResponse(BaseModel):
    """Response schema summarising text extraction."""

    source_kind: str
    extraction_failed: bool
    error_detail: Optional[str] = None
    text_length: int


class DocumentAnalysisResponse(BaseModel):
    """Response schema for one analysed document."""

    request_id: str
    analyzed_at: datetime
    filename: str
    file_size: int
    extraction: ExtractionResponse
    extracted_text: str
    assessment: AssessmentResponse


class BatchAnalysisResponse(BaseModel):
    """Response schema for a batch of analysed documents."""

    request_id: str
    analyzed_at: datetime
    total_documents: int
    extraction_failures: int
    summary: Dict[str, int] = Field(
        description="Count of documents in each risk level"
    )
    documents: List[DocumentAnalysisResponse]


class TextAnalysisResponse(BaseModel):
    """Response schema for direct text scoring."""

    request_id: str
    analyzed_at: datetime
    assessment: AssessmentResponse


class HealthResponse(BaseModel):
    """Response schema for health checks."""

    status: str
    service: str
    version: str
    timestamp: datetime
    checks: Dict[str, Dict[str, Any]]


# =============================================================================
# APPLICATION STATE
# =============================================================================

class AppState:
    """
    Application state management.

    Holds the intake pipeline and tracks analysis metrics.
    """

    def __init__(self):
        self.pipeline: Optional[DocumentPipeline] = None
        self.pipeline_loaded_at: Optional[datetime] = None
        self.documents_analyzed: int = 0
        self._lock = asyncio.Lock()

    async def get_pipeline(self) -> DocumentPipeline:
        """Get or initialize the intake pipeline."""
        async with self._lock:
            if self.pipeline is None:
                self.pipeline = DocumentPipeline()
                self.pipeline_loaded_at = datetime.utcnow()
                logger.info("DocumentPipeline initialized")
            return self.pipeline


# Global application state
app_state = AppState()


# =============================================================================
# LIFESPAN MANAGEMENT
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")

    try:
        await app_state.get_pipeline()
    except Exception as e:
        logger.warning(f"Could not initialize pipeline at startup: {e}")

    yield

    # Shutdown
    logger.info("Shutting down readmission risk agent")


# =============================================================================
# FASTAPI APPLICATION
# =============================================================================

app = FastAPI(
    title="Readmission Risk Agent",
    description="""
    Clinical document intake and readmission risk assessment service.

    ## Overview
    Upload a discharge summary or clinical note (PDF, DOCX, JPG, PNG). The agent
    extracts its text and scores it with an explainable keyword rule engine.

    ## API Endpoints
    - `POST /analyze`: Analyse one uploaded document
    - `POST /analyze-batch`: Analyse several documents in submission order
    - `POST /analyze-text`: Score text that was already extracted
    - `GET /rules`: Keyword tables, weights and thresholds
    - `GET /health`: Service health check

    ## Clinical Integration
    This service is designed for clinical decision SUPPORT. It does not store
    documents or results; the calling application owns persistence.
    """,
    version=settings.service_version,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

async def _read_upload(upload: UploadFile) -> SourceFile:
    """
    Read an upload into a SourceFile, rejecting empty and oversized files.

    The size reported by the multipart parser is checked before the body is
    read into memory; the byte count is checked again after reading.
    """
    filename = upload.filename or f"unnamed_file_{int(datetime.utcnow().timestamp())}"

    if upload.size is not None and upload.size > settings.max_upload_bytes:
        raise _file_too_large(filename, upload.size)

    content = await upload.read()

    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "empty_file",
                "message": f"Invalid file: {filename} is empty (0 bytes)",
            },
        )

    if len(content) > settings.max_upload_bytes:
        raise _file_too_large(filename, len(content))

    return SourceFile(name=filename, content=content, declared_size=upload.size)


def _file_too_large(filename: str, size: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail={
            "error": "file_too_large",
            "message": (
                f"{filename} is {size} bytes; "
                f"the limit is {settings.max_upload_bytes} bytes"
            ),
        },
    )


def _build_assessment_response(assessment: RiskAssessment) -> AssessmentResponse:
    """Build API response from internal assessment."""
    return AssessmentResponse(
        risk_score=assessment.risk_score,
        risk_level=assessment.risk_level.value,
        explanation=assessment.explanation,
        findings=[FindingResponse(**f.to_dict()) for f in assessment.findings],
        recommendations=list(assessment.recommendations),
        high_risk_matches=list(assessment.high_risk_matches),
        medium_risk_matches=list(assessment.medium_risk_matches),
    )


def _build_document_response(
    source: SourceFile,
    result: PipelineResult,
    request_id: str,
) -> DocumentAnalysisResponse:
    """Build API response from a pipeline result."""
    extracted = result.extracted
    return DocumentAnalysisResponse(
        request_id=request_id,
        analyzed_at=datetime.utcnow(),
        filename=source.name,
        file_size=len(source.content),
        extraction=ExtractionResponse(
            source_kind=extracted.source_kind.value,
            extraction_failed=extracted.extraction_failed,
            error_detail=extracted.error_detail,
            text_length=len(extracted.text),
        ),
        extracted_text=extracted.text,
        assessment=_build_assessment_response(result.assessment),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Operations"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint for Kubernetes probes.

    Checks pipeline status and whether the Tesseract binary used for image
    documents is installed. A missing OCR binary degrades the service
    (image uploads return extraction failures) but does not make it unhealthy.
    """
    checks = {}
    overall_status = "healthy"

    pipeline_check = {"status": "ok"}
    try:
        pipeline = await app_state.get_pipeline()
        pipeline_check["loaded_at"] = (
            app_state.pipeline_loaded_at.isoformat() if app_state.pipeline_loaded_at else None
        )
        pipeline_check["documents_analyzed"] = app_state.documents_analyzed
        pipeline_check["rule_engine_version"] = pipeline.engine.VERSION
    except Exception as e:
        pipeline_check["status"] = "error"
        pipeline_check["message"] = str(e)
        overall_status = "unhealthy"
    checks["pipeline"] = pipeline_check

    ocr_check = {"status": "ok"}
    try:
        ocr_check["tesseract_version"] = await run_in_threadpool(tesseract_version)
    except Exception as e:
        ocr_check["status"] = "unavailable"
        ocr_check["message"] = str(e)
        if overall_status == "healthy":
            overall_status = "degraded"
    checks["ocr"] = ocr_check

    return HealthResponse(
        status=overall_status,
        service=settings.service_name,
        version=settings.service_version,
        timestamp=datetime.utcnow(),
        checks=checks,
    )


@app.post(
    "/analyze",
    response_model=DocumentAnalysisResponse,
    tags=["Analysis"],
    summary="Analyse one uploaded clinical document"
)
async def analyze_document(file: UploadFile = File(...)) -> DocumentAnalysisResponse:
    """
    Extract text from an uploaded document and assess readmission risk.

    **Supported formats:** PDF, DOC, DOCX, JPG, JPEG, PNG (up to 10 MB by default).

    Unsupported formats and unreadable files are not request errors: the
    response carries `extraction.extraction_failed = true` and the error text.
    """
    request_id = str(uuid.uuid4())
    source = await _read_upload(file)

    logger.info(
        f"Document analysis request: {request_id}",
        extra={"document_name": source.name, "size_bytes": len(source.content)},
    )

    pipeline = await app_state.get_pipeline()
    result = await run_in_threadpool(pipeline.run, source)

    app_state.documents_analyzed += 1

    response = _build_document_response(source, result, request_id)

    logger.info(
        f"Analysis complete for {source.name}: {result.assessment.risk_level.value}",
        extra={
            "risk_score": result.assessment.risk_score,
            "extraction_failed": result.extracted.extraction_failed,
        },
    )

    return response


@app.post(
    "/analyze-batch",
    response_model=BatchAnalysisResponse,
    tags=["Analysis"],
    summary="Analyse several documents in submission order"
)
async def analyze_batch(files: List[UploadFile] = File(...)) -> BatchAnalysisResponse:
    """
    Analyse multiple uploaded documents.

    Documents are processed one at a time in the order they were submitted,
    and results are returned in that order.
    """
    request_id = str(uuid.uuid4())

    if len(files) > settings.max_batch_files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "too_many_files",
                "message": f"At most {settings.max_batch_files} files per batch",
            },
        )

    sources = [await _read_upload(f) for f in files]

    logger.info(
        f"Batch analysis request: {request_id}",
        extra={"n_documents": len(sources)},
    )

    pipeline = await app_state.get_pipeline()
    results = await run_in_threadpool(pipeline.run_batch, sources)

    app_state.documents_analyzed += len(results)

    documents = [
        _build_document_response(source, result, request_id)
        for source, result in zip(sources, results)
    ]

    counts = Counter(r.assessment.risk_level.value for r in results)
    summary = {level.value: counts.get(level.value, 0) for level in RiskLevel}

    return BatchAnalysisResponse(
        request_id=request_id,
        analyzed_at=datetime.utcnow(),
        total_documents=len(results),
        extraction_failures=sum(1 for r in results if r.extracted.extraction_failed),
        summary=summary,
        documents=documents,
    )


@app.post(
    "/analyze-text",
    response_model=TextAnalysisResponse,
    tags=["Analysis"],
    summary="Score already-extracted document text"
)
async def analyze_text(request: TextAnalysisRequest) -> TextAnalysisResponse:
    """Score plain text directly, skipping extraction."""
    request_id = str(uuid.uuid4())

    pipeline = await app_state.get_pipeline()
    assessment = pipeline.engine.assess(request.text)

    logger.info(
        f"Text analysis {request_id}: {assessment.risk_level.value}",
        extra={"risk_score": assessment.risk_score, "text_length": len(request.text)},
    )

    return TextAnalysisResponse(
        request_id=request_id,
        analyzed_at=datetime.utcnow(),
        assessment=_build_assessment_response(assessment),
    )


@app.get(
    "/rules",
    tags=["Information"],
    summary="List keyword rules, thresholds and supported formats"
)
async def list_rules() -> Dict[str, Any]:
    """
    Document the rule engine for clinical governance review.

    Includes the keyword tables with weights, the score thresholds, the
    finding probes, the recommendation lists and the supported formats.
    """
    pipeline = await app_state.get_pipeline()
    engine: ReadmissionRiskEngine = pipeline.engine

    return {
        "rule_engine_version": engine.VERSION,
        "keywords": {
            "high_risk": [{"keyword": k, "weight": w} for k, w in engine.high_risk_keywords],
            "medium_risk": [{"keyword": k, "weight": w} for k, w in engine.medium_risk_keywords],
        },
        "thresholds": {
            "high": engine.high_threshold,
            "medium": engine.medium_threshold,
        },
        "finding_probes": [
            {"probe": name, **finding.to_dict()} for name, _, finding in FINDING_PROBES
        ],
        "fallback_finding": FALLBACK_FINDING.to_dict(),
        "recommendations": {
            level.value: list(items) for level, items in RECOMMENDATIONS.items()
        },
        "supported_formats": {
            suffix: SUFFIX_KINDS[suffix].value for suffix in SUPPORTED_SUFFIXES
        },
        "score_failed_extractions": pipeline.score_failed_extractions,
    }


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "detail": str(exc) if settings.debug else None,
        },
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agents.readmission_risk.api:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
