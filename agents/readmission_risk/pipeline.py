"""
Readmission Risk Agent - Intake Pipeline

Runs one uploaded document through extraction and risk scoring:

    SourceFile ──► ExtractionDispatcher ──► ExtractedText ──► ReadmissionRiskEngine
                                                                    │
                                    PipelineResult(extracted, assessment)

The pipeline performs no persistence and no network I/O. Storing the file and
the analysis record is the caller's job; `PipelineResult.to_record` shapes the
record the persistence layer expects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .config import settings
from .extraction import ExtractedText, ExtractionDispatcher, SourceFile
from .model import ReadmissionRiskEngine, RiskAssessment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Extracted text and the assessment derived from it."""
    extracted: ExtractedText
    assessment: RiskAssessment

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "extracted": self.extracted.to_dict(),
            "assessment": self.assessment.to_dict(),
        }

    def to_record(self, document_id: str) -> Dict[str, Any]:
        """
        Build the analysis record stored by the persistence layer.

        Args:
            document_id: Identifier assigned by the storage layer

        Returns:
            Flat dictionary keyed for the document analysis table
        """
        return {
            "document_id": document_id,
            "extracted_text": self.extracted.text,
            "extraction_failed": self.extracted.extraction_failed,
            "risk_score": self.assessment.risk_score,
            "risk_level": self.assessment.risk_level.value,
            "readmission_risk": self.assessment.risk_level.value,
            "readmission_explanation": self.assessment.explanation,
            "findings": [f.to_dict() for f in self.assessment.findings],
            "recommendations": list(self.assessment.recommendations),
        }


class DocumentPipeline:
    """
    Single entry point for document intake and risk analysis.

    Usage:
        pipeline = DocumentPipeline()
        result = pipeline.run_bytes("discharge_summary.pdf", pdf_bytes)
        record = result.to_record(document_id)
    """

    def __init__(
        self,
        dispatcher: Optional[ExtractionDispatcher] = None,
        engine: Optional[ReadmissionRiskEngine] = None,
        score_failed_extractions: Optional[bool] = None,
    ):
        self.dispatcher = dispatcher or ExtractionDispatcher()
        self.engine = engine or ReadmissionRiskEngine()
        self.score_failed_extractions = (
            settings.score_failed_extractions
            if score_failed_extractions is None
            else score_failed_extractions
        )

    def run(self, source: SourceFile) -> PipelineResult:
        """
        Extract and score one file.

        A failed extraction is still scored: by default its error text goes
        through the engine unchanged; with `score_failed_extractions` off the
        engine's fixed failed-extraction assessment is used instead.
        """
        logger.info(
            f"Running intake pipeline for {source.kind.value} document",
            extra={"document_name": source.name, "declared_size": source.declared_size},
        )

        extracted = self.dispatcher.dispatch(source)

        if extracted.extraction_failed and not self.score_failed_extractions:
            assessment = self.engine.assess_failed_extraction()
        else:
            assessment = self.engine.assess(extracted.text)

        logger.info(
            f"Pipeline complete: {assessment.risk_level.value} ({assessment.risk_score})",
            extra={
                "document_name": source.name,
                "extraction_failed": extracted.extraction_failed,
                "findings": len(assessment.findings),
            },
        )

        return PipelineResult(extracted=extracted, assessment=assessment)

    def run_bytes(self, filename: str, content: bytes) -> PipelineResult:
        """Convenience wrapper building the SourceFile from a name and bytes."""
        return self.run(SourceFile(name=filename, content=content))

    def run_batch(self, sources: Iterable[SourceFile]) -> List[PipelineResult]:
        """Process files one at a time in submission order."""
        results = [self.run(source) for source in sources]

        failed = sum(1 for r in results if r.extracted.extraction_failed)
        logger.info(f"Batch complete: {len(results)} documents, {failed} extraction failures")

        return results
