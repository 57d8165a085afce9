"""
Readmission Risk Agent
======================

Document intake and readmission risk assessment for uploaded clinical documents.

This agent combines:
1. Format-aware text extraction (OCR for images, PDF word layer, Word body text)
2. A deterministic keyword rule engine for readmission risk scoring

Key Design Principle:
    Extraction never raises. Unsupported or unreadable documents produce an
    explicit `extraction_failed` result that the caller can store or reject.

Components:
-----------
- config: Environment configuration and risk thresholds
- formats: Filename to DocumentKind classification
- extraction: Extractors and the ExtractionDispatcher
- model: ReadmissionRiskEngine, RiskAssessment, Finding
- pipeline: DocumentPipeline orchestrating extraction and scoring
- api: FastAPI REST endpoints

Endpoints:
----------
- POST /analyze: Analyse one uploaded document
- POST /analyze-batch: Analyse several documents in order
- POST /analyze-text: Score already-extracted text
- GET /rules: Keyword tables and thresholds
- GET /health: Service health check

Usage Example:
--------------
```python
from agents.readmission_risk.pipeline import DocumentPipeline

pipeline = DocumentPipeline()
with open("discharge_summary.pdf", "rb") as fh:
    result = pipeline.run_bytes("discharge_summary.pdf", fh.read())

print(f"Risk: {result.assessment.risk_level.value} ({result.assessment.risk_score})")
for finding in result.assessment.findings:
    print(f"{finding.type}: {finding.value} [{finding.status.value}]")
```

Port: 8005

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Hospital AI Team"
