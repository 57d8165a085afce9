"""
Readmission Risk Agent - Keyword Rule Engine

This module implements the readmission risk scoring used on extracted
clinical document text.

================================================================================
WHY A KEYWORD RULE ENGINE AND NOT A MODEL
================================================================================

The engine reads free-text discharge documents and must explain every point
of its score to a case manager:

1. INSPECTABLE: The score is a sum of weights of keywords found in the text.
   A reviewer can reproduce it by hand from the keyword tables below.

2. DETERMINISTIC: The same text always yields the same assessment. There is
   no hidden state, no training data and no external service.

3. TOTAL: Every string can be scored, including empty text and the error text
   produced by a failed extraction. There is no error path.

SCORING:
────────

    text ──► lowercase ──► substring probes
                               │
             ┌─────────────────┴──────────────────┐
             ▼                                    ▼
    HIGH-RISK KEYWORDS (x15)             MEDIUM-RISK KEYWORDS (x5)
    readmitted, chronic, copd, ...       hypertension, elderly, ...
             │                                    │
             └─────────────────┬──────────────────┘
                               ▼
              score = min(100, Σ matched weights)
                               │
                               ▼
    ┌───────────────┬──────────────────┬──────────────────┐
    │  score >= 70  │  30 <= score <70 │   score < 30     │
    │     HIGH      │      MEDIUM      │      LOW         │
    └───────────────┴──────────────────┴──────────────────┘

Matching is substring containment, not word-boundary matching: "chronically"
matches "chronic". Each keyword counts once no matter how often it appears.

Findings come from separate clinical probes and recommendations come from
the risk level alone.

================================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import settings

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# ENUMERATIONS AND DATA CLASSES
# =============================================================================

class RiskLevel(str, Enum):
    """Readmission risk bands."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FindingStatus(str, Enum):
    """
    Clinical status attached to a finding.

    REVIEW is only used by the fallback finding emitted when no clinical
    probe fires.
    """
    NORMAL = "Normal"
    MONITOR = "Monitor"
    ELEVATED = "Elevated"
    HIGH_RISK = "High Risk"
    REVIEW = "Review"


@dataclass(frozen=True)
class Finding:
    """One observation extracted from document text."""
    type: str
    value: str
    status: FindingStatus

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"type": self.type, "value": self.value, "status": self.status.value}


@dataclass(frozen=True)
class RiskAssessment:
    """
    Complete readmission risk assessment for one document.

    Attributes:
        risk_score: Integer score clamped to [0, 100]
        risk_level: Band derived from risk_score
        explanation: Human-readable explanation of the level
        findings: Clinical findings (never empty)
        recommendations: Follow-up actions for the level (never empty)
        high_risk_matches: High-risk keywords found, in table order
        medium_risk_matches: Medium-risk keywords found, in table order
    """
    risk_score: int
    risk_level: RiskLevel
    explanation: str
    findings: Tuple[Finding, ...]
    recommendations: Tuple[str, ...]
    high_risk_matches: Tuple[str, ...] = field(default_factory=tuple)
    medium_risk_matches: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "explanation": self.explanation,
            "findings": [f.to_dict() for f in self.findings],
            "recommendations": list(self.recommendations),
            "high_risk_matches": list(self.high_risk_matches),
            "medium_risk_matches": list(self.medium_risk_matches),
        }


# =============================================================================
# KEYWORD TABLES
# =============================================================================
# Each tuple: (keyword, weight). Order matters: the high-risk explanation
# cites the first three matches in table order.

HIGH_RISK_WEIGHT = 15
MEDIUM_RISK_WEIGHT = 5

HIGH_RISK_KEYWORDS: Tuple[Tuple[str, int], ...] = (
    ("readmitted", HIGH_RISK_WEIGHT),
    ("previous admission", HIGH_RISK_WEIGHT),
    ("chronic", HIGH_RISK_WEIGHT),
    ("diabetes", HIGH_RISK_WEIGHT),
    ("heart failure", HIGH_RISK_WEIGHT),
    ("copd", HIGH_RISK_WEIGHT),
    ("pneumonia", HIGH_RISK_WEIGHT),
    ("sepsis", HIGH_RISK_WEIGHT),
    ("renal failure", HIGH_RISK_WEIGHT),
    ("multiple admissions", HIGH_RISK_WEIGHT),
)

MEDIUM_RISK_KEYWORDS: Tuple[Tuple[str, int], ...] = (
    ("hypertension", MEDIUM_RISK_WEIGHT),
    ("elderly", MEDIUM_RISK_WEIGHT),
    ("medication", MEDIUM_RISK_WEIGHT),
    ("follow-up", MEDIUM_RISK_WEIGHT),
    ("discharge", MEDIUM_RISK_WEIGHT),
    ("treatment", MEDIUM_RISK_WEIGHT),
    ("therapy", MEDIUM_RISK_WEIGHT),
    ("recovery", MEDIUM_RISK_WEIGHT),
    ("monitoring", MEDIUM_RISK_WEIGHT),
)

MAX_RISK_SCORE = 100
MAX_CITED_KEYWORDS = 3


# =============================================================================
# FINDING PROBES
# =============================================================================
# Each tuple: (probe over lowercase text, finding emitted when it fires)

FINDING_PROBES: Tuple[Tuple[str, Callable[[str], bool], Finding], ...] = (
    (
        "diabetes",
        lambda text: "diabetes" in text,
        Finding("Diabetes", "Present", FindingStatus.MONITOR),
    ),
    (
        "hypertension",
        lambda text: "hypertension" in text,
        Finding("Hypertension", "Present", FindingStatus.MONITOR),
    ),
    (
        "heart AND (failure OR disease)",
        lambda text: "heart" in text and ("failure" in text or "disease" in text),
        Finding("Heart Condition", "Present", FindingStatus.HIGH_RISK),
    ),
    (
        "medication",
        lambda text: "medication" in text,
        Finding("Medication Adherence", "Needs Review", FindingStatus.MONITOR),
    ),
)

FALLBACK_FINDING = Finding("General Health", "Needs Assessment", FindingStatus.REVIEW)


# =============================================================================
# EXPLANATIONS AND RECOMMENDATIONS
# =============================================================================

MEDIUM_RISK_EXPLANATION = (
    "Patient has some risk factors that may increase readmission likelihood. "
    "Regular follow-up appointments advised."
)
LOW_RISK_EXPLANATION = (
    "Patient shows few risk factors for readmission. "
    "Standard follow-up procedures recommended."
)
EXTRACTION_FAILED_EXPLANATION = (
    "Document text could not be extracted, so readmission risk could not be "
    "assessed from its contents. Manual review of the source document recommended."
)

RECOMMENDATIONS: Dict[RiskLevel, Tuple[str, ...]] = {
    RiskLevel.HIGH: (
        "Schedule follow-up appointment within 7 days",
        "Review medication adherence and potential interactions",
        "Consider home health services for monitoring",
        "Coordinate with specialist for comprehensive care plan",
    ),
    RiskLevel.MEDIUM: (
        "Schedule follow-up appointment within 14 days",
        "Review medication regimen",
        "Provide patient education on warning signs",
        "Consider telehealth check-in between appointments",
    ),
    RiskLevel.LOW: (
        "Schedule routine follow-up appointment",
        "Provide educational materials on maintaining health",
        "Ensure patient has clear discharge instructions",
    ),
}


# =============================================================================
# RISK ENGINE
# =============================================================================

class ReadmissionRiskEngine:
    """
    Keyword rule engine for readmission risk.

    The engine holds no per-call state, so one instance can score any number
    of documents.

    Example:
        >>> engine = ReadmissionRiskEngine()
        >>> assessment = engine.assess("Chronic COPD, readmitted twice this year")
        >>> assessment.risk_score, assessment.risk_level.value
        (45, 'medium')
    """

    VERSION = "1.0.0"

    def __init__(
        self,
        high_risk_keywords: Tuple[Tuple[str, int], ...] = HIGH_RISK_KEYWORDS,
        medium_risk_keywords: Tuple[Tuple[str, int], ...] = MEDIUM_RISK_KEYWORDS,
        high_threshold: Optional[int] = None,
        medium_threshold: Optional[int] = None,
    ):
        self.high_risk_keywords = tuple(high_risk_keywords)
        self.medium_risk_keywords = tuple(medium_risk_keywords)
        self.high_threshold = (
            high_threshold if high_threshold is not None else settings.high_risk_threshold
        )
        self.medium_threshold = (
            medium_threshold if medium_threshold is not None else settings.medium_risk_threshold
        )

        if self.medium_threshold > self.high_threshold:
            raise ValueError(
                f"medium threshold ({self.medium_threshold}) must not exceed "
                f"high threshold ({self.high_threshold})"
            )

        logger.info(
            f"ReadmissionRiskEngine v{self.VERSION} initialized",
            extra={
                "high_risk_keywords": len(self.high_risk_keywords),
                "medium_risk_keywords": len(self.medium_risk_keywords),
            },
        )

    def assess(self, text: str) -> RiskAssessment:
        """
        Score document text for readmission risk.

        Args:
            text: Plain text extracted from a clinical document

        Returns:
            RiskAssessment with score, level, explanation, findings and
            recommendations
        """
        lower_text = (text or "").lower()

        high_matches = self._matches(lower_text, self.high_risk_keywords)
        medium_matches = self._matches(lower_text, self.medium_risk_keywords)

        raw_score = sum(weight for _, weight in high_matches + medium_matches)
        risk_score = max(0, min(MAX_RISK_SCORE, int(round(raw_score))))
        risk_level = self.classify(risk_score)

        high_terms = tuple(term for term, _ in high_matches)
        medium_terms = tuple(term for term, _ in medium_matches)

        assessment = RiskAssessment(
            risk_score=risk_score,
            risk_level=risk_level,
            explanation=self._explain(risk_level, high_terms),
            findings=self._findings(lower_text),
            recommendations=RECOMMENDATIONS[risk_level],
            high_risk_matches=high_terms,
            medium_risk_matches=medium_terms,
        )

        logger.debug(
            f"Assessed {len(lower_text)} characters: {risk_level.value} ({risk_score})",
            extra={"high_matches": list(high_terms), "medium_matches": list(medium_terms)},
        )

        return assessment

    def assess_failed_extraction(self) -> RiskAssessment:
        """Fixed assessment for a document whose text could not be extracted."""
        return replace(self.assess(""), explanation=EXTRACTION_FAILED_EXPLANATION)

    def classify(self, risk_score: int) -> RiskLevel:
        """Map a score onto its risk band (boundaries belong to the higher band)."""
        if risk_score >= self.high_threshold:
            return RiskLevel.HIGH
        elif risk_score >= self.medium_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def matched_keywords(self, text: str) -> Dict[str, List[str]]:
        """Return the high- and medium-risk keywords found in text, in table order."""
        lower_text = (text or "").lower()
        return {
            "high": [term for term, _ in self._matches(lower_text, self.high_risk_keywords)],
            "medium": [term for term, _ in self._matches(lower_text, self.medium_risk_keywords)],
        }

    @staticmethod
    def _matches(
        lower_text: str,
        keywords: Tuple[Tuple[str, int], ...],
    ) -> Tuple[Tuple[str, int], ...]:
        return tuple((term, weight) for term, weight in keywords if term in lower_text)

    @staticmethod
    def _explain(risk_level: RiskLevel, high_terms: Tuple[str, ...]) -> str:
        if risk_level == RiskLevel.HIGH:
            return (
                "Patient shows multiple high-risk factors including "
                f"{', '.join(high_terms[:MAX_CITED_KEYWORDS])}. "
                "Close monitoring and follow-up recommended."
            )
        elif risk_level == RiskLevel.MEDIUM:
            return MEDIUM_RISK_EXPLANATION
        return LOW_RISK_EXPLANATION

    @staticmethod
    def _findings(lower_text: str) -> Tuple[Finding, ...]:
        findings = tuple(finding for _, probe, finding in FINDING_PROBES if probe(lower_text))
        return findings or (FALLBACK_FINDING,)


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

_engine_instance: Optional[ReadmissionRiskEngine] = None


def get_engine() -> ReadmissionRiskEngine:
    """Get or create the singleton ReadmissionRiskEngine instance."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = ReadmissionRiskEngine()
    return _engine_instance


def assess_text(text: str) -> RiskAssessment:
    """
    Convenience function to score text with the shared engine.

    Args:
        text: Plain document text

    Returns:
        RiskAssessment for the text
    """
    return get_engine().assess(text)
