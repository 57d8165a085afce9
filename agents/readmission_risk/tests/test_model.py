"""
Readmission Risk Agent - Rule Engine Tests

Tests for keyword scoring, risk bands, findings and recommendations.
Run with: pytest tests/test_model.py -v
"""

import pytest

from agents.readmission_risk.model import (
    EXTRACTION_FAILED_EXPLANATION,
    FALLBACK_FINDING,
    HIGH_RISK_KEYWORDS,
    LOW_RISK_EXPLANATION,
    MEDIUM_RISK_EXPLANATION,
    MEDIUM_RISK_KEYWORDS,
    RECOMMENDATIONS,
    Finding,
    FindingStatus,
    ReadmissionRiskEngine,
    RiskLevel,
    assess_text,
    get_engine,
)


@pytest.fixture
def engine():
    """Engine with the default keyword tables and thresholds."""
    return ReadmissionRiskEngine(high_threshold=70, medium_threshold=30)


SAMPLE_TEXTS = [
    "",
    "   ",
    "Patient discharged home in good condition.",
    "Error extracting text: cannot identify image file",
    "Unsupported file type: txt",
    "CHRONIC COPD with PNEUMONIA and SEPSIS",
    "hypertension elderly medication follow-up discharge treatment therapy recovery monitoring",
    " ".join(term for term, _ in HIGH_RISK_KEYWORDS + MEDIUM_RISK_KEYWORDS),
    "heart disease, renal failure, previous admission, multiple admissions",
]


class TestKeywordTables:
    """Tests for the keyword tables themselves."""

    def test_table_sizes_and_weights(self):
        assert len(HIGH_RISK_KEYWORDS) == 10
        assert len(MEDIUM_RISK_KEYWORDS) == 9
        assert all(weight == 15 for _, weight in HIGH_RISK_KEYWORDS)
        assert all(weight == 5 for _, weight in MEDIUM_RISK_KEYWORDS)

    def test_tables_are_disjoint(self):
        high = {term for term, _ in HIGH_RISK_KEYWORDS}
        medium = {term for term, _ in MEDIUM_RISK_KEYWORDS}
        assert not high & medium


class TestScoring:
    """Tests for the risk score."""

    def test_empty_text_scores_zero(self, engine):
        """Empty input yields a zero, low-risk assessment with the fallback finding."""
        assessment = engine.assess("")

        assert assessment.risk_score == 0
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.explanation == LOW_RISK_EXPLANATION
        assert assessment.findings == (FALLBACK_FINDING,)
        assert len(assessment.recommendations) == 3

    def test_mixed_keywords_scenario(self, engine):
        """diabetes, chronic and sepsis are high-risk; hypertension is medium."""
        assessment = engine.assess("Diabetes, hypertension, chronic kidney disease, sepsis")

        assert assessment.high_risk_matches == ("chronic", "diabetes", "sepsis")
        assert assessment.medium_risk_matches == ("hypertension",)
        assert assessment.risk_score == 3 * 15 + 5
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert Finding("Diabetes", "Present", FindingStatus.MONITOR) in assessment.findings
        assert Finding("Hypertension", "Present", FindingStatus.MONITOR) in assessment.findings

    def test_matching_is_case_insensitive(self, engine):
        assert engine.assess("COPD").risk_score == 15
        assert engine.assess("Follow-Up").risk_score == 5

    def test_matching_is_substring_containment(self, engine):
        """Keywords match inside longer words."""
        assessment = engine.assess("Chronically ill; pneumonias noted")
        assert assessment.high_risk_matches == ("chronic", "pneumonia")
        assert assessment.risk_score == 30

    def test_repeated_keyword_counts_once(self, engine):
        assert engine.assess("sepsis sepsis SEPSIS").risk_score == 15

    def test_score_is_clamped_to_100(self, engine):
        """All keywords together would total 195 but the score stops at 100."""
        text = " ".join(term for term, _ in HIGH_RISK_KEYWORDS + MEDIUM_RISK_KEYWORDS)
        assessment = engine.assess(text)

        assert len(assessment.high_risk_matches) == 10
        assert len(assessment.medium_risk_matches) == 9
        assert assessment.risk_score == 100
        assert assessment.risk_level == RiskLevel.HIGH

    def test_error_text_is_scored_without_failing(self, engine):
        assessment = engine.assess("Error extracting text: cannot identify image file")
        assert assessment.risk_score == 0
        assert assessment.risk_level == RiskLevel.LOW

    def test_none_is_treated_as_empty(self, engine):
        assert engine.assess(None).risk_score == 0


class TestRiskBands:
    """Tests for threshold mapping (boundaries belong to the higher band)."""

    @pytest.mark.parametrize("score,level", [
        (0, RiskLevel.LOW),
        (29, RiskLevel.LOW),
        (30, RiskLevel.MEDIUM),
        (69, RiskLevel.MEDIUM),
        (70, RiskLevel.HIGH),
        (100, RiskLevel.HIGH),
    ])
    def test_classify(self, engine, score, level):
        assert engine.classify(score) == level

    def test_thirty_points_is_medium(self, engine):
        assessment = engine.assess("chronic sepsis")
        assert assessment.risk_score == 30
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert assessment.explanation == MEDIUM_RISK_EXPLANATION

    def test_seventy_points_is_high(self, engine):
        assessment = engine.assess("readmitted chronic copd sepsis hypertension elderly")
        assert assessment.risk_score == 70
        assert assessment.risk_level == RiskLevel.HIGH

    def test_sixty_five_points_is_medium(self, engine):
        assessment = engine.assess("readmitted chronic copd sepsis hypertension")
        assert assessment.risk_score == 65
        assert assessment.risk_level == RiskLevel.MEDIUM

    def test_inverted_thresholds_are_rejected(self):
        with pytest.raises(ValueError):
            ReadmissionRiskEngine(high_threshold=20, medium_threshold=50)


class TestExplanation:
    """Tests for level-specific explanations."""

    def test_high_risk_cites_first_three_keywords_in_table_order(self, engine):
        text = "Sepsis. Heart failure. Diabetes. Chronic COPD. Previously readmitted."
        assessment = engine.assess(text)

        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.explanation == (
            "Patient shows multiple high-risk factors including "
            "readmitted, chronic, diabetes. Close monitoring and follow-up recommended."
        )

    def test_high_risk_cites_fewer_than_three_when_fewer_matched(self, engine):
        """A high score built mostly from medium keywords cites only the high-risk terms found."""
        text = (
            "copd hypertension elderly medication follow-up discharge "
            "treatment therapy recovery monitoring"
        )
        assessment = engine.assess(text)

        assert assessment.risk_score == 60
        assert assessment.risk_level == RiskLevel.MEDIUM

        text = "readmitted " + text
        assessment = engine.assess(text)
        assert assessment.risk_score == 75
        assert "including readmitted, copd." in assessment.explanation


class TestFindings:
    """Tests for clinical finding probes."""

    def test_fallback_when_no_probe_fires(self, engine):
        assessment = engine.assess("renal failure, chronic pain")
        assert assessment.findings == (
            Finding("General Health", "Needs Assessment", FindingStatus.REVIEW),
        )

    def test_heart_condition_requires_failure_or_disease(self, engine):
        heart_condition = Finding("Heart Condition", "Present", FindingStatus.HIGH_RISK)

        assert heart_condition in engine.assess("congestive heart failure").findings
        assert heart_condition in engine.assess("heart disease").findings
        # The probe is independent of keyword order or adjacency
        assert heart_condition in engine.assess("disease of the heart").findings
        assert heart_condition not in engine.assess("heart rate normal").findings
        assert heart_condition not in engine.assess("renal failure").findings

    def test_medication_adherence_finding(self, engine):
        assessment = engine.assess("Medication list reviewed")
        assert assessment.findings == (
            Finding("Medication Adherence", "Needs Review", FindingStatus.MONITOR),
        )

    def test_findings_are_in_probe_order(self, engine):
        assessment = engine.assess("medication for heart disease, hypertension and diabetes")
        assert [f.type for f in assessment.findings] == [
            "Diabetes", "Hypertension", "Heart Condition", "Medication Adherence",
        ]


class TestRecommendations:
    """Tests for level-based recommendations."""

    def test_high_risk_recommendations(self, engine):
        assessment = engine.assess("readmitted chronic diabetes copd pneumonia")
        assert assessment.recommendations == RECOMMENDATIONS[RiskLevel.HIGH]
        assert assessment.recommendations[0] == "Schedule follow-up appointment within 7 days"

    def test_medium_risk_recommendations(self, engine):
        assessment = engine.assess("chronic sepsis")
        assert len(assessment.recommendations) == 4
        assert assessment.recommendations[0] == "Schedule follow-up appointment within 14 days"

    def test_low_risk_recommendations(self, engine):
        assessment = engine.assess("routine visit")
        assert assessment.recommendations == (
            "Schedule routine follow-up appointment",
            "Provide educational materials on maintaining health",
            "Ensure patient has clear discharge instructions",
        )


class TestAssessmentProperties:
    """Invariants that hold for every input."""

    @pytest.mark.parametrize("text", SAMPLE_TEXTS)
    def test_invariants(self, engine, text):
        assessment = engine.assess(text)

        assert isinstance(assessment.risk_score, int)
        assert 0 <= assessment.risk_score <= 100
        assert assessment.risk_level == engine.classify(assessment.risk_score)
        assert assessment.findings
        expected_count = {RiskLevel.HIGH: 4, RiskLevel.MEDIUM: 4, RiskLevel.LOW: 3}
        assert len(assessment.recommendations) == expected_count[assessment.risk_level]

    @pytest.mark.parametrize("text", SAMPLE_TEXTS)
    def test_assess_is_idempotent(self, engine, text):
        assert engine.assess(text) == engine.assess(text)


class TestEngineOptions:
    """Tests for injected keyword tables and helper methods."""

    def test_custom_keyword_tables(self):
        engine = ReadmissionRiskEngine(
            high_risk_keywords=(("stroke", 40),),
            medium_risk_keywords=(),
            high_threshold=70,
            medium_threshold=30,
        )
        assessment = engine.assess("History of stroke and diabetes")

        assert assessment.risk_score == 40
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert assessment.high_risk_matches == ("stroke",)

    def test_failed_extraction_assessment(self, engine):
        assessment = engine.assess_failed_extraction()

        assert assessment.risk_score == 0
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.explanation == EXTRACTION_FAILED_EXPLANATION
        assert assessment.findings == (FALLBACK_FINDING,)
        assert len(assessment.recommendations) == 3

    def test_matched_keywords(self, engine):
        matches = engine.matched_keywords("Elderly COPD patient, readmitted")
        assert matches == {"high": ["readmitted", "copd"], "medium": ["elderly"]}

    def test_to_dict(self, engine):
        data = engine.assess("heart failure").to_dict()

        assert data["risk_score"] == 15
        assert data["risk_level"] == "low"
        assert data["findings"] == [
            {"type": "Heart Condition", "value": "Present", "status": "High Risk"},
        ]
        assert data["high_risk_matches"] == ["heart failure"]

    def test_module_helpers_share_engine(self):
        assert get_engine() is get_engine()
        assert assess_text("copd").risk_score == 15
