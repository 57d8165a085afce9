"""
Readmission Risk Agent - Configuration Module

This module centralizes all environment-based configuration for the document
intake and readmission risk microservice. It follows the 12-factor app
methodology by externalizing configuration through environment variables.

================================================================================
AGENT PURPOSE & CLINICAL CONTEXT
================================================================================

The Readmission Risk Agent turns an uploaded clinical document into a
readmission risk assessment:

1. DOCUMENT INTAKE:
   - Discharge summaries arrive as scans (JPG/PNG), PDFs or Word documents
   - Each format is converted to plain text by a dedicated extractor
   - Extraction failures are reported as values, never as crashes

2. RISK SCORING:
   - A deterministic keyword rule engine scores the text from 0 to 100
   - Every point of the score can be traced back to a matched keyword
   - No external ML/NLP service is involved

3. CLINICAL WORKFLOW INTEGRATION:
   - Case managers review the score, findings and recommendations
   - Storage and persistence belong to the calling application
   - The agent provides decision support, NOT autonomous decisions

================================================================================
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Configuration is organized into logical sections that map to
    the intake, scoring and serving stages of the agent.
    """

    # ==========================================================================
    # SERVICE IDENTIFICATION
    # ==========================================================================
    service_name: str = Field(
        default="readmission-risk-agent",
        description="Unique identifier for this microservice"
    )
    service_version: str = Field(
        default="1.0.0",
        description="Semantic version of this agent"
    )
    environment: str = Field(
        default="development",
        description="Runtime environment (development, staging, production)"
    )

    # ==========================================================================
    # OCR CONFIGURATION
    # ==========================================================================
    # Tesseract is invoked once per image; nothing is pooled between calls
    ocr_language: str = Field(
        default="eng",
        description="Tesseract language pack used for image documents"
    )
    tesseract_cmd: Optional[str] = Field(
        default=None,
        description="Path to the tesseract binary (defaults to PATH lookup)"
    )
    ocr_timeout_seconds: int = Field(
        default=0,
        ge=0,
        le=600,
        description="Tesseract timeout in seconds (0 disables the timeout)"
    )

    # ==========================================================================
    # UPLOAD LIMITS
    # ==========================================================================
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Largest accepted upload in bytes (10 MB)"
    )
    max_batch_files: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum number of files accepted by one batch request"
    )

    # ==========================================================================
    # RISK ENGINE CONFIGURATION
    # ==========================================================================
    # Score bands: score >= high -> high, score >= medium -> medium, else low
    high_risk_threshold: int = Field(
        default=70,
        ge=1,
        le=100,
        description="Score at or above which readmission risk is 'high'"
    )
    medium_risk_threshold: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Score at or above which readmission risk is 'medium'"
    )
    score_failed_extractions: bool = Field(
        default=True,
        description=(
            "Score the error text of a failed extraction like any other text. "
            "When disabled, failed extractions get a fixed low assessment."
        )
    )

    # ==========================================================================
    # API CONFIGURATION
    # ==========================================================================
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8005,
        description="API server port"
    )
    api_workers: int = Field(
        default=1,
        description="Number of Uvicorn workers"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # ==========================================================================
    # LOGGING CONFIGURATION
    # ==========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    Returns a cached Settings instance.

    Using lru_cache ensures we only parse environment variables once,
    improving performance and consistency across the application.

    Returns:
        Settings: Application configuration object
    """
    return Settings()


# ==========================================================================
# CONVENIENCE EXPORTS
# ==========================================================================
settings = get_settings()
