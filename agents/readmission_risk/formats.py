"""
Readmission Risk Agent - Format Detection

Maps an uploaded filename onto the closed set of document kinds the intake
pipeline knows how to read. Classification always succeeds: a name the agent
cannot read is classified as UNSUPPORTED rather than rejected here.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict


class DocumentKind(str, Enum):
    """Document kinds understood by the extraction layer."""
    IMAGE = "image"
    PDF = "pdf"
    WORD_DOC = "word_doc"
    UNSUPPORTED = "unsupported"


# Lowercase suffix -> document kind
SUFFIX_KINDS: Dict[str, DocumentKind] = {
    "jpg": DocumentKind.IMAGE,
    "jpeg": DocumentKind.IMAGE,
    "png": DocumentKind.IMAGE,
    "pdf": DocumentKind.PDF,
    "doc": DocumentKind.WORD_DOC,
    "docx": DocumentKind.WORD_DOC,
}

SUPPORTED_SUFFIXES = tuple(SUFFIX_KINDS)


def file_suffix(filename: str) -> str:
    """Return the lowercase text after the last '.', or '' when there is none."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def type_label(filename: str) -> str:
    """
    Lowercase label naming a file's type in user-facing messages.

    Same as file_suffix when the name has a dot; a name without one is its
    own label ("README" -> "readme"). Used for display only, never detection.
    """
    return (filename or "").rsplit(".", 1)[-1].lower()


def detect_format(filename: str) -> DocumentKind:
    """
    Classify a filename by its suffix.

    Args:
        filename: Original upload name, e.g. "discharge_summary.PDF"

    Returns:
        The matching DocumentKind, or DocumentKind.UNSUPPORTED
    """
    return SUFFIX_KINDS.get(file_suffix(filename), DocumentKind.UNSUPPORTED)
