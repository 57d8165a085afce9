"""
Shared fixtures for the Readmission Risk Agent tests.

Documents are built in memory with the same libraries the extractors use,
so the Word tests exercise python-docx end to end without fixture files.
"""

import io

import docx
import pytest
from PIL import Image


DISCHARGE_SUMMARY = [
    "Discharge Summary",
    "Elderly patient with chronic heart failure and type 2 diabetes.",
    "Readmitted twice in the last six months.",
    "Continue medication as prescribed and attend follow-up in 7 days.",
]


def build_docx(paragraphs, header_text=None) -> bytes:
    """Build a .docx file in memory."""
    document = docx.Document()
    if header_text:
        document.sections[0].header.paragraphs[0].text = header_text
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def discharge_docx() -> bytes:
    """A Word discharge summary with several risk keywords."""
    return build_docx(DISCHARGE_SUMMARY, header_text="St. Mary Hospital - CONFIDENTIAL sepsis ward")


@pytest.fixture
def png_bytes() -> bytes:
    """A small valid PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 32), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def docx_factory():
    """Factory building .docx bytes from a list of paragraphs."""
    return build_docx
