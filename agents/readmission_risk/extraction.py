"""
Readmission Risk Agent - Document Text Extraction

This module converts uploaded clinical documents into plain text so the risk
engine can read them, whatever format the hospital system exported.

================================================================================
EXTRACTION CONTRACT: ALWAYS RETURN TEXT, NEVER RAISE
================================================================================

Every extractor honours the same contract:

    ┌──────────────┐      ┌──────────────────┐      ┌────────────────────────┐
    │  SourceFile  │ ───► │    Dispatcher    │ ───► │  Extractor for kind    │
    │ name + bytes │      │ (format lookup)  │      │  IMAGE / PDF / WORD    │
    └──────────────┘      └──────────────────┘      └───────────┬────────────┘
                                   │                            │
                      UNSUPPORTED  │                            │ any exception
                                   ▼                            ▼
                    "Unsupported file type: txt"   "Error extracting text: ..."
                    extraction_failed = True       extraction_failed = True
                                                   error_detail = "..."

- Failures are converted to values at the extractor boundary; nothing above
  the dispatcher ever sees an exception from a parser or the OCR engine.
- The error text is kept in `text` for callers that only read text, and the
  structured `extraction_failed` flag is set so nobody has to sniff prefixes.
- Image and PDF handles are opened in `with` blocks and released on every
  exit path, including failures.

SUPPORTED FORMATS:
──────────────────
    IMAGE     jpg, jpeg, png    Tesseract OCR (pytesseract + Pillow)
    PDF       pdf               pdfplumber word layer, page by page
    WORD_DOC  doc, docx         python-docx body paragraphs and tables

================================================================================
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional

import docx
import pdfplumber
import pytesseract
from docx.table import Table
from PIL import Image

from .config import Settings, settings
from .formats import DocumentKind, detect_format, file_suffix, type_label

# Configure module logger
logger = logging.getLogger(__name__)

ERROR_TEXT_PREFIX = "Error extracting text: "
UNSUPPORTED_TEXT_PREFIX = "Unsupported file type: "


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class SourceFile:
    """
    An uploaded document as received from the caller.

    Attributes:
        name: Original filename, used only for format detection and logging
        content: Raw file bytes
        declared_size: Size reported by the uploader (defaults to len(content))
    """
    name: str
    content: bytes
    declared_size: Optional[int] = None

    def __post_init__(self):
        if self.declared_size is None:
            object.__setattr__(self, "declared_size", len(self.content))

    @property
    def kind(self) -> DocumentKind:
        return detect_format(self.name)

    @property
    def suffix(self) -> str:
        return file_suffix(self.name)


@dataclass(frozen=True)
class ExtractedText:
    """
    Uniform result of extracting text from one document.

    Attributes:
        text: Extracted text, or the error/unsupported message on failure
        source_kind: Document kind the file was classified as
        extraction_failed: True when `text` is not real document text
        error_detail: Underlying error message when extraction failed
    """
    text: str
    source_kind: DocumentKind
    extraction_failed: bool = False
    error_detail: Optional[str] = None

    @classmethod
    def failure(cls, kind: DocumentKind, detail: str) -> "ExtractedText":
        return cls(
            text=f"{ERROR_TEXT_PREFIX}{detail}",
            source_kind=kind,
            extraction_failed=True,
            error_detail=detail,
        )

    @classmethod
    def unsupported(cls, suffix: str) -> "ExtractedText":
        message = f"{UNSUPPORTED_TEXT_PREFIX}{suffix}"
        return cls(
            text=message,
            source_kind=DocumentKind.UNSUPPORTED,
            extraction_failed=True,
            error_detail=message,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "text": self.text,
            "source_kind": self.source_kind.value,
            "extraction_failed": self.extraction_failed,
            "error_detail": self.error_detail,
        }


# =============================================================================
# EXTRACTORS
# =============================================================================

class BaseExtractor(ABC):
    """
    Base class for format-specific extractors.

    Subclasses implement `_extract_text` and are free to raise; `extract`
    converts any exception into a failed ExtractedText.
    """

    kind: DocumentKind

    def extract(self, content: bytes, filename: str = "") -> ExtractedText:
        """
        Extract text from file content.

        Args:
            content: Raw file bytes
            filename: Original filename (for logging only)

        Returns:
            ExtractedText; never raises
        """
        try:
            text = self._extract_text(content)
        except Exception as e:
            detail = str(e) or e.__class__.__name__
            logger.error(
                f"Error extracting text from {self.kind.value} document: {detail}",
                exc_info=True,
                extra={"document_name": filename, "error_type": e.__class__.__name__},
            )
            return ExtractedText.failure(self.kind, detail)

        logger.info(
            f"Extracted {len(text)} characters from {self.kind.value} document",
            extra={"document_name": filename},
        )
        return ExtractedText(text=text, source_kind=self.kind)

    @abstractmethod
    def _extract_text(self, content: bytes) -> str:
        pass


class ImageExtractor(BaseExtractor):
    """
    Image text extractor using Tesseract OCR.

    The decoded image lives only inside the `with` block of a single call,
    and each call runs its own tesseract process.
    """

    kind = DocumentKind.IMAGE

    def __init__(
        self,
        language: str = "eng",
        tesseract_cmd: Optional[str] = None,
        timeout: int = 0,
    ):
        self.language = language
        self.timeout = timeout
        # pytesseract only reads the binary path from this module attribute,
        # so it is set once here rather than on every call
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def _extract_text(self, content: bytes) -> str:
        with Image.open(io.BytesIO(content)) as image:
            image.load()
            return pytesseract.image_to_string(
                image,
                lang=self.language,
                timeout=self.timeout,
            )


class PdfExtractor(BaseExtractor):
    """
    PDF text extractor using pdfplumber.

    Words on a page are joined with single spaces in layout order and
    pages are joined with newlines in page order.
    """

    kind = DocumentKind.PDF

    def _extract_text(self, content: bytes) -> str:
        pages_text = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                words = page.extract_words()
                pages_text.append(" ".join(word["text"] for word in words))
        return "\n".join(pages_text)


class WordDocExtractor(BaseExtractor):
    """
    Word document extractor using python-docx.

    Body paragraphs and table cells are read in document order, one line per
    paragraph. Headers and footers are not part of the body and are skipped.
    """

    kind = DocumentKind.WORD_DOC

    def _extract_text(self, content: bytes) -> str:
        # Legacy binary .doc files are not zip packages and fail here
        document = docx.Document(io.BytesIO(content))
        return "\n".join(self._block_texts(document))

    def _block_texts(self, container) -> Iterator[str]:
        for block in container.iter_inner_content():
            if isinstance(block, Table):
                yield from self._table_texts(block)
            else:
                yield block.text

    def _table_texts(self, table: Table) -> Iterator[str]:
        # A merged cell is returned once per grid position it spans
        seen = set()
        for row in table.rows:
            for cell in row.cells:
                if cell._tc in seen:
                    continue
                seen.add(cell._tc)
                yield from self._block_texts(cell)


def tesseract_version() -> str:
    """Return the installed Tesseract version; raises if the binary is missing."""
    return str(pytesseract.get_tesseract_version())


def default_extractors(config: Settings = settings) -> Dict[DocumentKind, BaseExtractor]:
    """Build one extractor per supported document kind from settings."""
    return {
        DocumentKind.IMAGE: ImageExtractor(
            language=config.ocr_language,
            tesseract_cmd=config.tesseract_cmd,
            timeout=config.ocr_timeout_seconds,
        ),
        DocumentKind.PDF: PdfExtractor(),
        DocumentKind.WORD_DOC: WordDocExtractor(),
    }


# =============================================================================
# DISPATCHER
# =============================================================================

class ExtractionDispatcher:
    """
    Routes a SourceFile to the extractor registered for its document kind.

    Usage:
        dispatcher = ExtractionDispatcher()
        extracted = dispatcher.dispatch(SourceFile("summary.pdf", pdf_bytes))
        if extracted.extraction_failed:
            log_degraded_record(extracted.error_detail)
    """

    def __init__(self, extractors: Optional[Mapping[DocumentKind, BaseExtractor]] = None):
        self.extractors: Dict[DocumentKind, BaseExtractor] = (
            dict(extractors) if extractors is not None else default_extractors()
        )

        # Every readable kind must have exactly one extractor
        missing = [
            kind.value for kind in DocumentKind
            if kind is not DocumentKind.UNSUPPORTED and kind not in self.extractors
        ]
        if missing:
            raise ValueError(f"No extractor registered for document kinds: {', '.join(missing)}")
        if DocumentKind.UNSUPPORTED in self.extractors:
            raise ValueError("UNSUPPORTED documents cannot have an extractor")

    def dispatch(self, source: SourceFile) -> ExtractedText:
        """
        Extract text from one file.

        The selected extractor runs exactly once; there are no retries.

        Args:
            source: The uploaded file

        Returns:
            ExtractedText, with extraction_failed set for unsupported or
            unreadable files
        """
        kind = source.kind

        if kind is DocumentKind.UNSUPPORTED:
            label = type_label(source.name)
            logger.warning(
                f"Unsupported file type: {label or '<none>'}",
                extra={"document_name": source.name},
            )
            return ExtractedText.unsupported(label)

        return self.extractors[kind].extract(source.content, source.name)


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

_dispatcher_instance: Optional[ExtractionDispatcher] = None


def get_dispatcher() -> ExtractionDispatcher:
    """Get or create the singleton ExtractionDispatcher instance."""
    global _dispatcher_instance
    if _dispatcher_instance is None:
        _dispatcher_instance = ExtractionDispatcher()
    return _dispatcher_instance


def extract_text(filename: str, content: bytes) -> ExtractedText:
    """Convenience function: dispatch raw bytes with the shared dispatcher."""
    return get_dispatcher().dispatch(SourceFile(name=filename, content=content))
