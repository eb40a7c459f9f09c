"""
Layered text acquisition for PDF business documents.

Stage 1 pulls the embedded text layer with PyMuPDF locally.
When that yields nothing, or the PDF cannot be parsed, exactly one OCR
strategy runs:

- tesseract: rasterize every page and run offline Tesseract OCR
- vision:    rasterize every page and transcribe each image with Gemini
- document:  send the whole PDF to Gemini for transcription

Page images live in a per-call temporary directory that is removed before
returning, on success and failure alike.
"""

import logging
import os
import re
import tempfile
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

import fitz  # PyMuPDF
import pytesseract
from PIL import Image

from docsort.config import OCR_METHODS, Settings
from docsort.models.extraction import AcquisitionResult, TextStats
from docsort.services.file_validator import validate_pdf_path
from docsort.services.gemini_client import PDF_MIME_TYPE, PNG_MIME_TYPE, TextModel

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"
DEFAULT_FILENAME = "uploaded-file.pdf"

TRANSCRIBE_IMAGE_PROMPT = (
    "Extract all text from this image. Return only the text content, maintaining "
    "the original formatting and structure as much as possible. Do not add any "
    "commentary or explanations."
)
TRANSCRIBE_DOCUMENT_PROMPT = (
    "Extract all text from this PDF document. Return only the text content, "
    "maintaining the original formatting and structure as much as possible. Do not "
    "add any commentary, explanations, or analysis - just the extracted text."
)


class OCRUnavailableError(Exception):
    """An OCR strategy cannot run in this environment."""


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def get_text_stats(text: Optional[str]) -> TextStats:
    """Count characters, words, sentences and paragraphs in a text."""
    if not text or not isinstance(text, str):
        return TextStats()

    words = [w for w in re.split(r"\s+", text) if w]
    sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
    paragraphs = [p for p in re.split(r"\n\s*\n", text) if p.strip()]

    return TextStats(
        characters=len(text),
        characters_no_spaces=len(re.sub(r"\s", "", text)),
        words=len(words),
        sentences=len(sentences),
        paragraphs=len(paragraphs),
        average_words_per_sentence=round(len(words) / len(sentences)) if sentences else 0,
    )


def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace into single spaces."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def _join_pages(page_texts: List[str]) -> str:
    return PAGE_SEPARATOR.join(t for t in page_texts if t)


# ---------------------------------------------------------------------------
# Stage 1: direct text extraction
# ---------------------------------------------------------------------------

def extract_direct_text(pdf_bytes: bytes) -> Tuple[str, int]:
    """
    Read the embedded text layer of a PDF.

    Returns:
        Tuple of (text, page_count). Text is empty for scanned documents.

    Raises:
        Exception: Whatever PyMuPDF raises for unreadable input
    """
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        page_texts = [page.get_text().strip() for page in doc]
        return _join_pages(page_texts), doc.page_count


@contextmanager
def rasterized_pages(pdf_bytes: bytes, dpi: int = 200) -> Iterator[List[str]]:
    """
    Render every page to a PNG inside a fresh temporary directory.

    The directory name is unique per call, so concurrent acquisitions never
    share files. It is deleted when the context exits.

    Yields:
        Paths of page images in page order
    """
    with tempfile.TemporaryDirectory(prefix="docsort-ocr-") as temp_dir:
        image_paths: List[str] = []
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            for page_number, page in enumerate(doc, start=1):
                image_path = os.path.join(temp_dir, f"page-{page_number:04d}.png")
                page.get_pixmap(dpi=dpi).save(image_path)
                image_paths.append(image_path)
        logger.debug("Rasterized %d page(s) into %s", len(image_paths), temp_dir)
        yield image_paths


# ---------------------------------------------------------------------------
# Stage 2: OCR strategies
# ---------------------------------------------------------------------------

class PageOCRStrategy:
    """Base for strategies that rasterize pages and recognize them one by one."""

    name = ""
    extraction_method = ""

    def __init__(self, dpi: int = 200):
        self.dpi = dpi

    def check_available(self) -> None:
        """Raise OCRUnavailableError if this strategy cannot run."""

    def recognize_page(self, image_path: str) -> str:
        raise NotImplementedError

    def recognize(self, pdf_bytes: bytes) -> Tuple[str, int]:
        """
        OCR every page; pages that fail or come back empty are skipped.

        Returns:
            Tuple of (text, page_count)
        """
        self.check_available()

        with rasterized_pages(pdf_bytes, self.dpi) as image_paths:
            total = len(image_paths)
            page_texts: List[str] = []

            for page_number, image_path in enumerate(image_paths, start=1):
                try:
                    text = self.recognize_page(image_path).strip()
                except Exception as e:
                    logger.warning(
                        "%s OCR failed on page %d/%d: %s", self.name, page_number, total, e
                    )
                    continue

                if text:
                    page_texts.append(text)
                    logger.debug("Extracted %d characters from page %d", len(text), page_number)
                else:
                    logger.info("No text found on page %d/%d", page_number, total)

            return _join_pages(page_texts), total


class TesseractOCR(PageOCRStrategy):
    """Offline OCR with the Tesseract engine."""

    name = "tesseract"
    extraction_method = "tesseract-ocr"

    def __init__(self, lang: str = "eng", dpi: int = 200):
        super().__init__(dpi=dpi)
        self.lang = lang

    def check_available(self) -> None:
        try:
            pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            raise OCRUnavailableError(
                f"Tesseract OCR not available. Please install the tesseract binary ({e})"
            ) from e

    def recognize_page(self, image_path: str) -> str:
        with Image.open(image_path) as image:
            return pytesseract.image_to_string(image, lang=self.lang)


class VisionOCR(PageOCRStrategy):
    """Transcribe page images with a vision-capable model."""

    name = "vision"
    extraction_method = "vision-ocr"

    def __init__(self, model: Optional[TextModel], dpi: int = 200):
        super().__init__(dpi=dpi)
        self.model = model

    def check_available(self) -> None:
        if self.model is None:
            raise OCRUnavailableError("Vision OCR requires a configured Gemini model")

    def recognize_page(self, image_path: str) -> str:
        with open(image_path, "rb") as f:
            image_bytes = f.read()
        return self.model.generate_text(
            TRANSCRIBE_IMAGE_PROMPT,
            attachment=image_bytes,
            mime_type=PNG_MIME_TYPE,
        )


class DocumentOCR:
    """Transcribe the whole PDF in one call to a document-capable model."""

    name = "document"
    extraction_method = "document-ocr"

    def __init__(self, model: Optional[TextModel]):
        self.model = model

    def recognize(self, pdf_bytes: bytes) -> Tuple[str, int]:
        if self.model is None:
            raise OCRUnavailableError("Document OCR requires a configured Gemini model")

        text = self.model.generate_text(
            TRANSCRIBE_DOCUMENT_PROMPT,
            attachment=pdf_bytes,
            mime_type=PDF_MIME_TYPE,
        )
        return text.strip(), _count_pages(pdf_bytes)


def _count_pages(pdf_bytes: bytes) -> int:
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            return doc.page_count
    except Exception as e:
        logger.debug("Could not count pages: %s", e)
        return 0


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------

class TextAcquisitionChain:
    """Direct extraction with a single, caller-selected OCR fallback."""

    def __init__(
        self,
        model: Optional[TextModel] = None,
        tesseract_lang: str = "eng",
        dpi: int = 200,
        strategies: Optional[Dict[str, object]] = None,
    ):
        self.strategies = strategies or {
            "tesseract": TesseractOCR(lang=tesseract_lang, dpi=dpi),
            "vision": VisionOCR(model, dpi=dpi),
            "document": DocumentOCR(model),
        }

    @classmethod
    def from_settings(cls, settings: Settings, model: Optional[TextModel] = None) -> "TextAcquisitionChain":
        return cls(model=model, tesseract_lang=settings.tesseract_lang, dpi=settings.ocr_dpi)

    def _get_strategy(self, method: str):
        try:
            return self.strategies[method]
        except KeyError:
            raise ValueError(
                f"Unknown OCR method: {method!r}. Expected one of {', '.join(OCR_METHODS)}"
            ) from None

    def acquire_text(
        self,
        pdf_bytes: bytes,
        method: str = "tesseract",
        filename: str = DEFAULT_FILENAME,
    ) -> AcquisitionResult:
        """
        Get text out of a PDF, falling back to OCR when there is no text layer.

        Args:
            pdf_bytes: Raw PDF content
            method: OCR strategy used if direct extraction yields nothing
            filename: Display name for logs and the result

        Returns:
            AcquisitionResult; success is False only when no method produced text

        Raises:
            ValueError: If method is not a known OCR strategy
        """
        strategy = self._get_strategy(method)
        file_size = len(pdf_bytes)

        try:
            text, page_count = extract_direct_text(pdf_bytes)
        except Exception as e:
            direct_error = str(e) or type(e).__name__
            logger.warning(
                "Direct text extraction failed for %s (%s), attempting %s OCR",
                filename, direct_error, method,
            )
        else:
            if text.strip():
                logger.info("Extracted %d characters directly from %s", len(text), filename)
                return AcquisitionResult(
                    success=True,
                    text=text,
                    extraction_method="direct",
                    page_count=page_count,
                    file_name=filename,
                    file_size=file_size,
                    stats=get_text_stats(text),
                )
            direct_error = "no extractable text found"
            logger.info("No extractable text in %s, attempting %s OCR", filename, method)

        try:
            ocr_text, ocr_pages = strategy.recognize(pdf_bytes)
        except Exception as e:
            error = (
                "Both text extraction and OCR failed. "
                f"Text extraction: {direct_error}, OCR: {e}"
            )
            logger.error("Text acquisition failed for %s: %s", filename, error)
            return AcquisitionResult(
                success=False,
                extraction_method=f"{strategy.extraction_method}-failed",
                file_name=filename,
                file_size=file_size,
                error=error,
            )

        if not ocr_text.strip():
            logger.warning("%s OCR produced no text for %s", method, filename)
            return AcquisitionResult(
                success=False,
                extraction_method=strategy.extraction_method,
                page_count=ocr_pages,
                file_name=filename,
                file_size=file_size,
                error="OCR produced no text",
            )

        logger.info(
            "%s OCR extracted %d characters from %s", method, len(ocr_text), filename
        )
        return AcquisitionResult(
            success=True,
            text=ocr_text,
            extraction_method=strategy.extraction_method,
            page_count=ocr_pages,
            file_name=filename,
            file_size=file_size,
            stats=get_text_stats(ocr_text),
        )

    def acquire_file(self, file_path: str, method: str = "tesseract") -> AcquisitionResult:
        """Validate and read a PDF from disk, then run acquire_text on it."""
        validation_error = validate_pdf_path(file_path)
        if validation_error:
            return AcquisitionResult(
                success=False,
                file_name=os.path.basename(file_path),
                error=validation_error,
            )

        with open(file_path, "rb") as f:
            pdf_bytes = f.read()

        return self.acquire_text(pdf_bytes, method=method, filename=os.path.basename(file_path))
