"""Business document classifier.

Asks a language model to place a document into one of the nine taxonomy
categories and to name the requester, then turns the model's free-text
reply into a validated ClassificationResult.

Two input modes:

1. Text mode: extracted text (first 2000 chars) is embedded in the prompt
2. Document mode: the raw PDF is attached and the model reads it directly

The reply is never trusted to be well formed. It is scanned line by line
for three labelled values; anything missing falls back to defaults, and a
category outside the taxonomy is replaced by the fallback category with a
confidence penalty.
"""

import logging
import os
import re
from typing import Iterable, Optional, Union

from docsort.models.category import (
    CATEGORIES,
    FALLBACK_CATEGORY_CODE,
    is_valid_category,
)
from docsort.models.classification import (
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    NO_REQUESTER,
    ClassificationResult,
    ClassificationStats,
    ParsedClassification,
)
from docsort.services.file_validator import looks_like_pdf
from docsort.services.gemini_client import PDF_MIME_TYPE, TextModel

logger = logging.getLogger(__name__)

TEXT_SAMPLE_LIMIT = 2000
UNKNOWN_CATEGORY_CONFIDENCE_CAP = 0.3
TEXT_MODE_TEMPERATURE = 0.1

SYSTEM_INSTRUCTION = (
    "You are an expert document classifier for Indonesian business documents. "
    "Analyze the provided document and classify it into one of the predefined "
    "categories. Respond only with the category code, requester and confidence "
    "in the exact format requested."
)


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------

def _taxonomy_lines() -> str:
    return "\n".join(
        f"{index}. {category.code} - {category.label} ({category.description})"
        for index, category in enumerate(CATEGORIES, start=1)
    )


def build_classification_prompt(filename: str = "", text: Optional[str] = None) -> str:
    """Build the classification prompt.

    Args:
        filename: Original filename, shown to the model as a hint
        text: Extracted document text; omitted in document mode

    Returns:
        Prompt string. Text longer than 2000 characters is truncated and
        marked with '...'.
    """
    prompt = f"""Classify this Indonesian business document into one of the following categories and extract the requester's name if available.

AVAILABLE CATEGORIES:
{_taxonomy_lines()}

FILE NAME: {filename}

INSTRUCTIONS:
- Analyze the document content carefully (both text and visual layout)
- Choose the category that best matches the document content
- Extract the requester's name from the document (look for fields such as "Nama", "Pemohon", "Requester", "Diajukan oleh", "Nama Karyawan")
- Give a confidence level between 0.1 and 1.0
- If unsure, or the document does not fit any category, choose {FALLBACK_CATEGORY_CODE}
- If no requester name is found, write "N/A"

RESPOND IN THIS FORMAT:
CATEGORY: [CATEGORY_CODE]
REQUESTER: [REQUESTER_NAME or N/A]
CONFIDENCE: [0.1-1.0]

Example:
CATEGORY: COF
REQUESTER: John Doe
CONFIDENCE: 0.85

Or when no name is found:
CATEGORY: SRF
REQUESTER: N/A
CONFIDENCE: 0.92"""

    if text and text.strip():
        sample = text[:TEXT_SAMPLE_LIMIT]
        marker = "..." if len(text) > TEXT_SAMPLE_LIMIT else ""
        prompt += f"\n\nDOCUMENT TEXT:\n{sample}{marker}"

    return prompt


# ---------------------------------------------------------------------------
# Reply parsing and validation
# ---------------------------------------------------------------------------

_CATEGORY_PATTERN = re.compile(r"CATEGORY:\s*([A-Z_]+)", re.IGNORECASE)
_REQUESTER_PATTERN = re.compile(r"REQUESTER:\s*(.+)", re.IGNORECASE)
_CONFIDENCE_PATTERN = re.compile(r"CONFIDENCE:\s*([\d.]+)", re.IGNORECASE)


def _normalize_requester(requester: Optional[str]) -> str:
    if requester is None:
        return NO_REQUESTER
    requester = requester.strip()
    if not requester or requester.lower() == "n/a":
        return NO_REQUESTER
    return requester


def _clamp_confidence(confidence: float) -> float:
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


def parse_classification_response(reply: Optional[str]) -> ParsedClassification:
    """Interpret a free-text model reply.

    Every line is scanned independently of order; for each field the first
    matching line wins. Missing fields default to the fallback category,
    'N/A' and 0.1. An unknown category code is replaced by the fallback
    category and its confidence capped at 0.3 before the final clamp to
    [0.1, 1.0].
    """
    category: Optional[str] = None
    requester: Optional[str] = None
    confidence: Optional[float] = None

    for line in (reply or "").strip().splitlines():
        if category is None:
            match = _CATEGORY_PATTERN.search(line)
            if match:
                category = match.group(1).upper()

        if requester is None:
            match = _REQUESTER_PATTERN.search(line)
            if match:
                requester = match.group(1).strip()

        if confidence is None:
            match = _CONFIDENCE_PATTERN.search(line)
            if match:
                try:
                    confidence = float(match.group(1))
                except ValueError:
                    logger.warning("Ignoring unparseable confidence %r", match.group(1))

    if category is None:
        category = FALLBACK_CATEGORY_CODE
    if confidence is None:
        confidence = MIN_CONFIDENCE

    if not is_valid_category(category):
        logger.warning(
            "Model returned unknown category %r, defaulting to %s",
            category, FALLBACK_CATEGORY_CODE,
        )
        category = FALLBACK_CATEGORY_CODE
        confidence = min(confidence, UNKNOWN_CATEGORY_CONFIDENCE_CAP)

    return ParsedClassification(
        category=category,
        requester=_normalize_requester(requester),
        confidence=_clamp_confidence(confidence),
    )


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class DocumentClassifier:
    """Classifies documents through an injected TextModel."""

    def __init__(self, model: TextModel):
        self.model = model

    def classify(self, document: Union[str, bytes], filename: str = "") -> ClassificationResult:
        """Classify extracted text (str) or a raw PDF (bytes)."""
        if isinstance(document, (bytes, bytearray)):
            return self.classify_pdf_bytes(bytes(document), filename)
        return self.classify_text(document, filename)

    def classify_text(self, text: str, filename: str = "") -> ClassificationResult:
        """Classify a document from its extracted text."""
        try:
            if not text or not text.strip():
                raise ValueError("No text provided for classification")

            prompt = build_classification_prompt(filename, text)
            reply = self.model.generate_text(
                prompt,
                system_instruction=SYSTEM_INSTRUCTION,
                temperature=TEXT_MODE_TEMPERATURE,
            )
            return self._build_result(reply, filename, method="text")

        except Exception as e:
            logger.error("Classification failed for %s: %s", filename, e)
            return ClassificationResult.failure(filename, str(e) or type(e).__name__, method="text")

    def classify_pdf_bytes(self, pdf_bytes: bytes, filename: str = "") -> ClassificationResult:
        """Classify a document by sending the PDF itself to the model."""
        try:
            if not pdf_bytes:
                raise ValueError("No PDF content provided for classification")
            if not looks_like_pdf(pdf_bytes):
                logger.warning("%s is not detected as application/pdf", filename)

            prompt = build_classification_prompt(filename)
            logger.info("Classifying %s (%d bytes) in document mode", filename, len(pdf_bytes))
            reply = self.model.generate_text(
                prompt,
                attachment=pdf_bytes,
                mime_type=PDF_MIME_TYPE,
                system_instruction=SYSTEM_INSTRUCTION,
            )
            return self._build_result(reply, filename, method="document")

        except Exception as e:
            logger.error("Classification failed for %s: %s", filename, e)
            return ClassificationResult.failure(filename, str(e) or type(e).__name__, method="document")

    def classify_file(self, file_path: str, filename: Optional[str] = None) -> ClassificationResult:
        """Read a PDF from disk and classify it in document mode."""
        display_name = filename or os.path.basename(file_path)
        try:
            with open(file_path, "rb") as f:
                pdf_bytes = f.read()
        except OSError as e:
            logger.error("Could not read %s: %s", file_path, e)
            return ClassificationResult.failure(display_name, str(e))

        return self.classify_pdf_bytes(pdf_bytes, display_name)

    def _build_result(self, reply: str, filename: str, method: str) -> ClassificationResult:
        parsed = parse_classification_response(reply)
        logger.info(
            "Classified %s as %s (%.2f), requester=%s",
            filename, parsed.category, parsed.confidence, parsed.requester,
        )
        return ClassificationResult(
            filename=filename,
            success=True,
            category=parsed.category,
            requester=parsed.requester,
            confidence=parsed.confidence,
            method=method,
        )


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def get_classification_stats(results: Iterable[ClassificationResult]) -> ClassificationStats:
    """Summarize a set of results; distributions count successful ones only."""
    results = list(results)
    successful = [r for r in results if r.success]
    stats = ClassificationStats(
        total=len(results),
        successful=len(successful),
        failed=len(results) - len(successful),
    )

    if successful:
        stats.average_confidence = sum(r.confidence for r in successful) / len(successful)
        for result in successful:
            code = result.category
            stats.category_distribution[code] = stats.category_distribution.get(code, 0) + 1
            stats.confidence_distribution.add(result.confidence)

    return stats
