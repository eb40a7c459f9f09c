"""
Sequential batch processing of business documents.

Documents are handled strictly one after another: each is classified (or
text-extracted) to completion before the next starts, and every model call
goes through an injected RateLimiter. A failure on one document becomes a
failure result for that document only; the batch always returns one
result per input, in input order.
"""

import asyncio
import glob
import json
import logging
import os
from typing import Dict, List, Mapping, Optional, Sequence, Union

from docsort.config import CLASSIFICATION_MODES, OCR_METHODS
from docsort.models.classification import ClassificationResult
from docsort.models.extraction import AcquisitionResult, BatchDocument
from docsort.models.organization import OrganizationPreview, OrganizationResult
from docsort.services.classifier import DocumentClassifier, get_classification_stats
from docsort.services.file_organizer import FileOrganizer
from docsort.services.text_acquisition import TextAcquisitionChain
from docsort.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "_organize_summary.json"


async def classify_batch(
    classifier: DocumentClassifier,
    documents: Sequence[BatchDocument],
    rate_limiter: Optional[RateLimiter] = None,
) -> List[ClassificationResult]:
    """
    Classify documents one at a time.

    Args:
        classifier: Classifier holding the model handle
        documents: Inputs; those with content use document mode, the rest text mode
        rate_limiter: Spaces out model calls; None disables throttling

    Returns:
        List[ClassificationResult]: Exactly one result per input, same order
    """
    results: List[ClassificationResult] = []
    total = len(documents)

    for idx, doc in enumerate(documents):
        method = "document" if doc.content is not None else "text"
        try:
            if rate_limiter is not None:
                await rate_limiter.acquire()
            payload = doc.content if doc.content is not None else doc.text
            result = await asyncio.to_thread(classifier.classify, payload, doc.filename)
        except Exception as e:
            logger.error("Error classifying %s: %s", doc.filename, e)
            result = ClassificationResult.failure(doc.filename, str(e) or type(e).__name__, method=method)

        results.append(result)
        logger.info(
            "[%d/%d] %s %s -> %s (%.2f)",
            idx + 1, total, "OK" if result.success else "FAILED",
            doc.filename, result.category, result.confidence,
        )

    return results


async def extract_batch(
    chain: TextAcquisitionChain,
    documents: Sequence[BatchDocument],
    method: str = "tesseract",
    rate_limiter: Optional[RateLimiter] = None,
) -> List[AcquisitionResult]:
    """
    Run the text acquisition chain over documents one at a time.

    Returns:
        List[AcquisitionResult]: Exactly one result per input, same order
    """
    results: List[AcquisitionResult] = []

    for doc in documents:
        try:
            if doc.content is None:
                raise ValueError("No PDF content provided for text extraction")
            if rate_limiter is not None and method != "tesseract":
                await rate_limiter.acquire()
            result = await asyncio.to_thread(chain.acquire_text, doc.content, method, doc.filename)
        except Exception as e:
            logger.error("Error extracting text from %s: %s", doc.filename, e)
            result = AcquisitionResult(
                success=False,
                file_name=doc.filename,
                error=str(e) or type(e).__name__,
            )
        results.append(result)

    return results


async def classify_pdfs(
    documents: Sequence[BatchDocument],
    classifier: DocumentClassifier,
    mode: str = "document",
    chain: Optional[TextAcquisitionChain] = None,
    method: str = "tesseract",
    rate_limiter: Optional[RateLimiter] = None,
) -> List[ClassificationResult]:
    """
    Classify PDFs either directly (document mode) or via extracted text.

    In text mode a document whose text cannot be acquired gets a failure
    result carrying the acquisition error; it is never dropped.
    """
    if mode not in CLASSIFICATION_MODES:
        raise ValueError(f"Unknown classification mode: {mode!r}")

    if mode == "document":
        return await classify_batch(classifier, documents, rate_limiter)

    if method not in OCR_METHODS:
        raise ValueError(f"Unknown OCR method: {method!r}")
    if chain is None:
        raise ValueError("Text mode requires a TextAcquisitionChain")

    acquisitions = await extract_batch(chain, documents, method, rate_limiter)
    to_classify = [
        BatchDocument(filename=doc.filename, text=acq.text)
        for doc, acq in zip(documents, acquisitions)
        if acq.success
    ]
    classified = iter(await classify_batch(classifier, to_classify, rate_limiter))

    return [
        next(classified) if acq.success
        else ClassificationResult.failure(
            doc.filename, acq.error or "Text acquisition failed", method="text"
        )
        for doc, acq in zip(documents, acquisitions)
    ]


def _load_directory(directory: str, pattern: str) -> Dict[str, str]:
    """Map each matching file's path relative to directory to its full path."""
    pdfs = sorted(glob.glob(os.path.join(directory, pattern)))
    return {
        os.path.relpath(path, directory): path
        for path in pdfs
        if os.path.isfile(path)
    }


async def process_directory(
    directory: str,
    classifier: DocumentClassifier,
    output_dir: str,
    mode: str = "document",
    chain: Optional[TextAcquisitionChain] = None,
    method: str = "tesseract",
    rate_limiter: Optional[RateLimiter] = None,
    numbering_overrides: Optional[Mapping[str, int]] = None,
    pattern: str = "*.pdf",
    preview: bool = False,
) -> Union[OrganizationResult, OrganizationPreview, None]:
    """
    Classify every PDF in a directory and organize the copies.

    Args:
        directory: Directory containing PDF files (left untouched)
        classifier: Document classifier
        output_dir: Base directory for the category folders
        mode: "document" sends PDFs to the model, "text" extracts text first
        chain: Text acquisition chain (text mode only)
        method: OCR fallback method (text mode only)
        rate_limiter: Spaces out model calls
        numbering_overrides: Optional start number per category code
        pattern: Glob pattern for PDF files (default: "*.pdf")
        preview: Only report where files would go

    Returns:
        OrganizationResult, OrganizationPreview in preview mode, or None
        when no PDFs matched
    """
    sources = _load_directory(directory, pattern)
    total = len(sources)

    if total == 0:
        print(f"No PDFs found matching pattern: {pattern}")
        return None

    print(f"Found {total} PDFs to process (mode={mode}"
          + (f", ocr={method}" if mode == "text" else "") + ")\n")

    documents = []
    for name, path in sources.items():
        with open(path, "rb") as fh:
            documents.append(BatchDocument(filename=name, content=fh.read()))

    results = await classify_pdfs(
        documents, classifier, mode=mode, chain=chain, method=method, rate_limiter=rate_limiter
    )

    for idx, result in enumerate(results):
        tag = "OK" if result.success else "FAILED"
        print(
            f"[{idx+1}/{total}] {tag} {result.filename} -> "
            f"category={result.category} requester={result.requester} "
            f"confidence={result.confidence:.2f}"
        )
        if result.error:
            print(f"         error: {result.error}")

    organizer = FileOrganizer(output_dir)

    if preview:
        outcome = organizer.preview_organization(results)
        print(f"\n{'='*60}")
        print(f"PREVIEW: {outcome.summary.successful}/{outcome.summary.total} would be organized")
        for folder_name, count in outcome.file_distribution.items():
            print(f"  {folder_name}: {count}")
        return outcome

    outcome = organizer.organize(results, sources, numbering_overrides)
    stats = get_classification_stats(results)

    print(f"\n{'='*60}")
    if not outcome.success:
        print(f"FAILED: {outcome.error}")
        return outcome

    summary = outcome.summary
    print(f"DONE: {summary.successful}/{summary.total} organized, {summary.failed} failed "
          f"({summary.success_rate:.1f}%)")
    print(f"  Average confidence: {stats.average_confidence:.2f}")
    for label, count in summary.category_breakdown.items():
        print(f"  {label}: {count}")

    if outcome.failed:
        print("\nFailed files:")
        for failure in outcome.failed:
            print(f"  - {failure.filename}: {failure.error}")

    summary_path = os.path.join(output_dir, SUMMARY_FILENAME)
    report = {
        "classification": [r.model_dump() for r in results],
        "classification_stats": stats.model_dump(),
        "organization": outcome.model_dump(),
    }
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
    print(f"\nSummary saved to {summary_path}")

    return outcome
