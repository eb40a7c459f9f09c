"""
Category-based file organization.

Copies classified documents into one folder per category and renames them
``<prefix><NNN> - <requester><ext>``, numbering each category from its own
running counter. Existing files are never overwritten: a taken name gets a
``_1``, ``_2``, ... suffix.
"""

import logging
import os
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from docsort.models.category import (
    CATEGORIES,
    SKIP_CATEGORY_CODE,
    Category,
    default_numbering,
    folder_mapping,
    get_category,
    is_valid_category,
)
from docsort.models.classification import NO_REQUESTER, ClassificationResult
from docsort.models.organization import (
    FolderInfo,
    OrganizationPreview,
    OrganizationResult,
    OrganizationSummary,
    OrganizeEntry,
    OrganizeFailure,
    PreviewFile,
    PreviewFolder,
)
from docsort.services.file_validator import sanitize_name_component

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "./organized_documents"
UNKNOWN_REQUESTER = "Unknown"

SourceRef = Union[bytes, bytearray, str, "os.PathLike[str]"]
ResultLike = Union[ClassificationResult, Mapping[str, object]]


class OrganizationError(Exception):
    """The organize run could not start (e.g. output folders not creatable)."""


class SourceNotFoundError(Exception):
    """No bytes or existing file were supplied for a document."""


class NumberingState:
    """Per-run document counters, one per category.

    Every category starts at 1 unless the caller supplies a start value.
    A counter moves forward only when a file has actually been placed.
    """

    def __init__(self, overrides: Optional[Mapping[str, int]] = None):
        self._counters: Dict[str, int] = default_numbering()
        self._counters.setdefault(SKIP_CATEGORY_CODE, 1)

        for code, start in (overrides or {}).items():
            if code not in self._counters:
                logger.warning("Ignoring numbering override for unknown category %s", code)
                continue
            if isinstance(start, bool) or not isinstance(start, int) or start < 1:
                raise ValueError(
                    f"Numbering start for {code} must be a positive integer (got: {start!r})"
                )
            self._counters[code] = start

    def current(self, code: str) -> int:
        return self._counters[code]

    def advance(self, code: str) -> int:
        self._counters[code] += 1
        return self._counters[code]

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counters)


def build_target_filename(
    category: Category,
    number: int,
    requester: str,
    original_name: str,
) -> str:
    """Compose ``<prefix><NNN> - <requester><ext>`` for a placed document.

    >>> build_target_filename(get_category("COF"), 7, "John Doe", "scan.pdf")
    'ICTCOF007 - John Doe.pdf'
    """
    ext = os.path.splitext(original_name)[1]
    if not requester or requester == NO_REQUESTER:
        requester = UNKNOWN_REQUESTER
    name = sanitize_name_component(requester, fallback=UNKNOWN_REQUESTER)
    return f"{category.file_prefix}{number:03d} - {name}{ext}"


def generate_summary(
    organized: List[OrganizeEntry],
    failed: List[OrganizeFailure],
) -> OrganizationSummary:
    """Derive run statistics from the final organized and failed lists."""
    summary = OrganizationSummary(
        total=len(organized) + len(failed),
        successful=len(organized),
        failed=len(failed),
    )

    if summary.total > 0:
        summary.success_rate = summary.successful / summary.total * 100

    for entry in organized:
        label = entry.category_label
        summary.category_breakdown[label] = summary.category_breakdown.get(label, 0) + 1
        summary.confidence_stats.add(entry.confidence)

    return summary


class FileOrganizer:
    """Places classified documents into a category folder tree."""

    def __init__(self, base_dir: str = DEFAULT_OUTPUT_DIR):
        self.base_dir = base_dir

    def create_folder_structure(self) -> Dict[str, FolderInfo]:
        """
        Create the base directory and one folder per category.

        Existing folders are left untouched, so calling this twice is harmless.

        Returns:
            Mapping of category code to folder info

        Raises:
            OrganizationError: If a folder cannot be created
        """
        folders: Dict[str, FolderInfo] = {}
        try:
            os.makedirs(self.base_dir, exist_ok=True)
            for code, folder_name in folder_mapping().items():
                folder_path = os.path.join(self.base_dir, folder_name)
                created = not os.path.isdir(folder_path)
                os.makedirs(folder_path, exist_ok=True)
                folders[code] = FolderInfo(path=folder_path, name=folder_name, created=created)
        except OSError as e:
            raise OrganizationError(f"Failed to create folder structure: {e}") from e

        logger.info(
            "Folder structure ready in %s (%d new folder(s))",
            self.base_dir, sum(1 for f in folders.values() if f.created),
        )
        return folders

    def organize(
        self,
        results: Iterable[ResultLike],
        sources: Mapping[str, SourceRef],
        numbering_overrides: Optional[Mapping[str, int]] = None,
    ) -> OrganizationResult:
        """
        Copy classified documents into their category folders.

        Args:
            results: Classification results, in processing order. Plain dicts
                (e.g. cached results loaded from JSON) are accepted too.
            sources: Document display name -> PDF bytes or path to the PDF
            numbering_overrides: Optional start number per category code

        Returns:
            OrganizationResult with organized entries, failures and a summary.
            success is False only when the run could not start.

        Raises:
            ValueError: If a numbering override is not a positive integer
        """
        numbering = NumberingState(numbering_overrides)
        run = OrganizationResult(base_dir=self.base_dir)

        try:
            folders = self.create_folder_structure()
        except OrganizationError as e:
            logger.error("Organization aborted: %s", e)
            run.success = False
            run.error = str(e)
            run.summary = generate_summary(run.organized, run.failed)
            return run

        for item in results:
            try:
                entry, failure = self._organize_one(item, sources, folders, numbering)
            except Exception as e:
                filename, category = _describe(item)
                logger.error("Error organizing file %s: %s", filename, e)
                entry, failure = None, OrganizeFailure(
                    filename=filename, category=category, error=str(e) or type(e).__name__
                )
            if entry is not None:
                run.organized.append(entry)
            else:
                run.failed.append(failure)

        run.next_numbers = numbering.snapshot()
        run.summary = generate_summary(run.organized, run.failed)
        logger.info(
            "Organized %d/%d document(s) into %s",
            run.summary.successful, run.summary.total, self.base_dir,
        )
        return run

    def _organize_one(
        self,
        item: ResultLike,
        sources: Mapping[str, SourceRef],
        folders: Dict[str, FolderInfo],
        numbering: NumberingState,
    ) -> Tuple[Optional[OrganizeEntry], Optional[OrganizeFailure]]:
        result, failure = _coerce_result(item)
        if failure is not None:
            return None, failure

        def fail(error: str) -> Tuple[None, OrganizeFailure]:
            logger.warning("Skipping %s: %s", result.filename, error)
            return None, OrganizeFailure(
                filename=result.filename, category=result.category, error=error
            )

        if not result.success:
            return fail(result.error or "Classification failed")

        folder = folders.get(result.category)
        if folder is None:
            return fail(f"Unknown category: {result.category}")

        try:
            data = _load_source(sources, result.filename)
        except SourceNotFoundError:
            return fail("Source file not found")
        except OSError as e:
            return fail(f"Could not read source: {e}")

        category = get_category(result.category)
        number = numbering.current(category.code)
        new_name = build_target_filename(category, number, result.requester, result.filename)

        try:
            target_path = place_file(folder.path, new_name, data)
        except OSError as e:
            logger.error("Error organizing file %s: %s", result.filename, e)
            return fail(str(e))

        numbering.advance(category.code)
        logger.info("%s -> %s", result.filename, target_path)

        return OrganizeEntry(
            original_name=result.filename,
            new_name=os.path.basename(target_path),
            category=category.code,
            category_label=category.label,
            target_folder=folder.name,
            target_path=target_path,
            document_number=number,
            requester=result.requester,
            confidence=result.confidence,
        ), None

    def preview_organization(self, results: Iterable[ResultLike]) -> OrganizationPreview:
        """Show where documents would go without touching the filesystem."""
        preview = OrganizationPreview(
            folder_structure={
                category.folder_name: PreviewFolder(category=category.code)
                for category in CATEGORIES
            }
        )

        for item in results:
            preview.summary.total += 1
            result, failure = _coerce_result(item)
            if failure is not None or not result.success:
                preview.summary.failed += 1
                continue

            folder = preview.folder_structure[get_category(result.category).folder_name]
            folder.files.append(PreviewFile(
                filename=result.filename,
                category=result.category,
                confidence=result.confidence,
            ))
            folder.count += 1
            preview.summary.successful += 1

        preview.file_distribution = {
            name: folder.count
            for name, folder in preview.folder_structure.items()
            if folder.count > 0
        }
        return preview


def place_file(folder_path: str, filename: str, data: bytes) -> str:
    """
    Write data under filename, or the first free ``<stem>_<n><ext>`` variant.

    Files are created with exclusive mode, so a name taken by another
    writer between checks is skipped rather than overwritten. If the write
    fails the partial file is removed before the error propagates.

    Returns:
        Path of the written file
    """
    stem, ext = os.path.splitext(filename)
    candidate = filename
    suffix = 0

    while True:
        target_path = os.path.join(folder_path, candidate)
        try:
            out = open(target_path, "xb")
        except FileExistsError:
            suffix += 1
            candidate = f"{stem}_{suffix}{ext}"
            continue

        try:
            with out:
                out.write(data)
        except BaseException:
            # A partial copy must not keep the name.
            os.remove(target_path)
            raise
        return target_path


def _load_source(sources: Mapping[str, SourceRef], filename: str) -> bytes:
    source = sources.get(filename)
    if source is None:
        raise SourceNotFoundError(filename)

    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    path = os.fspath(source)
    if not os.path.isfile(path):
        raise SourceNotFoundError(filename)
    with open(path, "rb") as f:
        return f.read()


def _describe(item: ResultLike) -> Tuple[str, str]:
    if isinstance(item, ClassificationResult):
        return item.filename, item.category
    return str(item.get("filename", "")), str(item.get("category", ""))


def _coerce_result(
    item: ResultLike,
) -> Tuple[Optional[ClassificationResult], Optional[OrganizeFailure]]:
    """Accept a ClassificationResult or a plain dict from a cached run."""
    if isinstance(item, ClassificationResult):
        return item, None

    filename = str(item.get("filename", ""))
    category = str(item.get("category", ""))

    if not item.get("success"):
        return None, OrganizeFailure(
            filename=filename,
            category=category,
            error=str(item.get("error") or "Classification failed"),
        )

    if not is_valid_category(category):
        return None, OrganizeFailure(
            filename=filename, category=category, error=f"Unknown category: {category}"
        )

    try:
        return ClassificationResult.model_validate(item), None
    except ValidationError as e:
        return None, OrganizeFailure(
            filename=filename,
            category=category,
            error=f"Invalid classification result: {e.error_count()} validation error(s)",
        )
