"""Fixed taxonomy of business document categories.

Every classification result and every organized file refers to one of
these nine categories by code. The set is defined once at import time and
never mutated.
"""

from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    """A single document category."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Short unique identifier, e.g. 'COF'")
    label: str = Field(description="Display name")
    description: str = Field(description="What kind of document belongs here")
    folder_name: str = Field(description="Target directory name")
    file_prefix: str = Field(description="Prefix for organized filenames, e.g. 'ICTCOF'")
    is_skip: bool = Field(
        default=False,
        description="Pseudo-category for documents that need no processing"
    )


CATEGORIES: Tuple[Category, ...] = (
    Category(
        code="BA_HALO",
        label="Kartu Halo",
        description="SIM card related documents",
        folder_name="Kartu Halo",
        file_prefix="ICTBAK",
    ),
    Category(
        code="BA_KKB",
        label="Berita Kehilangan",
        description="Loss/missing item reports",
        folder_name="Berita Kehilangan",
        file_prefix="ICTBKK",
    ),
    Category(
        code="BASTB",
        label="Serah Terima Barang",
        description="Goods handover/delivery documents",
        folder_name="Serah Terima Barang",
        file_prefix="ICTSTB",
    ),
    Category(
        code="CHR",
        label="Checklist Reimbursement HP",
        description="Phone reimbursement checklists",
        folder_name="Checklist Reimbursement HP",
        file_prefix="ICTCRH",
    ),
    Category(
        code="COF",
        label="COF Scan",
        description="Checkout Form documents",
        folder_name="COF Scan",
        file_prefix="ICTCOF",
    ),
    Category(
        code="LOF",
        label="ICT Loan Form",
        description="ICT equipment loan forms",
        folder_name="ICT Loan Form",
        file_prefix="ICTLOA",
    ),
    Category(
        code="OOPR",
        label="Out of Policy Request",
        description="Exception/special requests",
        folder_name="Out of Policy Request",
        file_prefix="ICTOOP",
    ),
    Category(
        code="SRF",
        label="SRF Scan",
        description="Service Request Forms",
        folder_name="SRF Scan",
        file_prefix="ICTSRF",
    ),
    Category(
        code="DO",
        label="Skip",
        description="Delivery orders - mark as skip",
        folder_name="Skip",
        file_prefix="ICTSKP",
        is_skip=True,
    ),
)

FALLBACK_CATEGORY_CODE = "OOPR"
SKIP_CATEGORY_CODE = "DO"

_BY_CODE: Dict[str, Category] = {category.code: category for category in CATEGORIES}

if len(_BY_CODE) != len(CATEGORIES):
    raise RuntimeError("Category codes must be unique")
if FALLBACK_CATEGORY_CODE not in _BY_CODE or SKIP_CATEGORY_CODE not in _BY_CODE:
    raise RuntimeError("Fallback and skip categories must be part of the taxonomy")


def get_category(code: str) -> Category:
    """Look up a category by code.

    Raises:
        KeyError: If the code is not part of the taxonomy
    """
    return _BY_CODE[code]


def is_valid_category(code: object) -> bool:
    return isinstance(code, str) and code in _BY_CODE


def category_codes() -> List[str]:
    """Category codes in taxonomy order."""
    return [category.code for category in CATEGORIES]


def folder_mapping() -> Dict[str, str]:
    return {category.code: category.folder_name for category in CATEGORIES}


def default_numbering() -> Dict[str, int]:
    """Start numbers offered for each numbered category.

    The skip category is left out; its documents are still numbered from 1
    when organized.
    """
    return {category.code: 1 for category in CATEGORIES if not category.is_skip}
