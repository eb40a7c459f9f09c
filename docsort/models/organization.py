"""Pydantic models for file organization runs.

Covers placement decisions, per-item failures, the post-run summary and
the dry-run preview.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from docsort.models.classification import ConfidenceDistribution


class FolderInfo(BaseModel):
    """A category folder inside the output directory."""
    path: str = Field(description="Absolute or base-relative folder path")
    name: str = Field(description="Folder name")
    created: bool = Field(description="True if this run created the folder")


class OrganizeEntry(BaseModel):
    """One resolved placement decision."""
    original_name: str = Field(description="Source document display name")
    new_name: str = Field(description="Filename written in the target folder")
    category: str = Field(description="Category code")
    category_label: str = Field(description="Category display name")
    target_folder: str = Field(description="Category folder name")
    target_path: str = Field(description="Full path of the written file")
    document_number: int = Field(ge=1, description="Sequence number used in the filename")
    requester: str = Field(description="Requester as classified")
    confidence: float = Field(ge=0.1, le=1.0, description="Classification confidence")


class OrganizeFailure(BaseModel):
    """A document that could not be placed."""
    filename: str
    category: str
    error: str


class OrganizationSummary(BaseModel):
    """Aggregated statistics computed once at the end of a run."""
    total: int = Field(ge=0, default=0)
    successful: int = Field(ge=0, default=0)
    failed: int = Field(ge=0, default=0)
    success_rate: float = Field(ge=0.0, le=100.0, default=0.0, description="Percentage placed")
    category_breakdown: Dict[str, int] = Field(
        default_factory=dict,
        description="Organized files per category label"
    )
    confidence_stats: ConfidenceDistribution = Field(default_factory=ConfidenceDistribution)


class OrganizationResult(BaseModel):
    """Result of one organize run."""
    success: bool = True
    base_dir: str
    organized: List[OrganizeEntry] = Field(default_factory=list)
    failed: List[OrganizeFailure] = Field(default_factory=list)
    summary: OrganizationSummary = Field(default_factory=OrganizationSummary)
    next_numbers: Dict[str, int] = Field(
        default_factory=dict,
        description="Next free document number per category after this run"
    )
    error: Optional[str] = None


class PreviewFile(BaseModel):
    filename: str
    category: str
    confidence: float


class PreviewFolder(BaseModel):
    category: str
    files: List[PreviewFile] = Field(default_factory=list)
    count: int = 0


class PreviewSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class OrganizationPreview(BaseModel):
    """Where documents would go, computed without touching the filesystem."""
    folder_structure: Dict[str, PreviewFolder] = Field(default_factory=dict)
    file_distribution: Dict[str, int] = Field(default_factory=dict)
    summary: PreviewSummary = Field(default_factory=PreviewSummary)
