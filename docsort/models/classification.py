"""Pydantic models for document classification results.

A ClassificationResult is produced once per input document, either by the
classifier or by its failure path. Its category is always a taxonomy code
and its confidence always lies in [0.1, 1.0].
"""

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docsort.models.category import FALLBACK_CATEGORY_CODE, get_category, is_valid_category

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0
NO_REQUESTER = "N/A"


class ClassificationResult(BaseModel):
    """Outcome of classifying one document."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(description="Display name of the source document")
    success: bool = Field(description="Whether the model produced a usable reply")
    category: str = Field(
        default=FALLBACK_CATEGORY_CODE,
        description="Category code from the fixed taxonomy"
    )
    requester: str = Field(
        default=NO_REQUESTER,
        description="Requester name found in the document, or 'N/A'"
    )
    confidence: float = Field(
        default=MIN_CONFIDENCE,
        ge=MIN_CONFIDENCE, le=MAX_CONFIDENCE,
        description="Classification confidence (0.1 to 1.0)"
    )
    method: Literal["text", "document"] = Field(
        default="document",
        description="Whether extracted text or the raw PDF was sent to the model"
    )
    error: Optional[str] = Field(
        default=None,
        description="Failure reason, present only when success is false"
    )

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        if not is_valid_category(v):
            raise ValueError(f"Unknown category code: {v}")
        return v

    @property
    def category_label(self) -> str:
        return get_category(self.category).label

    @classmethod
    def failure(
        cls,
        filename: str,
        error: str,
        method: Literal["text", "document"] = "document",
    ) -> "ClassificationResult":
        """Build the fallback result used for any per-document failure."""
        return cls(
            filename=filename,
            success=False,
            category=FALLBACK_CATEGORY_CODE,
            requester=NO_REQUESTER,
            confidence=MIN_CONFIDENCE,
            method=method,
            error=error or "Classification failed",
        )


class ParsedClassification(BaseModel):
    """Validated fields extracted from a free-text model reply."""

    category: str = FALLBACK_CATEGORY_CODE
    requester: str = NO_REQUESTER
    confidence: float = Field(default=MIN_CONFIDENCE, ge=MIN_CONFIDENCE, le=MAX_CONFIDENCE)


class ConfidenceDistribution(BaseModel):
    """Counts per confidence band: high >= 0.8, medium [0.5, 0.8), low < 0.5."""
    high: int = Field(ge=0, default=0)
    medium: int = Field(ge=0, default=0)
    low: int = Field(ge=0, default=0)

    def add(self, confidence: float) -> None:
        if confidence >= 0.8:
            self.high += 1
        elif confidence >= 0.5:
            self.medium += 1
        else:
            self.low += 1


class ClassificationStats(BaseModel):
    """Aggregate statistics over a set of classification results."""
    total: int = Field(ge=0, default=0)
    successful: int = Field(ge=0, default=0)
    failed: int = Field(ge=0, default=0)
    average_confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    category_distribution: Dict[str, int] = Field(default_factory=dict)
    confidence_distribution: ConfidenceDistribution = Field(
        default_factory=ConfidenceDistribution
    )
