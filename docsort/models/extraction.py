"""Pydantic models for text acquisition results and batch inputs."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class TextStats(BaseModel):
    """Basic statistics about an extracted text."""
    characters: int = Field(ge=0, default=0)
    characters_no_spaces: int = Field(ge=0, default=0)
    words: int = Field(ge=0, default=0)
    sentences: int = Field(ge=0, default=0)
    paragraphs: int = Field(ge=0, default=0)
    average_words_per_sentence: int = Field(ge=0, default=0)


class AcquisitionResult(BaseModel):
    """Outcome of the direct-extraction / OCR fallback chain for one PDF."""

    success: bool = Field(description="Whether any text was obtained")
    text: str = Field(default="", description="Extracted text")
    extraction_method: Optional[str] = Field(
        default=None,
        description="direct, tesseract-ocr, vision-ocr or document-ocr"
    )
    page_count: Optional[int] = Field(default=None, ge=0, description="Number of pages seen")
    file_name: Optional[str] = Field(default=None, description="Display name of the source")
    file_size: int = Field(default=0, ge=0, description="Size of the PDF in bytes")
    stats: TextStats = Field(default_factory=TextStats)
    error: Optional[str] = Field(default=None, description="Failure reason when success is false")


class BatchDocument(BaseModel):
    """One input item for the batch orchestrator.

    Provide raw PDF bytes for direct-document classification, or text for
    text classification. When both are present the bytes win.
    """

    filename: str
    text: Optional[str] = None
    content: Optional[bytes] = None

    @model_validator(mode="after")
    def require_payload(self) -> "BatchDocument":
        if self.text is None and self.content is None:
            raise ValueError(f"BatchDocument {self.filename!r} needs text or content")
        return self
