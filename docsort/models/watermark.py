"""Pydantic models for stamping text watermarks onto PDFs."""

from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

RGB = Tuple[float, float, float]


class WatermarkStyle(BaseModel):
    """Fully resolved appearance of a watermark."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1, description="Text drawn on every page")
    opacity: float = Field(ge=0.0, le=1.0, description="Fill opacity of the text")
    font_size: float = Field(gt=0, description="Font size in points")
    color: RGB = Field(description="RGB components in 0..1")
    rotation: float = Field(description="Counter-clockwise rotation in degrees")


class WatermarkOptions(BaseModel):
    """Caller choices; anything left unset comes from the preset or defaults."""

    preset: Optional[str] = Field(default=None, description="Name of a built-in style")
    text: Optional[str] = None
    opacity: Optional[float] = None
    font_size: Optional[float] = None
    color: Optional[str] = Field(default=None, description="Color name, e.g. 'red'")
    rotation: Optional[float] = None


class WatermarkResult(BaseModel):
    """Outcome of watermarking one PDF."""

    success: bool
    content: Optional[bytes] = Field(default=None, description="Watermarked PDF bytes")
    original_size: int = Field(default=0, ge=0)
    watermarked_size: int = Field(default=0, ge=0)
    pages: int = Field(default=0, ge=0)
    watermark_text: Optional[str] = None
    processed_at: Optional[datetime] = None
    output_path: Optional[str] = Field(default=None, description="Where the copy was written")
    error: Optional[str] = None
