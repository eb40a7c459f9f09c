"""
Text watermarks for PDFs.

Stamps a centered, rotated, semi-transparent line of Helvetica Bold onto
every page with PyMuPDF. Styles come from a named preset, from explicit
options, or from a preset with some options overridden.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Dict, List, Optional

import fitz  # PyMuPDF

from docsort.models.watermark import RGB, WatermarkOptions, WatermarkResult, WatermarkStyle
from docsort.services.file_organizer import place_file
from docsort.services.file_validator import validate_pdf_path

logger = logging.getLogger(__name__)

FONT_NAME = "hebo"  # Helvetica-Bold, one of the PDF base-14 fonts
OUTPUT_SUFFIX = "_watermarked"

MIN_FONT_SIZE = 8
MAX_FONT_SIZE = 200

GRAY: RGB = (0.5, 0.5, 0.5)

COLORS: Dict[str, RGB] = {
    "red": (1.0, 0.0, 0.0),
    "green": (0.0, 0.8, 0.0),
    "blue": (0.0, 0.0, 1.0),
    "gray": GRAY,
    "grey": GRAY,
    "black": (0.0, 0.0, 0.0),
    "orange": (1.0, 0.5, 0.0),
    "purple": (0.5, 0.0, 0.5),
    "yellow": (1.0, 1.0, 0.0),
}

PRESETS: Dict[str, WatermarkStyle] = {
    "confidential": WatermarkStyle(
        text="CONFIDENTIAL", opacity=0.3, font_size=48, color=(1.0, 0.0, 0.0), rotation=45
    ),
    "draft": WatermarkStyle(
        text="DRAFT", opacity=0.2, font_size=36, color=GRAY, rotation=45
    ),
    "approved": WatermarkStyle(
        text="APPROVED", opacity=0.25, font_size=40, color=(0.0, 0.8, 0.0), rotation=0
    ),
    "copy": WatermarkStyle(
        text="COPY", opacity=0.2, font_size=32, color=(0.0, 0.0, 1.0), rotation=45
    ),
    "sample": WatermarkStyle(
        text="SAMPLE", opacity=0.15, font_size=44, color=(0.8, 0.4, 0.0), rotation=45
    ),
    "uncontrolled": WatermarkStyle(
        text="UNCONTROLLED", opacity=0.4, font_size=52, color=(0.8, 0.0, 0.8), rotation=-30
    ),
}

DEFAULT_STYLE = WatermarkStyle(
    text="WATERMARK", opacity=0.3, font_size=36, color=GRAY, rotation=45
)


def parse_color(name: Optional[str]) -> RGB:
    """Map a color name to RGB; unknown or missing names give gray."""
    if name and name.lower() in COLORS:
        return COLORS[name.lower()]
    if name:
        logger.warning("Unknown watermark color %r, using gray", name)
    return GRAY


def get_preset_names() -> List[str]:
    return list(PRESETS)


def get_preset_details(name: str) -> Optional[WatermarkStyle]:
    return PRESETS.get(name.lower())


def validate_options(options: WatermarkOptions) -> None:
    """
    Check explicitly set options against their allowed ranges.

    Raises:
        ValueError: On the first invalid option
    """
    if options.preset is not None and get_preset_details(options.preset) is None:
        raise ValueError(f"Invalid preset: {options.preset}")

    if options.opacity is not None and not 0 <= options.opacity <= 1:
        raise ValueError("Opacity must be a number between 0 and 1")

    if options.font_size is not None and not MIN_FONT_SIZE <= options.font_size <= MAX_FONT_SIZE:
        raise ValueError(
            f"Font size must be a number between {MIN_FONT_SIZE} and {MAX_FONT_SIZE}"
        )

    if options.rotation is not None and not 0 <= options.rotation <= 360:
        raise ValueError("Rotation must be a number between 0 and 360")

    if options.text is not None and not options.text.strip():
        raise ValueError("Watermark text must not be empty")


def resolve_style(options: WatermarkOptions) -> WatermarkStyle:
    """
    Combine a preset (or the default style) with explicitly set options.

    Raises:
        ValueError: If the options are invalid
    """
    validate_options(options)

    base = get_preset_details(options.preset) if options.preset else DEFAULT_STYLE
    overrides = {}
    if options.text is not None:
        overrides["text"] = options.text.strip()
    if options.opacity is not None:
        overrides["opacity"] = options.opacity
    if options.font_size is not None:
        overrides["font_size"] = options.font_size
    if options.color is not None:
        overrides["color"] = parse_color(options.color)
    if options.rotation is not None:
        overrides["rotation"] = options.rotation

    return base.model_copy(update=overrides)


def _stamp_page(page: "fitz.Page", style: WatermarkStyle) -> None:
    rect = page.rect
    center = fitz.Point(rect.x0 + rect.width / 2, rect.y0 + rect.height / 2)
    width = fitz.get_text_length(style.text, fontname=FONT_NAME, fontsize=style.font_size)
    origin = fitz.Point(center.x - width / 2, center.y + style.font_size / 3)

    # Page space is y-down, so a visually counter-clockwise turn is negative.
    page.insert_text(
        origin,
        style.text,
        fontsize=style.font_size,
        fontname=FONT_NAME,
        color=style.color,
        fill_opacity=style.opacity,
        stroke_opacity=style.opacity,
        morph=(center, fitz.Matrix(-style.rotation)),
        overlay=True,
    )


def add_watermark(pdf_bytes: bytes, style: WatermarkStyle) -> WatermarkResult:
    """
    Stamp style onto every page of a PDF.

    Returns:
        WatermarkResult; on failure success is False and error reads
        "Watermark processing failed: <reason>"
    """
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            for page in doc:
                _stamp_page(page, style)
            page_count = doc.page_count
            content = doc.tobytes(garbage=3, deflate=True)
    except Exception as e:
        logger.error("Error adding watermark: %s", e)
        return WatermarkResult(success=False, error=f"Watermark processing failed: {e}")

    logger.info("Watermarked %d page(s) with %r", page_count, style.text)
    return WatermarkResult(
        success=True,
        content=content,
        original_size=len(pdf_bytes),
        watermarked_size=len(content),
        pages=page_count,
        watermark_text=style.text,
        processed_at=datetime.now(timezone.utc),
    )


def watermarked_filename(filename: str) -> str:
    """
    >>> watermarked_filename("report.pdf")
    'report_watermarked.pdf'
    """
    stem, ext = os.path.splitext(os.path.basename(filename))
    return f"{stem}{OUTPUT_SUFFIX}{ext or '.pdf'}"


def watermark_file(
    file_path: str,
    style: WatermarkStyle,
    output_dir: Optional[str] = None,
) -> WatermarkResult:
    """
    Watermark a PDF on disk and write ``<name>_watermarked.pdf``.

    The source is left untouched. The copy goes next to it unless
    output_dir is given, and never overwrites an existing file.

    Returns:
        WatermarkResult with output_path set on success
    """
    error = validate_pdf_path(file_path)
    if error:
        return WatermarkResult(success=False, error=error)

    with open(file_path, "rb") as f:
        pdf_bytes = f.read()

    result = add_watermark(pdf_bytes, style)
    if not result.success:
        return result

    target_dir = output_dir or os.path.dirname(os.path.abspath(file_path))
    try:
        os.makedirs(target_dir, exist_ok=True)
        result.output_path = place_file(target_dir, watermarked_filename(file_path), result.content)
    except OSError as e:
        logger.error("Could not write watermarked copy of %s: %s", file_path, e)
        return WatermarkResult(success=False, error=f"Could not write output: {e}")

    return result
