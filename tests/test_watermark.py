"""Tests for PDF watermarking."""

import fitz  # PyMuPDF
import pytest

from docsort.models.watermark import WatermarkOptions
from docsort.services.watermark import (
    DEFAULT_STYLE,
    GRAY,
    PRESETS,
    add_watermark,
    get_preset_details,
    get_preset_names,
    parse_color,
    resolve_style,
    validate_options,
    watermark_file,
    watermarked_filename,
)


def make_pdf(pages=1, text="Serah Terima Barang"):
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page().insert_text((72, 72), text)
    content = doc.tobytes()
    doc.close()
    return content


def page_texts(content):
    with fitz.open(stream=content, filetype="pdf") as doc:
        return [page.get_text() for page in doc]


class TestPresets:
    """Test built-in watermark styles."""

    def test_preset_names(self):
        assert get_preset_names() == [
            "confidential", "draft", "approved", "copy", "sample", "uncontrolled",
        ]

    def test_confidential_details(self):
        style = get_preset_details("confidential")

        assert style.text == "CONFIDENTIAL"
        assert style.opacity == 0.3
        assert style.font_size == 48
        assert style.color == (1.0, 0.0, 0.0)
        assert style.rotation == 45

    def test_lookup_ignores_case(self):
        assert get_preset_details("DRAFT") == PRESETS["draft"]

    def test_unknown_preset(self):
        assert get_preset_details("secret") is None


class TestParseColor:
    """Test color name lookup."""

    @pytest.mark.parametrize("name,expected", [
        ("red", (1.0, 0.0, 0.0)),
        ("Green", (0.0, 0.8, 0.0)),
        ("grey", GRAY),
        ("yellow", (1.0, 1.0, 0.0)),
    ])
    def test_known_colors(self, name, expected):
        assert parse_color(name) == expected

    @pytest.mark.parametrize("name", ["teal", "", None])
    def test_unknown_defaults_to_gray(self, name):
        assert parse_color(name) == GRAY


class TestOptions:
    """Test option validation and style resolution."""

    @pytest.mark.parametrize("options,message", [
        (WatermarkOptions(preset="secret"), "Invalid preset: secret"),
        (WatermarkOptions(opacity=1.5), "Opacity must be a number between 0 and 1"),
        (WatermarkOptions(font_size=4), "Font size must be a number between 8 and 200"),
        (WatermarkOptions(font_size=250), "Font size must be a number between 8 and 200"),
        (WatermarkOptions(rotation=-10), "Rotation must be a number between 0 and 360"),
        (WatermarkOptions(text="   "), "Watermark text must not be empty"),
    ])
    def test_invalid_options(self, options, message):
        with pytest.raises(ValueError, match=message):
            validate_options(options)

    def test_defaults_without_preset(self):
        assert resolve_style(WatermarkOptions()) == DEFAULT_STYLE
        assert DEFAULT_STYLE.text == "WATERMARK"
        assert DEFAULT_STYLE.rotation == 45

    def test_options_override_preset(self):
        style = resolve_style(WatermarkOptions(preset="draft", text="INTERNAL", color="blue"))

        assert style.text == "INTERNAL"
        assert style.color == (0.0, 0.0, 1.0)
        assert style.opacity == PRESETS["draft"].opacity
        assert style.font_size == PRESETS["draft"].font_size

    def test_explicit_zero_rotation_kept(self):
        assert resolve_style(WatermarkOptions(rotation=0)).rotation == 0

    def test_presets_are_not_modified(self):
        resolve_style(WatermarkOptions(preset="copy", text="DUPLICATE"))

        assert PRESETS["copy"].text == "COPY"


class TestAddWatermark:
    """Test stamping PDFs in memory."""

    def test_every_page_stamped(self):
        original = make_pdf(pages=3)

        result = add_watermark(original, PRESETS["confidential"])

        assert result.success is True
        assert result.pages == 3
        assert result.watermark_text == "CONFIDENTIAL"
        assert result.original_size == len(original)
        assert result.watermarked_size == len(result.content)
        assert result.processed_at is not None
        texts = page_texts(result.content)
        assert all("CONFIDENTIAL" in text for text in texts)
        assert all("Serah Terima Barang" in text for text in texts)

    def test_unrotated_custom_text(self):
        style = resolve_style(WatermarkOptions(text="ARSIP", rotation=0, color="black"))

        result = add_watermark(make_pdf(), style)

        assert "ARSIP" in page_texts(result.content)[0]

    def test_invalid_pdf(self):
        result = add_watermark(b"not a pdf", DEFAULT_STYLE)

        assert result.success is False
        assert result.content is None
        assert result.error.startswith("Watermark processing failed:")


class TestWatermarkFile:
    """Test watermarking PDFs on disk."""

    def test_output_name(self):
        assert watermarked_filename("in/report.pdf") == "report_watermarked.pdf"
        assert watermarked_filename("SCAN.PDF") == "SCAN_watermarked.PDF"

    def test_writes_copy_next_to_source(self, tmp_path):
        source = tmp_path / "form.pdf"
        source.write_bytes(make_pdf())

        result = watermark_file(str(source), PRESETS["approved"])

        assert result.success is True
        assert result.output_path == str(tmp_path / "form_watermarked.pdf")
        assert "APPROVED" in page_texts(open(result.output_path, "rb").read())[0]
        assert "APPROVED" not in page_texts(source.read_bytes())[0]

    def test_existing_output_not_overwritten(self, tmp_path):
        source = tmp_path / "form.pdf"
        source.write_bytes(make_pdf())
        out = tmp_path / "out"
        out.mkdir()
        (out / "form_watermarked.pdf").write_bytes(b"keep")

        result = watermark_file(str(source), PRESETS["draft"], output_dir=str(out))

        assert result.output_path == str(out / "form_watermarked_1.pdf")
        assert (out / "form_watermarked.pdf").read_bytes() == b"keep"

    def test_missing_file(self, tmp_path):
        result = watermark_file(str(tmp_path / "missing.pdf"), DEFAULT_STYLE)

        assert result.success is False
        assert result.error.startswith("File not found")
