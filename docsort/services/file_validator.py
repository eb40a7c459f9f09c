"""
File validation helpers for source PDFs and generated filenames.

Provides:
- Path checks for PDFs read from disk
- MIME sniffing of in-memory buffers with python-magic
- Sanitization of untrusted text (model-extracted requester names) before
  it becomes part of a filename
"""

import os
import re
from pathlib import Path
from typing import Optional

import magic

SUPPORTED_EXTENSIONS = (".pdf",)
ALLOWED_MIME_TYPE = "application/pdf"
MAX_NAME_COMPONENT = 120

_RESERVED_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r"\s+")


def validate_pdf_path(file_path: str) -> Optional[str]:
    """
    Check that a path points at an existing file with a supported extension.

    Args:
        file_path: Path to check

    Returns:
        None when the file is acceptable, otherwise an error message
    """
    if not os.path.exists(file_path):
        return f"File not found: {file_path}"

    ext = Path(file_path).suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        return f"Unsupported file format: {ext or '(none)'}"

    return None


def detect_mime_type(content: bytes) -> str:
    """MIME type of a buffer as reported by libmagic."""
    return magic.from_buffer(content, mime=True)


def looks_like_pdf(content: bytes) -> bool:
    """True if libmagic identifies the buffer as application/pdf."""
    if not content:
        return False
    return detect_mime_type(content) == ALLOWED_MIME_TYPE


def sanitize_name_component(text: str, fallback: str = "Unknown") -> str:
    """
    Make untrusted text safe to embed in a filename.

    Security:
        - Replaces directory separators and reserved characters with '_'
        - Removes control characters and null bytes
        - Collapses whitespace, strips leading/trailing dots and spaces
        - Removes parent directory references (..)
        - Limits length
    """
    cleaned = _RESERVED_CHARS.sub("_", text or "")
    cleaned = cleaned.replace("..", "_")
    cleaned = _WHITESPACE.sub(" ", cleaned).strip(" .")

    if len(cleaned) > MAX_NAME_COMPONENT:
        cleaned = cleaned[:MAX_NAME_COMPONENT].rstrip(" .")

    return cleaned or fallback
