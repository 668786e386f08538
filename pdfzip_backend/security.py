from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

from .config import PDF_MEDIA_TYPE


_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9._-]")
DEFAULT_UPLOAD_NAME = "upload.pdf"


def _basename(name: str) -> str:
    # Browsers on Windows may send full paths with backslashes.
    return PurePosixPath(name.replace("\\", "/")).name


def sanitize_filename(name: str | None) -> str:
    """Reduce a client supplied filename to a safe basename.

    Only ASCII letters, digits, '.', '_' and '-' survive; everything else
    becomes '_'. Names that end up empty or made only of dots are replaced
    by a generic name so they can never resolve to '.' or '..'.
    """
    if not isinstance(name, str):
        return DEFAULT_UPLOAD_NAME
    cleaned = _UNSAFE_CHARS_RE.sub("_", _basename(name.strip()))
    if not cleaned.strip("."):
        return DEFAULT_UPLOAD_NAME
    return cleaned


def is_safe_basename(name: str) -> bool:
    """Allow only simple filenames (no directories)."""
    if not isinstance(name, str) or not name:
        return False
    if name in (".", ".."):
        return False
    if name != Path(name).name:
        return False
    if "/" in name or "\\" in name or ":" in name:
        return False
    return True


def safe_join(base_dir: Path, *parts: str) -> Path:
    """Join paths and ensure the result stays within base_dir.

    This defends against path traversal when writing user-controlled names.
    """
    base_dir = base_dir.resolve()
    candidate = base_dir
    for part in parts:
        candidate = candidate / part
    resolved = candidate.resolve()
    if resolved == base_dir:
        return resolved
    if base_dir not in resolved.parents:
        raise ValueError("Path traversal attempt")
    return resolved


def is_pdf_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.split(";")[0].strip().lower() == PDF_MEDIA_TYPE
