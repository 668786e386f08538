from __future__ import annotations

import os
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    """Read an integer env var, returning `default` on missing/invalid."""
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Project root (pdfzip_backend/ -> project root).
BASE_DIR = Path(__file__).resolve().parent.parent

PORT = _env_int("PORT", 3000)
HOST = os.environ.get("HOST", "0.0.0.0")

# Root directory for all temporary files.
# Default: ./tmp relative to the working directory.
# Override with env var PDFZIP_TMP_ROOT.
_root_raw = os.environ.get("PDFZIP_TMP_ROOT")
if _root_raw and _root_raw.strip():
    TMP_ROOT = Path(_root_raw)
else:
    TMP_ROOT = Path("tmp")
TMP_ROOT = TMP_ROOT.resolve()

# Not created here; the upload and archive code creates them on demand.
UPLOADS_DIR = TMP_ROOT / "uploads"
ZIPS_DIR = TMP_ROOT / "zips"

_public_raw = os.environ.get("PDFZIP_PUBLIC_DIR")
PUBLIC_DIR = Path(_public_raw).resolve() if _public_raw and _public_raw.strip() else BASE_DIR / "public"

# Upload limits.
MAX_FILE_BYTES = _env_int("PDFZIP_MAX_FILE_BYTES", 100 * 1024 * 1024)  # 100MB
MAX_FILES = _env_int("PDFZIP_MAX_FILES", 50)
UPLOAD_FIELD = "pdfFiles"
NAMES_FIELD = "originalNames"
PDF_MEDIA_TYPE = "application/pdf"

# How long a generated archive stays on disk after its download completed.
ZIP_RETENTION_SECONDS = _env_int("PDFZIP_ZIP_RETENTION_SECONDS", 3600)

# How often the server scans for expired archives.
CLEANUP_INTERVAL_SECONDS = _env_int("PDFZIP_CLEANUP_INTERVAL_SECONDS", 60)

LOG_LEVEL = os.environ.get("PDFZIP_LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get("PDFZIP_LOG_FILE") or None

ARCHIVE_PREFIX = "pdf-archive-"
CORS_ALLOW_HEADERS = ["Origin", "X-Requested-With", "Content-Type", "Accept"]
