from __future__ import annotations

import logging
import zipfile
from pathlib import Path, PurePosixPath
from typing import Sequence

from pydantic import TypeAdapter, ValidationError

from .config import ARCHIVE_PREFIX, UPLOAD_FIELD
from .errors import ArchiveError, NameMapError
from .security import is_safe_basename, safe_join, sanitize_filename
from .workspace import ArchiveArtifact, UploadedFile, ensure_dir, unique_stamp


logger = logging.getLogger(__name__)

_NAME_MAP_ADAPTER = TypeAdapter(dict[str, str])


def parse_name_map(raw: str | None) -> dict[str, str]:
    """Decode the optional ``originalNames`` form field.

    The field must be a JSON object mapping upload identifiers to display
    names. A missing or blank field means "use the client filenames".
    """
    if raw is None or not raw.strip():
        return {}
    try:
        return _NAME_MAP_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise NameMapError() from exc


def _clean_display_name(name: str | None) -> str | None:
    # Zip Slip defenses: entries are always flat basenames.
    if not name:
        return None
    base = PurePosixPath(name.replace("\\", "/")).name.replace(":", "_").strip()
    if not is_safe_basename(base):
        return None
    return base


def display_name_for(upload: UploadedFile, name_map: dict[str, str]) -> str:
    """Pick the in-archive name for one upload.

    Lookup order: the upload's position in the request ("0", "1", ...),
    its client filename, then the shared form field name ("pdfFiles").
    Without a usable match the client filename is kept, or the stored
    (sanitized) name when the client sent none.
    """
    for key in (str(upload.index), upload.original_name, UPLOAD_FIELD):
        mapped = _clean_display_name(name_map.get(key))
        if mapped:
            return mapped
    return _clean_display_name(upload.original_name) or sanitize_filename(upload.original_name)


def _dedupe(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    path = PurePosixPath(name)
    stem, suffix = path.stem, path.suffix
    n = 1
    while f"{stem} ({n}){suffix}" in taken:
        n += 1
    return f"{stem} ({n}){suffix}"


def resolve_entry_names(files: Sequence[UploadedFile], name_map: dict[str, str]) -> list[str]:
    """Return one unique entry name per upload, in upload order."""
    taken: set[str] = set()
    names: list[str] = []
    for upload in files:
        name = _dedupe(display_name_for(upload, name_map), taken)
        taken.add(name)
        names.append(name)
    return names


def build_archive(files: Sequence[UploadedFile], zips_dir: Path, name_map: dict[str, str]) -> ArchiveArtifact:
    """Write every upload into ``<zips_dir>/pdf-archive-<stamp>.zip``.

    Blocking; run it in a worker thread from async code. A partially
    written archive is removed before ArchiveError is raised.
    """
    ensure_dir(zips_dir)
    name = f"{ARCHIVE_PREFIX}{unique_stamp()}.zip"
    dest = safe_join(zips_dir, name)
    entries = resolve_entry_names(files, name_map)

    try:
        with zipfile.ZipFile(dest, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            for upload, arcname in zip(files, entries):
                zf.write(upload.path, arcname=arcname)
    except (OSError, ValueError) as exc:
        logger.exception("Error building archive %s", name)
        dest.unlink(missing_ok=True)
        raise ArchiveError() from exc

    logger.info("Built archive %s with %d file(s)", name, len(files))
    return ArchiveArtifact(path=dest, name=name)
