from __future__ import annotations

import logging
import shutil
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from .errors import FileTooLargeError
from .security import safe_join, sanitize_filename


logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class UploadedFile:
    path: Path
    stored_name: str
    original_name: str
    content_type: str | None
    size: int
    index: int


@dataclass
class ArchiveArtifact:
    path: Path
    name: str
    expires_at: float | None = None


_stamp_lock = threading.Lock()
_last_stamp = 0


def _now_epoch() -> float:
    return time.time()


def unique_stamp() -> int:
    """Return a millisecond timestamp that never repeats within this process.

    Two calls in the same millisecond get consecutive values, so upload and
    archive names built from it cannot collide between concurrent requests.
    """
    global _last_stamp
    with _stamp_lock:
        stamp = max(int(_now_epoch() * 1000), _last_stamp + 1)
        _last_stamp = stamp
        return stamp


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


async def save_upload(upload: UploadFile, uploads_dir: Path, index: int, max_bytes: int) -> UploadedFile:
    """Stream one uploaded part to ``<uploads_dir>/<stamp>-<sanitized name>``.

    The part is copied in chunks so large PDFs never sit in memory. If it
    grows beyond ``max_bytes`` the partial file is removed and
    FileTooLargeError is raised.
    """
    ensure_dir(uploads_dir)
    original_name = upload.filename or ""
    stored_name = f"{unique_stamp()}-{sanitize_filename(original_name)}"
    dest = safe_join(uploads_dir, stored_name)

    size = 0
    try:
        with open(dest, "wb") as fh:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise FileTooLargeError()
                await run_in_threadpool(fh.write, chunk)
    except BaseException:
        dest.unlink(missing_ok=True)
        raise

    logger.debug("Stored upload %r as %s (%d bytes)", original_name, stored_name, size)
    return UploadedFile(
        path=dest,
        stored_name=stored_name,
        original_name=original_name,
        content_type=upload.content_type,
        size=size,
        index=index,
    )


def delete_files(paths: Iterable[Path]) -> int:
    """Best-effort delete; failures are logged and skipped.

    Returns the number of files actually removed.
    """
    deleted = 0
    for path in paths:
        try:
            Path(path).unlink()
            deleted += 1
        except OSError as exc:
            logger.error("Error deleting file %s: %s", path, exc)
    return deleted


class ArchiveRegistry:
    """Archives waiting for their retention window to run out.

    A background task calls sweep() periodically; an archive is deleted on
    the first sweep at or after its deadline.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._deadlines: dict[Path, float] = {}

    def schedule(self, artifact: ArchiveArtifact, delay: float, now: float | None = None) -> float:
        deadline = (_now_epoch() if now is None else now) + max(0.0, float(delay))
        artifact.expires_at = deadline
        with self._lock:
            self._deadlines[artifact.path] = deadline
        logger.info("Archive %s scheduled for deletion in %.0fs", artifact.name, delay)
        return deadline

    def pending(self) -> dict[Path, float]:
        with self._lock:
            return dict(self._deadlines)

    def sweep(self, now: float | None = None) -> int:
        """Delete every archive whose deadline has passed.

        Returns the number of archives removed from the registry. A file
        already gone (e.g. wiped by the shutdown sweep) counts as removed.
        """
        now = _now_epoch() if now is None else now
        with self._lock:
            expired = [path for path, deadline in self._deadlines.items() if deadline <= now]
            for path in expired:
                del self._deadlines[path]

        for path in expired:
            try:
                path.unlink(missing_ok=True)
                logger.info("Deleted expired archive %s", path.name)
            except OSError as exc:
                logger.error("Error deleting ZIP file %s: %s", path, exc)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._deadlines.clear()


def remove_tree(root: Path) -> bool:
    """Synchronously delete the whole temp root (uploads and pending zips)."""
    if not root.exists():
        return False
    try:
        shutil.rmtree(root)
    except OSError as exc:
        logger.error("Error removing temporary directory %s: %s", root, exc)
        return False
    return True
