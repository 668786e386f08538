from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from pdfzip_backend.config import (
    CLEANUP_INTERVAL_SECONDS,
    CORS_ALLOW_HEADERS,
    HOST,
    LOG_FILE,
    LOG_LEVEL,
    MAX_FILE_BYTES,
    MAX_FILES,
    NAMES_FIELD,
    PORT,
    PUBLIC_DIR,
    TMP_ROOT,
    UPLOAD_FIELD,
    UPLOADS_DIR,
    ZIP_RETENTION_SECONDS,
    ZIPS_DIR,
)
from pdfzip_backend.errors import (
    InvalidFileTypeError,
    NoFilesError,
    PdfZipError,
    TooManyFilesError,
)
from pdfzip_backend.logging_config import setup_logging
from pdfzip_backend.security import is_pdf_content_type
from pdfzip_backend.workspace import (
    ArchiveArtifact,
    ArchiveRegistry,
    UploadedFile,
    delete_files,
    remove_tree,
    save_upload,
)
from pdfzip_backend.zip_utils import build_archive, parse_name_map


logger = logging.getLogger(__name__)

# Archives whose download finished and that are waiting out their retention window.
archives = ArchiveRegistry()


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    ok: bool = True


async def _cleanup_worker() -> None:
    # Periodically delete archives whose retention window ran out.
    while True:
        try:
            archives.sweep()
        except Exception:
            logger.exception("Archive sweep failed")
        await asyncio.sleep(max(1, CLEANUP_INTERVAL_SECONDS))


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(_cleanup_worker())
    app.state._cleanup_task = task
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        # uvicorn turns SIGINT/SIGTERM into a lifespan shutdown once open
        # connections have closed.
        logger.info("Server shutting down, cleaning up temporary files...")
        archives.clear()
        remove_tree(TMP_ROOT)


app = FastAPI(title="PDF to ZIP converter", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=CORS_ALLOW_HEADERS,
)


_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
}


@app.middleware("http")
async def _cors_on_every_response(request: Request, call_next):
    # CORSMiddleware only answers requests that carry an Origin header.
    # Unhandled errors never reach this point; their handler adds the headers itself.
    response = await call_next(request)
    for name, value in _CORS_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


@app.exception_handler(PdfZipError)
async def _pdfzip_error_handler(request: Request, exc: PdfZipError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Error processing files: %s", exc.message, exc_info=exc)
    else:
        logger.info("Rejected upload: %s", exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request: %s", exc.errors())
    return JSONResponse({"error": "Invalid upload request"}, status_code=400)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Error processing files", exc_info=exc)
    # Rendered by ServerErrorMiddleware, outside every other middleware.
    return JSONResponse({"error": "Internal server error"}, status_code=500, headers=_CORS_HEADERS)


def _finish_download(files: List[UploadedFile], artifact: ArchiveArtifact) -> None:
    # Runs only after the whole archive has been sent to the client.
    delete_files(f.path for f in files)
    archives.schedule(artifact, ZIP_RETENTION_SECONDS)


@app.get("/api/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@app.post(
    "/api/create-zip",
    responses={
        200: {"content": {"application/zip": {}}, "description": "ZIP archive of the uploaded PDFs"},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def create_zip(
    background_tasks: BackgroundTasks,
    pdf_files: Optional[List[UploadFile]] = File(None, alias=UPLOAD_FIELD),
    original_names: Optional[str] = Form(None, alias=NAMES_FIELD),
) -> FileResponse:
    """Bundle the uploaded PDFs into one ZIP download.

    Every check that can reject the request runs before anything is written
    to disk; a failure while storing or zipping removes what this request
    already stored.
    """
    files = pdf_files or []
    if not files:
        raise NoFilesError()
    if len(files) > MAX_FILES:
        raise TooManyFilesError()
    for upload in files:
        if not is_pdf_content_type(upload.content_type):
            raise InvalidFileTypeError()
    name_map = parse_name_map(original_names)

    stored: List[UploadedFile] = []
    try:
        for index, upload in enumerate(files):
            stored.append(await save_upload(upload, UPLOADS_DIR, index, MAX_FILE_BYTES))
        artifact = await run_in_threadpool(build_archive, stored, ZIPS_DIR, name_map)
    except Exception:
        delete_files(f.path for f in stored)
        raise

    logger.info("Sending %s (%d file(s))", artifact.name, len(stored))
    background_tasks.add_task(_finish_download, stored, artifact)
    return FileResponse(artifact.path, media_type="application/zip", filename=artifact.name)


# Static file hosting for the upload page.
# Note: define API routes above, then mount static at '/'.
if PUBLIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=str(PUBLIC_DIR), html=True), name="static")
else:
    logger.warning("Public directory %s does not exist; static files will not be served.", PUBLIC_DIR)


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    setup_logging(LOG_LEVEL, LOG_FILE)
    logger.info("PDF to ZIP converter server running on port %d", PORT)
    uvicorn.run("server:app", host=HOST, port=PORT, reload=False)
