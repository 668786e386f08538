"""Errors raised while handling a create-zip request.

Each carries the HTTP status and the short message sent back to the client
as ``{"error": message}``.
"""
from __future__ import annotations


class PdfZipError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class UploadValidationError(PdfZipError):
    status_code = 400
    message = "Invalid upload"


class NoFilesError(UploadValidationError):
    message = "No PDF files uploaded"


class TooManyFilesError(UploadValidationError):
    message = "Too many files"


class FileTooLargeError(UploadValidationError):
    message = "File too large"


class InvalidFileTypeError(UploadValidationError):
    message = "Only PDF files are allowed"


class NameMapError(PdfZipError):
    # Surfaced as 500, not as a validation error.
    message = "Invalid originalNames field"


class ArchiveError(PdfZipError):
    message = "Failed to create ZIP file"


__all__ = [
    "ArchiveError",
    "FileTooLargeError",
    "InvalidFileTypeError",
    "NameMapError",
    "NoFilesError",
    "PdfZipError",
    "TooManyFilesError",
    "UploadValidationError",
]
