"""
utils/uploads.py — Reads multipart file parts into (bytes, filename, content_type).

The request body size is capped by MAX_CONTENT_LENGTH before anything here
runs; this module only checks presence and MIME type.
"""

from __future__ import annotations

from werkzeug.datastructures import FileStorage

from backend.app.errors import AppError, ErrorCode


def read_upload(upload: FileStorage | None, allowed_types: list[str], field: str = "file") -> tuple[bytes, str, str]:
    """
    Raises:
      AppError(MISSING_FIELD, 400)     — no file part, or an empty filename
      AppError(INVALID_FILE_TYPE, 400) — MIME type not in allowed_types
    """
    if upload is None or not upload.filename:
        raise AppError(ErrorCode.MISSING_FIELD, "A file is required.", 400, field=field)

    content_type = upload.mimetype or "application/octet-stream"
    if content_type not in allowed_types:
        raise AppError(
            ErrorCode.INVALID_FILE_TYPE,
            f"Files of type '{content_type}' are not accepted. Allowed: {', '.join(allowed_types)}.",
            400,
            field=field,
        )
    return upload.read(), upload.filename, content_type


def read_uploads(uploads: list[FileStorage], allowed_types: list[str], field: str = "files") -> list[tuple[bytes, str, str]]:
    """Validates every part before any is read; one bad file rejects the batch."""
    if not uploads:
        raise AppError(ErrorCode.MISSING_FIELD, "At least one file is required.", 400, field=field)
    for upload in uploads:
        if upload.filename and upload.mimetype not in allowed_types:
            raise AppError(
                ErrorCode.INVALID_FILE_TYPE,
                f"Files of type '{upload.mimetype}' are not accepted. Allowed: {', '.join(allowed_types)}.",
                400,
                field=field,
            )
    return [read_upload(upload, allowed_types, field=field) for upload in uploads]
