"""Validation helpers for uploaded chat attachments."""

import re
from typing import Iterable

from fastapi import HTTPException, UploadFile

from models.attachment import DEFAULT_MEDIA_TYPE, AttachmentFile

MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024
MAX_FILENAME_LENGTH = 120

_UNSAFE_CHARS = re.compile(r"[^\w.\-]+", re.ASCII)


class AttachmentTooLargeError(ValueError):
    """Raised when an attachment exceeds MAX_ATTACHMENT_BYTES."""


def safe_filename(name: str) -> str:
    """Return a storage-safe filename, keeping the last 120 characters."""
    cleaned = _UNSAFE_CHARS.sub("_", (name or "").strip())
    if len(cleaned) > MAX_FILENAME_LENGTH:
        cleaned = cleaned[-MAX_FILENAME_LENGTH:]
    return cleaned or "file"


def normalize_media_type(media_type: str | None) -> str:
    """Strip MIME parameters and default to application/octet-stream."""
    value = (media_type or "").split(";", 1)[0].strip().lower()
    return value or DEFAULT_MEDIA_TYPE


def ensure_within_limit(files: Iterable[AttachmentFile]) -> None:
    """Reject the whole batch if any file is over the size limit."""
    for item in files:
        if item.size > MAX_ATTACHMENT_BYTES:
            raise AttachmentTooLargeError(
                f"{item.filename or 'file'} exceeds the {MAX_ATTACHMENT_BYTES // (1024 * 1024)}MB limit."
            )


async def read_attachment(upload: UploadFile) -> AttachmentFile:
    """Read an uploaded file into an AttachmentFile, rejecting oversize content."""
    data = await upload.read()
    item = AttachmentFile(
        filename=upload.filename or "file",
        media_type=normalize_media_type(upload.content_type),
        data=data,
    )
    if item.size > MAX_ATTACHMENT_BYTES:
        raise HTTPException(status_code=413, detail=f"{item.filename} exceeds the 25MB limit.")
    return item
