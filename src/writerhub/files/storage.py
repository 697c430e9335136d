"""Local disk storage for uploaded files."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from writerhub.config import get_settings

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "image/jpeg",
        "image/png",
        "image/gif",
    }
)
DOCUMENT_EXTENSIONS = frozenset({".pdf", ".doc", ".docx", ".txt"})


class UploadRejectedError(ValueError):
    """Wrong type or empty upload."""


class UploadTooLargeError(ValueError):
    pass


@dataclass(frozen=True)
class StoredFile:
    filename: str
    original_name: str
    content_type: str
    size: int
    path: str


def safe_name(upload: UploadFile) -> str:
    return Path(upload.filename or "upload.bin").name or "upload.bin"


def check_content_type(upload: UploadFile) -> None:
    if upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise UploadRejectedError("Invalid file type. Allowed: PDF, DOC, DOCX, TXT, JPG, PNG, GIF")


def check_document_extension(upload: UploadFile) -> None:
    if Path(safe_name(upload)).suffix.lower() not in DOCUMENT_EXTENSIONS:
        raise UploadRejectedError("Invalid file type. Only PDF, DOC, DOCX, and TXT files are allowed.")


async def read_limited(upload: UploadFile, max_bytes: int | None = None) -> bytes:
    """Read the whole upload, refusing anything over ``max_bytes``."""
    limit = max_bytes or get_settings().upload_max_bytes
    content = await upload.read(limit + 1)
    if len(content) > limit:
        raise UploadTooLargeError(f"File '{safe_name(upload)}' exceeds max size of {limit} bytes")
    return content


def store_bytes(content: bytes, original_name: str, content_type: str | None, subdir: str) -> StoredFile:
    """Write under ``{upload_dir}/{subdir}`` with a unique name keeping the extension."""
    folder = Path(get_settings().upload_dir) / subdir
    folder.mkdir(parents=True, exist_ok=True)
    filename = f"{int(time.time() * 1000)}-{secrets.token_hex(5)}{Path(original_name).suffix}"
    destination = folder / filename
    destination.write_bytes(content)
    return StoredFile(
        filename=filename,
        original_name=original_name,
        content_type=content_type or "application/octet-stream",
        size=len(content),
        path=str(destination),
    )


def remove_stored(path: str) -> None:
    Path(path).unlink(missing_ok=True)
