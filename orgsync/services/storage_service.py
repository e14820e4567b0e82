"""
orgsync.services.storage_service — Object storage
===================================================

Image objects (avatars, minigame sprites, contest screenshots, org
pictures) live in per-bucket directories under ``ORGSYNC_STORAGE_DIR`` and
are served by the static-file mount at ``/api/storage``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from orgsync.constants import STORAGE_BUCKETS
from orgsync.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STORAGE_DIR = Path(os.getenv("ORGSYNC_STORAGE_DIR", "storage"))
STORAGE_URL_PREFIX = "/api/storage"
MAX_FILE_SIZE = 25 * 1024 * 1024  # 25 MB
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
}


@dataclass(frozen=True, slots=True)
class ImageUpload:
    """An uploaded file as received from a multipart form."""

    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


def ensure_storage_dirs(root: Path | None = None) -> None:
    """Create the bucket directories if they don't exist."""
    base = root or STORAGE_DIR
    for bucket in STORAGE_BUCKETS:
        (base / bucket).mkdir(parents=True, exist_ok=True)


def _object_path(bucket: str, path: str, root: Path | None = None) -> Path:
    if bucket not in STORAGE_BUCKETS:
        raise ValidationError(f"Unknown storage bucket: {bucket!r}")
    parts = PurePosixPath(path.strip().lstrip("/")).parts
    if not parts or any(p in ("..", ".") for p in parts):
        raise ValidationError(f"Invalid object path: {path!r}")
    return (root or STORAGE_DIR) / bucket / Path(*parts)


def validate_image(filename: str, content: bytes, content_type: str | None = None) -> str:
    """Check size, extension and MIME type; return the lower-cased extension."""
    if not content:
        raise ValidationError("File is empty")
    if len(content) > MAX_FILE_SIZE:
        raise ValidationError(
            f"File too large: {len(content)} bytes (max {MAX_FILE_SIZE // 1024 // 1024}MB)"
        )

    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    if content_type and content_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(
            f"MIME type not allowed: {content_type!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )
    return ext


def save_object(
    bucket: str,
    path: str,
    content: bytes,
    content_type: str | None = None,
    *,
    upsert: bool = False,
    root: Path | None = None,
) -> str:
    """Validate and write an object; return its public URL.

    Raises
    ------
    ValidationError
        Unknown bucket, unsafe path, or a file failing the image checks.
    ConflictError
        The object exists and *upsert* is false.
    """
    validate_image(path, content, content_type)
    dest = _object_path(bucket, path, root)
    if dest.exists() and not upsert:
        raise ConflictError(f"Object already exists: {bucket}/{path}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(content)
    logger.info("Stored %s/%s (%d bytes)", bucket, path, len(content))
    return public_url(bucket, path)


def public_url(bucket: str, path: str) -> str:
    """Public URL of an object (prefixed with ``ORGSYNC_PUBLIC_URL`` if set)."""
    base = os.getenv("ORGSYNC_PUBLIC_URL", "").rstrip("/")
    return f"{base}{STORAGE_URL_PREFIX}/{bucket}/{path.lstrip('/')}"


def read_object(bucket: str, path: str, *, root: Path | None = None) -> bytes:
    dest = _object_path(bucket, path, root)
    if not dest.is_file():
        raise NotFoundError(f"Object not found: {bucket}/{path}")
    return dest.read_bytes()


def delete_object(bucket: str, path: str, *, root: Path | None = None) -> bool:
    """Remove an object.  Returns True if it existed."""
    dest = _object_path(bucket, path, root)
    if dest.is_file():
        dest.unlink()
        logger.info("Deleted %s/%s", bucket, path)
        return True
    return False


def store_image(bucket: str, stem: str, upload: ImageUpload, *, upsert: bool = True) -> str:
    """Validate *upload* and save it as ``<stem><ext>``; returns the public URL."""
    ext = validate_image(upload.filename, upload.content, upload.content_type)
    return save_object(bucket, f"{stem}{ext}", upload.content, upload.content_type, upsert=upsert)


def object_path(bucket: str, url: str | None) -> str | None:
    """Path inside *bucket* of a URL returned by :func:`public_url`, else None."""
    if not url:
        return None
    marker = f"{STORAGE_URL_PREFIX}/{bucket}/"
    _, found, path = url.partition(marker)
    if not found or not path:
        return None
    return path


def discard_replaced(bucket: str, old_url: str | None, new_url: str) -> bool:
    """Delete the object behind *old_url* once *new_url* has replaced it.

    Re-uploads with a different extension land on a new path; the
    previous file would otherwise stay in the bucket.
    """
    if not old_url or old_url == new_url:
        return False
    path = object_path(bucket, old_url)
    if path is None or path == object_path(bucket, new_url):
        return False
    return delete_object(bucket, path)
