"""
Admin file uploads

Files are written under a local upload root and served from
`public_base_url`. Stored names are made unique and existing files are
never overwritten.
"""

import re
import secrets
import string
import time
from pathlib import Path
from typing import Optional

import structlog

from errors import StorageFailure

logger = structlog.get_logger(__name__)

# SVG is left out on purpose: it can carry script
ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "video/mp4",
    "video/webm",
})

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


class UploadRejected(ValueError):
    pass


def generate_unique_filename(original_name: str) -> str:
    """Sanitized stem + millisecond timestamp + random suffix, e.g. my-photo-1718000000000-k3j9x0a.jpg"""
    stem, dot, extension = original_name.rpartition(".")
    if not dot:
        stem, extension = original_name, ""
    sanitized = re.sub(r"[^a-z0-9]", "-", stem, flags=re.IGNORECASE).lower() or "file"
    extension = re.sub(r"[^a-z0-9]", "", extension.lower())
    timestamp = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(7))
    name = f"{sanitized}-{timestamp}-{suffix}"
    return f"{name}.{extension}" if extension else name


def clean_directory(directory: Optional[str]) -> str:
    parts = [re.sub(r"[^a-zA-Z0-9_-]", "", part) for part in (directory or "").split("/")]
    parts = [part for part in parts if part]
    return "/".join(parts) or "misc"


def validate_upload(content_type: Optional[str], size: int, max_bytes: int) -> None:
    if size > max_bytes:
        raise UploadRejected(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise UploadRejected(f"File type {content_type} not allowed")


class LocalFileStore:
    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, relative_path: str) -> Path:
        target = (self.root / relative_path).resolve()
        if self.root != target and self.root not in target.parents:
            raise UploadRejected("Invalid file path")
        return target

    def public_url(self, relative_path: str) -> str:
        return f"{self.public_base_url}/{relative_path}"

    def save(self, directory: str, filename: str, data: bytes) -> str:
        relative_path = f"{clean_directory(directory)}/{filename}"
        target = self._resolve(relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "x" fails instead of overwriting
            with open(target, "xb") as fh:
                fh.write(data)
        except OSError as exc:
            raise StorageFailure("upload file", exc) from exc
        logger.info("file_uploaded", path=relative_path, size=len(data))
        return relative_path

    def delete(self, relative_path: str) -> bool:
        target = self._resolve(relative_path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageFailure("delete file", exc) from exc
        logger.info("file_deleted", path=relative_path)
        return True
