"""Abstract BlobStore interface and resource classification helpers.

Every storage back-end (local directory, S3-compatible bucket, …) implements
this interface so the upload paths stay provider-agnostic.
"""
import asyncio
import functools
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

# Extensions that are safe to put in a URL path unescaped.
_SAFE_SUFFIX = re.compile(r"\.[a-z0-9]{1,16}")


class ResourceHint(str, Enum):
    """How the store should treat an uploaded file.

    Attributes:
        RAW: Store the bytes untouched (no image/video processing).
        AUTO: Let the store classify the file from its content type.
    """
    RAW = "raw"
    AUTO = "auto"


class ResourceKind(str, Enum):
    """Classification reported back by the store after an upload."""
    IMAGE = "image"
    VIDEO = "video"
    RAW = "raw"


@dataclass(frozen=True)
class StoredBlob:
    url: str
    kind: ResourceKind
    key: str = ""


def select_resource_hint(mime_type: str) -> ResourceHint:
    """PDFs go up as raw bytes; everything else is auto-classified."""
    if mime_type == "application/pdf":
        return ResourceHint.RAW
    return ResourceHint.AUTO


def classify_resource(mime_type: str, hint: ResourceHint) -> ResourceKind:
    """Mirror the store-side classification for a given hint.

    Audio is reported as video, which is how media stores usually bucket it.
    """
    if hint == ResourceHint.RAW:
        return ResourceKind.RAW
    if mime_type.startswith("image/"):
        return ResourceKind.IMAGE
    if mime_type.startswith(("video/", "audio/")):
        return ResourceKind.VIDEO
    return ResourceKind.RAW


def make_object_key(folder: str, filename: str) -> str:
    """Build a collision-free object key that keeps the file extension."""
    ext = PurePosixPath(filename).suffix.lower()
    if not _SAFE_SUFFIX.fullmatch(ext):
        ext = ""
    return f"{folder.strip('/')}/{uuid.uuid4().hex}{ext}"


def absolute_url(url: str, base_url: Optional[str]) -> str:
    """Prefix a root-relative blob URL with *base_url*; other URLs pass through."""
    if base_url and url.startswith("/"):
        return f"{base_url.rstrip('/')}{url}"
    return url


class BlobStore(ABC):
    """Abstract base class for blob stores.

    Implementations only provide the blocking ``upload_sync``; ``upload``
    runs it on the default executor so the event loop is never blocked.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend name used in log lines."""

    @abstractmethod
    def upload_sync(
        self,
        path: Path,
        *,
        hint: ResourceHint,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredBlob:
        """Store the file at *path* and return its durable URL.

        Raises:
            Exception: On any storage error (network, auth, disk, …).
        """

    async def upload(
        self,
        path: Path,
        *,
        hint: ResourceHint,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredBlob:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            functools.partial(
                self.upload_sync,
                path,
                hint=hint,
                folder=folder,
                filename=filename,
                content_type=content_type,
            ),
        )
