"""Local-disk blob store.

Copies staged files into ``{root}/{folder}/{uuid}.{ext}`` and hands out URLs
under ``/blobs`` which ``app.storage.router`` serves back.  Meant for
development and single-node deployments without object storage credentials.
"""
import logging
import shutil
from pathlib import Path
from typing import Optional

from .blob_store import (
    BlobStore,
    ResourceHint,
    StoredBlob,
    classify_resource,
    make_object_key,
)

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """Blob store that keeps files in a directory on this machine."""

    def __init__(self, root: str, public_base_url: Optional[str] = None) -> None:
        self._root = Path(root).resolve()
        self._public_base_url = (public_base_url or "").rstrip("/")

    @property
    def name(self) -> str:
        return "local"

    @property
    def root(self) -> Path:
        return self._root

    def resolve_key(self, key: str) -> Optional[Path]:
        """Map an object key back to a file, refusing keys outside the root."""
        candidate = (self._root / key).resolve()
        if self._root not in candidate.parents:
            return None
        if not candidate.is_file():
            return None
        return candidate

    def upload_sync(
        self,
        path: Path,
        *,
        hint: ResourceHint,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredBlob:
        key = make_object_key(folder, filename)
        target = self._root / key
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(path, target)

        logger.info(f"[storage/local] Stored {filename} as {target} ({hint.value})")
        return StoredBlob(
            url=f"{self._public_base_url}/blobs/{key}",
            kind=classify_resource(content_type, hint),
            key=key,
        )
