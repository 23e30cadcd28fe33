"""Upload orchestrator for share links.

Drives a batch of files through the blob store and records the results in
the LinkRegistry.  The folder is published only after every file uploaded;
on the first failure the remaining files are skipped and the half-built
folder is discarded, so no link ever points at a partial batch.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from app.storage.blob_store import BlobStore, absolute_url
from app.storage.errors import UploadFailedError
from app.storage.staging import stage_and_upload

from .errors import BatchTooLargeError, EmptyBatchError
from .registry import LinkRegistry
from .schemas import FileDescriptor

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES = 50


@dataclass(frozen=True)
class UploadItem:
    """One file of an upload batch, already read into memory."""
    content:   bytes
    filename:  str
    mime_type: str


class LinkUploadService:
    """Turns upload batches into published folders.

    Args:
        registry:   Registry that receives the folder.
        blob_store: Store the file bytes are pushed to.
        tmp_dir:    Directory for per-file staging.
        folder:     Blob store folder for link uploads.
        max_files:  Largest accepted batch.
    """

    def __init__(
        self,
        registry: LinkRegistry,
        blob_store: BlobStore,
        tmp_dir: str = "tmp",
        folder: str = "uploads",
        max_files: int = DEFAULT_MAX_FILES,
    ) -> None:
        self._registry = registry
        self._blob_store = blob_store
        self._tmp_dir = tmp_dir
        self._folder = folder
        self._max_files = max_files

    @property
    def registry(self) -> LinkRegistry:
        return self._registry

    async def submit_batch(
        self,
        title: Optional[str],
        retention_days: int,
        files: Sequence[UploadItem],
        base_url: Optional[str] = None,
    ) -> str:
        """Upload a batch and return the id of the published folder.

        Files are uploaded one at a time in input order, so the folder's file
        list always matches the order of *files*.
        Root-relative blob URLs are made absolute against *base_url*.

        Raises:
            EmptyBatchError: If *files* is empty (nothing is allocated).
            BatchTooLargeError: If *files* exceeds the configured limit.
            UploadFailedError: If any file fails; later files are not attempted.
        """
        if not files:
            raise EmptyBatchError()
        if len(files) > self._max_files:
            raise BatchTooLargeError(len(files), self._max_files)

        folder_id = self._registry.create(title, retention_days)

        try:
            for index, item in enumerate(files):
                stored = await stage_and_upload(
                    self._blob_store,
                    tmp_dir=self._tmp_dir,
                    content=item.content,
                    filename=item.filename,
                    mime_type=item.mime_type,
                    folder=self._folder,
                )
                url = absolute_url(stored.url, base_url)
                self._registry.append_file(
                    folder_id,
                    FileDescriptor(url=url, mime_type=item.mime_type, title=item.filename),
                )
                logger.debug(
                    "[Links] %s: uploaded file %d/%d %s -> %s",
                    folder_id, index + 1, len(files), item.filename, url,
                )
        except UploadFailedError as exc:
            logger.error(f"[Links] Batch for folder {folder_id} failed: {exc.message}")
            self._registry.discard(folder_id)
            raise

        self._registry.publish(folder_id)
        return folder_id
