"""Scoped temporary staging for uploaded bytes.

Every upload writes its bytes to ``{tmp_dir}/{uuid}-{basename}`` before the
blob store picks them up.  The staged file is removed on both the success and
the failure path; a failed removal is logged and never masks the upload
result.
"""
import logging
import uuid
from contextlib import contextmanager
from pathlib import Path, PurePath
from typing import Iterator

from .blob_store import BlobStore, StoredBlob, select_resource_hint
from .errors import UploadFailedError

logger = logging.getLogger(__name__)


def _safe_basename(filename: str) -> str:
    # Strip any directory components a client may have sent.
    name = PurePath(filename.replace("\\", "/")).name
    return name or "upload"


@contextmanager
def staged_file(tmp_dir: str, content: bytes, filename: str) -> Iterator[Path]:
    """Write *content* to a uniquely named temp file and remove it afterwards.

    Raises:
        OSError: If the staging directory or file cannot be written.
    """
    directory = Path(tmp_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{uuid.uuid4()}-{_safe_basename(filename)}"
    try:
        path.write_bytes(content)
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove staged file %s: %s", path, exc)


async def stage_and_upload(
    blob_store: BlobStore,
    *,
    tmp_dir: str,
    content: bytes,
    filename: str,
    mime_type: str,
    folder: str,
) -> StoredBlob:
    """Stage *content* locally, push it to *blob_store* and release the stage.

    Returns:
        The StoredBlob reported by the store.

    Raises:
        UploadFailedError: On any staging or storage error.
    """
    hint = select_resource_hint(mime_type)
    try:
        with staged_file(tmp_dir, content, filename) as path:
            return await blob_store.upload(
                path,
                hint=hint,
                folder=folder,
                filename=filename,
                content_type=mime_type,
            )
    except Exception as exc:
        raise UploadFailedError(
            f"Upload of {filename!r} to {blob_store.name} failed: {exc}",
            filename=filename,
        ) from exc
