"""In-memory link registry with lazy expiry.

Folders are created empty, filled while their files upload, then published.
Only published folders are visible to ``resolve()``, so a reader can never
observe a folder with a subset of its files.

Expiry is checked on every read against the registry clock.  An optional
background sweep evicts expired folders to bound memory; it is disabled by
default and correctness never depends on it.

The registry is NOT persisted.  It starts empty and is lost on restart.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from .errors import FolderNotFoundError, FolderSealedError
from .schemas import (
    DEFAULT_FOLDER_TITLE,
    DEFAULT_RETENTION_DAYS,
    RETENTION_OPTIONS,
    FileDescriptor,
    FolderRecord,
    Resolution,
    ResolveStatus,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ALLOWED_RETENTION_DAYS = frozenset(RETENTION_OPTIONS.values())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_folder_id() -> str:
    # 128-bit random token
    return uuid.uuid4().hex


@dataclass
class _FolderEntry:
    id:         str
    title:      str
    created_at: datetime
    expire_at:  datetime
    files:      List[FileDescriptor] = field(default_factory=list)
    published:  bool = False

    def snapshot(self) -> FolderRecord:
        return FolderRecord(
            id=self.id,
            title=self.title,
            created_at=self.created_at,
            expire_at=self.expire_at,
            files=tuple(self.files),
        )


class LinkRegistry:
    """Thread-safe in-memory table of folders keyed by folder id.

    Args:
        clock: Returns the current UTC instant.  Injected by tests to
               simulate the passage of time.
        default_title: Title used when the uploader supplies none.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        default_title: str = DEFAULT_FOLDER_TITLE,
    ) -> None:
        self._clock: Clock = clock or utc_now
        self._default_title = default_title
        self._folders: Dict[str, _FolderEntry] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    def __len__(self) -> int:
        with self._lock:
            return len(self._folders)

    def __contains__(self, folder_id: object) -> bool:
        with self._lock:
            return folder_id in self._folders

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def create(self, title: Optional[str], retention_days: int) -> str:
        """Allocate an empty, unpublished folder and return its id."""
        if retention_days not in ALLOWED_RETENTION_DAYS:
            logger.debug(
                "[Links] Unsupported retention %r, using %d days",
                retention_days, DEFAULT_RETENTION_DAYS,
            )
            retention_days = DEFAULT_RETENTION_DAYS

        now = self._clock()
        entry = _FolderEntry(
            id=_new_folder_id(),
            title=(title or "").strip() or self._default_title,
            created_at=now,
            expire_at=now + timedelta(days=retention_days),
        )
        with self._lock:
            self._folders[entry.id] = entry

        logger.info(
            "[Links] Created folder %s (retention=%dd, expires %s)",
            entry.id, retention_days, entry.expire_at.isoformat(),
        )
        return entry.id

    def append_file(self, folder_id: str, descriptor: FileDescriptor) -> None:
        """Append a file to an unpublished folder.

        Raises:
            FolderNotFoundError: If the folder id is unknown.
            FolderSealedError: If the folder was already published.
        """
        with self._lock:
            entry = self._folders.get(folder_id)
            if entry is None:
                raise FolderNotFoundError(folder_id)
            if entry.published:
                raise FolderSealedError(folder_id)
            entry.files.append(descriptor)

    def publish(self, folder_id: str) -> FolderRecord:
        """Make a folder visible to readers and freeze its file list.

        Raises:
            FolderNotFoundError: If the folder id is unknown.
        """
        with self._lock:
            entry = self._folders.get(folder_id)
            if entry is None:
                raise FolderNotFoundError(folder_id)
            entry.published = True
            record = entry.snapshot()
        logger.info(f"[Links] Published folder {folder_id} with {len(record.files)} file(s)")
        return record

    def discard(self, folder_id: str) -> bool:
        """Drop a folder. Returns False if it did not exist."""
        with self._lock:
            removed = self._folders.pop(folder_id, None)
        if removed is not None:
            logger.info(f"[Links] Discarded folder {folder_id}")
        return removed is not None

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def resolve(self, folder_id: str) -> Resolution:
        """Look up a folder for rendering.

        Returns:
            NOT_FOUND for unknown or unpublished ids, EXPIRED once the clock
            is strictly past ``expire_at``, otherwise FOUND with a snapshot.
        """
        with self._lock:
            entry = self._folders.get(folder_id)
            if entry is None or not entry.published:
                return Resolution(status=ResolveStatus.NOT_FOUND)
            record = entry.snapshot()

        if self._clock() > record.expire_at:
            return Resolution(status=ResolveStatus.EXPIRED)
        return Resolution(status=ResolveStatus.FOUND, record=record)

    # ------------------------------------------------------------------
    # Optional background sweep
    # ------------------------------------------------------------------

    def sweep_expired(self) -> int:
        """Evict every expired folder. Returns the number evicted."""
        now = self._clock()
        with self._lock:
            expired = [k for k, v in self._folders.items() if now > v.expire_at]
            for k in expired:
                del self._folders[k]
        if expired:
            logger.info("[Links] Sweep evicted %d expired folder(s)", len(expired))
        return len(expired)

    async def start_sweeper(self, interval_seconds: float) -> None:
        """Start the periodic sweep task."""
        if self._sweep_task is not None:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(interval_seconds))
        logger.info("[Links] Sweep task started (interval=%ss)", interval_seconds)

    async def stop_sweeper(self) -> None:
        """Cancel the sweep task if running."""
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
        logger.info("[Links] Sweep task stopped")

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep_expired()
