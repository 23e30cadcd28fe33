"""Shared test fixtures and configuration for backend tests."""
import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest
from fastapi.testclient import TestClient

from app.config import AppSettings
from app.links.registry import LinkRegistry
from app.main import create_app
from app.chat.relay import RoomRelay
from app.storage.blob_store import (
    BlobStore,
    ResourceHint,
    StoredBlob,
    classify_resource,
)


class FakeBlobStore(BlobStore):
    """In-memory BlobStore that records every upload.

    Args:
        fail_on: Filenames whose upload raises.
        delays: Per-filename latency in seconds.
    """

    def __init__(
        self,
        fail_on: Optional[Set[str]] = None,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.fail_on = set(fail_on or ())
        self.delays = dict(delays or {})
        self.uploads: List[dict] = []
        self.attempts: List[str] = []

    @property
    def name(self) -> str:
        return "fake"

    def upload_sync(self, path, *, hint, folder, filename, content_type):  # pragma: no cover
        raise NotImplementedError

    async def upload(
        self,
        path: Path,
        *,
        hint: ResourceHint,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredBlob:
        self.attempts.append(filename)
        # The staged file must exist while the store reads it.
        content = Path(path).read_bytes()
        await asyncio.sleep(self.delays.get(filename, 0))
        if filename in self.fail_on:
            raise RuntimeError(f"simulated storage outage for {filename}")
        key = f"{folder}/{len(self.uploads)}-{filename}"
        self.uploads.append({
            "path": Path(path),
            "hint": hint,
            "folder": folder,
            "filename": filename,
            "content_type": content_type,
            "content": content,
        })
        return StoredBlob(
            url=f"https://blobs.example.com/{key}",
            kind=classify_resource(content_type, hint),
            key=key,
        )


class FakeClock:
    """Settable UTC clock for expiry tests."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return LinkRegistry(clock=clock)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def app_config(tmp_path):
    """Settings pointing every writable directory into tmp_path."""
    return AppSettings(
        server={"public_base_url": "http://testserver"},
        uploads={"tmp_dir": str(tmp_path / "tmp")},
        blob_store={"local_dir": str(tmp_path / "blobs")},
    )


@pytest.fixture
def test_app(app_config, blob_store, registry):
    return create_app(
        config=app_config,
        blob_store=blob_store,
        registry=registry,
        relay=RoomRelay(),
    )


@pytest.fixture
def api_client(test_app):
    """Provide a TestClient for a freshly built app."""
    with TestClient(test_app) as client:
        yield client
