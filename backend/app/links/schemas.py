"""Pydantic schemas for expiring share links.

This module defines the data models for DropLink folders:
- FileDescriptor: One uploaded file as shown in the viewer
- FolderRecord: Immutable snapshot of a published folder
- Resolution / ResolveStatus: Three-way lookup result of the registry
- UploadLinkResponse: API response after a successful batch upload

Retention is chosen by a human-readable selector ("1 Day", "3 Days", …);
anything unrecognised keeps the folder for seven days.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Recognised retention selectors (label -> days)
RETENTION_OPTIONS = {
    "1 Day": 1,
    "3 Days": 3,
    "7 Days": 7,
}

DEFAULT_RETENTION_DAYS = 7

DEFAULT_FOLDER_TITLE = "My Folder"


def retention_days_from_label(label: Optional[str]) -> int:
    """Translate a retention selector into a number of days.

    Examples:
        >>> retention_days_from_label("3 Days")
        3
        >>> retention_days_from_label("forever")
        7
    """
    if label is None:
        return DEFAULT_RETENTION_DAYS
    return RETENTION_OPTIONS.get(label.strip(), DEFAULT_RETENTION_DAYS)


class FileDescriptor(BaseModel):
    """One uploaded file inside a folder."""
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Durable URL returned by the blob store")
    mime_type: str = Field(..., description="Original content type")
    title: str = Field(..., description="Original filename (display only)")


class FolderRecord(BaseModel):
    """Published folder as handed to the viewer.

    Records are snapshots: the registry never mutates a record it has
    returned, and the file list is frozen once the folder is published.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque folder id used as the link key")
    title: str = Field(..., description="Display title")
    created_at: datetime = Field(..., description="Creation instant (UTC)")
    expire_at: datetime = Field(..., description="Expiry instant (UTC)")
    files: Tuple[FileDescriptor, ...] = Field(default=(), description="Files in upload order")


class ResolveStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


class Resolution(BaseModel):
    """Result of LinkRegistry.resolve()."""
    model_config = ConfigDict(frozen=True)

    status: ResolveStatus
    record: Optional[FolderRecord] = None

    @property
    def found(self) -> bool:
        return self.status == ResolveStatus.FOUND


class UploadLinkResponse(BaseModel):
    """Response after a successful batch upload."""
    link: str = Field(..., description="Absolute URL of the viewer page")
