"""Persisted folder and file records owned by the materialization store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, Field

ROOT_FOLDER_ID = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FolderRecord(BaseModel):
    """A directory reproduced from the import tree.

    Attributes:
        id: Identifier assigned by the store.
        parent_id: Identifier of the parent folder, or ``ROOT_FOLDER_ID``.
        name: Base name of the source directory.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    id: int
    parent_id: int
    name: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class FileRecordDraft(BaseModel):
    """Metadata for a materialized file that has not been persisted yet.

    Attributes:
        parent_id: Identifier of the owning folder.
        name: Original base name of the imported file.
        type: Coarse media type classified from the extension.
        url: Storage path relative to the work directory, using forward slashes.
        fs_path: Absolute path of the materialized copy.
        size: Size of the source file in bytes.
        dedup_key: Key under which the store enforces uniqueness.
        content_hash: Content fingerprint, present under the content hash policy.
        original_path: Absolute source path at import time.
        can_read: Whether the file is readable through the attachment tree.
    """

    parent_id: int
    name: str
    type: str
    url: str
    fs_path: str
    size: int
    dedup_key: str
    content_hash: Optional[str] = None
    original_path: Optional[str] = None
    can_read: bool = True


class FileRecord(FileRecordDraft):
    """A persisted file record."""

    id: int
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class StoreSnapshot(BaseModel):
    """Serialized form of the whole store."""

    next_id: int = ROOT_FOLDER_ID + 1
    folders: Dict[int, FolderRecord] = Field(default_factory=dict)
    files: Dict[int, FileRecord] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = [
    "ROOT_FOLDER_ID",
    "FolderRecord",
    "FileRecordDraft",
    "FileRecord",
    "StoreSnapshot",
]
