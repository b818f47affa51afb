"""Materialization store persisting the imported folder/file hierarchy."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path

from .errors import MissingStateError, StateError
from .models import (
    ROOT_FOLDER_ID,
    FileRecord,
    FileRecordDraft,
    FolderRecord,
    StoreSnapshot,
)

DEFAULT_STORE_FILENAME = "store.json"

LOGGER = logging.getLogger(__name__)


class MaterializationStore:
    """Thread-safe folder/file repository with create-if-absent semantics.

    Folder uniqueness is enforced per ``(parent_id, name)`` and file uniqueness
    per dedup key. Concurrent creators of the same logical node all receive the
    single winning record. Records are kept in memory and written to a JSON
    file by :meth:`flush`, which :meth:`create_folder` and :meth:`create_file`
    trigger every ``autosave_every`` creations when a path is configured.
    """

    def __init__(self, path: Path | None = None, *, autosave_every: int = 100) -> None:
        """Initialize an empty store.

        Args:
            path: JSON file backing the store; ``None`` keeps the store in memory.
            autosave_every: Number of creations between automatic flushes.
        """
        self._path = path
        self._autosave_every = max(1, autosave_every)
        self._lock = threading.RLock()
        self._snapshot = StoreSnapshot()
        self._folder_index: dict[tuple[int, str], int] = {}
        self._file_index: dict[str, int] = {}
        self._pending_writes = 0
        self._disk_mtime: int | None = None

    @classmethod
    def open(
        cls,
        directory: Path,
        *,
        filename: str = DEFAULT_STORE_FILENAME,
        autosave_every: int = 100,
    ) -> "MaterializationStore":
        """Open the store kept in ``directory``, creating an empty one if missing.

        Args:
            directory: Directory that holds the store file.
            filename: Name of the JSON store file.
            autosave_every: Number of creations between automatic flushes.

        Returns:
            MaterializationStore: Loaded store bound to the file.

        Raises:
            StateError: If an existing store file cannot be parsed.
        """
        store = cls(directory / filename, autosave_every=autosave_every)
        try:
            store.load()
        except MissingStateError:
            LOGGER.debug("No store found at %s; starting empty.", store.path)
        return store

    @property
    def path(self) -> Path | None:
        """Return the JSON file backing the store, if any."""
        return self._path

    # ------------------------------------------------------------------ #
    # Persistence                                                        #
    # ------------------------------------------------------------------ #

    def load(self) -> None:
        """Replace the in-memory state with the contents of the store file.

        Raises:
            MissingStateError: If the store file does not exist.
            StateError: If stored data cannot be parsed.
        """
        if self._path is None:
            raise MissingStateError("Store has no backing file.")
        if not self._path.exists():
            raise MissingStateError(f"No store found at {self._path}")

        mtime = self._disk_version()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            snapshot = StoreSnapshot.model_validate(data)
        except (json.JSONDecodeError, ValueError) as exc:
            raise StateError(f"Invalid store data in {self._path}: {exc}") from exc

        with self._lock:
            self._snapshot = snapshot
            self._folder_index = {
                (folder.parent_id, folder.name): folder.id for folder in snapshot.folders.values()
            }
            self._file_index = {record.dedup_key: record.id for record in snapshot.files.values()}
            self._pending_writes = 0
            self._disk_mtime = mtime

    def flush(self) -> None:
        """Write the store to disk atomically if a backing file is configured.

        The store has a single writer. If the file changed on disk since this
        instance last loaded or wrote it, nothing is written.

        Raises:
            StateError: If another writer replaced the store file in the meantime.
        """
        if self._path is None:
            return
        with self._lock:
            if self._disk_version() != self._disk_mtime:
                raise StateError(
                    f"{self._path} was changed by another writer since it was loaded; "
                    "reopen the store and run the import again."
                )
            self._snapshot.updated_at = datetime.now(timezone.utc)
            payload = self._snapshot.model_dump(mode="json")
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_name(self._path.name + ".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
            self._disk_mtime = self._disk_version()
            self._pending_writes = 0

    def _disk_version(self) -> int | None:
        try:
            return self._path.stat().st_mtime_ns if self._path is not None else None
        except FileNotFoundError:
            return None

    def _record_write(self) -> None:
        self._pending_writes += 1
        if self._path is None or self._pending_writes < self._autosave_every:
            return
        try:
            self.flush()
        except (OSError, StateError) as exc:
            # Records stay in memory and the next creation retries the write.
            LOGGER.warning("Autosave of %s failed: %s", self._path, exc)

    # ------------------------------------------------------------------ #
    # Folders                                                            #
    # ------------------------------------------------------------------ #

    def find_folder(self, parent_id: int, name: str) -> FolderRecord | None:
        """Return the folder named ``name`` under ``parent_id`` if present."""
        with self._lock:
            folder_id = self._folder_index.get((parent_id, name))
            return self._snapshot.folders[folder_id] if folder_id is not None else None

    def get_folder(self, folder_id: int) -> FolderRecord | None:
        """Return the folder with the given identifier."""
        with self._lock:
            return self._snapshot.folders.get(folder_id)

    def create_folder(self, parent_id: int, name: str) -> tuple[FolderRecord, bool]:
        """Create a folder unless one already exists for ``(parent_id, name)``.

        Args:
            parent_id: Identifier of the parent folder.
            name: Folder name.

        Returns:
            tuple[FolderRecord, bool]: The stored record and whether it was created
            by this call. A concurrent creator that lost the race receives the
            existing record with ``False``.
        """
        with self._lock:
            existing = self.find_folder(parent_id, name)
            if existing is not None:
                return existing, False
            folder = FolderRecord(id=self._allocate_id(), parent_id=parent_id, name=name)
            self._snapshot.folders[folder.id] = folder
            self._folder_index[(parent_id, name)] = folder.id
            self._record_write()
            return folder, True

    def list_folders(self, parent_id: int | None = None) -> list[FolderRecord]:
        """Return folders, optionally restricted to children of ``parent_id``."""
        with self._lock:
            folders = list(self._snapshot.folders.values())
        if parent_id is None:
            return folders
        return [folder for folder in folders if folder.parent_id == parent_id]

    def folder_path(self, folder_id: int) -> list[str]:
        """Return the chain of folder names from the root down to ``folder_id``.

        Raises:
            StateError: If the chain references an unknown folder.
        """
        names: list[str] = []
        current = folder_id
        seen: set[int] = set()
        with self._lock:
            while current != ROOT_FOLDER_ID:
                folder = self.get_folder(current)
                if folder is None or current in seen:
                    raise StateError(f"Broken folder chain at id {current}")
                seen.add(current)
                names.append(folder.name)
                current = folder.parent_id
        return list(reversed(names))

    # ------------------------------------------------------------------ #
    # Files                                                              #
    # ------------------------------------------------------------------ #

    def find_file(self, dedup_key: str) -> FileRecord | None:
        """Return the file recorded under ``dedup_key`` if present."""
        with self._lock:
            file_id = self._file_index.get(dedup_key)
            return self._snapshot.files[file_id] if file_id is not None else None

    def exists_by_dedup_key(self, dedup_key: str) -> bool:
        """Return whether a file has been recorded under ``dedup_key``."""
        with self._lock:
            return dedup_key in self._file_index

    def create_file(self, draft: FileRecordDraft) -> tuple[FileRecord, bool]:
        """Persist a file record unless its dedup key is already taken.

        Args:
            draft: Metadata describing the materialized file.

        Returns:
            tuple[FileRecord, bool]: The stored record and whether it was created
            by this call.
        """
        with self._lock:
            existing = self.find_file(draft.dedup_key)
            if existing is not None:
                return existing, False
            record = FileRecord(id=self._allocate_id(), **draft.model_dump())
            self._snapshot.files[record.id] = record
            self._file_index[record.dedup_key] = record.id
            self._record_write()
            return record, True

    def list_files(self, parent_id: int | None = None) -> list[FileRecord]:
        """Return files, optionally restricted to children of ``parent_id``."""
        with self._lock:
            files = list(self._snapshot.files.values())
        if parent_id is None:
            return files
        return [record for record in files if record.parent_id == parent_id]

    def counts(self) -> dict[str, int]:
        """Return the number of stored folders and files."""
        with self._lock:
            return {
                "folders": len(self._snapshot.folders),
                "files": len(self._snapshot.files),
            }

    def _allocate_id(self) -> int:
        allocated = self._snapshot.next_id
        self._snapshot.next_id += 1
        return allocated


__all__ = [
    "MaterializationStore",
    "DEFAULT_STORE_FILENAME",
    "ROOT_FOLDER_ID",
    "FolderRecord",
    "FileRecord",
    "FileRecordDraft",
    "StoreSnapshot",
    "StateError",
    "MissingStateError",
]
