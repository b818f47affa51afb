"""Process-lifecycle entry points for triggering an import sweep."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Optional

from linkimport.config import LinkImportConfig
from linkimport.ingestion import (
    HashComputer,
    ImportResult,
    ImportRootError,
    LinkOrCopyTransferer,
    PathClassifier,
    StorageLayout,
    TreeImporter,
    policy_for,
)
from linkimport.state import ROOT_FOLDER_ID, MaterializationStore

LOGGER = logging.getLogger(__name__)


class ImportService:
    """Own the store and run import sweeps for a configured work directory.

    ``run()`` performs one blocking sweep, ``start()`` performs one in a
    background thread, and ``shutdown()`` cancels in-flight sweeps and flushes
    the store. Sweeps are idempotent and may run repeatedly or concurrently
    against the same store.
    """

    def __init__(
        self,
        config: LinkImportConfig,
        *,
        store: Optional[MaterializationStore] = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Loaded linkimport configuration.
            store: Store to materialize into; opened from the work directory when omitted.
        """
        self._config = config
        self._settings = config.importer
        self._store = store
        self._store_lock = threading.Lock()
        self._active_lock = threading.Lock()
        self._active: set[TreeImporter] = set()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_result: Optional[ImportResult] = None
        self.last_error: Optional[BaseException] = None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def store(self) -> MaterializationStore:
        """Return the store, opening it from the work directory on first use."""
        with self._store_lock:
            if self._store is None:
                self._store = MaterializationStore.open(
                    self._config.store_dir(),
                    filename=self._config.store.filename,
                    autosave_every=self._config.store.autosave_every,
                )
            return self._store

    def prepare_root(self) -> Path:
        """Return the import root, creating it when missing.

        Raises:
            ImportRootError: If the import root exists but is a regular file.
        """
        root = self._settings.import_root()
        if root.is_file():
            raise ImportRootError(f"Import root {root} must be a directory, not a file.")
        if not root.exists():
            root.mkdir(parents=True, exist_ok=True)
            LOGGER.info("Created import directory %s", root)
        return root

    def build_importer(self, store: MaterializationStore) -> TreeImporter:
        """Assemble a tree importer from the configured collaborators."""
        settings = self._settings
        hasher = HashComputer(chunk_size=settings.chunk_size_kb * 1024)
        return TreeImporter(
            store,
            classifier=PathClassifier(
                follow_symlinks=settings.follow_symlinks,
                include_hidden=settings.include_hidden,
                extra_media_types=settings.media_types,
            ),
            policy=policy_for(settings.dedup_policy, hasher),
            transferer=LinkOrCopyTransferer(prefer_hardlink=settings.prefer_hardlink),
            layout=StorageLayout(settings.resolved_work_dir(), settings.storage_root()),
            max_workers=settings.max_workers,
        )

    async def run_async(self) -> ImportResult:
        """Run one import sweep on the current event loop.

        Raises:
            ImportRootError: If the import root is misconfigured.
            RuntimeError: If the service was shut down.
        """
        if self._stop_event.is_set():
            raise RuntimeError("ImportService has been shut down.")

        root = self.prepare_root()
        store = self.store
        importer = self.build_importer(store)
        with self._active_lock:
            self._active.add(importer)
        if self._stop_event.is_set():
            importer.cancel()
        try:
            result = await importer.import_tree(root, ROOT_FOLDER_ID)
        finally:
            with self._active_lock:
                self._active.discard(importer)
            importer.close()
            store.flush()
        self.last_result = result
        return result

    def run(self) -> ImportResult:
        """Run one import sweep and block until it completes."""
        return asyncio.run(self.run_async())

    def start(self) -> threading.Thread:
        """Run one import sweep in a background thread.

        Returns:
            threading.Thread: The worker thread; its outcome is exposed through
            ``last_result`` and ``last_error``.

        Raises:
            RuntimeError: If a background sweep is already running.
        """
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("An import sweep is already running.")
        self.last_error = None
        self._thread = threading.Thread(
            target=self._run_in_background, name="linkimport-sweep", daemon=True
        )
        self._thread.start()
        return self._thread

    def shutdown(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Cancel in-flight sweeps and flush the store.

        Args:
            wait: Whether to join the background thread started by ``start()``.
            timeout: Maximum number of seconds to wait for the thread.
        """
        self._stop_event.set()
        with self._active_lock:
            importers = list(self._active)
        for importer in importers:
            importer.cancel()
        if wait and self._thread is not None:
            self._thread.join(timeout=timeout)
        if self._store is not None:
            self._store.flush()
        LOGGER.info("Import service stopped.")

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _run_in_background(self) -> None:
        try:
            self.run()
        except Exception as exc:
            self.last_error = exc
            LOGGER.exception("Import sweep failed: %s", exc)


__all__ = ["ImportService"]
