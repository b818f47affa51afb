"""Recursive, concurrency-bounded import of a directory tree into the store."""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import stat
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, TypeVar

from linkimport.state import ROOT_FOLDER_ID, FileRecordDraft, MaterializationStore

from .detectors import PathClassifier
from .errors import ImportRootError, IoFailure
from .models import (
    ClassifiedEntry,
    EntryKind,
    ImportNode,
    ImportOutcome,
    ImportResult,
    NodeResult,
    TransferOutcome,
)
from .policies import DedupPolicy
from .transfer import LinkOrCopyTransferer, StorageLayout

LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")
_DirIdentity = tuple[int, int]


def _directory_identity(path: Path) -> _DirIdentity:
    info = os.stat(path)
    return info.st_dev, info.st_ino


def _list_children(path: Path) -> list[Path]:
    return list(path.iterdir())


def _source_size(path: Path) -> int | None:
    """Return the size of ``path``, or ``None`` when it vanished."""
    try:
        return os.stat(path).st_size
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise IoFailure("could not stat file", path=path, cause=exc) from exc


def _fallback_kind(path: Path) -> EntryKind:
    """Guess the kind of an entry the classifier could not handle."""
    return EntryKind.DIRECTORY if path.is_dir() else EntryKind.REGULAR_FILE


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        LOGGER.warning("Could not remove unused copy %s", path)


class TreeImporter:
    """Materialize an import directory as folder and file records.

    Every directory produces or finds its folder record before its children are
    visited; siblings are processed concurrently inside a task group, and a
    directory completes only once its whole subtree has. Blocking work
    (classification, hashing, linking, copying, store calls) runs on a bounded
    thread pool. Per-entry failures are recorded as outcomes and never abort
    siblings or ancestors.
    """

    def __init__(
        self,
        store: MaterializationStore,
        *,
        classifier: PathClassifier,
        policy: DedupPolicy,
        transferer: LinkOrCopyTransferer,
        layout: StorageLayout,
        max_workers: int = 4,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.policy = policy
        self.transferer = transferer
        self.layout = layout
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="linkimport"
        )
        self._cancelled = threading.Event()

    def __enter__(self) -> "TreeImporter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def cancelled(self) -> bool:
        """Return whether :meth:`cancel` was called."""
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop scheduling new node visits; in-flight steps run to completion."""
        self._cancelled.set()

    def close(self) -> None:
        """Release the worker pool after in-flight work finishes."""
        self._executor.shutdown(wait=True)

    async def import_tree(self, root: Path, parent_id: int = ROOT_FOLDER_ID) -> ImportResult:
        """Import every entry below ``root`` under the folder ``parent_id``.

        The root directory itself is not recorded; its children are.

        Args:
            root: Import directory to walk.
            parent_id: Folder that receives the top-level entries.

        Returns:
            ImportResult: Counters and per-node outcomes of the sweep.

        Raises:
            ImportRootError: If ``root`` is missing or is not a directory.
        """
        started = time.monotonic()
        result = ImportResult(root=root)
        LOGGER.info("Start importing files from %s", root)

        try:
            info = await self._run(os.stat, root)
        except OSError as exc:
            raise ImportRootError(f"Import root {root} is not accessible: {exc}") from exc
        if stat.S_ISREG(info.st_mode):
            raise ImportRootError(f"Import root {root} must be a directory, not a file.")
        if not stat.S_ISDIR(info.st_mode):
            raise ImportRootError(f"Import root {root} is not a directory.")

        try:
            children = await self._run(_list_children, root)
        except OSError as exc:
            raise ImportRootError(f"Import root {root} cannot be listed: {exc}") from exc
        identity = (info.st_dev, info.st_ino)

        await self._import_children(children, parent_id, frozenset({identity}), result)

        result.duration_seconds = time.monotonic() - started
        LOGGER.info(
            "End importing files from %s in %.2fs: %s",
            root,
            result.duration_seconds,
            ", ".join(f"{key}={value}" for key, value in result.counts().items()),
        )
        return result

    async def import_node(
        self,
        path: Path,
        parent_id: int,
        result: ImportResult | None = None,
    ) -> NodeResult:
        """Import a single entry, and its subtree when it is a directory.

        Args:
            path: Filesystem entry to import.
            parent_id: Folder that receives the entry.
            result: Aggregate collecting outcomes; a fresh one is used when omitted.

        Returns:
            NodeResult: Outcome for ``path`` itself.
        """
        if result is None:
            result = ImportResult(root=path.parent)
        return await self._visit(path, parent_id, frozenset(), result)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    async def _run(self, func: Callable[..., _T], *args: Any) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def _import_children(
        self,
        children: list[Path],
        parent_id: int,
        ancestors: frozenset[_DirIdentity],
        result: ImportResult,
    ) -> None:
        async with asyncio.TaskGroup() as group:
            for child in children:
                if self.cancelled:
                    # The result is only marked when an entry was actually left unvisited.
                    result.cancelled = True
                    break
                group.create_task(self._visit(child, parent_id, ancestors, result))

    async def _visit(
        self,
        path: Path,
        parent_id: int,
        ancestors: frozenset[_DirIdentity],
        result: ImportResult,
    ) -> NodeResult:
        entry: ClassifiedEntry | None = None
        try:
            entry = await self._run(self.classifier.classify, path)
            if self.cancelled:
                result.cancelled = True
                return NodeResult(
                    path=path, outcome=ImportOutcome.SKIPPED, reason="cancelled", kind=entry.kind
                )
            node = ImportNode(
                path=path,
                name=entry.name,
                is_directory=entry.kind is EntryKind.DIRECTORY,
                parent_id=parent_id,
            )
            if entry.kind is EntryKind.IGNORE:
                LOGGER.debug("Ignoring %s", path)
                outcome = NodeResult(
                    path=path, outcome=ImportOutcome.SKIPPED, reason="ignored", kind=entry.kind
                )
            elif node.is_directory:
                outcome = await self._import_directory(node, ancestors, result)
            else:
                outcome = await self._import_file(node, entry)
        except Exception as exc:
            LOGGER.exception("Unexpected failure while importing %s", path)
            kind = entry.kind if entry is not None else await self._run(_fallback_kind, path)
            outcome = NodeResult(
                path=path,
                outcome=ImportOutcome.FAILED,
                reason=f"{type(exc).__name__}: {exc}",
                kind=kind,
            )

        result.add(outcome)
        return outcome

    async def _import_directory(
        self,
        node: ImportNode,
        ancestors: frozenset[_DirIdentity],
        result: ImportResult,
    ) -> NodeResult:
        try:
            identity = await self._run(_directory_identity, node.path)
        except OSError as exc:
            LOGGER.warning("Skipping directory %s: %s", node.path, exc)
            return NodeResult(
                path=node.path,
                outcome=ImportOutcome.FAILED,
                reason=f"could not stat directory: {exc}",
                kind=EntryKind.DIRECTORY,
            )
        if identity in ancestors:
            LOGGER.warning("Skipping %s: directory links back to one of its ancestors.", node.path)
            return NodeResult(
                path=node.path,
                outcome=ImportOutcome.SKIPPED,
                reason="symlink cycle",
                kind=EntryKind.DIRECTORY,
            )

        folder = await self._run(self.store.find_folder, node.parent_id, node.name)
        created = False
        if folder is None:
            folder, created = await self._run(self.store.create_folder, node.parent_id, node.name)
        if created:
            result.folders_created += 1
            LOGGER.info("Created folder %s (id=%s) for %s", node.name, folder.id, node.path)
        else:
            result.folders_existing += 1

        try:
            children = await self._run(_list_children, node.path)
        except OSError as exc:
            LOGGER.warning("Could not list directory %s: %s", node.path, exc)
            return NodeResult(
                path=node.path,
                outcome=ImportOutcome.FAILED,
                reason=f"could not list directory: {exc}",
                record_id=folder.id,
                kind=EntryKind.DIRECTORY,
            )

        await self._import_children(children, folder.id, ancestors | {identity}, result)
        return NodeResult(
            path=node.path,
            outcome=ImportOutcome.RECORDED if created else ImportOutcome.SKIPPED,
            reason=None if created else "folder exists",
            record_id=folder.id,
            kind=EntryKind.DIRECTORY,
        )

    async def _import_file(self, node: ImportNode, entry: ClassifiedEntry) -> NodeResult:
        path = node.path
        try:
            size = await self._run(_source_size, path)
            if size is None:
                return NodeResult(path=path, outcome=ImportOutcome.SKIPPED, reason="vanished")

            key = await self._run(self.policy.key_for, path, node.parent_id, node.name)
            existing = await self._run(self.store.find_file, key.value)
            if existing is not None:
                LOGGER.debug("Skipping %s: already imported as file %s", path, existing.id)
                return NodeResult(
                    path=path,
                    outcome=ImportOutcome.SKIPPED,
                    reason="already imported",
                    record_id=existing.id,
                )

            destination = self.layout.destination_for(entry.extension, key.content_hash)
            transfer_outcome = await self._run(self.transferer.transfer, path, destination)
        except IoFailure as exc:
            LOGGER.warning("Skipping %s: %s", path, exc)
            return NodeResult(path=path, outcome=ImportOutcome.FAILED, reason=str(exc))

        draft = FileRecordDraft(
            parent_id=node.parent_id,
            name=node.name,
            type=entry.media_type.value,
            url=self.layout.url_for(destination),
            fs_path=str(destination),
            size=size,
            dedup_key=key.value,
            content_hash=key.content_hash,
            original_path=str(path.absolute()),
        )
        record, created = await self._run(self.store.create_file, draft)
        if not created:
            if transfer_outcome is not TransferOutcome.ALREADY_SATISFIED and record.fs_path != str(
                destination
            ):
                await self._run(_discard, destination)
            LOGGER.debug("Skipping %s: recorded concurrently as file %s", path, record.id)
            return NodeResult(
                path=path,
                outcome=ImportOutcome.SKIPPED,
                reason="already imported",
                record_id=record.id,
            )

        LOGGER.info(
            "Imported %s as file %s (%s, %s)", path, record.id, record.url, transfer_outcome.value
        )
        return NodeResult(path=path, outcome=ImportOutcome.RECORDED, record_id=record.id)


__all__ = ["TreeImporter"]
