"""Data models shared by the import pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class EntryKind(str, Enum):
    """Classification of a filesystem entry."""

    DIRECTORY = "directory"
    REGULAR_FILE = "regular_file"
    IGNORE = "ignore"


class MediaType(str, Enum):
    """Coarse media type derived from a file extension."""

    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"
    DOCUMENT = "document"
    ARCHIVE = "archive"
    UNKNOWN = "unknown"


class TransferOutcome(str, Enum):
    """Result of moving bytes into managed storage."""

    LINKED = "linked"
    COPIED = "copied"
    ALREADY_SATISFIED = "already_satisfied"


class ImportOutcome(str, Enum):
    """Terminal state of a single visited entry."""

    RECORDED = "recorded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ClassifiedEntry:
    """Classifier verdict for a filesystem entry.

    Attributes:
        path: Path that was classified.
        kind: Directory, regular file, or ignored entry.
        name: Base name of the entry.
        extension: Lower-case suffix after the last dot, empty when absent.
        media_type: Coarse media type for regular files.
    """

    path: Path
    kind: EntryKind
    name: str
    extension: str = ""
    media_type: MediaType = MediaType.UNKNOWN


@dataclass(frozen=True, slots=True)
class ImportNode:
    """A filesystem entry queued for import under an already materialized parent."""

    path: Path
    name: str
    is_directory: bool
    parent_id: int


@dataclass(frozen=True, slots=True)
class DedupKey:
    """Dedup key computed for a file by the active policy."""

    value: str
    content_hash: Optional[str] = None


@dataclass(slots=True)
class NodeResult:
    """Outcome for one visited entry.

    Attributes:
        path: Source path of the entry.
        outcome: Terminal state reached.
        reason: Short explanation for skips and failures.
        record_id: Identifier of the created or matching store record.
        kind: Classification of the entry.
    """

    path: Path
    outcome: ImportOutcome
    reason: Optional[str] = None
    record_id: Optional[int] = None
    kind: EntryKind = EntryKind.REGULAR_FILE


@dataclass(slots=True)
class ImportResult:
    """Run-level counters and per-node outcomes for one import sweep."""

    root: Path
    files_recorded: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    folders_created: int = 0
    folders_existing: int = 0
    directories_failed: int = 0
    entries_ignored: int = 0
    cancelled: bool = False
    duration_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)
    node_results: list[NodeResult] = field(default_factory=list)

    def add(self, node: NodeResult) -> None:
        """Record a node outcome and update the counters."""
        self.node_results.append(node)
        if node.kind is EntryKind.IGNORE:
            self.entries_ignored += 1
        elif node.kind is EntryKind.DIRECTORY:
            if node.outcome is ImportOutcome.FAILED:
                self.directories_failed += 1
        elif node.outcome is ImportOutcome.RECORDED:
            self.files_recorded += 1
        elif node.outcome is ImportOutcome.SKIPPED:
            self.files_skipped += 1
        else:
            self.files_failed += 1
        if node.outcome is ImportOutcome.FAILED and node.reason:
            self.errors.append(f"{node.path}: {node.reason}")

    def counts(self) -> dict[str, int]:
        """Return the counters as a plain mapping."""
        return {
            "files_recorded": self.files_recorded,
            "files_skipped": self.files_skipped,
            "files_failed": self.files_failed,
            "folders_created": self.folders_created,
            "folders_existing": self.folders_existing,
            "directories_failed": self.directories_failed,
            "entries_ignored": self.entries_ignored,
        }

    def to_payload(self) -> dict[str, object]:
        """Return a JSON-ready representation of the run."""
        return {
            "root": self.root.as_posix(),
            "counts": self.counts(),
            "cancelled": self.cancelled,
            "duration_seconds": round(self.duration_seconds, 3),
            "errors": list(self.errors),
        }
