"""Dedup policies deciding when a file counts as already imported."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from linkimport.config.exceptions import ConfigError

from .detectors import HashComputer
from .models import DedupKey


class DedupPolicy(Protocol):
    """Strategy computing the dedup key for a file."""

    name: str

    def key_for(self, path: Path, parent_id: int, name: str) -> DedupKey:
        """Return the dedup key for the file at ``path``."""
        ...


class ContentHashPolicy:
    """Identify files by content; robust to renames and duplicate copies."""

    name = "content_hash"

    def __init__(self, hasher: HashComputer) -> None:
        self.hasher = hasher

    def key_for(self, path: Path, parent_id: int, name: str) -> DedupKey:
        digest = self.hasher.compute(path)
        return DedupKey(value=f"md5:{digest}", content_hash=digest)


class PathIdentityPolicy:
    """Identify files by their absolute source path."""

    name = "path_identity"

    def key_for(self, path: Path, parent_id: int, name: str) -> DedupKey:
        return DedupKey(value=f"path:{path.absolute().as_posix()}")


class NameInParentPolicy:
    """Identify files by name within their materialized parent folder."""

    name = "name_in_parent"

    def key_for(self, path: Path, parent_id: int, name: str) -> DedupKey:
        return DedupKey(value=f"name:{parent_id}/{name}")


def policy_for(name: str, hasher: HashComputer | None = None) -> DedupPolicy:
    """Build the dedup policy registered under ``name``.

    Raises:
        ConfigError: If ``name`` is not a known policy.
    """
    if name == ContentHashPolicy.name:
        return ContentHashPolicy(hasher or HashComputer())
    if name == PathIdentityPolicy.name:
        return PathIdentityPolicy()
    if name == NameInParentPolicy.name:
        return NameInParentPolicy()
    raise ConfigError(f"Unknown dedup policy '{name}'.")


__all__ = [
    "DedupPolicy",
    "ContentHashPolicy",
    "PathIdentityPolicy",
    "NameInParentPolicy",
    "policy_for",
]
