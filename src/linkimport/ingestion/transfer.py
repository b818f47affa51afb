"""Move file bytes into managed storage with a hard link or a copy fallback."""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path

from .errors import IoFailure
from .models import TransferOutcome

LOGGER = logging.getLogger(__name__)

UNKNOWN_EXTENSION_DIRNAME = "unknown"


class StorageLayout:
    """Derive collision-free destinations inside the managed storage area."""

    def __init__(self, work_dir: Path, storage_root: Path) -> None:
        self.work_dir = work_dir
        self.storage_root = storage_root

    def destination_for(self, extension: str, token: str | None = None) -> Path:
        """Return ``<storage_root>/<extension>/<token>[.<extension>]``.

        Args:
            extension: Classified file extension, possibly empty.
            token: Unique file stem; a random one is generated when omitted.

        Returns:
            Path: Absolute destination path. The original file name is never used.
        """
        stem = token or uuid.uuid4().hex
        bucket = extension or UNKNOWN_EXTENSION_DIRNAME
        filename = f"{stem}.{extension}" if extension else stem
        return self.storage_root / bucket / filename

    def url_for(self, destination: Path) -> str:
        """Return the work-directory-relative URL of ``destination``."""
        try:
            relative = destination.relative_to(self.work_dir)
        except ValueError:
            return destination.as_posix()
        return "/" + str(relative).replace("\\", "/")


class LinkOrCopyTransferer:
    """Materialize files by hard link, falling back to a byte copy."""

    def __init__(self, *, prefer_hardlink: bool = True) -> None:
        self.prefer_hardlink = prefer_hardlink

    def transfer(self, source: Path, destination: Path) -> TransferOutcome:
        """Place the contents of ``source`` at ``destination``.

        The source is only read. An existing destination is reported as
        ``ALREADY_SATISFIED``; the caller decides whether a record is still needed.

        Raises:
            IoFailure: If neither linking nor copying succeeded.
        """
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IoFailure(
                "could not create storage directory",
                path=source,
                destination=destination,
                cause=exc,
            ) from exc

        if self.prefer_hardlink:
            try:
                os.link(source, destination)
            except FileExistsError:
                LOGGER.warning("File already exists for path: %s", destination)
                return TransferOutcome.ALREADY_SATISFIED
            except OSError as exc:
                LOGGER.warning(
                    "Hard link failed from %s to %s (%s); copying instead.",
                    source,
                    destination,
                    exc.strerror or exc,
                )
            else:
                LOGGER.info("Hard linked %s to %s", source, destination)
                return TransferOutcome.LINKED

        if destination.exists():
            return TransferOutcome.ALREADY_SATISFIED
        self._copy(source, destination)
        LOGGER.info("Copied %s to %s", source, destination)
        return TransferOutcome.COPIED

    def _copy(self, source: Path, destination: Path) -> None:
        partial = destination.with_name(f"{destination.name}.{uuid.uuid4().hex[:8]}.part")
        try:
            shutil.copy2(source, partial)
            os.replace(partial, destination)
        except OSError as exc:
            try:
                partial.unlink(missing_ok=True)
            except OSError:
                LOGGER.warning("Could not remove partial copy %s", partial)
            raise IoFailure(
                f"could not copy to {destination}",
                path=source,
                destination=destination,
                cause=exc,
            ) from exc


__all__ = ["StorageLayout", "LinkOrCopyTransferer", "UNKNOWN_EXTENSION_DIRNAME"]
