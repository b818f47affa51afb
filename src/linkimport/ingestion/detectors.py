"""Entry classification and content hashing utilities."""

from __future__ import annotations

import hashlib
import os
import stat
from pathlib import Path
from typing import Mapping

from linkimport.config.exceptions import ConfigError

from .errors import IoFailure
from .models import ClassifiedEntry, EntryKind, MediaType

DEFAULT_CHUNK_SIZE = 1024 * 1024

_MEDIA_TYPES_BY_EXTENSION: dict[str, MediaType] = {
    **{
        ext: MediaType.VIDEO
        for ext in (
            "mp4", "mkv", "avi", "mov", "wmv", "flv", "webm", "m4v", "ts", "m2ts", "rmvb",
            "mpg", "mpeg", "3gp",
        )
    },
    **{
        ext: MediaType.AUDIO
        for ext in ("mp3", "flac", "wav", "aac", "ogg", "m4a", "wma", "ape", "opus", "alac")
    },
    **{
        ext: MediaType.IMAGE
        for ext in (
            "jpg", "jpeg", "png", "gif", "bmp", "webp", "svg", "tif", "tiff", "ico", "heic",
            "avif",
        )
    },
    **{
        ext: MediaType.DOCUMENT
        for ext in (
            "txt", "md", "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "epub", "csv",
            "json", "xml", "html", "htm", "rtf", "odt", "ass", "ssa", "srt", "vtt",
        )
    },
    **{
        ext: MediaType.ARCHIVE
        for ext in ("zip", "rar", "7z", "tar", "gz", "bz2", "xz", "zst")
    },
}


def parse_extension(name: str) -> str:
    """Return the lower-case suffix after the last dot of ``name``.

    Names without a dot, dot-files such as ``.bashrc``, and names ending in a
    dot have no extension.
    """
    head, sep, tail = name.rpartition(".")
    if not sep or not head:
        return ""
    return tail.lower()


class PathClassifier:
    """Tag filesystem entries as directories, regular files, or ignorable entries."""

    def __init__(
        self,
        *,
        follow_symlinks: bool = True,
        include_hidden: bool = True,
        extra_media_types: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            follow_symlinks: Whether symbolic links are resolved or ignored.
            include_hidden: Whether dot-prefixed entries are kept.
            extra_media_types: Extension to media type name overrides.

        Raises:
            ConfigError: If an override names an unknown media type.
        """
        self.follow_symlinks = follow_symlinks
        self.include_hidden = include_hidden
        self._media_types = dict(_MEDIA_TYPES_BY_EXTENSION)
        for extension, type_name in (extra_media_types or {}).items():
            try:
                media_type = MediaType(str(type_name).lower())
            except ValueError as exc:
                raise ConfigError(
                    f"Unknown media type '{type_name}' for extension '{extension}'."
                ) from exc
            self._media_types[extension.lower().lstrip(".")] = media_type

    def media_type_for(self, extension: str) -> MediaType:
        """Return the media type mapped to ``extension``."""
        return self._media_types.get(extension.lower(), MediaType.UNKNOWN)

    def classify(self, path: Path) -> ClassifiedEntry:
        """Return the classification of ``path``; never raises."""
        name = path.name
        if name in ("", ".", ".."):
            return ClassifiedEntry(path=path, kind=EntryKind.IGNORE, name=name)
        if not self.include_hidden and name.startswith("."):
            return ClassifiedEntry(path=path, kind=EntryKind.IGNORE, name=name)

        try:
            if not self.follow_symlinks and path.is_symlink():
                return ClassifiedEntry(path=path, kind=EntryKind.IGNORE, name=name)
            mode = os.stat(path).st_mode
        except (OSError, ValueError):
            # Vanished entries and broken links.
            return ClassifiedEntry(path=path, kind=EntryKind.IGNORE, name=name)

        if stat.S_ISDIR(mode):
            return ClassifiedEntry(path=path, kind=EntryKind.DIRECTORY, name=name)
        if stat.S_ISREG(mode):
            extension = parse_extension(name)
            return ClassifiedEntry(
                path=path,
                kind=EntryKind.REGULAR_FILE,
                name=name,
                extension=extension,
                media_type=self.media_type_for(extension),
            )
        return ClassifiedEntry(path=path, kind=EntryKind.IGNORE, name=name)


class HashComputer:
    """Compute MD5 content fingerprints by streaming files in bounded chunks."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.chunk_size = max(1, chunk_size)

    def compute(self, path: Path) -> str:
        """Return the hex digest of the file contents.

        Raises:
            IoFailure: If the file cannot be opened or read.
        """
        digest = hashlib.md5(usedforsecurity=False)
        try:
            with path.open("rb") as handle:
                for chunk in iter(lambda: handle.read(self.chunk_size), b""):
                    digest.update(chunk)
        except OSError as exc:
            raise IoFailure("could not fingerprint file", path=path, cause=exc) from exc
        return digest.hexdigest()
