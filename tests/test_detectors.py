"""Tests for entry classification and content fingerprints."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest

from linkimport.config import ConfigError
from linkimport.ingestion import (
    EntryKind,
    HashComputer,
    IoFailure,
    MediaType,
    PathClassifier,
)
from linkimport.ingestion.detectors import parse_extension


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("movie.MKV", "mkv"),
        ("archive.tar.gz", "gz"),
        ("README", ""),
        (".bashrc", ""),
        ("trailing.", ""),
    ],
)
def test_parse_extension(name: str, expected: str) -> None:
    assert parse_extension(name) == expected


def test_classifier_tags_files_and_directories(tmp_path: Path) -> None:
    video = tmp_path / "Episode 01.mkv"
    video.write_bytes(b"\x00" * 16)
    folder = tmp_path / "Season 1"
    folder.mkdir()
    classifier = PathClassifier()

    file_entry = classifier.classify(video)
    dir_entry = classifier.classify(folder)

    assert file_entry.kind is EntryKind.REGULAR_FILE
    assert file_entry.name == "Episode 01.mkv"
    assert file_entry.extension == "mkv"
    assert file_entry.media_type is MediaType.VIDEO
    assert dir_entry.kind is EntryKind.DIRECTORY
    assert dir_entry.name == "Season 1"


def test_classifier_ignores_special_and_missing_entries(tmp_path: Path) -> None:
    classifier = PathClassifier()

    assert classifier.classify(tmp_path / "missing.txt").kind is EntryKind.IGNORE
    assert classifier.classify(tmp_path / "..").kind is EntryKind.IGNORE
    assert classifier.classify(Path(".")).kind is EntryKind.IGNORE


def test_classifier_unknown_extension_maps_to_unknown(tmp_path: Path) -> None:
    odd = tmp_path / "data.qwerty"
    odd.write_text("x", encoding="utf-8")

    entry = PathClassifier().classify(odd)

    assert entry.kind is EntryKind.REGULAR_FILE
    assert entry.media_type is MediaType.UNKNOWN


def test_classifier_hidden_entries_respect_setting(tmp_path: Path) -> None:
    hidden = tmp_path / ".secret.txt"
    hidden.write_text("x", encoding="utf-8")

    assert PathClassifier(include_hidden=True).classify(hidden).kind is EntryKind.REGULAR_FILE
    assert PathClassifier(include_hidden=False).classify(hidden).kind is EntryKind.IGNORE


def test_classifier_symlinks_respect_setting(tmp_path: Path) -> None:
    target = tmp_path / "target.mp3"
    target.write_bytes(b"id3")
    link = tmp_path / "link.mp3"
    os.symlink(target, link)
    broken = tmp_path / "broken.mp3"
    os.symlink(tmp_path / "gone.mp3", broken)

    following = PathClassifier(follow_symlinks=True)
    assert following.classify(link).kind is EntryKind.REGULAR_FILE
    assert following.classify(link).media_type is MediaType.AUDIO
    assert following.classify(broken).kind is EntryKind.IGNORE
    assert PathClassifier(follow_symlinks=False).classify(link).kind is EntryKind.IGNORE


def test_classifier_extra_media_types(tmp_path: Path) -> None:
    subtitle = tmp_path / "episode.sup"
    subtitle.write_bytes(b"x")

    classifier = PathClassifier(extra_media_types={".SUP": "document", "txt": "archive"})

    assert classifier.classify(subtitle).media_type is MediaType.DOCUMENT
    assert classifier.media_type_for("txt") is MediaType.ARCHIVE


def test_classifier_rejects_unknown_media_type() -> None:
    with pytest.raises(ConfigError):
        PathClassifier(extra_media_types={"sup": "hologram"})


def test_hash_computer_streams_in_chunks(tmp_path: Path) -> None:
    payload = os.urandom(10_000)
    path = tmp_path / "blob.bin"
    path.write_bytes(payload)

    digest = HashComputer(chunk_size=7).compute(path)

    assert digest == hashlib.md5(payload).hexdigest()
    assert len(digest) == 32


def test_hash_computer_missing_file_raises_io_failure(tmp_path: Path) -> None:
    missing = tmp_path / "missing.bin"

    with pytest.raises(IoFailure) as excinfo:
        HashComputer().compute(missing)

    assert excinfo.value.path == missing
    assert isinstance(excinfo.value.cause, FileNotFoundError)
