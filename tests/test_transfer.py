"""Tests for storage layout and the link-or-copy transferer."""

from __future__ import annotations

import errno
import hashlib
import os
from pathlib import Path

import pytest

from linkimport.config import ConfigError
from linkimport.ingestion import (
    ContentHashPolicy,
    HashComputer,
    IoFailure,
    LinkOrCopyTransferer,
    NameInParentPolicy,
    PathIdentityPolicy,
    StorageLayout,
    TransferOutcome,
    policy_for,
)
from linkimport.ingestion import transfer as transfer_module


def _source(tmp_path: Path, content: bytes = b"hello") -> Path:
    source = tmp_path / "links" / "clip.mp4"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_bytes(content)
    return source


def test_layout_groups_by_extension(tmp_path: Path) -> None:
    layout = StorageLayout(tmp_path, tmp_path / "upload")

    destination = layout.destination_for("mp4", "abc123")
    bare = layout.destination_for("", "abc123")

    assert destination == tmp_path / "upload" / "mp4" / "abc123.mp4"
    assert bare == tmp_path / "upload" / "unknown" / "abc123"
    assert layout.url_for(destination) == "/upload/mp4/abc123.mp4"


def test_layout_generates_unique_tokens(tmp_path: Path) -> None:
    layout = StorageLayout(tmp_path, tmp_path / "upload")

    first = layout.destination_for("txt")
    second = layout.destination_for("txt")

    assert first != second
    assert first.parent == second.parent == tmp_path / "upload" / "txt"


def test_layout_url_outside_work_dir_is_absolute(tmp_path: Path) -> None:
    layout = StorageLayout(tmp_path / "work", tmp_path / "elsewhere")

    destination = layout.destination_for("txt", "abc")

    assert layout.url_for(destination) == destination.as_posix()


def test_transfer_prefers_hard_link(tmp_path: Path) -> None:
    source = _source(tmp_path)
    destination = tmp_path / "upload" / "mp4" / "token.mp4"

    outcome = LinkOrCopyTransferer().transfer(source, destination)

    assert outcome is TransferOutcome.LINKED
    assert os.path.samefile(source, destination)
    assert source.read_bytes() == b"hello"


def test_transfer_falls_back_to_copy(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = _source(tmp_path)
    destination = tmp_path / "upload" / "mp4" / "token.mp4"

    def _cross_device(src: object, dst: object) -> None:
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(transfer_module.os, "link", _cross_device)

    outcome = LinkOrCopyTransferer().transfer(source, destination)

    assert outcome is TransferOutcome.COPIED
    assert destination.read_bytes() == b"hello"
    assert not os.path.samefile(source, destination)
    assert list(destination.parent.glob("*.part")) == []


def test_transfer_reports_existing_destination(tmp_path: Path) -> None:
    source = _source(tmp_path)
    destination = tmp_path / "upload" / "mp4" / "token.mp4"
    destination.parent.mkdir(parents=True)
    destination.write_bytes(b"hello")

    assert LinkOrCopyTransferer().transfer(source, destination) is TransferOutcome.ALREADY_SATISFIED
    assert (
        LinkOrCopyTransferer(prefer_hardlink=False).transfer(source, destination)
        is TransferOutcome.ALREADY_SATISFIED
    )


def test_transfer_without_hard_links_copies(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = _source(tmp_path)
    destination = tmp_path / "upload" / "mp4" / "token.mp4"

    def _unexpected(src: object, dst: object) -> None:
        raise AssertionError("hard link should not be attempted")

    monkeypatch.setattr(transfer_module.os, "link", _unexpected)

    outcome = LinkOrCopyTransferer(prefer_hardlink=False).transfer(source, destination)

    assert outcome is TransferOutcome.COPIED
    assert destination.read_bytes() == b"hello"


def test_transfer_copy_failure_leaves_no_partial(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = _source(tmp_path)
    destination = tmp_path / "upload" / "mp4" / "token.mp4"

    def _cross_device(src: object, dst: object) -> None:
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    def _failing_copy(src: object, dst: object) -> None:
        Path(str(dst)).write_bytes(b"he")
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(transfer_module.os, "link", _cross_device)
    monkeypatch.setattr(transfer_module.shutil, "copy2", _failing_copy)

    with pytest.raises(IoFailure) as excinfo:
        LinkOrCopyTransferer().transfer(source, destination)

    assert excinfo.value.path == source
    assert excinfo.value.destination == destination
    assert not destination.exists()
    assert list(destination.parent.iterdir()) == []
    assert source.read_bytes() == b"hello"


def test_transfer_unwritable_storage_raises(tmp_path: Path) -> None:
    source = _source(tmp_path)
    blocker = tmp_path / "upload"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(IoFailure):
        LinkOrCopyTransferer().transfer(source, blocker / "mp4" / "token.mp4")


def test_content_hash_policy_keys_by_digest(tmp_path: Path) -> None:
    source = _source(tmp_path, b"same bytes")
    digest = hashlib.md5(b"same bytes").hexdigest()

    key = ContentHashPolicy(HashComputer()).key_for(source, 7, source.name)

    assert key.value == f"md5:{digest}"
    assert key.content_hash == digest


def test_path_and_name_policies_skip_hashing(tmp_path: Path) -> None:
    source = _source(tmp_path)

    path_key = PathIdentityPolicy().key_for(source, 7, source.name)
    name_key = NameInParentPolicy().key_for(source, 7, source.name)

    assert path_key.value == f"path:{source.absolute().as_posix()}"
    assert path_key.content_hash is None
    assert name_key.value == "name:7/clip.mp4"
    assert name_key.content_hash is None


def test_policy_for_resolves_names() -> None:
    assert isinstance(policy_for("content_hash"), ContentHashPolicy)
    assert isinstance(policy_for("path_identity"), PathIdentityPolicy)
    assert isinstance(policy_for("name_in_parent"), NameInParentPolicy)
    with pytest.raises(ConfigError):
        policy_for("size_only")
