"""Tests for the import service lifecycle."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from linkimport.config import ImportSettings, LinkImportConfig
from linkimport.ingestion import ImportRootError
from linkimport.ingestion import pipeline as pipeline_module
from linkimport.service import ImportService


def _config(work_dir: Path, **importer: object) -> LinkImportConfig:
    return LinkImportConfig(importer=ImportSettings(work_dir=work_dir, **importer))


def test_run_creates_import_directory_and_store(tmp_path: Path) -> None:
    work_dir = tmp_path / "work"
    service = ImportService(_config(work_dir))

    result = service.run()

    assert (work_dir / "links").is_dir()
    assert result.files_recorded == 0
    assert service.last_result is result
    assert (work_dir / ".linkimport" / "store.json").exists()


def test_runs_resume_from_persisted_store(tmp_path: Path) -> None:
    work_dir = tmp_path / "work"
    links = work_dir / "links" / "Show"
    links.mkdir(parents=True)
    (links / "e01.mkv").write_bytes(b"episode one")
    (links / "e02.mkv").write_bytes(b"episode two")

    first = ImportService(_config(work_dir)).run()
    second_service = ImportService(_config(work_dir))
    second = second_service.run()

    assert first.files_recorded == 2
    assert first.folders_created == 1
    assert second.files_recorded == 0
    assert second.files_skipped == 2
    assert second.folders_existing == 1
    assert second_service.store.counts() == {"folders": 1, "files": 2}


def test_run_rejects_file_root(tmp_path: Path) -> None:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    (work_dir / "links").write_text("oops", encoding="utf-8")

    with pytest.raises(ImportRootError):
        ImportService(_config(work_dir)).run()


def test_settings_flow_into_importer(tmp_path: Path) -> None:
    work_dir = tmp_path / "work"
    service = ImportService(
        _config(work_dir, dedup_policy="name_in_parent", prefer_hardlink=False, max_workers=2)
    )

    importer = service.build_importer(service.store)
    try:
        assert importer.policy.name == "name_in_parent"
        assert importer.transferer.prefer_hardlink is False
        assert importer.layout.storage_root == work_dir.resolve() / "upload"
    finally:
        importer.close()


def test_background_sweep_and_shutdown(tmp_path: Path) -> None:
    work_dir = tmp_path / "work"
    (work_dir / "links").mkdir(parents=True)
    (work_dir / "links" / "song.flac").write_bytes(b"audio")
    service = ImportService(_config(work_dir))

    thread = service.start()
    thread.join(timeout=30)

    assert not thread.is_alive()
    assert service.last_error is None
    assert service.last_result is not None
    assert service.last_result.files_recorded == 1

    service.shutdown()

    with pytest.raises(RuntimeError):
        service.run()


def test_background_sweep_records_errors(tmp_path: Path) -> None:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    (work_dir / "links").write_text("oops", encoding="utf-8")
    service = ImportService(_config(work_dir))

    service.start().join(timeout=30)
    service.shutdown()

    assert isinstance(service.last_error, ImportRootError)
    assert service.last_result is None


def test_shutdown_cancels_sweep_in_flight(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    work_dir = tmp_path / "work"
    level = work_dir / "links"
    for depth in range(10):
        level = level / f"level{depth}"
        level.mkdir(parents=True)
        (level / f"file{depth}.txt").write_text(f"payload {depth}", encoding="utf-8")

    entered = threading.Event()
    release = threading.Event()
    real_size = pipeline_module._source_size

    def _held_size(path: Path) -> int | None:
        if not entered.is_set():
            entered.set()
            release.wait(timeout=30)
        return real_size(path)

    monkeypatch.setattr(pipeline_module, "_source_size", _held_size)
    service = ImportService(_config(work_dir, max_workers=1))

    thread = service.start()
    assert entered.wait(timeout=30)
    service.shutdown(wait=False)
    release.set()
    thread.join(timeout=30)

    assert not thread.is_alive()
    assert service.last_error is None
    result = service.last_result
    assert result is not None
    assert result.cancelled is True
    records = service.store.list_files()
    assert 0 < len(records) < 10
    assert all(Path(record.fs_path).exists() for record in records)

    monkeypatch.undo()
    follow_up = ImportService(_config(work_dir))
    completed = follow_up.run()

    assert completed.cancelled is False
    assert completed.files_recorded == 10 - len(records)
    assert follow_up.store.counts() == {"folders": 10, "files": 10}
