"""CLI tests for configuration commands."""

import os
from pathlib import Path
from typing import Any

from click.testing import CliRunner

from linkimport.cli import cli
from linkimport.config import ConfigManager


def _env_with_home(tmp_path: Path) -> dict[str, Any]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("LINKIMPORT__")}
    env["HOME"] = str(tmp_path)
    return env


def _manager(tmp_path: Path) -> ConfigManager:
    return ConfigManager(tmp_path / ".linkimport" / "config.yaml", env={})


def test_config_view_displays_defaults_without_writing(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["config", "view"], env=_env_with_home(tmp_path))

    assert result.exit_code == 0
    assert "importer:" in result.output
    assert "content_hash" in result.output
    assert not _manager(tmp_path).path.exists()


def test_config_view_as_env_lists_variables(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    env["LINKIMPORT__IMPORTER__MAX_WORKERS"] = "9"

    result = runner.invoke(cli, ["config", "view", "--as-env"], env=env)
    ignored = runner.invoke(cli, ["config", "view", "--as-env", "--no-env"], env=env)

    assert result.exit_code == 0
    assert "LINKIMPORT__IMPORTER__DEDUP_POLICY=content_hash" in result.output
    assert "LINKIMPORT__IMPORTER__MAX_WORKERS=9" in result.output
    assert "LINKIMPORT__IMPORTER__MAX_WORKERS=4" in ignored.output


def test_config_set_reports_old_and_new_value(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "set", "importer.max_workers", "--value", "8"], env=env)

    assert result.exit_code == 0
    assert "Updated importer.max_workers: 4 -> 8." in result.output
    assert _manager(tmp_path).load().importer.max_workers == 8

    again = runner.invoke(cli, ["config", "set", "importer.max_workers", "--value", "8"], env=env)
    assert again.exit_code == 0
    assert "already 8" in again.output


def test_config_set_rejects_invalid_value(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    runner.invoke(cli, ["config", "set", "importer.max_workers", "--value", "3"], env=env)

    result = runner.invoke(
        cli, ["config", "set", "importer.dedup_policy", "--value", "size_only"], env=env
    )

    assert result.exit_code != 0
    assert "Invalid configuration values" in result.output
    config = _manager(tmp_path).load()
    assert config.importer.dedup_policy == "content_hash"
    assert config.importer.max_workers == 3
