"""Configuration models describing linkimport settings."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DedupPolicyName = Literal["content_hash", "path_identity", "name_in_parent"]


class LinkImportBaseModel(BaseModel):
    """Shared configuration for linkimport Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class ImportSettings(LinkImportBaseModel):
    """Options governing a single import sweep.

    Attributes:
        work_dir: Work directory holding the import tree and managed storage.
        import_dirname: Name of the watched import directory inside ``work_dir``.
        storage_dirname: Name of the managed storage directory inside ``work_dir``.
        dedup_policy: Strategy used to decide whether a file was already imported.
        max_workers: Size of the worker pool used for blocking I/O.
        follow_symlinks: Whether symbolic links inside the import tree are followed.
        include_hidden: Whether dot-prefixed entries are imported.
        prefer_hardlink: Whether to attempt a hard link before copying.
        chunk_size_kb: Read size used while fingerprinting files.
        media_types: Extra extension to media type mappings.
    """

    work_dir: Path = Path("~/.linkimport/work")
    import_dirname: str = "links"
    storage_dirname: str = "upload"
    dedup_policy: DedupPolicyName = "content_hash"
    max_workers: int = Field(default=4, ge=1)
    follow_symlinks: bool = True
    include_hidden: bool = True
    prefer_hardlink: bool = True
    chunk_size_kb: int = Field(default=1024, ge=1)
    media_types: Dict[str, str] = Field(default_factory=dict)

    @field_validator("import_dirname", "storage_dirname")
    @classmethod
    def _single_segment(cls, value: str) -> str:
        value = value.strip()
        if not value or "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError("directory names must be a single non-empty path segment")
        return value

    def resolved_work_dir(self) -> Path:
        """Return the absolute work directory."""
        return self.work_dir.expanduser().resolve()

    def import_root(self) -> Path:
        """Return the absolute import directory."""
        return self.resolved_work_dir() / self.import_dirname

    def storage_root(self) -> Path:
        """Return the absolute managed storage directory."""
        return self.resolved_work_dir() / self.storage_dirname


class StoreSettings(LinkImportBaseModel):
    """Materialization store persistence options.

    Attributes:
        dirname: Directory inside the work directory holding store artifacts.
        filename: Name of the JSON store file.
        autosave_every: Number of record creations between store flushes.
    """

    dirname: str = ".linkimport"
    filename: str = "store.json"
    autosave_every: int = Field(default=100, ge=1)


class LoggingSettings(LinkImportBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
        file_name: Name of the log file written inside the store directory.
    """

    level: str = "INFO"
    max_size_mb: int = 100
    backup_count: int = 5
    file_name: str = "linkimport.log"


class CLIOptions(LinkImportBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class LinkImportConfig(LinkImportBaseModel):
    """Top-level configuration struct for linkimport.

    Attributes:
        importer: Import sweep settings.
        store: Store persistence settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    importer: ImportSettings = Field(default_factory=ImportSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)

    def store_dir(self) -> Path:
        """Return the directory holding store and log artifacts."""
        return self.importer.resolved_work_dir() / self.store.dirname


__all__ = [
    "DedupPolicyName",
    "LinkImportBaseModel",
    "ImportSettings",
    "StoreSettings",
    "LoggingSettings",
    "CLIOptions",
    "LinkImportConfig",
]
