"""Errors raised while importing the tree."""

from __future__ import annotations

from pathlib import Path

from linkimport.config.exceptions import ConfigError


class ImportRootError(ConfigError):
    """Raised when the configured import root cannot be walked."""


class IoFailure(Exception):
    """A single entry could not be read, hashed, or transferred.

    Attributes:
        path: Source path being processed.
        destination: Transfer destination, when the failure happened while copying.
        cause: Underlying operating system error.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path,
        destination: Path | None = None,
        cause: OSError | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.destination = destination
        self.cause = cause

    def __str__(self) -> str:
        text = super().__str__()
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text
