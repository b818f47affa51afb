"""Import service lifecycle."""

from .runner import ImportService

__all__ = ["ImportService"]
