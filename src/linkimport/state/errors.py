"""State management errors."""


class StateError(Exception):
    """Base exception for materialization store operations."""


class MissingStateError(StateError):
    """Raised when no store file is available for a work directory."""
