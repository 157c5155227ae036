"""Error types raised by empath."""

from __future__ import annotations


class EmpathError(RuntimeError):
    """Base class for failures reported to the user."""


class RepositoryResolutionError(EmpathError):
    """Raised when no enclosing repository can be identified."""


class PathResolutionError(EmpathError):
    """Raised when a user-supplied path cannot be canonicalized."""


class StorageError(EmpathError):
    """Raised when the event store cannot be read."""


class StorageInitError(StorageError):
    """Raised when the state directory or store file cannot be created or opened."""


class StorageWriteError(StorageError):
    """Raised when an insert or delete fails for reasons other than a duplicate or missing row."""
