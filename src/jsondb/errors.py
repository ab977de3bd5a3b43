"""Exception hierarchy for jsondb.

Every error raised by the engine derives from JsonDBError and carries a
message fit for showing to an end user.
"""

from __future__ import annotations

from pathlib import Path


class JsonDBError(Exception):
    """Base class for jsondb errors."""


class InvalidName(JsonDBError):
    """Collection name is empty after sanitizing (or ambiguous in strict mode)."""


class InvalidDocument(JsonDBError):
    """Document is not a mapping or carries an unusable _id."""


class DuplicateId(JsonDBError):
    """Inserted document reuses an _id already present in the collection."""


class UnsupportedOperator(JsonDBError):
    """Unknown query or update operator (strict mode only)."""


class PersistenceError(JsonDBError):
    """A directory or collection file could not be created, written or removed."""

    def __init__(self, action: str, path: Path | str, reason: str) -> None:
        self.action = action
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{action}: {self.path} ({reason})")

    @classmethod
    def from_os_error(cls, action: str, path: Path | str, exc: OSError) -> PersistenceError:
        return cls(action, path, exc.strerror or str(exc))


class InvalidQuery(JsonDBError):
    """Query predicate is not a JSON object."""


class InvalidUpdate(JsonDBError):
    """Update spec is not a JSON object."""
