"""Project-wide custom exceptions."""

from __future__ import annotations


class SqlityError(Exception):
    """Base exception for the database browser."""


class ConfigurationError(SqlityError):
    """Raised when configuration loading or validation fails."""


class DatabaseError(SqlityError):
    """Raised for database-related issues."""


class NotOpenError(DatabaseError):
    """Raised when an operation runs before open() or after close()."""


class DatabaseIOError(DatabaseError):
    """Raised when the database file cannot be read or written."""


class SQLExecutionError(DatabaseError):
    """Raised when SQLite rejects a statement."""


class ImportFormatError(DatabaseError):
    """Raised when CSV or JSON import input is malformed."""


class ImportBatchError(DatabaseError):
    """Raised when a row fails during a transactional import.

    The whole batch has been rolled back by the time this is raised.
    """

    def __init__(self, row_number: int, cause: Exception) -> None:
        super().__init__(f"Import failed at row {row_number}: {cause}")
        self.row_number = row_number
        self.cause = cause


class AssistError(SqlityError):
    """Raised when natural-language SQL generation cannot be used."""


class AssistUnavailableError(AssistError):
    """Raised when no language model backend is reachable."""


class AssistPermissionError(AssistError):
    """Raised when the caller has not consented or the provider refuses access."""


class RequestError(SqlityError):
    """Raised when an inbound request payload cannot be decoded."""
