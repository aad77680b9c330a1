"""Exceptions raised by the family history engine."""

from __future__ import annotations


class FamilyHistoryError(Exception):
    """Base exception for all family history errors."""

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize error.

        Args:
            message: Short, user-facing error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        """Return string representation of error."""
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigError(FamilyHistoryError):
    """Error in configuration loading or validation."""

    pass


class EmptyInputError(FamilyHistoryError):
    """Interchange text contained no individual or family records."""

    def __init__(self, message: str = "No INDI or FAM records found in file") -> None:
        super().__init__(message)


class PersistenceError(FamilyHistoryError):
    """A store write failed.

    Batches committed before the failure stay committed.
    """

    def __init__(self, message: str, details: str | None = None, batch: int | None = None) -> None:
        """Initialize persistence error.

        Args:
            message: Error message
            details: Underlying database error text
            batch: Zero-based index of the batch that failed
        """
        super().__init__(message, details)
        self.batch = batch


class RecordNotFoundError(FamilyHistoryError):
    """A tree, person or family does not exist in the requested scope."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind.capitalize()} not found", record_id)
        self.kind = kind
        self.record_id = record_id
