"""Exceptions raised by the cleaning stages and the sales table store."""

from typing import Any, Optional


class CleaningError(Exception):
    """Base class for all cleaning errors."""


class MalformedDateError(CleaningError):
    """Raised when a sale date cannot be parsed."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Could not parse sale date: {value!r}")


class MalformedAddressError(CleaningError):
    """Raised in strict mode when an address lacks its comma delimiters."""

    def __init__(self, value: str, expected_parts: int):
        self.value = value
        self.expected_parts = expected_parts
        super().__init__(
            f"Expected {expected_parts} comma-separated parts in address: {value!r}"
        )


class ColumnNotFoundError(CleaningError):
    """Raised when a column is absent from the table schema."""

    def __init__(self, column: str, table: Optional[str] = None):
        self.column = column
        self.table = table
        where = f" in table {table}" if table else ""
        super().__init__(f"Column not found{where}: {column}")


class StageError(CleaningError):
    """Raised by the pipeline runner when a stage fails."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {cause}")
