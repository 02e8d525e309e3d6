"""
Exception types raised while decoding servald RESTful table responses.

Provides typed exceptions for the decoding pipeline:
- SchemaError for header/row shapes that do not match the declared columns.
- ColumnTypeError for a value that fails narrowing or its column's null policy.
- ProtocolError for unexpected HTTP status/content type, JSON structural mismatches
  and premature end of stream.
- CallerContractViolation for methods invoked out of their allowed state sequence.

Notes:
    - SchemaError, ColumnTypeError and ProtocolError share the ServalDInterfaceError base,
      so callers can catch "the server sent something we cannot decode" in one place.
    - CallerContractViolation is deliberately NOT a ServalDInterfaceError: misuse of a list
      or scanner is a programming error and must not be swallowed as a data error.
    - Transport failures (httpx.HTTPError, OSError) are never wrapped by these types.

Examples:
    >>> from servald.core.errors import ColumnTypeError, ServalDInterfaceError
    >>> err = ColumnTypeError("version", "expected an integer, got 'abc'")
    >>> isinstance(err, ServalDInterfaceError), err.column
    (True, 'version')
"""

from __future__ import annotations

__all__ = [
    "ServalDInterfaceError",
    "SchemaError",
    "ColumnTypeError",
    "ProtocolError",
    "CallerContractViolation",
]


class ServalDInterfaceError(Exception):
    """Base class for responses that cannot be decoded against the declared interface."""


class SchemaError(ServalDInterfaceError, ValueError):
    """Header or row shape does not match the declared columns (unknown column, wrong arity)."""


class ColumnTypeError(ServalDInterfaceError, ValueError):
    """
    A value failed type narrowing or the null policy of its column.

    Attributes:
        column (str): Name of the column whose value was rejected.
    """

    def __init__(self, column: str, message: str):
        super().__init__(f"column {column!r}: {message}")
        self.column = column


class ProtocolError(ServalDInterfaceError):
    """
    Unexpected HTTP status or content type, JSON structural mismatch, or premature end of stream.

    Attributes:
        status_code (int | None): HTTP status code when the failure is status-related.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CallerContractViolation(RuntimeError):
    """A method was called outside of its allowed state sequence (e.g. next_row() before connect())."""
