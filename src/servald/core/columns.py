"""
Column descriptors and scalar narrowing for header-described JSON tables.

Responsibilities
- Declare the semantic column types a table may carry (ColumnType) and the null policy.
- Provide the frozen ColumnDescriptor used by table descriptors and the scanner.
- Narrow one loosely typed JSON scalar into the value its column demands (narrow()).

Narrowing rules
- INTEGER / LONG: JSON number without a fractional part, within the signed 32/64-bit
  range. A string of decimal digits is accepted too, since some servers quote counters.
- STRING: JSON string.
- BOOLEAN: JSON true/false.
- BUNDLE_ID / SUBSCRIBER_ID / FILE_HASH: hex string of the identifier's exact size.
- null: only where the column is nullable.

Notes
- Zero-IO; input scalars are the token values produced by servald.io.tokens
  (str, int, decimal.Decimal, bool, None).
- Failures raise servald.core.errors.ColumnTypeError naming the column.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from .errors import ColumnTypeError
from .ids import BundleId, FileHash, SubscriberId

__all__ = [
    "ColumnType",
    "NullPolicy",
    "ColumnDescriptor",
    "narrow",
]


class ColumnType(str, Enum):
    INTEGER = "integer"
    LONG = "long"
    STRING = "string"
    BOOLEAN = "boolean"
    BUNDLE_ID = "bundle_id"
    SUBSCRIBER_ID = "subscriber_id"
    FILE_HASH = "file_hash"


class NullPolicy(str, Enum):
    NO_NULL = "no_null"
    ALLOW_NULL = "allow_null"


_INT_BOUNDS: dict[ColumnType, tuple[int, int]] = {
    ColumnType.INTEGER: (-(2**31), 2**31 - 1),
    ColumnType.LONG: (-(2**63), 2**63 - 1),
}

_ID_TYPES = {
    ColumnType.BUNDLE_ID: BundleId,
    ColumnType.SUBSCRIBER_ID: SubscriberId,
    ColumnType.FILE_HASH: FileHash,
}

_DECIMAL_DIGITS_RE = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    Frozen description of one expected column.

    Attributes:
        name (str): Column name as it appears in the wire header (case-sensitive).
        column_type (ColumnType): Semantic type values are narrowed to.
        nullable (bool): Whether JSON null is accepted (decoded as None).

    Examples:
        >>> from servald.core.columns import ColumnDescriptor, ColumnType, narrow
        >>> col = ColumnDescriptor("version", ColumnType.LONG)
        >>> narrow(col, 3)
        3
    """

    name: str
    column_type: ColumnType
    nullable: bool = False

    @property
    def null_policy(self) -> NullPolicy:
        return NullPolicy.ALLOW_NULL if self.nullable else NullPolicy.NO_NULL


# Widest magnitude either integer width can hold, in decimal digits.
_MAX_INT_DIGITS = len(str(2**63))


def _out_of_range(col: ColumnDescriptor) -> ColumnTypeError:
    return ColumnTypeError(col.name, f"value out of range for {col.column_type.value} column")


def _narrow_integer(col: ColumnDescriptor, value: Any) -> int:
    # bool is an int subclass; JSON true/false is never a number.
    if isinstance(value, bool):
        raise ColumnTypeError(col.name, f"expected a number, got {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, Decimal):
        if not value.is_finite():
            raise ColumnTypeError(col.name, f"expected a whole number, got {value}")
        if not value.is_zero() and value.adjusted() >= _MAX_INT_DIGITS:
            raise _out_of_range(col)
        if value != value.to_integral_value():
            raise ColumnTypeError(col.name, "expected a whole number, got a fraction")
        result = int(value)
    elif isinstance(value, str) and _DECIMAL_DIGITS_RE.fullmatch(value):
        digits = value.lstrip("-").lstrip("0") or "0"
        if len(digits) > _MAX_INT_DIGITS:
            raise _out_of_range(col)
        result = -int(digits) if value.startswith("-") else int(digits)
    else:
        raise ColumnTypeError(col.name, f"expected a number, got {type(value).__name__}")
    lo, hi = _INT_BOUNDS[col.column_type]
    if not lo <= result <= hi:
        raise _out_of_range(col)
    return result


def narrow(col: ColumnDescriptor, value: Any) -> Any:
    """
    Narrow a JSON scalar to the typed value demanded by a column.

    Args:
        col (ColumnDescriptor): Column the value belongs to.
        value (Any): Scalar token value (str, int, Decimal, bool or None).

    Returns:
        Any: int, str, bool, an identifier instance, or None for a nullable column.

    Raises:
        ColumnTypeError: If the value has the wrong JSON type, is out of range, is not a
            valid identifier, or is null on a non-nullable column.
    """
    if value is None:
        if col.nullable:
            return None
        raise ColumnTypeError(col.name, "null is not allowed")

    ctype = col.column_type
    if ctype in _INT_BOUNDS:
        return _narrow_integer(col, value)
    if ctype is ColumnType.STRING:
        if not isinstance(value, str):
            raise ColumnTypeError(col.name, f"expected a string, got {value!r}")
        return value
    if ctype is ColumnType.BOOLEAN:
        if not isinstance(value, bool):
            raise ColumnTypeError(col.name, f"expected a boolean, got {value!r}")
        return value
    id_type = _ID_TYPES.get(ctype)
    if id_type is not None:
        if not isinstance(value, str):
            raise ColumnTypeError(col.name, f"expected a hex string, got {value!r}")
        try:
            return id_type.from_hex(value)
        except ValueError as exc:
            raise ColumnTypeError(col.name, str(exc)) from exc
    raise ColumnTypeError(col.name, f"unsupported column type {ctype!r}")  # pragma: no cover
