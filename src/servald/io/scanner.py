"""
Table schema scanner: validates a server-declared header and decodes rows against it.

Overview
- add_column() / from_descriptor(): declare the expected columns (name, type, null policy).
- consume_header_array(): read the wire header, check every name against the declared
  columns and derive the wire-position -> column remapping for the session.
- consume_row_array(): read one row array and narrow each value by its column.

Source of truth
- Column types and narrowing rules come from servald.core.columns.
- Known tables (column sets) come from servald.core.tables.

Notes
- The remapping is rebuilt by every consume_header_array() call (one per session) and
  reused for all rows of that session.
- Declared nullable columns may be absent from the header; they decode as None.
"""

from __future__ import annotations

from typing import Any

from servald.core.columns import ColumnDescriptor, ColumnType, NullPolicy, narrow
from servald.core.errors import CallerContractViolation, SchemaError
from servald.core.tables import TableDescriptor

from .tokens import JsonTokenReader, Token, describe

__all__ = [
    "DecodedRow",
    "TableScanner",
]

DecodedRow = dict[str, Any]


class TableScanner:
    """
    Expected column set plus the header remapping of the current session.

    Examples:
        >>> from servald.core.columns import ColumnType, NullPolicy
        >>> scanner = (
        ...     TableScanner()
        ...     .add_column("_id", ColumnType.INTEGER)
        ...     .add_column("name", ColumnType.STRING, NullPolicy.ALLOW_NULL)
        ... )
        >>> sorted(scanner.columns)
        ['_id', 'name']
    """

    def __init__(self) -> None:
        self._columns: dict[str, ColumnDescriptor] = {}
        self._header: tuple[ColumnDescriptor, ...] | None = None

    @classmethod
    def from_descriptor(cls, desc: TableDescriptor) -> TableScanner:
        scanner = cls()
        for col in desc.columns:
            scanner._add(col)
        return scanner

    @property
    def columns(self) -> dict[str, ColumnDescriptor]:
        return dict(self._columns)

    @property
    def header(self) -> tuple[str, ...] | None:
        """Wire column names of the current session, or None before a header was read."""
        if self._header is None:
            return None
        return tuple(c.name for c in self._header)

    def add_column(
        self,
        name: str,
        column_type: ColumnType,
        null_policy: NullPolicy = NullPolicy.NO_NULL,
    ) -> TableScanner:
        """
        Register one expected column.

        Args:
            name (str): Column name as sent in the wire header.
            column_type (ColumnType): Semantic type values are narrowed to.
            null_policy (NullPolicy): ALLOW_NULL to accept JSON null.

        Returns:
            TableScanner: self, for chaining.

        Raises:
            SchemaError: If a column with the same name is already registered.
        """
        nullable = NullPolicy(null_policy) is NullPolicy.ALLOW_NULL
        self._add(ColumnDescriptor(name, ColumnType(column_type), nullable))
        return self

    def _add(self, col: ColumnDescriptor) -> None:
        if col.name in self._columns:
            raise SchemaError(f"duplicate column {col.name!r}")
        self._columns[col.name] = col

    def consume_header_array(self, reader: JsonTokenReader) -> tuple[str, ...]:
        """
        Read the header array and derive the wire-position -> column remapping.

        Args:
            reader (JsonTokenReader): Token stream positioned at the header value.

        Returns:
            tuple[str, ...]: Column names in wire order.

        Raises:
            SchemaError: If the header is not an array of strings, names an unknown
                column, repeats a column, or omits a non-nullable column.
            ProtocolError: If the JSON itself is malformed.
        """
        self._header = None
        tok = reader.next_token()
        if tok is not Token.START_ARRAY:
            raise SchemaError(f"header must be an array, got {describe(tok)}")
        names: list[str] = []
        tok = reader.next_token()
        if tok is not Token.END_ARRAY:
            while True:
                if not isinstance(tok, str):
                    raise SchemaError(f"header must contain only strings, got {describe(tok)}")
                names.append(tok)
                tok = reader.next_token()
                if tok is Token.END_ARRAY:
                    break
                Token.match(tok, Token.COMMA)
                tok = reader.next_token()

        header: list[ColumnDescriptor] = []
        seen: set[str] = set()
        for name in names:
            col = self._columns.get(name)
            if col is None:
                raise SchemaError(f"unexpected column {name!r} in header")
            if name in seen:
                raise SchemaError(f"duplicate column {name!r} in header")
            seen.add(name)
            header.append(col)
        missing = [c.name for c in self._columns.values() if c.name not in seen and not c.nullable]
        if missing:
            raise SchemaError(f"header is missing required columns: {missing!r}")

        self._header = tuple(header)
        return tuple(names)

    def consume_row_array(self, reader: JsonTokenReader) -> DecodedRow:
        """
        Read one row array and narrow each value by its column.

        Args:
            reader (JsonTokenReader): Token stream positioned at the row array.

        Returns:
            DecodedRow: Mapping of every declared column name to its narrowed value
            (None for nullable columns absent from the header).

        Raises:
            CallerContractViolation: If no header has been consumed yet.
            SchemaError: If the row has more or fewer values than the header.
            ColumnTypeError: If a value fails narrowing or its null policy.
            ProtocolError: If the row is not a JSON array or the JSON is malformed.
        """
        header = self._header
        if header is None:
            raise CallerContractViolation("consume_row_array() called before consume_header_array()")
        reader.consume(Token.START_ARRAY)
        row: DecodedRow = {name: None for name in self._columns}
        count = 0
        tok = reader.next_token()
        if tok is not Token.END_ARRAY:
            while True:
                if count >= len(header):
                    raise SchemaError(f"row has more than {len(header)} values")
                col = header[count]
                row[col.name] = narrow(col, tok)
                count += 1
                tok = reader.next_token()
                if tok is Token.END_ARRAY:
                    break
                Token.match(tok, Token.COMMA)
                tok = reader.next_token()
        if count != len(header):
            raise SchemaError(f"row has {count} values, header has {len(header)}")
        return row
