"""
Core package aggregator for servald table contracts (columns, tables, records, ids, errors).

## Contracts (single source of truth)
- Columns: semantic column types, null policy, scalar narrowing.
- Tables: descriptors of the column set each list endpoint serves.
- Schema: typed, frozen pydantic records built from decoded rows.
- IDs: fixed-length hex identifiers (bundle ids, SIDs, file hashes).
- Errors: SchemaError / ColumnTypeError / ProtocolError / CallerContractViolation.

## Notes
- Zero-IO policy: stdlib + pydantic only; no network or file IO.
- Column names are kept verbatim as the server sends them; record fields use aliases.

## Downstream usage
- servald.io.scanner: builds a TableScanner from a TableDescriptor and narrows row values.
- servald.io.lists: turns decoded rows into BundleRecord / ConversationRecord instances.

## Examples
```python
from servald.core.columns import ColumnDescriptor, ColumnType, narrow
narrow(ColumnDescriptor("name", ColumnType.STRING), "hello.txt")  # 'hello.txt'
```
"""

from __future__ import annotations

from .columns import ColumnDescriptor, ColumnType, NullPolicy, narrow
from .errors import (
    CallerContractViolation,
    ColumnTypeError,
    ProtocolError,
    SchemaError,
    ServalDInterfaceError,
)
from .ids import BundleId, FileHash, SubscriberId
from .schema import (
    BundleRecord,
    ConversationRecord,
    MessageRecord,
    MessageType,
    TableRecord,
)
from .tables import TableDescriptor, TableName, get_table, list_tables

__all__ = [
    "ColumnDescriptor",
    "ColumnType",
    "NullPolicy",
    "narrow",
    "CallerContractViolation",
    "ColumnTypeError",
    "ProtocolError",
    "SchemaError",
    "ServalDInterfaceError",
    "BundleId",
    "FileHash",
    "SubscriberId",
    "BundleRecord",
    "ConversationRecord",
    "MessageRecord",
    "MessageType",
    "TableRecord",
    "TableDescriptor",
    "TableName",
    "get_table",
    "list_tables",
]
