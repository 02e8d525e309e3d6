"""
Frozen table descriptors for servald RESTful list endpoints.

Notes:
    - Descriptors declare the expected column set (names, semantic types, nullability)
      of a header/rows JSON table. The server may send the columns in any order.
    - Column names are matched case-sensitively and are kept verbatim, including the
      leading "." or "_" some servald columns carry.
    - Core is zero-IO; servald.io.scanner builds a TableScanner from a descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .columns import ColumnDescriptor, ColumnType

__all__ = [
    "TableName",
    "TableDescriptor",
    "BUNDLE_LIST_DESC",
    "CONVERSATION_LIST_DESC",
    "MESSAGE_LIST_DESC",
    "get_table",
    "list_tables",
]


class TableName(str, Enum):
    RHIZOME_BUNDLE_LIST = "rhizome_bundle_list"
    MESHMS_CONVERSATION_LIST = "meshms_conversation_list"
    MESHMS_MESSAGE_LIST = "meshms_message_list"


@dataclass(frozen=True)
class TableDescriptor:
    """
    Frozen descriptor for a header/rows table served by servald.

    Attributes:
        name (TableName): Canonical table identifier.
        columns (tuple[ColumnDescriptor, ...]): Expected columns in declaration order.

    Examples:
        >>> from servald.core.tables import get_table, TableName
        >>> desc = get_table(TableName.RHIZOME_BUNDLE_LIST)
        >>> "filehash" in desc.nullable
        True
    """

    name: TableName
    columns: tuple[ColumnDescriptor, ...]

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def required(self) -> list[str]:
        return [c.name for c in self.columns if not c.nullable]

    @property
    def nullable(self) -> list[str]:
        return [c.name for c in self.columns if c.nullable]


# -----------------------------------------------------------------------------
# Table descriptors
# -----------------------------------------------------------------------------

BUNDLE_LIST_DESC = TableDescriptor(
    name=TableName.RHIZOME_BUNDLE_LIST,
    columns=(
        ColumnDescriptor("_id", ColumnType.INTEGER),
        ColumnDescriptor(".token", ColumnType.STRING, nullable=True),
        ColumnDescriptor("service", ColumnType.STRING),
        ColumnDescriptor("id", ColumnType.BUNDLE_ID),
        ColumnDescriptor("version", ColumnType.LONG),
        ColumnDescriptor("date", ColumnType.LONG),
        ColumnDescriptor(".inserttime", ColumnType.LONG),
        ColumnDescriptor(".author", ColumnType.SUBSCRIBER_ID, nullable=True),
        ColumnDescriptor(".fromhere", ColumnType.INTEGER),
        ColumnDescriptor("filesize", ColumnType.LONG),
        ColumnDescriptor("filehash", ColumnType.FILE_HASH, nullable=True),
        ColumnDescriptor("sender", ColumnType.SUBSCRIBER_ID, nullable=True),
        ColumnDescriptor("recipient", ColumnType.SUBSCRIBER_ID, nullable=True),
        ColumnDescriptor("name", ColumnType.STRING),
    ),
)

CONVERSATION_LIST_DESC = TableDescriptor(
    name=TableName.MESHMS_CONVERSATION_LIST,
    columns=(
        ColumnDescriptor("_id", ColumnType.INTEGER),
        ColumnDescriptor("my_sid", ColumnType.SUBSCRIBER_ID),
        ColumnDescriptor("their_sid", ColumnType.SUBSCRIBER_ID),
        ColumnDescriptor("read", ColumnType.BOOLEAN),
        ColumnDescriptor("last_message", ColumnType.LONG),
        ColumnDescriptor("read_offset", ColumnType.LONG),
    ),
)

# Sent, received and ACK rows share one layout; only ACK rows carry ack_offset.
MESSAGE_LIST_DESC = TableDescriptor(
    name=TableName.MESHMS_MESSAGE_LIST,
    columns=(
        ColumnDescriptor("type", ColumnType.STRING),
        ColumnDescriptor("my_sid", ColumnType.SUBSCRIBER_ID),
        ColumnDescriptor("their_sid", ColumnType.SUBSCRIBER_ID),
        ColumnDescriptor("offset", ColumnType.LONG),
        ColumnDescriptor("token", ColumnType.STRING),
        ColumnDescriptor("text", ColumnType.STRING, nullable=True),
        ColumnDescriptor("delivered", ColumnType.BOOLEAN),
        ColumnDescriptor("read", ColumnType.BOOLEAN),
        ColumnDescriptor("ack_offset", ColumnType.LONG, nullable=True),
    ),
)


# Registry
_TABLES: dict[TableName, TableDescriptor] = {
    BUNDLE_LIST_DESC.name: BUNDLE_LIST_DESC,
    CONVERSATION_LIST_DESC.name: CONVERSATION_LIST_DESC,
    MESSAGE_LIST_DESC.name: MESSAGE_LIST_DESC,
}


def get_table(name: TableName) -> TableDescriptor:
    """
    Look up a table descriptor by canonical name.

    Args:
        name (TableName): Canonical table name.

    Returns:
        TableDescriptor: Descriptor for the requested table.
    """
    return _TABLES[name]


def list_tables() -> list[TableDescriptor]:
    """Return all registered table descriptors in registry order."""
    return list(_TABLES.values())
