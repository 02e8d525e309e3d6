"""
Pydantic v2 record models for rows decoded from servald list tables.

Responsibilities
- Give each table a strongly typed, immutable record built once per decoded row.
- Map wire column names (which may start with "." or "_") to Python field names
  through aliases, so records validate straight from a decoded row mapping.
- Carry the zero-based, per-session row index assigned by the list iterator.

Style
- Zero-IO (stdlib + pydantic only).
- Records are frozen and forbid extra keys; identifier fields hold the value objects
  from servald.core.ids.

Table mappings
- BundleRecord <- rhizome_bundle_list (servald.core.tables.BUNDLE_LIST_DESC)
- ConversationRecord <- meshms_conversation_list (CONVERSATION_LIST_DESC)
- MessageRecord <- meshms_message_list (MESSAGE_LIST_DESC)
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .ids import BundleId, FileHash, SubscriberId

__all__ = [
    "TableRecord",
    "BundleRecord",
    "ConversationRecord",
    "MessageType",
    "MessageRecord",
]


class TableRecord(BaseModel):
    """
    Base for records decoded from one table row.

    Attributes:
        index (int): Zero-based position of the row within its streaming session.
            Assigned by the client, not by the server; resets on every new session.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    index: int = Field(..., ge=0)

    @classmethod
    def from_row(cls, index: int, row: Mapping[str, Any]):
        """Build a record from a decoded row keyed by wire column names."""
        return cls.model_validate({"index": index, **row})


class BundleRecord(TableRecord):
    """
    One manifest entry from the Rhizome bundle list.

    Attributes:
        row_id (int): Server-side row id ("_id").
        token (str | None): Continuation token for "newsince" polling (".token").
        service (str): Bundle service name (e.g. "file", "MeshMS2").
        bundle_id (BundleId): Bundle identifier ("id").
        version (int): Manifest version.
        date (int): Manifest date in milliseconds since the epoch.
        inserted (int): Local insertion time in milliseconds (".inserttime").
        author (SubscriberId | None): Author SID when known (".author").
        from_here (int): Non-zero when authored by a local identity (".fromhere").
        filesize (int): Payload size in bytes.
        filehash (FileHash | None): Payload hash; None for empty payloads.
        sender (SubscriberId | None): Sender SID for addressed bundles.
        recipient (SubscriberId | None): Recipient SID for addressed bundles.
        name (str): Payload name.

    Examples:
        >>> rec = BundleRecord.from_row(0, {...})  # doctest: +SKIP
        >>> rec.model_dump(by_alias=True)["_id"]  # doctest: +SKIP
    """

    row_id: int = Field(..., alias="_id")
    token: str | None = Field(None, alias=".token")
    service: str
    bundle_id: BundleId = Field(..., alias="id")
    version: int
    date: int
    inserted: int = Field(..., alias=".inserttime")
    author: SubscriberId | None = Field(None, alias=".author")
    from_here: int = Field(..., alias=".fromhere")
    filesize: int
    filehash: FileHash | None = None
    sender: SubscriberId | None = None
    recipient: SubscriberId | None = None
    name: str

    @property
    def is_from_here(self) -> bool:
        return self.from_here != 0


class ConversationRecord(TableRecord):
    """
    One MeshMS conversation between a local identity and a peer.

    Attributes:
        row_id (int): Server-side row number ("_id").
        my_sid (SubscriberId): Local identity.
        their_sid (SubscriberId): Peer identity.
        read (bool): True when every message from the peer has been read.
        last_message (int): Offset of the peer's last message.
        read_offset (int): Offset up to which messages have been read.
    """

    row_id: int = Field(..., alias="_id")
    my_sid: SubscriberId
    their_sid: SubscriberId
    read: bool
    last_message: int
    read_offset: int


class MessageType(str, Enum):
    SENT = ">"
    RECEIVED = "<"
    ACK = "ACK"


class MessageRecord(TableRecord):
    """
    One entry of a MeshMS conversation, newest first.

    Attributes:
        kind (MessageType): Sent, received, or an acknowledgement of sent messages ("type").
        my_sid (SubscriberId): Local identity.
        their_sid (SubscriberId): Peer identity.
        offset (int): Position of the entry in its sender's ply.
        token (str): Continuation token for "newsince" polling from this entry.
        text (str | None): Message body.
        delivered (bool): For sent messages, whether the peer acknowledged them.
        read (bool): For received messages, whether they have been marked read.
        ack_offset (int | None): Offset acknowledged by the peer; ACK entries only.
    """

    kind: MessageType = Field(..., alias="type")
    my_sid: SubscriberId
    their_sid: SubscriberId
    offset: int
    token: str
    text: str | None = None
    delivered: bool
    read: bool
    ack_offset: int | None = None
