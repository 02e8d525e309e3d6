"""
Streaming list clients for servald header/rows JSON tables.

A list owns one request/response cycle (a session) at a time and walks the envelope

    {"header":[...], "rows":[[...],[...], ...]}

lazily: connect() reads everything up to the opening "[" of rows, each next_row() decodes
exactly one row, and the closing "]}" plus end of stream is verified by the next_row()
call that returns None. Some tables (the MeshMS message list) send extra members
before "header"; subclasses read them in _consume_preamble().

States
- IDLE -> CONNECTING -> STREAM_OPEN -> EXHAUSTED | FAILED; close() -> CLOSED from anywhere.
- connect() is allowed from IDLE and CLOSED (a new session, row index restarts at 0).
- next_row() is allowed only in STREAM_OPEN; anywhere else it raises CallerContractViolation.

Notes
- Every error moves the list to FAILED and is re-raised unchanged; close() still reaches
  CLOSED, even when releasing the channel raises.
- Reaching the end of rows releases the stream immediately.
- The connection factory is injected, so tests can serve bodies from memory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from enum import Enum
from typing import Any, Generic, TypeVar

from servald.core.errors import CallerContractViolation, ProtocolError
from servald.core.ids import SubscriberId
from servald.core.columns import ColumnDescriptor, ColumnType, narrow
from servald.core.schema import BundleRecord, ConversationRecord, MessageRecord, TableRecord
from servald.core.tables import (
    BUNDLE_LIST_DESC,
    CONVERSATION_LIST_DESC,
    MESSAGE_LIST_DESC,
    TableDescriptor,
)

from .connection import JSON_CONTENT_TYPE, ConnectionFactory, HttpChannel
from .scanner import TableScanner
from .tokens import JsonTokenReader, Token

__all__ = [
    "ListState",
    "RestfulTableList",
    "RhizomeBundleList",
    "MeshMSConversationList",
    "MeshMSMessageList",
]

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=TableRecord)

HTTP_OK = 200
_ERROR_DETAIL_BYTES = 512


class ListState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAM_OPEN = "stream_open"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CLOSED = "closed"


class RestfulTableList(Generic[R]):
    """
    Pull-based iterator over the rows of one servald list endpoint.

    Subclasses set `table` and `record_type` and implement resource_path().

    Args:
        connector (ConnectionFactory): Opens the channel for resource_path().
        buf_size (int | None): Bytes the JSON lexer requests per read; defaults to the reader's.

    Examples:
        >>> bundles = RhizomeBundleList(connector)  # doctest: +SKIP
        >>> with bundles:  # doctest: +SKIP
        ...     bundles.connect()
        ...     for record in bundles:
        ...         print(record.index, record.name)
    """

    table: TableDescriptor
    record_type: type[R]

    def __init__(self, connector: ConnectionFactory, *, buf_size: int | None = None):
        self._connector = connector
        self._buf_size = buf_size
        self._scanner = TableScanner.from_descriptor(self.table)
        self._channel: HttpChannel | None = None
        self._reader: JsonTokenReader | None = None
        self._state = ListState.IDLE
        self._row_count = 0

    def resource_path(self) -> str:
        raise NotImplementedError

    @property
    def state(self) -> ListState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._reader is not None

    @property
    def header(self) -> tuple[str, ...] | None:
        """Column names in the order the server sent them for the current session."""
        return self._scanner.header

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __iter__(self) -> Iterator[R]:
        while True:
            record = self.next_row()
            if record is None:
                return
            yield record

    def connect(self) -> None:
        """
        Open the resource and consume the envelope up to the first row.

        Raises:
            CallerContractViolation: If a session is already active or ended without close().
            ProtocolError: On a non-200 status, a non-JSON content type, or an envelope mismatch.
            SchemaError: If the header does not match the declared columns.
        """
        if self._state not in (ListState.IDLE, ListState.CLOSED):
            raise CallerContractViolation(
                f"connect() not allowed in state {self._state.value!r}; call close() first"
            )
        self._state = ListState.CONNECTING
        self._row_count = 0
        path = self.resource_path()
        try:
            self._channel = self._connector.open(path)
            self._check_response(path, self._channel)
            reader = JsonTokenReader(self._channel, **self._reader_options())
            self._reader = reader
            reader.consume(Token.START_OBJECT)
            self._consume_preamble(reader)
            reader.consume("header")
            reader.consume(Token.COLON)
            self._scanner.consume_header_array(reader)
            reader.consume(Token.COMMA)
            reader.consume("rows")
            reader.consume(Token.COLON)
            reader.consume(Token.START_ARRAY)
        except Exception as exc:
            self._fail(exc)
            raise
        self._state = ListState.STREAM_OPEN
        logger.debug("%s: streaming rows, header=%s", path, self._scanner.header)

    def next_row(self) -> R | None:
        """
        Decode the next row, or return None once the rows array has ended.

        Returns:
            R | None: The next record (index 0, 1, 2, ... within the session) or None.

        Raises:
            CallerContractViolation: If called outside STREAM_OPEN (before connect(), after
                None was returned, after a failure, or after close()).
            ProtocolError: On a JSON structural violation or premature end of stream.
            SchemaError: If a row's arity differs from the header's.
            ColumnTypeError: If a value fails narrowing or its null policy.
        """
        reader = self._reader
        if self._state is not ListState.STREAM_OPEN or reader is None:
            raise CallerContractViolation(
                f"next_row() not allowed in state {self._state.value!r}"
            )
        try:
            if reader.peek_token() is Token.END_ARRAY:
                reader.consume(Token.END_ARRAY)
                reader.consume(Token.END_OBJECT)
                reader.consume(Token.EOF)
                self._release()
                self._state = ListState.EXHAUSTED
                logger.debug("%s: end of rows after %d rows", self.resource_path(), self._row_count)
                return None
            if self._row_count:
                reader.consume(Token.COMMA)
            row = self._scanner.consume_row_array(reader)
            record = self._make_record(self._row_count, row)
        except Exception as exc:
            self._fail(exc)
            raise
        self._row_count += 1
        return record

    def close(self) -> None:
        """Release the token stream and connection. Idempotent, safe in every state."""
        try:
            self._release()
        finally:
            if self._state is not ListState.CLOSED:
                logger.debug("%s: closed in state %s", self.resource_path(), self._state.value)
            self._state = ListState.CLOSED

    def _consume_preamble(self, reader: JsonTokenReader) -> None:
        """Hook for object members a table sends before "header"; none by default."""

    def _make_record(self, index: int, row: dict[str, Any]) -> R:
        return self.record_type.from_row(index, row)

    def _reader_options(self) -> dict[str, Any]:
        return {} if self._buf_size is None else {"buf_size": self._buf_size}

    def _check_response(self, path: str, channel: HttpChannel) -> None:
        status = channel.status_code
        if status != HTTP_OK:
            detail = channel.read(_ERROR_DETAIL_BYTES).decode("utf-8", errors="replace").strip()
            message = f"GET {path}: unexpected HTTP status {status}"
            if detail:
                message += f": {detail}"
            raise ProtocolError(message, status_code=status)
        content_type = getattr(channel, "content_type", None)
        if content_type is not None:
            media_type = content_type.split(";", 1)[0].strip().lower()
            if media_type != JSON_CONTENT_TYPE:
                raise ProtocolError(
                    f"GET {path}: unexpected content type {content_type!r}", status_code=status
                )

    def _fail(self, exc: BaseException) -> None:
        self._state = ListState.FAILED
        logger.warning("%s: session failed: %s", self.resource_path(), exc)

    def _release(self) -> None:
        reader, self._reader = self._reader, None
        channel, self._channel = self._channel, None
        try:
            if reader is not None:
                reader.close()
        finally:
            if channel is not None:
                channel.close()


def _as_sid(sid: SubscriberId | str) -> SubscriberId:
    return sid if isinstance(sid, SubscriberId) else SubscriberId.from_hex(sid)


class RhizomeBundleList(RestfulTableList[BundleRecord]):
    """Rhizome store contents, one BundleRecord per manifest."""

    table = BUNDLE_LIST_DESC
    record_type = BundleRecord

    def resource_path(self) -> str:
        return "/restful/rhizome/bundlelist.json"


class MeshMSConversationList(RestfulTableList[ConversationRecord]):
    """
    MeshMS conversations of one local identity, one ConversationRecord per peer.

    Args:
        connector (ConnectionFactory): Opens the channel for resource_path().
        sid (SubscriberId | str): Local identity whose conversations are listed.
    """

    table = CONVERSATION_LIST_DESC
    record_type = ConversationRecord

    def __init__(
        self, connector: ConnectionFactory, sid: SubscriberId | str, *, buf_size: int | None = None
    ):
        super().__init__(connector, buf_size=buf_size)
        self.sid = _as_sid(sid)

    def resource_path(self) -> str:
        return f"/restful/meshms/{self.sid.hex()}/conversationlist.json"


_OFFSET_MEMBERS = {
    name: ColumnDescriptor(name, ColumnType.LONG) for name in ("read_offset", "latest_ack_offset")
}


class MeshMSMessageList(RestfulTableList[MessageRecord]):
    """
    Messages and acknowledgements of one MeshMS conversation, newest first.

    A full listing opens with the conversation's read and acknowledgement offsets, which
    connect() stores in `read_offset` and `latest_ack_offset`. A "newsince" listing
    (`since_token` set) omits them and both stay None.

    Args:
        connector (ConnectionFactory): Opens the channel for resource_path().
        my_sid (SubscriberId | str): Local identity.
        their_sid (SubscriberId | str): Peer identity.
        since_token (str | None): Token of a previously seen entry; only newer entries are
            listed, and the server may hold the response open while it waits for them.
    """

    table = MESSAGE_LIST_DESC
    record_type = MessageRecord

    def __init__(
        self,
        connector: ConnectionFactory,
        my_sid: SubscriberId | str,
        their_sid: SubscriberId | str,
        *,
        since_token: str | None = None,
        buf_size: int | None = None,
    ):
        super().__init__(connector, buf_size=buf_size)
        self.my_sid = _as_sid(my_sid)
        self.their_sid = _as_sid(their_sid)
        if since_token is not None and (not since_token or "/" in since_token):
            raise ValueError(f"invalid message list token: {since_token!r}")
        self.since_token = since_token
        self.read_offset: int | None = None
        self.latest_ack_offset: int | None = None

    def resource_path(self) -> str:
        base = f"/restful/meshms/{self.my_sid.hex()}/{self.their_sid.hex()}"
        if self.since_token is None:
            return f"{base}/messagelist.json"
        return f"{base}/newsince/{self.since_token}/messagelist.json"

    def _consume_preamble(self, reader: JsonTokenReader) -> None:
        self.read_offset = None
        self.latest_ack_offset = None
        while True:
            tok = reader.peek_token()
            col = _OFFSET_MEMBERS.get(tok) if isinstance(tok, str) else None
            if col is None:
                return
            reader.next_token()
            reader.consume(Token.COLON)
            setattr(self, col.name, narrow(col, reader.next_token()))
            reader.consume(Token.COMMA)
