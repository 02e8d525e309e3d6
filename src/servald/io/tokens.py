"""
Pull-based JSON token reader over a streamed response body.

Character-level lexing is delegated to ijson (basic_parse events); this module turns the
event stream into the flat token sequence the table grammar is written against:

    {"header":["a","b"],"rows":[[1,2]]}
    START_OBJECT "header" COLON START_ARRAY "a" COMMA "b" END_ARRAY COMMA "rows" COLON
    START_ARRAY START_ARRAY 1 COMMA 2 END_ARRAY END_ARRAY END_OBJECT EOF

Tokens
- Structural markers are Token members; EOF repeats once the document has ended.
- Scalars are plain Python values: str (object keys too), int, decimal.Decimal, bool, None.

Notes
- Single-slot pushback: push_token() un-reads exactly one token; peek_token() is built on it.
- Lexer failures (malformed, truncated or trailing input) raise ProtocolError. Exceptions
  raised by the underlying stream's read() (transport failures) propagate unchanged.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Any, Protocol

import ijson

from servald.core.errors import CallerContractViolation, ProtocolError

__all__ = [
    "Token",
    "JsonTokenReader",
    "describe",
]

DEFAULT_BUF_SIZE = 64 * 1024


class Token(Enum):
    START_OBJECT = "{"
    END_OBJECT = "}"
    START_ARRAY = "["
    END_ARRAY = "]"
    COMMA = ","
    COLON = ":"
    EOF = "<EOF>"

    @staticmethod
    def match(tok: Any, expected: Token | str) -> None:
        """
        Check that a token is the expected marker or literal string.

        Raises:
            ProtocolError: On mismatch.
        """
        if isinstance(expected, Token):
            ok = tok is expected
        else:
            ok = isinstance(tok, str) and tok == expected
        if not ok:
            raise ProtocolError(f"expected {describe(expected)}, got {describe(tok)}")


def describe(tok: Any) -> str:
    """Short human-readable rendering of a token for error messages."""
    if isinstance(tok, Token):
        return tok.value if tok is Token.EOF else repr(tok.value)
    if tok is None:
        return "null"
    if isinstance(tok, int) and not isinstance(tok, bool) and tok.bit_length() > 128:
        return "<number>"
    text = repr(tok)
    return text if len(text) <= 40 else text[:37] + "..."


class _Readable(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class _TrackedStream:
    """Pass-through reader that remembers the last exception raised by read()."""

    def __init__(self, stream: _Readable):
        self._stream = stream
        self.error: BaseException | None = None

    def read(self, size: int = -1) -> bytes:
        try:
            return self._stream.read(size)
        except BaseException as exc:
            self.error = exc
            raise


_EMPTY = object()

_SCALAR_EVENTS = frozenset({"string", "number", "boolean", "null"})


class JsonTokenReader:
    """
    Token stream over one JSON document read incrementally from `stream`.

    Args:
        stream: File-like object whose read(size) returns bytes (b"" at end).
        buf_size (int): Bytes requested from the stream per lexer refill.
    """

    def __init__(self, stream: _Readable, *, buf_size: int = DEFAULT_BUF_SIZE):
        self._source = _TrackedStream(stream)
        self._events = ijson.basic_parse(self._source, buf_size=buf_size, use_float=False)
        self._pending: deque[Any] = deque()
        # One entry per open container: [is_object, members_seen]
        self._frames: list[list[Any]] = []
        self._pushed: Any = _EMPTY
        self._eof = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def next_token(self) -> Any:
        """Return the next token, consuming it."""
        if self._closed:
            raise CallerContractViolation("token reader is closed")
        if self._pushed is not _EMPTY:
            tok, self._pushed = self._pushed, _EMPTY
            return tok
        while not self._pending:
            if self._eof:
                return Token.EOF
            self._pull_event()
        return self._pending.popleft()

    def push_token(self, tok: Any) -> None:
        """Un-read one token; the next next_token() returns it."""
        if self._pushed is not _EMPTY:
            raise CallerContractViolation("pushback slot already holds a token")
        self._pushed = tok

    def peek_token(self) -> Any:
        """Return the next token without consuming it."""
        tok = self.next_token()
        self.push_token(tok)
        return tok

    def consume(self, expected: Token | str) -> None:
        """
        Read one token and require it to be `expected` (a marker or a literal string).

        Raises:
            ProtocolError: If the token read is anything else.
        """
        Token.match(self.next_token(), expected)

    def close(self) -> None:
        """Release the event stream. Idempotent; does not close the underlying stream."""
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        self._pushed = _EMPTY
        close = getattr(self._events, "close", None)
        if close is not None:
            close()

    def _pull_event(self) -> None:
        try:
            event, value = next(self._events)
        except StopIteration:
            self._eof = True
            return
        except ijson.JSONError as exc:
            raise ProtocolError(f"malformed JSON: {exc}") from exc
        except (ValueError, SystemError) as exc:
            # Oversized numbers fail inside the parser as ValueError (SystemError from yajl2_c).
            if self._source.error is not None:
                raise
            raise ProtocolError(f"malformed JSON: {type(exc).__name__}: {exc}") from exc

        frame = self._frames[-1] if self._frames else None
        emit = self._pending.append

        if event == "map_key":
            if frame[1]:
                emit(Token.COMMA)
            frame[1] += 1
            emit(value)
            emit(Token.COLON)
            return
        if event in ("end_map", "end_array"):
            self._frames.pop()
            emit(Token.END_OBJECT if event == "end_map" else Token.END_ARRAY)
            return

        # A value: array elements are comma separated; object values follow their COLON.
        if frame is not None and not frame[0]:
            if frame[1]:
                emit(Token.COMMA)
            frame[1] += 1
        if event == "start_map":
            self._frames.append([True, 0])
            emit(Token.START_OBJECT)
        elif event == "start_array":
            self._frames.append([False, 0])
            emit(Token.START_ARRAY)
        elif event in _SCALAR_EVENTS:
            emit(value)
        else:  # pragma: no cover - ijson emits no other basic events
            raise ProtocolError(f"unexpected JSON event {event!r}")
