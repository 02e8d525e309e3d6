"""
Connection factories: open one request/response channel for a servald resource path.

Overview
- HttpChannel: the streamed response body plus its status and content type.
- ConnectionFactory: given a resource path, yields an open HttpChannel.
- HttpxConnectionFactory: real transport over a shared httpx.Client (streamed GET).
- StaticConnectionFactory / BytesChannel: in-memory responses for tests and offline replay.

Notes
- Channels are file-like (read(size) -> bytes) so the token reader can pull the body
  incrementally; read() returns as soon as some bytes are available.
- close() on an httpx channel closes the response without draining the remaining body.
- Transport errors (httpx.HTTPError) are raised as-is; status handling belongs to callers.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol, Union

import httpx

from .config import ClientSettings

__all__ = [
    "HttpChannel",
    "ConnectionFactory",
    "HttpxChannel",
    "HttpxConnectionFactory",
    "BytesChannel",
    "StaticConnectionFactory",
]

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class HttpChannel(Protocol):
    status_code: int
    content_type: str | None

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


class ConnectionFactory(Protocol):
    def open(self, path: str) -> HttpChannel: ...


class _ChunkBuffer:
    """read(size) over an iterator of byte chunks."""

    def __init__(self, chunks):
        self._chunks = chunks
        self._buffer = bytearray()
        self._done = False

    def read(self, size: int = -1) -> bytes:
        if size == 0:
            return b""
        if size is None or size < 0:
            while not self._done:
                self._fill()
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        while not self._buffer and not self._done:
            self._fill()
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def _fill(self) -> None:
        try:
            self._buffer.extend(next(self._chunks))
        except StopIteration:
            self._done = True


class HttpxChannel:
    """Streamed httpx response exposed as an HttpChannel."""

    def __init__(self, response: httpx.Response, chunk_size: int | None = None):
        self._response = response
        self._body = _ChunkBuffer(response.iter_bytes(chunk_size))

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def content_type(self) -> str | None:
        return self._response.headers.get("content-type")

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    def read(self, size: int = -1) -> bytes:
        return self._body.read(size)

    def close(self) -> None:
        self._response.close()


class HttpxConnectionFactory:
    """
    Opens streamed GET requests against a servald HTTP server.

    Args:
        settings (ClientSettings | None): Transport settings; ClientSettings.load() when None.
        client (httpx.Client | None): Pre-built client to use; it is not closed by close().
        transport (httpx.BaseTransport | None): Transport for the owned client (e.g. httpx.MockTransport).

    Examples:
        >>> with HttpxConnectionFactory(ClientSettings(username="api", password="x")) as conn:  # doctest: +SKIP
        ...     channel = conn.open("/restful/rhizome/bundlelist.json")
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.settings = settings or ClientSettings.load()
        self._owns_client = client is None
        if client is None:
            client = httpx.Client(
                base_url=self.settings.base_url,
                auth=self.settings.auth,
                timeout=httpx.Timeout(
                    self.settings.timeout, connect=self.settings.connect_timeout
                ),
                verify=self.settings.verify_ssl,
                transport=transport,
            )
        self._client = client

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def open(self, path: str) -> HttpxChannel:
        request = self._client.build_request(
            "GET", path, headers={"Accept": JSON_CONTENT_TYPE}
        )
        logger.debug("GET %s", request.url)
        response = self._client.send(request, stream=True)
        logger.debug("GET %s -> %s", request.url, response.status_code)
        return HttpxChannel(response, self.settings.read_chunk_size)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class BytesChannel:
    """
    In-memory HttpChannel serving a fixed body.

    Args:
        body (bytes | str): Response body; str is UTF-8 encoded.
        status_code (int): HTTP status to report.
        content_type (str | None): Content-Type to report.
        chunk_size (int | None): Largest slice returned per read(), to mimic a trickling stream.
    """

    def __init__(
        self,
        body: bytes | str = b"",
        *,
        status_code: int = 200,
        content_type: str | None = JSON_CONTENT_TYPE,
        chunk_size: int | None = None,
    ):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.status_code = status_code
        self.content_type = content_type
        self.bytes_read = 0
        self.closed = False
        self._body = body
        self._chunk_size = chunk_size

    def read(self, size: int = -1) -> bytes:
        if self.closed:
            raise ValueError("read from a closed channel")
        if size is None or size < 0:
            size = len(self._body) - self.bytes_read
        if self._chunk_size is not None:
            size = min(size, self._chunk_size)
        data = self._body[self.bytes_read : self.bytes_read + size]
        self.bytes_read += len(data)
        return data

    def close(self) -> None:
        self.closed = True


Route = Union[bytes, str, tuple[int, Union[bytes, str]]]


class StaticConnectionFactory:
    """
    ConnectionFactory serving canned bodies by path; unknown paths answer 404.

    Args:
        routes (Mapping[str, Route]): path -> body, or path -> (status_code, body).
        chunk_size (int | None): Passed to every BytesChannel.

    Attributes:
        channels (list[BytesChannel]): Every channel opened, in order.
        opened (list[str]): Every path opened, in order.
    """

    def __init__(self, routes: Mapping[str, Route], *, chunk_size: int | None = None):
        self._routes = dict(routes)
        self._chunk_size = chunk_size
        self.channels: list[BytesChannel] = []
        self.opened: list[str] = []

    def open(self, path: str) -> BytesChannel:
        route = self._routes.get(path)
        if route is None:
            status, body = 404, b'{"http_status_code":404,"http_status_message":"Not found"}'
        elif isinstance(route, tuple):
            status, body = route
        else:
            status, body = 200, route
        channel = BytesChannel(body, status_code=status, chunk_size=self._chunk_size)
        self.opened.append(path)
        self.channels.append(channel)
        return channel
