"""
servald.io: Transport and streaming layer for servald RESTful list endpoints.

## Responsibilities
- Open streamed HTTP responses (httpx) through an injectable ConnectionFactory.
- Tokenize the response body incrementally (ijson) with single-token pushback.
- Validate the server-declared header against a TableDescriptor and decode rows one at a time.
- Expose list clients (RhizomeBundleList, MeshMSConversationList, MeshMSMessageList) with a
  connect/next_row/close lifecycle.

## Public API
- ClientSettings: transport configuration (env > TOML > defaults).
- HttpxConnectionFactory / StaticConnectionFactory: real and in-memory connection factories.
- JsonTokenReader / Token: token stream used by the scanner.
- TableScanner: add_column / consume_header_array / consume_row_array.
- RhizomeBundleList / MeshMSConversationList / MeshMSMessageList: streaming row iterators.

## Import DAG discipline
- Depends on stdlib, httpx, ijson and servald.core.*.

## Examples
```python
from servald.io import ClientSettings, HttpxConnectionFactory, RhizomeBundleList

settings = ClientSettings(username="api", password="secret")  # doctest: +SKIP
with HttpxConnectionFactory(settings) as conn, RhizomeBundleList(conn) as bundles:  # doctest: +SKIP
    bundles.connect()
    for record in bundles:
        print(record.index, record.service, record.name)
```
"""

from __future__ import annotations

from .config import ClientSettings
from .connection import (
    BytesChannel,
    ConnectionFactory,
    HttpChannel,
    HttpxConnectionFactory,
    StaticConnectionFactory,
)
from .lists import (
    ListState,
    MeshMSConversationList,
    MeshMSMessageList,
    RestfulTableList,
    RhizomeBundleList,
)
from .scanner import DecodedRow, TableScanner
from .tokens import JsonTokenReader, Token

__all__ = [
    "ClientSettings",
    "BytesChannel",
    "ConnectionFactory",
    "HttpChannel",
    "HttpxConnectionFactory",
    "StaticConnectionFactory",
    "ListState",
    "MeshMSConversationList",
    "MeshMSMessageList",
    "RestfulTableList",
    "RhizomeBundleList",
    "DecodedRow",
    "TableScanner",
    "JsonTokenReader",
    "Token",
]
