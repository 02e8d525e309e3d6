"""
servald: streaming, schema-validated client for servald RESTful JSON tables.

- servald.core: zero-IO contracts (columns, tables, records, ids, errors).
- servald.io: httpx transport, ijson token stream, table scanner, list clients.
"""

from __future__ import annotations

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
