"""
Fixed-length binary identifiers rendered as hex on the wire.

Bundle ids, subscriber ids (SIDs) and file hashes are opaque byte strings of a fixed
size. The server renders them as upper-case hex; decoding accepts either case.

Notes:
    - Values are immutable and hashable so they can key dicts and sets.
    - from_hex() raises ValueError; column narrowing converts that to ColumnTypeError.

Examples:
    >>> from servald.core.ids import SubscriberId
    >>> sid = SubscriberId.from_hex("ab" * 32)
    >>> sid.hex() == "AB" * 32
    True
"""

from __future__ import annotations

import binascii
from typing import ClassVar

__all__ = [
    "BundleId",
    "SubscriberId",
    "FileHash",
]


class _FixedHexId:
    """Immutable byte string of exactly SIZE bytes."""

    SIZE: ClassVar[int] = 0
    __slots__ = ("_binary",)

    def __init__(self, binary: bytes):
        binary = bytes(binary)
        if len(binary) != self.SIZE:
            raise ValueError(
                f"{type(self).__name__} must be {self.SIZE} bytes, got {len(binary)}"
            )
        object.__setattr__(self, "_binary", binary)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @classmethod
    def from_hex(cls, text: str):
        """
        Decode a hex string (either case) into an identifier.

        Raises:
            ValueError: If the text is not hex or does not decode to exactly SIZE bytes.
        """
        if len(text) != cls.SIZE * 2:
            raise ValueError(
                f"{cls.__name__} must be {cls.SIZE * 2} hex digits, got {len(text)}"
            )
        try:
            return cls(binascii.unhexlify(text))
        except binascii.Error as exc:
            raise ValueError(f"{cls.__name__} is not valid hex: {text!r}") from exc

    @property
    def binary(self) -> bytes:
        return self._binary

    def hex(self) -> str:
        return self._binary.hex().upper()

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._binary == other._binary  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._binary))

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.hex()!r})"


class BundleId(_FixedHexId):
    """Rhizome bundle identifier (32-byte public key)."""

    SIZE = 32
    __slots__ = ()


class SubscriberId(_FixedHexId):
    """Subscriber identifier, the SID (32 bytes)."""

    SIZE = 32
    __slots__ = ()


class FileHash(_FixedHexId):
    """SHA-512 hash of a payload (64 bytes)."""

    SIZE = 64
    __slots__ = ()
