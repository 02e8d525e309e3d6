import pytest

from servald.core.ids import BundleId, FileHash, SubscriberId


def test_from_hex_accepts_either_case_and_renders_upper() -> None:
    lower = SubscriberId.from_hex("ab" * 32)
    upper = SubscriberId.from_hex("AB" * 32)
    assert lower == upper
    assert lower.hex() == "AB" * 32
    assert lower.binary == b"\xab" * 32
    assert str(lower) == lower.hex()


def test_sizes_per_kind() -> None:
    assert len(BundleId.from_hex("00" * 32).binary) == 32
    assert len(FileHash.from_hex("ff" * 64).binary) == 64
    with pytest.raises(ValueError):
        FileHash.from_hex("ff" * 32)


def test_invalid_hex_raises_value_error() -> None:
    with pytest.raises(ValueError):
        BundleId.from_hex("zz" * 32)
    with pytest.raises(ValueError):
        BundleId.from_hex("abc")


def test_ids_are_immutable_and_hashable() -> None:
    sid = SubscriberId(b"\x01" * 32)
    with pytest.raises(AttributeError):
        sid._binary = b"\x02" * 32  # type: ignore[misc]
    assert {sid, SubscriberId(b"\x01" * 32)} == {sid}


def test_different_kinds_with_same_bytes_are_not_equal() -> None:
    raw = b"\x07" * 32
    assert BundleId(raw) != SubscriberId(raw)
