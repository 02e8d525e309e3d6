import json

import pytest

from servald.core.errors import (
    CallerContractViolation,
    ColumnTypeError,
    ProtocolError,
    SchemaError,
    ServalDInterfaceError,
)
from servald.core.ids import BundleId
from servald.io.connection import BytesChannel, StaticConnectionFactory
from servald.io.lists import ListState, RhizomeBundleList

PATH = "/restful/rhizome/bundlelist.json"
BID_HEX = "a1b2" * 16

HEADER = [
    "_id",
    "service",
    "id",
    "version",
    "date",
    ".inserttime",
    ".author",
    ".fromhere",
    "filesize",
    "filehash",
    "sender",
    "recipient",
    "name",
    ".token",
]


def _row(row_id: int = 1, name: str = "hello.txt") -> list:
    return [
        row_id,
        "mymeshfile",
        BID_HEX,
        "3",
        "1600000000",
        "1600000001",
        None,
        "0",
        "1024",
        None,
        None,
        None,
        name,
        None,
    ]


def _body(rows, header=HEADER) -> str:
    return json.dumps({"header": header, "rows": rows})


def _bundles(body, **kwargs):
    conn = StaticConnectionFactory({PATH: body}, **kwargs)
    return conn, RhizomeBundleList(conn)


def test_end_to_end_single_row() -> None:
    conn, bundles = _bundles(_body([_row()]))
    bundles.connect()
    assert bundles.state is ListState.STREAM_OPEN
    assert bundles.is_connected

    rec = bundles.next_row()
    assert rec is not None
    assert rec.index == 0
    assert rec.row_id == 1
    assert rec.service == "mymeshfile"
    assert rec.bundle_id == BundleId.from_hex(BID_HEX)
    assert rec.version == 3
    assert rec.name == "hello.txt"
    assert rec.filehash is None
    assert rec.token is None

    assert bundles.next_row() is None
    assert bundles.state is ListState.EXHAUSTED
    assert not bundles.is_connected
    # end of rows releases the stream
    assert conn.channels[0].closed


def test_indexes_are_contiguous_from_zero() -> None:
    rows = [_row(row_id=i, name=f"f{i}") for i in range(5)]
    _, bundles = _bundles(_body(rows), chunk_size=7)
    bundles.connect()
    records = list(bundles)
    assert [r.index for r in records] == [0, 1, 2, 3, 4]
    assert [r.name for r in records] == ["f0", "f1", "f2", "f3", "f4"]
    assert bundles.state is ListState.EXHAUSTED


def test_empty_rows() -> None:
    _, bundles = _bundles(_body([]))
    bundles.connect()
    assert bundles.next_row() is None


def test_index_resets_on_new_session() -> None:
    _, bundles = _bundles(_body([_row(1), _row(2)]))
    bundles.connect()
    assert bundles.next_row().index == 0
    bundles.close()
    bundles.connect()
    assert [r.index for r in bundles] == [0, 1]


def test_rows_are_decoded_lazily() -> None:
    rows = [_row(row_id=i) for i in range(500)]
    body = _body(rows)
    conn = StaticConnectionFactory({PATH: body}, chunk_size=64)
    bundles = RhizomeBundleList(conn, buf_size=64)
    bundles.connect()
    assert bundles.next_row().index == 0
    assert conn.channels[0].bytes_read < len(body) // 4
    bundles.close()
    assert conn.channels[0].closed


def test_unknown_header_column_fails_connect_with_schema_error() -> None:
    _, bundles = _bundles(_body([_row()], header=HEADER + ["bogus"]))
    with pytest.raises(SchemaError):
        bundles.connect()
    assert bundles.state is ListState.FAILED
    with pytest.raises(CallerContractViolation):
        bundles.next_row()
    bundles.close()


def test_row_arity_mismatch_fails_next_row_with_schema_error() -> None:
    _, bundles = _bundles(_body([_row(), _row()[:-1]]))
    bundles.connect()
    assert bundles.next_row() is not None
    with pytest.raises(SchemaError):
        bundles.next_row()
    assert bundles.state is ListState.FAILED


def test_null_in_non_nullable_column_fails_with_column_type_error() -> None:
    row = _row()
    row[HEADER.index("service")] = None
    _, bundles = _bundles(_body([row]))
    bundles.connect()
    with pytest.raises(ColumnTypeError):
        bundles.next_row()


def test_next_row_after_exhaustion_is_a_contract_violation() -> None:
    _, bundles = _bundles(_body([]))
    bundles.connect()
    assert bundles.next_row() is None
    with pytest.raises(CallerContractViolation):
        bundles.next_row()


def test_next_row_before_connect_and_after_close() -> None:
    _, bundles = _bundles(_body([_row()]))
    with pytest.raises(CallerContractViolation):
        bundles.next_row()
    bundles.connect()
    bundles.close()
    with pytest.raises(CallerContractViolation):
        bundles.next_row()


def test_contract_violation_is_not_an_interface_error() -> None:
    _, bundles = _bundles(_body([]))
    with pytest.raises(CallerContractViolation) as excinfo:
        bundles.next_row()
    assert not isinstance(excinfo.value, ServalDInterfaceError)


def test_connect_twice_without_close_is_a_contract_violation() -> None:
    _, bundles = _bundles(_body([]))
    bundles.connect()
    with pytest.raises(CallerContractViolation):
        bundles.connect()


def test_unexpected_status_is_a_protocol_error() -> None:
    conn = StaticConnectionFactory({PATH: (403, '{"http_status_code":403}')})
    bundles = RhizomeBundleList(conn)
    with pytest.raises(ProtocolError) as excinfo:
        bundles.connect()
    assert excinfo.value.status_code == 403
    assert bundles.state is ListState.FAILED
    bundles.close()
    assert conn.channels[0].closed


def test_missing_route_is_a_protocol_error() -> None:
    bundles = RhizomeBundleList(StaticConnectionFactory({}))
    with pytest.raises(ProtocolError):
        bundles.connect()


_H = json.dumps(HEADER)


@pytest.mark.parametrize(
    "body",
    [
        '{"heading":' + _H + ',"rows":[]}',
        '{"header":' + _H + ' "rows":[]}',
        '{"header":' + _H + ',"records":[]}',
        '{"header":' + _H + ',"rows":{}}',
        "[]",
    ],
)
def test_envelope_mismatch_is_a_protocol_error(body: str) -> None:
    _, bundles = _bundles(body)
    with pytest.raises(ProtocolError):
        bundles.connect()
    assert bundles.state is ListState.FAILED


def test_premature_end_of_stream_is_a_protocol_error() -> None:
    body = _body([_row(), _row()])
    _, bundles = _bundles(body[: body.index("]]") + 1])
    bundles.connect()
    with pytest.raises(ProtocolError):
        while bundles.next_row() is not None:
            pass
    assert bundles.state is ListState.FAILED


def test_missing_object_close_is_a_protocol_error() -> None:
    body = json.dumps({"header": HEADER, "rows": [], "extra": 1})
    _, bundles = _bundles(body)
    bundles.connect()
    with pytest.raises(ProtocolError):
        bundles.next_row()


def test_close_is_idempotent_and_safe_in_every_state() -> None:
    conn, bundles = _bundles(_body([_row()]))
    bundles.close()
    bundles.connect()
    bundles.close()
    bundles.close()
    assert bundles.state is ListState.CLOSED
    assert all(channel.closed for channel in conn.channels)


def test_context_manager_closes_mid_stream() -> None:
    conn, bundles = _bundles(_body([_row(1), _row(2)]))
    with bundles:
        bundles.connect()
        bundles.next_row()
    assert bundles.state is ListState.CLOSED
    assert conn.channels[0].closed


@pytest.mark.parametrize(
    "value", ["9" * 5000, "1e3000000", "-9.5e300000"], ids=["long-digits", "exponent", "negative"]
)
def test_oversized_number_fails_row_with_interface_error(value: str) -> None:
    # The literal is spliced in raw so it reaches the lexer as a JSON number.
    body = _body([_row()]).replace('"3"', value, 1)
    _, bundles = _bundles(body)
    bundles.connect()
    with pytest.raises(ServalDInterfaceError):
        bundles.next_row()
    assert bundles.state is ListState.FAILED
    bundles.close()


def test_oversized_digit_string_is_a_column_type_error() -> None:
    row = _row()
    row[HEADER.index("version")] = "9" * 5000
    _, bundles = _bundles(_body([row]))
    bundles.connect()
    with pytest.raises(ColumnTypeError) as excinfo:
        bundles.next_row()
    assert excinfo.value.column == "version"


class _StuckChannel(BytesChannel):
    def close(self) -> None:
        super().close()
        raise OSError("socket already gone")


class _StuckConnectionFactory(StaticConnectionFactory):
    def open(self, path: str) -> BytesChannel:
        channel = _StuckChannel(_body([_row()]))
        self.channels.append(channel)
        return channel


def test_close_reaches_closed_state_when_channel_close_fails() -> None:
    bundles = RhizomeBundleList(_StuckConnectionFactory({}))
    bundles.connect()
    with pytest.raises(OSError):
        bundles.close()
    assert bundles.state is ListState.CLOSED
    assert not bundles.is_connected
    bundles.close()
    assert bundles.state is ListState.CLOSED
