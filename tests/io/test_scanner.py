import json

import pytest

from servald.core.columns import ColumnType, NullPolicy
from servald.core.errors import (
    CallerContractViolation,
    ColumnTypeError,
    ProtocolError,
    SchemaError,
)
from servald.core.tables import CONVERSATION_LIST_DESC
from servald.io.connection import BytesChannel
from servald.io.scanner import TableScanner
from servald.io.tokens import JsonTokenReader, Token


def _reader(value) -> JsonTokenReader:
    body = value if isinstance(value, str) else json.dumps(value)
    return JsonTokenReader(BytesChannel(body))


def _people() -> TableScanner:
    return (
        TableScanner()
        .add_column("_id", ColumnType.INTEGER)
        .add_column("name", ColumnType.STRING)
        .add_column("nick", ColumnType.STRING, NullPolicy.ALLOW_NULL)
    )


def _scan(scanner: TableScanner, header, *rows):
    reader = _reader({"header": header, "rows": list(rows)})
    reader.consume(Token.START_OBJECT)
    reader.consume("header")
    reader.consume(Token.COLON)
    scanner.consume_header_array(reader)
    reader.consume(Token.COMMA)
    reader.consume("rows")
    reader.consume(Token.COLON)
    reader.consume(Token.START_ARRAY)
    return reader


def test_duplicate_column_fails_construction() -> None:
    with pytest.raises(SchemaError):
        TableScanner().add_column("a", ColumnType.STRING).add_column("a", ColumnType.LONG)


def test_header_order_may_differ_from_declaration() -> None:
    scanner = _people()
    reader = _scan(scanner, ["name", "_id"], ["alice", 7])
    assert scanner.header == ("name", "_id")
    row = scanner.consume_row_array(reader)
    assert row == {"_id": 7, "name": "alice", "nick": None}


def test_unknown_header_column_raises_schema_error() -> None:
    with pytest.raises(SchemaError, match="unexpected column"):
        _scan(_people(), ["_id", "name", "age"])


def test_header_names_are_case_sensitive() -> None:
    with pytest.raises(SchemaError):
        _scan(_people(), ["_id", "Name"])


def test_repeated_header_column_raises_schema_error() -> None:
    with pytest.raises(SchemaError, match="duplicate"):
        _scan(_people(), ["_id", "name", "_id"])


def test_missing_required_column_raises_schema_error() -> None:
    with pytest.raises(SchemaError, match="missing"):
        _scan(_people(), ["_id"])


@pytest.mark.parametrize("header", ['"_id"', "[1]", '["_id", ["name"]]', "{}"])
def test_malformed_header_raises_schema_error(header: str) -> None:
    reader = _reader(header)
    with pytest.raises(SchemaError):
        _people().consume_header_array(reader)


def test_row_arity_mismatch_raises_schema_error() -> None:
    scanner = _people()
    reader = _scan(scanner, ["_id", "name"], [1, "a", "extra"])
    with pytest.raises(SchemaError):
        scanner.consume_row_array(reader)

    scanner = _people()
    reader = _scan(scanner, ["_id", "name"], [1])
    with pytest.raises(SchemaError):
        scanner.consume_row_array(reader)


def test_null_policy_per_column() -> None:
    scanner = _people()
    reader = _scan(scanner, ["_id", "name", "nick"], [1, "a", None], [2, None, "b"])
    assert scanner.consume_row_array(reader)["nick"] is None
    reader.consume(Token.COMMA)
    with pytest.raises(ColumnTypeError) as excinfo:
        scanner.consume_row_array(reader)
    assert excinfo.value.column == "name"


def test_row_that_is_not_an_array_is_a_protocol_error() -> None:
    scanner = _people()
    reader = _scan(scanner, ["_id", "name"], {"_id": 1})
    with pytest.raises(ProtocolError):
        scanner.consume_row_array(reader)


def test_row_before_header_is_a_contract_violation() -> None:
    with pytest.raises(CallerContractViolation):
        _people().consume_row_array(_reader([[1, "a"]]))


def test_from_descriptor_decodes_identifier_and_boolean_columns() -> None:
    scanner = TableScanner.from_descriptor(CONVERSATION_LIST_DESC)
    header = ["_id", "my_sid", "their_sid", "read", "last_message", "read_offset"]
    reader = _scan(scanner, header, [0, "ab" * 32, "CD" * 32, False, 10, 4])
    row = scanner.consume_row_array(reader)
    assert row["their_sid"].hex() == "CD" * 32
    assert row["read"] is False
    assert row["last_message"] == 10
