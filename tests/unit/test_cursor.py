from __future__ import annotations

import base64
import json

import pytest

from chainindex.domain.registry import get_spec
from chainindex.errors import InvalidCursor
from chainindex.pagination.cursor import Cursor, CursorCodec, cursor_for

TX_HASH = "0x" + "ab" * 32


def _token(parts) -> str:
    raw = json.dumps(parts).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def test_cursor_token_is_opaque_and_decodes_back() -> None:
    spec = get_spec("transaction")
    token = cursor_for(spec, (TX_HASH,))

    assert TX_HASH not in token
    assert "=" not in token
    assert CursorCodec.decode(token, spec) == Cursor("transaction", (TX_HASH,))


def test_cursor_with_composite_key() -> None:
    spec = get_spec("token_transfer")
    token = cursor_for(spec, (TX_HASH, 3))
    assert CursorCodec.decode(token, spec).key == (TX_HASH, 3)


def test_cursor_of_another_record_type_is_rejected() -> None:
    token = cursor_for(get_spec("transaction"), (TX_HASH,))
    with pytest.raises(InvalidCursor, match="issued for 'transaction'"):
        CursorCodec.decode(token, get_spec("contract"))


@pytest.mark.parametrize(
    "record_type, token",
    [
        ("transaction", ""),
        ("transaction", "not base64 !!"),
        ("transaction", _token({"record": "transaction"})),
        ("transaction", _token([])),
        ("transaction", _token([1, 2])),
        ("transaction", _token(["transaction"])),
        ("transaction", _token(["transaction", TX_HASH, "extra"])),
        ("epoch", _token(["epoch", "12"])),
        ("epoch", _token(["epoch", True])),
    ],
)
def test_malformed_cursors_are_rejected(record_type: str, token: str) -> None:
    with pytest.raises(InvalidCursor):
        CursorCodec.decode(token, get_spec(record_type))


def test_invalid_cursor_is_a_value_error() -> None:
    assert issubclass(InvalidCursor, ValueError)
