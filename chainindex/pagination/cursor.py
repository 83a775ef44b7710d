"""
Cursor codec.

A cursor is a typed value: the record type it was issued for plus the primary
key of the record a page starts after. On the wire it is an opaque token, the
unpadded URL-safe base64 of the JSON array ``[record_type, *key]``.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Tuple

from chainindex.domain.registry import RecordSpec
from chainindex.errors import InvalidCursor


@dataclass(frozen=True)
class Cursor:
    record_type: str
    key: Tuple[Any, ...]


class CursorCodec:
    """Convert cursors to tokens and back. Stateless."""

    @staticmethod
    def encode(cursor: Cursor) -> str:
        raw = json.dumps([cursor.record_type, *cursor.key], separators=(",", ":"))
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")

    @staticmethod
    def decode(token: str, spec: RecordSpec) -> Cursor:
        """
        Decode a token issued for `spec`'s record type.

        Raises
        ------
        InvalidCursor
            If the token is malformed, was issued for another record type, or
            carries a key of the wrong shape.
        """
        if not isinstance(token, str) or not token:
            raise InvalidCursor("empty cursor")
        try:
            padded = token + "=" * (-len(token) % 4)
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
            parts = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise InvalidCursor(f"malformed cursor {token!r}") from exc

        if not isinstance(parts, list) or not parts or not isinstance(parts[0], str):
            raise InvalidCursor(f"malformed cursor {token!r}")

        record_type, key = parts[0], tuple(parts[1:])
        if record_type != spec.name:
            raise InvalidCursor(
                f"cursor was issued for '{record_type}', not for '{spec.name}'"
            )

        kinds = tuple(spec.key_fields.values())
        if len(key) != len(kinds):
            raise InvalidCursor(f"cursor key {key!r} does not fit {spec.name}")
        for part, kind in zip(key, kinds):
            # bool is an int subclass; a JSON true is never a valid key part
            if isinstance(part, bool) or not isinstance(part, kind):
                raise InvalidCursor(f"cursor key {key!r} does not fit {spec.name}")
        return Cursor(record_type, key)


def cursor_for(spec: RecordSpec, key: Tuple[Any, ...]) -> str:
    """Token for the record with the given primary key."""
    return CursorCodec.encode(Cursor(spec.name, tuple(key)))


__all__ = ["Cursor", "CursorCodec", "cursor_for"]
