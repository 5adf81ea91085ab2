from __future__ import annotations

import json

import pytest

from chat_sync.application.exceptions import ValidationError
from chat_sync.infrastructure.bus.serializer import deserialize_event, serialize_event
from chat_sync.infrastructure.db.repositories._cursor import decode_cursor, encode_cursor
from tests.conftest import at


def test_cursor_is_url_safe_and_reversible():
    cursor = encode_cursor(at(5), "m/5?")
    assert "=" not in cursor
    assert "+" not in cursor and "/" not in cursor
    assert decode_cursor(cursor) == (at(5), "m/5?")


def test_cursor_key_may_contain_separator():
    assert decode_cursor(encode_cursor(at(0), "a|b"))[1] == "a|b"


@pytest.mark.parametrize("bad", ["%%%", "bm8tc2VwYXJhdG9y", "bm90LWEtZGF0ZXxtMQ"])
def test_invalid_cursor_raises_validation_error(bad):
    with pytest.raises(ValidationError):
        decode_cursor(bad)


def test_serializer_encodes_datetimes_and_sets():
    raw = serialize_event("message.created", {"created_at": at(0), "read_by": {"bob", "alice"}})

    assert json.loads(raw)["data"] == {
        "created_at": "2024-05-01T12:00:00+00:00",
        "read_by": ["alice", "bob"],
    }
    event_type, data = deserialize_event(raw)
    assert event_type == "message.created"
    assert data["read_by"] == ["alice", "bob"]
