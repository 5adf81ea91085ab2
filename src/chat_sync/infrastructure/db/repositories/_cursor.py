"""Cursor-based pagination helpers.

Cursor format: base64("<iso-timestamp>|<id>")
"""
from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone

from chat_sync.application.exceptions import ValidationError


def encode_cursor(ts: datetime | None, key: str) -> str:
    ts_str = (ts or datetime.min.replace(tzinfo=timezone.utc)).isoformat()
    raw = f"{ts_str}|{key}"
    cursor = base64.urlsafe_b64encode(raw.encode()).decode()
    return cursor.rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    # Restore base64 padding if it was stripped
    cursor += "=" * ((4 - len(cursor) % 4) % 4)
    try:
        raw = base64.urlsafe_b64decode(cursor.encode()).decode()
        ts_str, key = raw.split("|", 1)
        return datetime.fromisoformat(ts_str), key
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise ValidationError("Invalid pagination token") from exc
