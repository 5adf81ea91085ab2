"""Client-side view of the caller's own token."""
from __future__ import annotations

import jwt

from chat_sync.application.dto.principal import Principal


def principal_from_token(token: str) -> Principal:
    """Read identity claims without verifying the signature.

    The client only needs its own user id and display claims; the backend
    verifies the token on every request.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise ValueError(f"Unreadable token: {exc}") from exc
    return Principal.from_claims(claims)
