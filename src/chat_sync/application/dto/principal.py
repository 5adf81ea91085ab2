from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    user_id: str
    username: str | None = None
    email: str | None = None
    name: str | None = None

    @property
    def principal_key(self) -> str:
        """Unique key for WS connection registry."""
        return f"user:{self.user_id}"

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> Principal:
        sub = claims.get("sub")
        if not sub:
            raise ValueError("token has no subject")
        return cls(
            user_id=str(sub),
            username=claims.get("preferred_username") or claims.get("username"),
            email=claims.get("email"),
            name=claims.get("name"),
        )
