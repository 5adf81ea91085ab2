from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Profile:
    id: str
    username: str
    email: str
    name: str
    avatar: str
    status: str
    created_at: datetime
    updated_at: datetime
