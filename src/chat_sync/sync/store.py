"""Per-conversation message timeline and the reconciler that feeds it.

All writers (historical load, live channel, polling fallback, send pipeline)
run on one event loop, so the store needs no locking: nothing can observe it
between two statements of ``reconcile``.
"""
from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from chat_sync.application.dto.content import matches_query
from chat_sync.application.dto.message import message_from_payload
from chat_sync.application.exceptions import ValidationError
from chat_sync.domain.entities.message import Message

logger = logging.getLogger(__name__)

Candidate = Message | Mapping[str, Any]


def validate_batch(
    candidates: Iterable[Candidate],
    conversation_id: str | None = None,
) -> list[Message]:
    """Parse candidates, dropping (and logging) the malformed ones.

    With ``conversation_id`` set, messages naming another conversation are
    dropped too.
    """
    valid: list[Message] = []
    for candidate in candidates:
        try:
            message = message_from_payload(candidate)
        except ValidationError as exc:
            logger.warning("Dropping malformed message candidate: %s", exc.detail)
            continue
        if conversation_id is not None and message.conversation_id != conversation_id:
            logger.warning(
                "Dropping message %s for conversation %s (expected %s)",
                message.msg_id, message.conversation_id, conversation_id,
            )
            continue
        valid.append(message)
    return valid


def newest_timestamp(messages: Iterable[Message]) -> datetime | None:
    return max((m.created_at for m in messages), default=None)


class MessageStore:
    """Ordered, deduplicated view of the active conversation."""

    def __init__(self) -> None:
        self._conversation_id: str | None = None
        self._entries: dict[str, tuple[int, Message]] = {}
        self._seq = itertools.count()
        self._watermark: datetime | None = None
        self._history_loaded = False

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def watermark(self) -> datetime | None:
        return self._watermark

    @property
    def history_loaded(self) -> bool:
        """True once the first page for the active conversation has been reconciled."""
        return self._history_loaded

    def mark_history_loaded(self) -> None:
        self._history_loaded = True

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, msg_id: object) -> bool:
        return msg_id in self._entries

    def reset(self, conversation_id: str | None) -> None:
        """Discard the whole view and watermark, then key the store to ``conversation_id``."""
        self._conversation_id = conversation_id
        self._entries = {}
        self._seq = itertools.count()
        self._watermark = None
        self._history_loaded = False

    def advance_watermark(self, ts: datetime | None) -> None:
        if ts is None:
            return
        if self._watermark is None or ts > self._watermark:
            self._watermark = ts

    def reconcile(self, candidates: Iterable[Candidate]) -> int:
        """Merge candidates into the store; return how many were inserted.

        Idempotent on ``msg_id``. Malformed candidates and candidates for a
        conversation other than the active one are skipped individually.
        """
        if self._conversation_id is None:
            return 0
        inserted = 0
        for message in validate_batch(candidates, self._conversation_id):
            if message.msg_id in self._entries:
                continue
            self._entries[message.msg_id] = (next(self._seq), message)
            self.advance_watermark(message.created_at)
            inserted += 1
        if inserted:
            logger.debug(
                "Reconciled %d new message(s) into %s (total=%d)",
                inserted, self._conversation_id, len(self._entries),
            )
        return inserted

    def get(self, msg_id: str) -> Message | None:
        entry = self._entries.get(msg_id)
        return entry[1] if entry else None

    def messages(self) -> list[Message]:
        """Presentation order: ``created_at`` ascending, ties by arrival."""
        ordered = sorted(self._entries.values(), key=lambda e: (e[1].created_at, e[0]))
        return [message for _seq, message in ordered]

    def search(self, query: str | None) -> list[Message]:
        if not query or not query.strip():
            return self.messages()
        return [m for m in self.messages() if matches_query(m, query)]
