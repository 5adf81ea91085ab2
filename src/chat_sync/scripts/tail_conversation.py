"""Follow a conversation from the command line.

    CHAT_TOKEN=... python -m chat_sync.scripts.tail_conversation [conversation_id]

Prints the history, then every message that arrives through the live channel
or the polling fallback, until interrupted.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys

from chat_sync.application.dto.content import FileContent, TextContent, VoiceContent, parse_content
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import ChannelState
from chat_sync.sync.bootstrap import open_session

logger = logging.getLogger(__name__)


def _render(message: Message) -> str:
    match parse_content(message):
        case TextContent(text=text):
            content = text
        case VoiceContent(file_name=name):
            content = f"[voice] {name}"
        case FileContent(file_name=name, file_size=size):
            content = f"[file] {name} ({size} bytes)"
    return f"{message.created_at:%H:%M:%S} {message.sender_id}: {content}"


def _on_state(state: ChannelState) -> None:
    logger.info("live channel: %s", state)


async def tail(token: str, conversation_id: str | None) -> None:
    async with open_session(
        token,
        preferred_conversation_id=conversation_id,
        on_channel_state=_on_state,
    ) as session:
        if session.active_conversation_id is None:
            logger.warning("No conversation to follow")
            return
        logger.info("Following %s", session.active_conversation_id)
        shown: set[str] = set()
        while True:
            for message in session.visible_messages():
                if message.msg_id not in shown:
                    shown.add(message.msg_id)
                    print(_render(message), flush=True)
            await asyncio.sleep(0.5)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    token = os.environ.get("CHAT_TOKEN")
    if not token:
        sys.exit("CHAT_TOKEN is not set")
    conversation_id = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        asyncio.run(tail(token, conversation_id))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
