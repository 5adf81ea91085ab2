"""Outgoing messages: optional upload, payload construction, dispatch, optimistic insert."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Sequence

from chat_sync.application.dto.attachment import Attachment
from chat_sync.application.dto.content import FileEnvelope, format_duration
from chat_sync.application.dto.message import CreateMessageRequest, message_from_payload
from chat_sync.application.exceptions import RequestError, UploadError, ValidationError
from chat_sync.application.ports.chat_api import MessageGateway
from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.application.ports.storage import ProgressCallback, StorageGateway
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import MessageType
from chat_sync.sync.recorder import VoiceRecorder
from chat_sync.sync.store import MessageStore

logger = logging.getLogger(__name__)


def validate_attachment(
    attachment: Attachment,
    *,
    max_bytes: int,
    allowed_types: Sequence[str],
) -> None:
    if attachment.size > max_bytes:
        raise ValidationError(
            f"File size ({attachment.size / 1024 / 1024:.1f}MB) exceeds the "
            f"{max_bytes // (1024 * 1024)}MB limit"
        )
    if attachment.content_type not in allowed_types:
        raise ValidationError(f"File type {attachment.content_type} is not supported")


def generate_file_key(attachment: Attachment, user_id: str, clock: Clock) -> str:
    stamp = int(clock.now().timestamp() * 1000)
    extension = attachment.extension or "bin"
    return f"uploads/{user_id}/{stamp}_{uuid.uuid4().hex[:13]}.{extension}"


@dataclass
class Composer:
    """Unsent input. Cleared only after a send is confirmed."""

    text: str = ""
    attachment: Attachment | None = None
    recorder: VoiceRecorder | None = field(default=None, repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and self.attachment is None

    def attach(
        self,
        attachment: Attachment,
        *,
        max_bytes: int,
        allowed_types: Sequence[str],
    ) -> None:
        validate_attachment(attachment, max_bytes=max_bytes, allowed_types=allowed_types)
        self.attachment = attachment

    def start_recording(self) -> None:
        if self.recorder is None:
            raise RuntimeError("No voice recorder configured")
        self.recorder.start()

    def stop_recording(self) -> Attachment:
        if self.recorder is None:
            raise RuntimeError("No voice recorder configured")
        self.attachment = self.recorder.stop()
        return self.attachment

    def cancel_recording(self) -> None:
        if self.recorder is not None:
            self.recorder.cancel()
        if self.attachment is not None and self.attachment.is_voice:
            self.attachment = None

    def active_recording(self) -> int | None:
        if self.recorder is None or not self.recorder.is_recording:
            return None
        return self.recorder.generation

    def discard_sent(
        self,
        text: str,
        attachment: Attachment | None,
        recording: int | None,
    ) -> None:
        """Clear what one send captured. Input added while it was in flight stays."""
        if self.text == text:
            self.text = ""
        if attachment is not None and self.attachment is attachment:
            self.attachment = None
        if recording is not None and self.active_recording() == recording:
            self.recorder.cancel()


class SendPipeline:
    def __init__(
        self,
        gateway: MessageGateway,
        store: MessageStore,
        *,
        user_id: str,
        storage: StorageGateway | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._user_id = user_id
        self._storage = storage
        self._clock = clock or SystemClock()

    async def send(
        self,
        conversation_id: str,
        composer: Composer,
        on_progress: ProgressCallback | None = None,
    ) -> Message:
        """Send the composer's content.

        Raises ValidationError (nothing to send), UploadError or RequestError;
        on any failure the store and the composer are left untouched.
        """
        if composer.is_empty:
            raise ValidationError("Nothing to send")

        text = composer.text
        attachment = composer.attachment
        recording = composer.active_recording()
        if attachment is not None:
            media_key = await self._upload(attachment, on_progress)
            request = CreateMessageRequest(
                conversation_id=conversation_id,
                msg_id=str(uuid.uuid4()),
                type=MessageType.FILE,
                body=self._envelope(attachment, media_key).dumps(),
                media_key=media_key,
            )
        else:
            request = CreateMessageRequest(
                conversation_id=conversation_id,
                msg_id=str(uuid.uuid4()),
                type=MessageType.TEXT,
                body=text,
            )

        payload = await self._gateway.send_message(request)
        try:
            message = message_from_payload(payload)
        except ValidationError as exc:
            raise RequestError(f"Malformed create-message response: {exc.detail}") from exc

        inserted = 0
        if self._store.conversation_id == conversation_id:
            inserted = self._store.reconcile([message])
        logger.info(
            "Sent %s message %s to %s (inserted=%d)",
            message.type, message.msg_id, conversation_id, inserted,
        )
        composer.discard_sent(text, attachment, recording)
        return message

    async def _upload(self, attachment: Attachment, on_progress: ProgressCallback | None) -> str:
        if self._storage is None:
            raise UploadError("No storage configured for attachments")

        def report(fraction: float) -> None:
            if on_progress is not None:
                on_progress(fraction)

        key = generate_file_key(attachment, self._user_id, self._clock)
        report(0.0)
        target = await self._storage.get_upload_target(key, attachment.content_type)
        await self._storage.upload(target, attachment.data, report)
        report(1.0)
        logger.info("Uploaded %s (%d bytes) as %s", attachment.file_name, attachment.size, target.key)
        return target.key

    @staticmethod
    def _envelope(attachment: Attachment, media_key: str) -> FileEnvelope:
        if attachment.is_voice:
            duration = attachment.duration or 0
            return FileEnvelope(
                file_name=f"Voice Message {format_duration(duration)}",
                file_size=attachment.size,
                file_type=attachment.content_type,
                media_key=media_key,
                duration=duration,
                is_voice_message=True,
            )
        return FileEnvelope(
            file_name=attachment.file_name,
            file_size=attachment.size,
            file_type=attachment.content_type,
            media_key=media_key,
        )
