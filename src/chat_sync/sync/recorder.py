from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator

from chat_sync.application.dto.attachment import Attachment
from chat_sync.application.dto.content import VOICE_CONTENT_TYPE
from chat_sync.application.ports.audio import AudioSource
from chat_sync.application.ports.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

TickListener = Callable[[int], None]
Sleep = Callable[[float], Awaitable[None]]


class VoiceRecorder:
    """Owns the capture handle and the elapsed-time timer of one recording.

    Both are acquired in ``start`` and released on every exit path: ``stop``,
    ``cancel``, or leaving the ``recording()`` block.
    """

    def __init__(
        self,
        source_factory: Callable[[], AudioSource],
        *,
        clock: Clock | None = None,
        on_tick: TickListener | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._source_factory = source_factory
        self._clock = clock or SystemClock()
        self._on_tick = on_tick
        self._sleep = sleep
        self._source: AudioSource | None = None
        self._started_at: float | None = None
        self._timer: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def is_recording(self) -> bool:
        return self._source is not None

    @property
    def generation(self) -> int:
        """Counts recordings started; tells one recording apart from the next."""
        return self._generation

    @property
    def elapsed(self) -> int:
        """Whole seconds recorded so far."""
        if self._started_at is None:
            return 0
        return int(self._clock.monotonic() - self._started_at)

    def start(self) -> None:
        if self._source is not None:
            raise RuntimeError("Already recording")
        source = self._source_factory()
        source.start()
        self._source = source
        self._generation += 1
        self._started_at = self._clock.monotonic()
        self._timer = asyncio.create_task(self._tick(), name="voice-recorder-timer")
        logger.info("Voice recording started")

    def stop(self) -> Attachment:
        """Finish the recording and return the clip as a voice attachment."""
        if self._source is None:
            raise RuntimeError("Not recording")
        duration = self.elapsed
        data = self._release()
        stamp = int(self._clock.now().timestamp() * 1000)
        logger.info("Voice recording stopped (%ds, %d bytes)", duration, len(data))
        return Attachment(
            file_name=f"voice-message-{stamp}.webm",
            content_type=VOICE_CONTENT_TYPE,
            data=data,
            duration=duration,
            is_voice=True,
        )

    def cancel(self) -> None:
        if self._source is None:
            return
        self._release()
        logger.info("Voice recording cancelled")

    @contextmanager
    def recording(self) -> Iterator[VoiceRecorder]:
        """Record for the duration of the block; cancel unless ``stop`` was called."""
        self.start()
        try:
            yield self
        finally:
            self.cancel()

    def _release(self) -> bytes:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        source, self._source = self._source, None
        self._started_at = None
        return source.stop() if source is not None else b""

    async def _tick(self) -> None:
        while True:
            await self._sleep(1.0)
            if self._on_tick is not None:
                self._on_tick(self.elapsed)
