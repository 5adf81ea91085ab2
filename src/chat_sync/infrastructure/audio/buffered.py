from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class BufferedAudioSource:
    """Collects pre-encoded chunks pushed by a capture callback.

    The device driver (or a file being replayed) calls ``feed`` while the
    source is open; ``stop`` closes it and returns the concatenated clip.
    """

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def start(self) -> None:
        if self._open:
            raise RuntimeError("Audio source already open")
        self._chunks.clear()
        self._open = True

    def feed(self, chunk: bytes) -> None:
        if not self._open:
            logger.debug("Dropping %d bytes fed to a closed audio source", len(chunk))
            return
        self._chunks.append(chunk)

    def stop(self) -> bytes:
        self._open = False
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data
