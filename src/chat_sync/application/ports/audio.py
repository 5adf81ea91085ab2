from __future__ import annotations

from typing import Protocol


class AudioSource(Protocol):
    """A capture device handle. Acquired by ``start``, released by ``stop``."""

    def start(self) -> None: ...

    def stop(self) -> bytes:
        """Stop capturing, release the device and return the encoded clip."""
        ...
