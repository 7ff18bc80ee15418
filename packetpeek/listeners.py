"""Listener interfaces and the bounded subscriber feed for ingested packets."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List, Optional, Protocol

from .errors import ConfigurationError
from .packet import Packet

DEFAULT_FEED_SIZE = 256


class CaptureListener(Protocol):
    def on_packet_ingested(self, packet: Packet) -> None:  # pragma: no cover - protocol definition
        ...


class Subscription:
    """Drop-oldest packet feed for display layers.

    ``on_packet_ingested`` never blocks: when the feed is full the oldest
    pending packet is discarded and ``dropped`` is incremented, so a slow
    reader cannot push back on the capture path.
    """

    def __init__(self, maxsize: int = DEFAULT_FEED_SIZE) -> None:
        if maxsize <= 0:
            raise ConfigurationError(f"Subscription size must be positive, got {maxsize!r}")
        self.maxsize = maxsize
        self.dropped = 0
        self._pending: Deque[Packet] = deque(maxlen=maxsize)
        self._ready = threading.Condition()

    def on_packet_ingested(self, packet: Packet) -> None:
        with self._ready:
            if len(self._pending) == self.maxsize:
                self.dropped += 1
            self._pending.append(packet)
            self._ready.notify()

    def drain(self) -> List[Packet]:
        """Return pending packets oldest first and empty the feed."""
        with self._ready:
            packets = list(self._pending)
            self._pending.clear()
        return packets

    def get(self, timeout: Optional[float] = None) -> Optional[Packet]:
        """Pop the oldest pending packet, waiting up to *timeout* seconds."""
        with self._ready:
            if not self._pending:
                self._ready.wait(timeout)
            if not self._pending:
                return None
            return self._pending.popleft()

    def __len__(self) -> int:
        with self._ready:
            return len(self._pending)


__all__ = ["CaptureListener", "Subscription", "DEFAULT_FEED_SIZE"]
