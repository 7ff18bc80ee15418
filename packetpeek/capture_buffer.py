"""Bounded newest-first store of the most recently captured packets."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from .errors import ConfigurationError
from .packet import Packet

DEFAULT_CAPACITY = 100


class CaptureBuffer:
    """Fixed-capacity ring of packets with O(1) insert-and-evict.

    The newest packet sits at the head. Inserting into a full buffer removes
    the tail packet in the same step, so no caller can ever observe more than
    ``capacity`` resident packets.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigurationError(f"Buffer capacity must be a positive integer, got {capacity!r}")
        self._capacity = capacity
        self._packets: Deque[Packet] = deque()
        self._index: Dict[str, Packet] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._packets) >= self._capacity

    def __len__(self) -> int:
        return len(self._packets)

    def __contains__(self, packet_id: object) -> bool:
        return packet_id in self._index

    # ------------------------------------------------------------------
    def insert(self, packet: Packet) -> Optional[Packet]:
        """Add *packet* at the head and return the evicted packet, if any."""
        with self._lock:
            if packet.id in self._index:
                raise ValueError(f"Packet id {packet.id!r} is already resident")

            self._packets.appendleft(packet)
            self._index[packet.id] = packet

            if len(self._packets) <= self._capacity:
                return None

            evicted = self._packets.pop()
            del self._index[evicted.id]
            return evicted

    def snapshot(self) -> Tuple[Packet, ...]:
        """Point-in-time copy of the resident packets, newest first."""
        with self._lock:
            return tuple(self._packets)

    def clear(self) -> List[Packet]:
        """Empty the buffer, returning every packet that was resident."""
        with self._lock:
            evicted = list(self._packets)
            self._packets.clear()
            self._index.clear()
        return evicted

    def get(self, packet_id: str) -> Optional[Packet]:
        with self._lock:
            return self._index.get(packet_id)

    def newest(self) -> Optional[Packet]:
        with self._lock:
            return self._packets[0] if self._packets else None

    def oldest(self) -> Optional[Packet]:
        with self._lock:
            return self._packets[-1] if self._packets else None


__all__ = ["CaptureBuffer", "DEFAULT_CAPACITY"]
