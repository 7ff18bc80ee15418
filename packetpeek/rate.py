"""Sliding window of per-second packet and byte rates."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List

from .utils import MICROS_PER_SECOND


@dataclass(frozen=True)
class RatePoint:
    second: int
    packets: int
    bytes: int


class PacketRateTracker:
    """Maintains packet and byte counts grouped per capture second.

    Buckets older than ``window_seconds`` behind the newest packet are trimmed.
    Timestamps are expected to be roughly non-decreasing; a late packet is
    folded into the newest bucket rather than reordering the window.
    """

    def __init__(self, window_seconds: int = 60) -> None:
        self.window_seconds = window_seconds
        self._buckets: Deque[List[int]] = deque()

    def add(self, captured_at: int, length_bytes: int) -> None:
        second = captured_at // MICROS_PER_SECOND
        if self._buckets and self._buckets[-1][0] >= second:
            bucket = self._buckets[-1]
            bucket[1] += 1
            bucket[2] += length_bytes
        else:
            self._buckets.append([second, 1, length_bytes])
        self._trim(self._buckets[-1][0])

    def points(self) -> List[RatePoint]:
        return [RatePoint(second, packets, size) for second, packets, size in self._buckets]

    def packets_per_second(self) -> float:
        if not self._buckets:
            return 0.0
        span = self._buckets[-1][0] - self._buckets[0][0] + 1
        return sum(bucket[1] for bucket in self._buckets) / span

    def bytes_per_second(self) -> float:
        if not self._buckets:
            return 0.0
        span = self._buckets[-1][0] - self._buckets[0][0] + 1
        return sum(bucket[2] for bucket in self._buckets) / span

    def clear(self) -> None:
        self._buckets.clear()

    # ------------------------------------------------------------------
    def _trim(self, latest_second: int) -> None:
        cutoff = latest_second - self.window_seconds
        while self._buckets and self._buckets[0][0] <= cutoff:
            self._buckets.popleft()


__all__ = ["PacketRateTracker", "RatePoint"]
