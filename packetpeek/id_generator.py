"""Packet identifier generation."""

from __future__ import annotations

from threading import Lock


class IdGenerator:
    """Thread-safe monotonically increasing identifier generator.

    Identifiers are rendered as opaque tokens (``<prefix>-<n>`` in base 36) so
    that packets from different sources never collide inside one buffer.
    """

    __slots__ = ("_lock", "_next", "prefix")

    def __init__(self, prefix: str = "pkt", initial: int = 0) -> None:
        self._lock = Lock()
        self._next = int(initial)
        self.prefix = prefix

    def next_id(self) -> int:
        with self._lock:
            self._next += 1
            return self._next

    def next_token(self) -> str:
        return f"{self.prefix}-{_base36(self.next_id())}"


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


__all__ = ["IdGenerator"]
