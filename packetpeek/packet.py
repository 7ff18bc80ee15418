"""Immutable packet record handed from source adapters to the capture core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from .utils import MICROS_PER_SECOND

CONNECTION_ORIENTED = frozenset({"TCP", "HTTP", "HTTPS"})


@dataclass(frozen=True)
class Packet:
    """Header-level metadata for one captured network event.

    ``captured_at`` is in microseconds since the epoch. Addresses are opaque
    strings; the core never parses them. ``flags`` only carries meaning for
    connection-oriented protocols and is kept in the order the source reported.
    """

    id: str
    captured_at: int
    source_address: str
    destination_address: str
    protocol: str
    length_bytes: int
    summary: str = ""
    payload_digest: str = ""
    flags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if isinstance(self.length_bytes, bool) or not isinstance(self.length_bytes, int):
            raise ValueError(f"length_bytes must be an integer, got {self.length_bytes!r}")
        if self.length_bytes <= 0:
            raise ValueError(f"length_bytes must be positive, got {self.length_bytes}")
        if not self.protocol:
            raise ValueError("protocol must not be empty")

        object.__setattr__(self, "protocol", str(self.protocol).upper())
        if not isinstance(self.flags, tuple):
            object.__setattr__(self, "flags", tuple(self.flags))
        if not self.summary:
            object.__setattr__(
                self,
                "summary",
                f"{self.protocol} packet from {self.source_address} to {self.destination_address}",
            )

    # ------------------------------------------------------------------
    @property
    def captured_at_seconds(self) -> float:
        return self.captured_at / MICROS_PER_SECOND

    @property
    def is_connection_oriented(self) -> bool:
        return self.protocol in CONNECTION_ORIENTED

    def has_flag(self, name: str) -> bool:
        return name.upper() in self.flags

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "captured_at": self.captured_at,
            "source_address": self.source_address,
            "destination_address": self.destination_address,
            "protocol": self.protocol,
            "length_bytes": self.length_bytes,
            "summary": self.summary,
            "payload_digest": self.payload_digest,
            "flags": list(self.flags),
        }


__all__ = ["Packet", "CONNECTION_ORIENTED"]
