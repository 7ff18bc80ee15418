"""Running traffic statistics maintained incrementally from buffer events."""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass
from enum import Enum, unique
from types import MappingProxyType
from typing import Any, Deque, Dict, Iterable, List, Mapping, Tuple, Union

from .errors import AggregationInvariantViolation
from .packet import Packet

logger = logging.getLogger(__name__)


@unique
class StatKind(Enum):
    PROTOCOL = "protocol"
    SOURCE = "source"
    DESTINATION = "destination"


def rank_counts(counts: Mapping[str, int], n: int) -> List[Tuple[str, int]]:
    """Highest counts first; equal counts keep the iteration order of *counts*."""
    if n <= 0:
        return []
    return sorted(counts.items(), key=lambda item: -item[1])[:n]


@dataclass(frozen=True)
class RunningStats:
    """Immutable copy of the aggregator counters at one instant.

    Each counts mapping iterates in first-observed order: keys whose oldest
    resident packet entered the buffer earlier come first.
    """

    total_ever_seen: int
    packet_count: int
    total_bytes: int
    protocol_counts: Mapping[str, int]
    source_counts: Mapping[str, int]
    destination_counts: Mapping[str, int]

    @property
    def average_packet_size(self) -> float:
        if self.packet_count == 0:
            return 0.0
        return self.total_bytes / self.packet_count

    @property
    def distinct_protocols(self) -> int:
        return len(self.protocol_counts)

    def counts_for(self, kind: Union[StatKind, str]) -> Mapping[str, int]:
        kind = StatKind(kind)
        if kind is StatKind.PROTOCOL:
            return self.protocol_counts
        if kind is StatKind.SOURCE:
            return self.source_counts
        return self.destination_counts

    def top_n(self, kind: Union[StatKind, str], n: int) -> List[Tuple[str, int]]:
        return rank_counts(self.counts_for(kind), n)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_ever_seen": self.total_ever_seen,
            "packet_count": self.packet_count,
            "total_bytes": self.total_bytes,
            "average_packet_size": self.average_packet_size,
            "protocol_counts": dict(self.protocol_counts),
            "source_counts": dict(self.source_counts),
            "destination_counts": dict(self.destination_counts),
        }


class _KeyTally:
    """Counts per key plus the insertion sequence numbers still resident."""

    __slots__ = ("counts", "sequences")

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()
        self.sequences: Dict[str, Deque[int]] = {}

    def add(self, key: str, seq: int) -> None:
        self.counts[key] += 1
        self.sequences.setdefault(key, deque()).append(seq)

    def discard(self, key: str, seq: int) -> None:
        current = self.counts.get(key, 0)
        pending = self.sequences.get(key)
        if current <= 0 or not pending:
            raise AggregationInvariantViolation(f"Count for {key!r} would go negative")

        # Buffer eviction is oldest-first, so the left end is the common case.
        if pending[0] == seq:
            pending.popleft()
        else:
            try:
                pending.remove(seq)
            except ValueError:
                raise AggregationInvariantViolation(
                    f"Sequence {seq} is not resident under {key!r}"
                ) from None

        if current == 1:
            del self.counts[key]
            del self.sequences[key]
        else:
            self.counts[key] = current - 1

    def ordered(self) -> Dict[str, int]:
        """Counts keyed in order of each key's oldest resident packet."""
        keys = sorted(self.counts, key=lambda key: self.sequences[key][0])
        return {key: self.counts[key] for key in keys}


class StatsAggregator:
    """Counts protocols, endpoints and bytes for the packets resident in a buffer.

    ``on_insert`` and ``on_evict`` are O(1) for oldest-first eviction. Every
    packet gets an insertion sequence number; ``top_n`` breaks equal counts by
    the oldest sequence number still resident under each key, so a key moves
    back once its earliest packet leaves the buffer.
    """

    def __init__(self) -> None:
        self._init_state()

    def _init_state(self) -> None:
        self._total_ever_seen = 0
        self._total_bytes = 0
        self._next_seq = 0
        self._resident: Dict[str, int] = {}
        self._protocols = _KeyTally()
        self._sources = _KeyTally()
        self._destinations = _KeyTally()

    # ------------------------------------------------------------------
    def on_insert(self, packet: Packet) -> None:
        if packet.id in self._resident:
            raise AggregationInvariantViolation(f"Packet {packet.id!r} counted twice")
        seq = self._next_seq
        self._next_seq += 1
        self._resident[packet.id] = seq
        self._total_ever_seen += 1
        self._total_bytes += packet.length_bytes
        self._protocols.add(packet.protocol, seq)
        self._sources.add(packet.source_address, seq)
        self._destinations.add(packet.destination_address, seq)

    def on_evict(self, packet: Packet) -> None:
        seq = self._resident.pop(packet.id, None)
        if seq is None:
            raise AggregationInvariantViolation(
                f"Evicted packet {packet.id!r} was never inserted"
            )
        self._total_bytes -= packet.length_bytes
        self._protocols.discard(packet.protocol, seq)
        self._sources.discard(packet.source_address, seq)
        self._destinations.discard(packet.destination_address, seq)
        if self._total_bytes < 0:
            raise AggregationInvariantViolation("Byte total went negative")

    def reset(self, evicted: Iterable[Packet] = ()) -> None:
        """Reverse *evicted* and then zero every counter, lifetime total included."""
        for packet in evicted:
            self.on_evict(packet)
        if self._resident:
            logger.warning("Resetting aggregator with %d packets still counted", len(self._resident))
        self._init_state()

    # ------------------------------------------------------------------
    def total_ever_seen(self) -> int:
        return self._total_ever_seen

    def packet_count(self) -> int:
        return len(self._resident)

    def total_bytes(self) -> int:
        return self._total_bytes

    def average_packet_size(self) -> float:
        if not self._resident:
            return 0.0
        return self._total_bytes / len(self._resident)

    def top_n(self, kind: Union[StatKind, str], n: int) -> List[Tuple[str, int]]:
        """Highest-count keys of *kind*; equal counts keep first-observed order."""
        if n <= 0:
            return []
        return rank_counts(self._tally_for(StatKind(kind)).ordered(), n)

    def snapshot(self) -> RunningStats:
        return RunningStats(
            total_ever_seen=self._total_ever_seen,
            packet_count=len(self._resident),
            total_bytes=self._total_bytes,
            protocol_counts=MappingProxyType(self._protocols.ordered()),
            source_counts=MappingProxyType(self._sources.ordered()),
            destination_counts=MappingProxyType(self._destinations.ordered()),
        )

    # ------------------------------------------------------------------
    def _tally_for(self, kind: StatKind) -> _KeyTally:
        if kind is StatKind.PROTOCOL:
            return self._protocols
        if kind is StatKind.SOURCE:
            return self._sources
        return self._destinations


__all__ = ["StatKind", "RunningStats", "StatsAggregator", "rank_counts"]
