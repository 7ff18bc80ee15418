"""Security posture and protocol breakdown derived from running statistics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .protocol_catalog import ProtocolCatalog, ProtocolProfile, SecurityTier
from .stats_aggregator import RunningStats, StatsAggregator

ENCRYPTION_ADVISORY = "Consider using HTTPS instead of HTTP for web traffic"
ARP_ADVISORY = "Monitor ARP traffic for potential spoofing attacks"
DNS_ADVISORY = "Consider using DNS over HTTPS (DoH) for encrypted name resolution"
GENERAL_ADVISORY = "Regular packet analysis helps identify security vulnerabilities"

MIN_ENCRYPTED_RATIO = 0.5


@dataclass(frozen=True)
class SecurityOverview:
    encrypted_count: int
    total_count: int
    encrypted_ratio: float

    @property
    def encrypted_percentage(self) -> int:
        return round(self.encrypted_ratio * 100)


@dataclass(frozen=True)
class ProtocolShare:
    protocol: str
    count: int
    percentage_of_buffer: float
    profile: ProtocolProfile


class ProtocolAnalyzer:
    """Answers security questions about the packets currently buffered.

    Nothing here touches individual packets: every figure comes from the
    per-protocol counters of a :class:`RunningStats` snapshot combined with the
    catalog. Pass the same snapshot to several calls for a consistent view.
    """

    def __init__(self, aggregator: StatsAggregator, catalog: Optional[ProtocolCatalog] = None) -> None:
        self.aggregator = aggregator
        self.catalog = catalog if catalog is not None else ProtocolCatalog()

    # ------------------------------------------------------------------
    def security_overview(self, stats: Optional[RunningStats] = None) -> SecurityOverview:
        stats = self._resolve(stats)
        encrypted = sum(
            count
            for protocol, count in stats.protocol_counts.items()
            if self.catalog.is_encrypted(protocol)
        )
        total = stats.packet_count
        ratio = encrypted / total if total else 0.0
        return SecurityOverview(encrypted_count=encrypted, total_count=total, encrypted_ratio=ratio)

    def per_protocol_breakdown(self, stats: Optional[RunningStats] = None) -> List[ProtocolShare]:
        stats = self._resolve(stats)
        total = stats.packet_count
        ordered = sorted(stats.protocol_counts.items(), key=lambda item: (-item[1], item[0]))
        return [
            ProtocolShare(
                protocol=protocol,
                count=count,
                percentage_of_buffer=(count / total * 100) if total else 0.0,
                profile=self.catalog.lookup(protocol),
            )
            for protocol, count in ordered
        ]

    def recommendations(self, stats: Optional[RunningStats] = None) -> List[str]:
        stats = self._resolve(stats)
        advisories: List[str] = []
        if self.security_overview(stats).encrypted_ratio < MIN_ENCRYPTED_RATIO:
            advisories.append(ENCRYPTION_ADVISORY)
        if stats.protocol_counts.get("ARP", 0) > 0:
            advisories.append(ARP_ADVISORY)
        if stats.protocol_counts.get("DNS", 0) > 0:
            advisories.append(DNS_ADVISORY)
        advisories.append(GENERAL_ADVISORY)
        return advisories

    def tier_breakdown(self, stats: Optional[RunningStats] = None) -> Dict[SecurityTier, int]:
        stats = self._resolve(stats)
        tiers = {tier: 0 for tier in SecurityTier}
        for protocol, count in stats.protocol_counts.items():
            tiers[self.catalog.lookup(protocol).security] += count
        return tiers

    # ------------------------------------------------------------------
    def _resolve(self, stats: Optional[RunningStats]) -> RunningStats:
        return stats if stats is not None else self.aggregator.snapshot()


__all__ = [
    "ProtocolAnalyzer",
    "SecurityOverview",
    "ProtocolShare",
    "ENCRYPTION_ADVISORY",
    "ARP_ADVISORY",
    "DNS_ADVISORY",
    "GENERAL_ADVISORY",
]
