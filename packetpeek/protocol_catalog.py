"""Static protocol registry with security and encryption metadata."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Dict, Iterable, Iterator, Optional


@unique
class SecurityTier(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProtocolProfile:
    protocol: str
    description: str
    security: SecurityTier
    port: str = "N/A"
    encrypted: bool = False

    @property
    def canonical_port(self) -> Optional[int]:
        """The numeric port, or None for "N/A"/"Various"."""
        return int(self.port) if self.port.isdigit() else None

    def to_dict(self) -> Dict[str, object]:
        return {
            "protocol": self.protocol,
            "description": self.description,
            "security": self.security.value,
            "port": self.port,
            "encrypted": self.encrypted,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProtocolProfile":
        return cls(
            protocol=str(data["protocol"]).upper(),
            description=data.get("description", ""),
            security=SecurityTier(data.get("security", SecurityTier.UNKNOWN.value)),
            port=str(data.get("port", "N/A")),
            encrypted=bool(data.get("encrypted", False)),
        )


DEFAULT_PROFILES = (
    ProtocolProfile("HTTP", "Hypertext Transfer Protocol - Unencrypted web traffic", SecurityTier.LOW, "80"),
    ProtocolProfile("HTTPS", "Secure HTTP with TLS/SSL encryption", SecurityTier.HIGH, "443", encrypted=True),
    ProtocolProfile("TCP", "Transmission Control Protocol - Reliable connection", SecurityTier.MEDIUM, "Various"),
    ProtocolProfile("UDP", "User Datagram Protocol - Fast, connectionless", SecurityTier.MEDIUM, "Various"),
    ProtocolProfile("DNS", "Domain Name System - Name resolution", SecurityTier.MEDIUM, "53"),
    ProtocolProfile("ARP", "Address Resolution Protocol - MAC address mapping", SecurityTier.LOW),
    ProtocolProfile("ICMP", "Internet Control Message Protocol - Network diagnostics", SecurityTier.LOW),
)


def unknown_profile(protocol: str) -> ProtocolProfile:
    return ProtocolProfile(
        protocol=protocol.upper(),
        description="Unclassified protocol",
        security=SecurityTier.UNKNOWN,
    )


class ProtocolCatalog:
    """Maps protocol identifiers to :class:`ProtocolProfile` entries.

    Lookups are case-insensitive and never fail: identifiers that were not
    registered resolve to an ``unknown`` tier, unencrypted profile.
    """

    def __init__(self, profiles: Iterable[ProtocolProfile] = DEFAULT_PROFILES) -> None:
        self._profiles: Dict[str, ProtocolProfile] = {}
        for profile in profiles:
            self._profiles[profile.protocol.upper()] = profile
        self._by_port: Dict[int, ProtocolProfile] = {}
        for profile in self._profiles.values():
            port = profile.canonical_port
            if port is not None:
                self._by_port.setdefault(port, profile)

    # ------------------------------------------------------------------
    def lookup(self, protocol: str) -> ProtocolProfile:
        profile = self._profiles.get(protocol.upper())
        if profile is None:
            return unknown_profile(protocol)
        return profile

    def is_encrypted(self, protocol: str) -> bool:
        return self.lookup(protocol).encrypted

    def with_profiles(self, *profiles: ProtocolProfile) -> "ProtocolCatalog":
        """Return a new catalog with *profiles* added or replacing existing ids."""
        merged = dict(self._profiles)
        for profile in profiles:
            merged[profile.protocol.upper()] = profile
        return ProtocolCatalog(merged.values())

    def classify_port(self, transport: str, src_port: int, dst_port: int) -> str:
        """Pick an application protocol id from the transport ports.

        The lower of the two ports is tried first so that the well-known side of
        a conversation wins over an ephemeral client port.
        """
        for port in sorted((src_port, dst_port)):
            profile = self._by_port.get(port)
            if profile is not None:
                return profile.protocol
        return transport.upper()

    # ------------------------------------------------------------------
    def __contains__(self, protocol: object) -> bool:
        return isinstance(protocol, str) and protocol.upper() in self._profiles

    def __iter__(self) -> Iterator[ProtocolProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)


__all__ = [
    "SecurityTier",
    "ProtocolProfile",
    "ProtocolCatalog",
    "DEFAULT_PROFILES",
    "unknown_profile",
]
