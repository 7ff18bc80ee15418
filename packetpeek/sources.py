"""Packet source adapters and the factory that selects one from configuration."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import TYPE_CHECKING, Iterator, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .errors import ConfigurationError
from .id_generator import IdGenerator
from .packet import Packet
from .protocol_catalog import ProtocolCatalog
from .utils import MICROS_PER_SECOND

if TYPE_CHECKING:  # pragma: no cover
    from .config import CaptureOptions

logger = logging.getLogger(__name__)

SYNTHETIC_PROTOCOLS = ("HTTP", "HTTPS", "TCP", "UDP", "DNS", "ARP", "ICMP")
SYNTHETIC_SOURCES = ("192.168.1.10", "10.0.0.1", "172.16.0.5", "8.8.8.8", "1.1.1.1")
SYNTHETIC_DESTINATIONS = ("192.168.1.1", "10.0.0.10", "172.16.0.1", "8.8.4.4", "1.0.0.1")


@runtime_checkable
class PacketSource(Protocol):
    """Anything that lazily yields :class:`Packet` objects at its own pace."""

    def __iter__(self) -> Iterator[Packet]:  # pragma: no cover - protocol definition
        ...


class SyntheticSource:
    """Random traffic generator for demos and tests.

    Each packet picks a protocol and endpoints from fixed pools, a length in
    ``[64, 1563]`` bytes and, for TCP, the flags ``("SYN", "ACK")``. Between
    packets the source waits a random delay in ``interval`` seconds; pass
    ``(0, 0)`` to generate as fast as the consumer pulls.
    """

    def __init__(
        self,
        *,
        limit: Optional[int] = None,
        interval: Tuple[float, float] = (0.5, 1.5),
        seed: Optional[int] = None,
        protocols: Sequence[str] = SYNTHETIC_PROTOCOLS,
        sources: Sequence[str] = SYNTHETIC_SOURCES,
        destinations: Sequence[str] = SYNTHETIC_DESTINATIONS,
    ) -> None:
        low, high = interval
        if low < 0 or high < low:
            raise ConfigurationError(f"Invalid synthetic interval {interval!r}")
        if limit is not None and limit < 0:
            raise ConfigurationError(f"Synthetic limit must not be negative, got {limit!r}")
        self.limit = limit
        self.interval = (float(low), float(high))
        self.protocols = tuple(protocols)
        self.sources = tuple(sources)
        self.destinations = tuple(destinations)
        self._random = random.Random(seed)
        self._ids = IdGenerator(prefix="syn")
        self._closed = threading.Event()

    def __iter__(self) -> Iterator[Packet]:
        self._closed.clear()
        produced = 0
        while not self._closed.is_set():
            if self.limit is not None and produced >= self.limit:
                break
            if produced and self.interval[1] > 0:
                delay = self._random.uniform(*self.interval)
                if self._closed.wait(delay):
                    break
            yield self.generate()
            produced += 1

    def generate(self) -> Packet:
        rng = self._random
        protocol = rng.choice(self.protocols)
        source = rng.choice(self.sources)
        destination = rng.choice(self.destinations)
        return Packet(
            id=self._ids.next_token(),
            captured_at=int(time.time() * MICROS_PER_SECOND),
            source_address=source,
            destination_address=destination,
            protocol=protocol,
            length_bytes=rng.randint(64, 1563),
            payload_digest=f"0x{rng.getrandbits(32):08X}",
            flags=("SYN", "ACK") if protocol == "TCP" else (),
        )

    def close(self) -> None:
        self._closed.set()


def open_source(options: "CaptureOptions", catalog: Optional[ProtocolCatalog] = None) -> PacketSource:
    """Build the source adapter named by ``options.source``.

    *catalog* drives the port-based classification of the replay and live
    adapters; the synthetic source ignores it.
    """
    kind = options.source
    if kind == "synthetic":
        return SyntheticSource(
            limit=options.limit,
            interval=(options.interval_min_s, options.interval_max_s),
            seed=options.seed,
        )
    if kind == "replay":
        from .packet_reader import PcapReplaySource

        if options.pcap_path is None:
            raise ConfigurationError("Replay source requires a pcap path")
        return PcapReplaySource(
            options.pcap_path,
            catalog=catalog,
            realtime=options.realtime,
            limit=options.limit,
        )
    if kind == "live":
        from .live_capture import LiveCapture

        if not options.interface:
            raise ConfigurationError("Live source requires an interface")
        return LiveCapture(
            options.interface,
            catalog=catalog,
            bpf_filter=options.bpf_filter,
            queue_size=options.queue_size,
        )
    raise ConfigurationError(f"Unknown source kind: {kind!r}")


__all__ = [
    "PacketSource",
    "SyntheticSource",
    "open_source",
    "SYNTHETIC_PROTOCOLS",
    "SYNTHETIC_SOURCES",
    "SYNTHETIC_DESTINATIONS",
]
