"""Live packet source bridging Scapy sniffing into a lazy packet iterator."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Iterator, Optional, Tuple

from .errors import PacketPeekError
from .id_generator import IdGenerator
from .packet import Packet
from .packet_reader import tcp_flag_names
from .protocol_catalog import ProtocolCatalog
from .utils import MICROS_PER_SECOND, payload_digest

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1_000
POLL_INTERVAL_S = 0.25

try:  # pragma: no cover - exercised only when Scapy is available at runtime
    from scapy.all import ARP, ICMP, IP, TCP, UDP, AsyncSniffer, IPv6  # type: ignore
except ImportError:  # pragma: no cover - import guard for optional dependency
    AsyncSniffer = None  # type: ignore[assignment]
    ARP = ICMP = IP = IPv6 = TCP = UDP = None  # type: ignore[assignment]


class LiveCaptureError(PacketPeekError, RuntimeError):
    """Raised when live capture cannot be started or operated."""


class LiveCapture:
    """Sniff an interface and yield captured packets as :class:`Packet` records.

    The sniffer thread converts frames and hands them over through a bounded
    queue. When the consumer falls behind the newest frames are dropped and
    counted in ``dropped`` instead of blocking the sniffer.
    """

    def __init__(
        self,
        interface: str,
        *,
        bpf_filter: Optional[str] = None,
        catalog: Optional[ProtocolCatalog] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        status_handler: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.interface = interface
        self.bpf_filter = bpf_filter
        self.catalog = catalog if catalog is not None else ProtocolCatalog()
        self.status_handler = status_handler
        self.dropped = 0

        self._queue: "queue.Queue[Packet]" = queue.Queue(maxsize=queue_size)
        self._ids = IdGenerator(prefix="live")
        self._lock = threading.RLock()
        self._closed = threading.Event()
        self._sniffer = None

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[Packet]:
        self._closed.clear()
        self.start()
        try:
            while not self._closed.is_set():
                try:
                    yield self._queue.get(timeout=POLL_INTERVAL_S)
                except queue.Empty:
                    continue
        finally:
            self.stop()
            discarded = self._discard_pending()
            if discarded:
                logger.debug("Discarded %d queued packets after capture ended", discarded)

    def close(self) -> None:
        self._closed.set()

    def _discard_pending(self) -> int:
        count = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return count
            count += 1

    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start sniffing packets on the configured interface."""
        if AsyncSniffer is None:  # pragma: no cover - requires Scapy at runtime
            raise LiveCaptureError(
                "Live capture requires the optional dependency 'scapy'. "
                "Install with `pip install packetpeek[live]`."
            )

        with self._lock:
            if self._sniffer is not None:
                return

            sniffer = AsyncSniffer(
                iface=self.interface,
                prn=self._handle_packet,
                store=False,
                filter=self.bpf_filter,
            )
            try:
                sniffer.start()
            except Exception as exc:  # pragma: no cover - start failures depend on system
                raise LiveCaptureError(
                    f"Failed to start capture on interface '{self.interface}'"
                ) from exc

            self._sniffer = sniffer

        self._notify_status(f"listening: {self.interface}")
        logger.info("Live capture listening on %s", self.interface)

    def stop(self) -> None:
        """Stop sniffing packets if the capture is running."""
        with self._lock:
            sniffer = self._sniffer
            self._sniffer = None

        if sniffer is None:
            return

        try:
            sniffer.stop()
        except Exception:  # pragma: no cover - stop failures depend on system
            logger.exception("Failed to stop live capture")

        self._notify_status(f"stopped: {self.interface}")
        logger.info("Live capture stopped on %s (%d dropped)", self.interface, self.dropped)

    def is_running(self) -> bool:
        with self._lock:
            return self._sniffer is not None

    # ------------------------------------------------------------------
    def _handle_packet(self, frame) -> None:  # pragma: no cover - requires Scapy at runtime
        try:
            packet = self._build_packet(frame)
        except Exception:  # pragma: no cover - conversion errors get logged for diagnosis
            logger.exception("Failed to convert captured frame")
            return

        if packet is None:
            return

        try:
            self._queue.put_nowait(packet)
        except queue.Full:
            self.dropped += 1

    def _build_packet(self, frame) -> Optional[Packet]:
        if not hasattr(frame, "time"):
            return None

        micros = int(float(frame.time) * MICROS_PER_SECOND)
        length = len(frame)
        if length <= 0:
            return None

        if ARP is not None and frame.haslayer(ARP):
            arp = frame.getlayer(ARP)
            if int(arp.op) == 2:
                summary = f"{arp.psrc} is at {arp.hwsrc}"
            else:
                summary = f"Who has {arp.pdst}? Tell {arp.psrc}"
            return self._make_packet(micros, length, str(arp.psrc), str(arp.pdst), "ARP", bytes(arp), summary=summary)

        if IP is not None and frame.haslayer(IP):
            ip_layer = frame.getlayer(IP)
        elif IPv6 is not None and frame.haslayer(IPv6):
            ip_layer = frame.getlayer(IPv6)
        else:
            return None

        src, dst = str(ip_layer.src), str(ip_layer.dst)
        if TCP is not None and frame.haslayer(TCP):
            tcp = frame.getlayer(TCP)
            protocol = self.catalog.classify_port("TCP", int(tcp.sport), int(tcp.dport))
            return self._make_packet(
                micros, length, src, dst, protocol, bytes(tcp.payload), flags=tcp_flag_names(int(tcp.flags))
            )
        if UDP is not None and frame.haslayer(UDP):
            udp = frame.getlayer(UDP)
            protocol = self.catalog.classify_port("UDP", int(udp.sport), int(udp.dport))
            return self._make_packet(micros, length, src, dst, protocol, bytes(udp.payload))
        if (ICMP is not None and frame.haslayer(ICMP)) or int(getattr(ip_layer, "nh", 0)) == 58:
            return self._make_packet(micros, length, src, dst, "ICMP", bytes(ip_layer.payload))

        proto = int(getattr(ip_layer, "proto", getattr(ip_layer, "nh", 0)))
        return self._make_packet(micros, length, src, dst, f"IP-{proto}", bytes(ip_layer.payload))

    def _make_packet(
        self,
        micros: int,
        length: int,
        src: str,
        dst: str,
        protocol: str,
        body: bytes,
        *,
        summary: str = "",
        flags: Tuple[str, ...] = (),
    ) -> Packet:
        return Packet(
            id=self._ids.next_token(),
            captured_at=micros,
            source_address=src,
            destination_address=dst,
            protocol=protocol,
            length_bytes=length,
            summary=summary,
            payload_digest=payload_digest(body),
            flags=flags,
        )

    # ------------------------------------------------------------------
    def _notify_status(self, message: str) -> None:
        if self.status_handler is not None:
            try:
                self.status_handler(message)
            except Exception:  # pragma: no cover - user supplied handler
                logger.exception("Status handler raised an exception")


__all__ = ["LiveCapture", "LiveCaptureError"]
