"""PCAP replay source decoding header-level packet metadata with dpkt."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import IO, Iterator, Optional, Tuple, Union

import dpkt
from dpkt.ethernet import VLANtag8021Q

from .errors import PacketPeekError
from .id_generator import IdGenerator
from .packet import Packet
from .protocol_catalog import ProtocolCatalog
from .utils import MICROS_PER_SECOND, format_ip, format_mac, payload_digest

logger = logging.getLogger(__name__)

MAX_REPLAY_GAP_S = 5.0

_TCP_FLAG_NAMES = (
    (dpkt.tcp.TH_FIN, "FIN"),
    (dpkt.tcp.TH_SYN, "SYN"),
    (dpkt.tcp.TH_RST, "RST"),
    (dpkt.tcp.TH_PUSH, "PSH"),
    (dpkt.tcp.TH_ACK, "ACK"),
    (dpkt.tcp.TH_URG, "URG"),
    (dpkt.tcp.TH_ECE, "ECE"),
    (dpkt.tcp.TH_CWR, "CWR"),
)


class ReplayError(PacketPeekError, RuntimeError):
    """Raised when a capture file cannot be opened or read."""


def tcp_flag_names(flags: int) -> Tuple[str, ...]:
    return tuple(name for bit, name in _TCP_FLAG_NAMES if flags & bit)


class PcapReplaySource:
    """Iterates over :class:`Packet` records decoded from a pcap or pcapng file.

    Every iteration starts again from the beginning of the file. With
    ``realtime=True`` the source sleeps between packets according to their
    capture timestamps (gaps are capped at ``MAX_REPLAY_GAP_S``).
    """

    def __init__(
        self,
        pcap_path: Union[str, Path],
        *,
        catalog: Optional[ProtocolCatalog] = None,
        realtime: bool = False,
        limit: Optional[int] = None,
    ) -> None:
        path = Path(pcap_path)
        if not path.is_file():
            raise FileNotFoundError(f"PCAP file does not exist: {path}")

        self.path = path
        self.catalog = catalog if catalog is not None else ProtocolCatalog()
        self.realtime = realtime
        self.limit = limit

        self._file: Optional[IO[bytes]] = None
        self._packet_iter: Optional[Iterator[Tuple[float, bytes]]] = None
        self._ids = IdGenerator(prefix="pcap")
        self._closed = threading.Event()
        self.skipped = 0

    # ------------------------------------------------------------------
    def __enter__(self) -> "PcapReplaySource":
        self._open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()
        self._release()

    def close(self) -> None:
        """Ask a running iteration to finish; safe to call from another thread."""
        self._closed.set()

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[Packet]:
        self._closed.clear()
        self._release()
        produced = 0
        previous_ts: Optional[int] = None
        try:
            while not self._closed.is_set():
                if self.limit is not None and produced >= self.limit:
                    break
                packet = self.next_packet()
                if packet is None:
                    break
                if self.realtime and previous_ts is not None:
                    gap = (packet.captured_at - previous_ts) / MICROS_PER_SECOND
                    if gap > 0 and self._closed.wait(min(gap, MAX_REPLAY_GAP_S)):
                        break
                previous_ts = packet.captured_at
                produced += 1
                yield packet
        finally:
            self._release()

    def next_packet(self) -> Optional[Packet]:
        self._ensure_iter()
        assert self._packet_iter is not None

        for ts, buf in self._packet_iter:
            packet = self._decode_frame(ts, buf)
            if packet is not None:
                return packet
            self.skipped += 1
        return None

    # ------------------------------------------------------------------
    def _ensure_iter(self) -> None:
        if self._packet_iter is None:
            self._open()

    def _open(self) -> None:
        if self._packet_iter is not None:
            return
        try:
            self._file = self.path.open("rb")
            try:
                reader = dpkt.pcap.Reader(self._file)
            except ValueError:
                self._file.seek(0)
                reader = dpkt.pcapng.Reader(self._file)
        except (OSError, ValueError, dpkt.UnpackError) as exc:
            self._release()
            raise ReplayError(f"Failed to open PCAP file: {self.path}") from exc
        self._packet_iter = iter(reader)
        logger.debug("Replaying %s", self.path)

    def _release(self) -> None:
        self._packet_iter = None
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug("Failed to close PCAP file", exc_info=True)
            finally:
                self._file = None

    # ------------------------------------------------------------------
    def _decode_frame(self, timestamp: float, frame: bytes) -> Optional[Packet]:
        if not frame:
            return None
        try:
            ethernet = dpkt.ethernet.Ethernet(frame)
        except (dpkt.UnpackError, ValueError):
            logger.debug("Skipping undecodable Ethernet frame", exc_info=True)
            return None

        payload = ethernet.data
        if isinstance(payload, VLANtag8021Q):
            payload = payload.data

        micros = int(timestamp * MICROS_PER_SECOND)
        length = len(frame)

        if isinstance(payload, dpkt.arp.ARP):
            return self._build_arp_packet(micros, length, ethernet, payload)
        if isinstance(payload, dpkt.ip.IP):
            return self._build_ip_packet(micros, length, payload.src, payload.dst, payload.p, payload.data)
        if isinstance(payload, dpkt.ip6.IP6):
            return self._build_ip_packet(micros, length, payload.src, payload.dst, payload.nxt, payload.data)
        return None

    def _build_arp_packet(
        self,
        micros: int,
        length: int,
        ethernet: dpkt.ethernet.Ethernet,
        arp: dpkt.arp.ARP,
    ) -> Packet:
        sender = format_ip(arp.spa)
        target = format_ip(arp.tpa)
        if arp.op == dpkt.arp.ARP_OP_REPLY:
            summary = f"{sender} is at {format_mac(arp.sha)}"
        else:
            summary = f"Who has {target}? Tell {sender}"
        return Packet(
            id=self._ids.next_token(),
            captured_at=micros,
            source_address=sender,
            destination_address=target,
            protocol="ARP",
            length_bytes=length,
            summary=summary,
            payload_digest=payload_digest(bytes(arp)),
        )

    def _build_ip_packet(
        self,
        micros: int,
        length: int,
        src: bytes,
        dst: bytes,
        ip_proto: int,
        transport,
    ) -> Packet:
        flags: Tuple[str, ...] = ()
        if isinstance(transport, dpkt.tcp.TCP):
            protocol = self.catalog.classify_port("TCP", transport.sport, transport.dport)
            flags = tcp_flag_names(transport.flags)
            body = transport.data
        elif isinstance(transport, dpkt.udp.UDP):
            protocol = self.catalog.classify_port("UDP", transport.sport, transport.dport)
            body = transport.data
        elif isinstance(transport, (dpkt.icmp.ICMP, dpkt.icmp6.ICMP6)):
            protocol = "ICMP"
            body = bytes(transport)
        else:
            protocol = f"IP-{ip_proto}"
            body = bytes(transport) if isinstance(transport, (bytes, dpkt.Packet)) else b""

        return Packet(
            id=self._ids.next_token(),
            captured_at=micros,
            source_address=format_ip(src),
            destination_address=format_ip(dst),
            protocol=protocol,
            length_bytes=length,
            payload_digest=payload_digest(bytes(body)),
            flags=flags,
        )


__all__ = ["PcapReplaySource", "ReplayError", "tcp_flag_names"]
