import pytest

from packetpeek import Packet, PacketPeekError
from packetpeek import live_capture
from packetpeek.cli import main
from packetpeek.live_capture import LiveCapture, LiveCaptureError

CLIENT_MAC = "aa:aa:aa:aa:aa:aa"
SERVER_MAC = "bb:bb:bb:bb:bb:bb"


@pytest.fixture
def scapy_layers():
    pytest.importorskip("scapy.all")
    from scapy.all import ARP, ICMP, IP, TCP, UDP, Ether, IPv6, Raw

    return {
        "Ether": Ether,
        "IP": IP,
        "IPv6": IPv6,
        "TCP": TCP,
        "UDP": UDP,
        "ICMP": ICMP,
        "ARP": ARP,
        "Raw": Raw,
    }


def test_build_packet_tcp_ipv4(scapy_layers):
    capture = LiveCapture("lo")

    frame = (
        scapy_layers["Ether"](src=CLIENT_MAC, dst=SERVER_MAC)
        / scapy_layers["IP"](src="10.0.0.1", dst="10.0.0.2")
        / scapy_layers["TCP"](sport=51000, dport=443, flags="SA")
        / scapy_layers["Raw"](load=b"hello")
    )
    frame.time = 1.5

    packet = capture._build_packet(frame)
    assert packet is not None
    assert packet.protocol == "HTTPS"
    assert packet.source_address == "10.0.0.1"
    assert packet.destination_address == "10.0.0.2"
    assert packet.captured_at == 1_500_000
    assert packet.length_bytes == len(frame)
    assert packet.flags == ("SYN", "ACK")
    assert packet.id.startswith("live-")


def test_build_packet_udp_ipv6(scapy_layers):
    capture = LiveCapture("lo")

    frame = (
        scapy_layers["Ether"](src=CLIENT_MAC, dst=SERVER_MAC)
        / scapy_layers["IPv6"](src="2001:db8::1", dst="2001:db8::2")
        / scapy_layers["UDP"](sport=5353, dport=53)
        / scapy_layers["Raw"](load=b"abc")
    )
    frame.time = 2.0

    packet = capture._build_packet(frame)
    assert packet is not None
    assert packet.protocol == "DNS"
    assert packet.source_address == "2001:db8::1"
    assert packet.captured_at == 2_000_000
    assert packet.flags == ()


def test_build_packet_plain_udp_and_icmp(scapy_layers):
    capture = LiveCapture("lo")

    udp_frame = (
        scapy_layers["Ether"](src=CLIENT_MAC, dst=SERVER_MAC)
        / scapy_layers["IP"](src="10.0.0.1", dst="10.0.0.2")
        / scapy_layers["UDP"](sport=40000, dport=40001)
    )
    udp_frame.time = 3.0
    icmp_frame = (
        scapy_layers["Ether"](src=CLIENT_MAC, dst=SERVER_MAC)
        / scapy_layers["IP"](src="10.0.0.1", dst="10.0.0.2")
        / scapy_layers["ICMP"]()
    )
    icmp_frame.time = 3.5

    assert capture._build_packet(udp_frame).protocol == "UDP"
    assert capture._build_packet(icmp_frame).protocol == "ICMP"


def test_build_packet_arp(scapy_layers):
    capture = LiveCapture("lo")

    request = scapy_layers["Ether"](src=CLIENT_MAC, dst=SERVER_MAC) / scapy_layers["ARP"](
        op=1, psrc="192.0.2.1", pdst="192.0.2.254", hwsrc=CLIENT_MAC
    )
    request.time = 4.0
    reply = scapy_layers["Ether"](src=CLIENT_MAC, dst=SERVER_MAC) / scapy_layers["ARP"](
        op=2, psrc="192.0.2.254", pdst="192.0.2.1", hwsrc="aa:bb:cc:dd:ee:ff"
    )
    reply.time = 4.5

    asked = capture._build_packet(request)
    answered = capture._build_packet(reply)

    assert asked.protocol == "ARP"
    assert asked.summary == "Who has 192.0.2.254? Tell 192.0.2.1"
    assert answered.summary == "192.0.2.254 is at aa:bb:cc:dd:ee:ff"


def test_full_queue_drops_packets(scapy_layers):
    capture = LiveCapture("lo", queue_size=1)

    frame = (
        scapy_layers["Ether"](src=CLIENT_MAC, dst=SERVER_MAC)
        / scapy_layers["IP"](src="10.0.0.1", dst="10.0.0.2")
        / scapy_layers["UDP"]()
    )
    frame.time = 5.0

    capture._handle_packet(frame)
    capture._handle_packet(frame)

    assert capture.dropped == 1


def test_stop_without_start_is_noop():
    capture = LiveCapture("lo")

    capture.stop()

    assert not capture.is_running()


class _FakeSniffer:
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.running = False
        _FakeSniffer.instances.append(self)

    def start(self):
        self.running = True

    def stop(self):
        self.running = False


@pytest.fixture
def fake_sniffer(monkeypatch):
    _FakeSniffer.instances = []
    monkeypatch.setattr(live_capture, "AsyncSniffer", _FakeSniffer)
    return _FakeSniffer


def _queued_packet(packet_id: str) -> Packet:
    return Packet(
        id=packet_id,
        captured_at=1_000_000,
        source_address="10.0.0.1",
        destination_address="10.0.0.2",
        protocol="UDP",
        length_bytes=60,
    )


def test_closing_iterator_discards_queued_packets(fake_sniffer):
    capture = LiveCapture("lo")
    capture._queue.put_nowait(_queued_packet("p1"))
    capture._queue.put_nowait(_queued_packet("p2"))

    packets = iter(capture)
    assert next(packets).id == "p1"
    assert capture.is_running()
    packets.close()

    assert capture._queue.empty()
    assert not capture.is_running()
    assert not fake_sniffer.instances[0].running


def test_restarted_capture_does_not_yield_stale_packets(fake_sniffer):
    capture = LiveCapture("lo", bpf_filter="udp")
    capture._queue.put_nowait(_queued_packet("stale-1"))
    capture._queue.put_nowait(_queued_packet("stale-2"))

    first = iter(capture)
    next(first)
    first.close()

    capture._queue.put_nowait(_queued_packet("fresh"))
    second = iter(capture)
    assert next(second).id == "fresh"
    second.close()

    assert len(fake_sniffer.instances) == 2
    assert fake_sniffer.instances[1].kwargs["filter"] == "udp"


def test_live_capture_error_is_a_packetpeek_error():
    assert issubclass(LiveCaptureError, PacketPeekError)
    assert issubclass(LiveCaptureError, RuntimeError)


def test_cli_reports_unavailable_live_capture(monkeypatch, capsys):
    monkeypatch.setattr(live_capture, "AsyncSniffer", None)

    exit_code = main(["--source", "live", "--interface", "lo", "--json", "--log-level", "CRITICAL"])

    assert exit_code == 1
    assert capsys.readouterr().out == ""
