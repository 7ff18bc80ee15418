import pytest

from packetpeek.date_formatter import capture_time_parts, format_capture_time
from packetpeek.id_generator import IdGenerator
from packetpeek.utils import format_byte_count, format_ip, format_mac, payload_digest


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, "0 B"),
        (512, "512 B"),
        (1023, "1023 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1048576, "1 MB"),
        (1073741824, "1 GB"),
        (5 * 1024 ** 4, "5120 GB"),
    ],
)
def test_format_byte_count(value, expected):
    assert format_byte_count(value) == expected


def test_format_byte_count_keeps_two_decimals():
    assert format_byte_count(1234) == "1.21 KB"


def test_format_ip_handles_v4_v6_and_text():
    assert format_ip(bytes([192, 0, 2, 1])) == "192.0.2.1"
    assert format_ip(bytes.fromhex("20010db8000000000000000000000001")) == "2001:db8::1"
    assert format_ip("10.0.0.1") == "10.0.0.1"


def test_format_mac():
    assert format_mac(b"\xaa\xbb\xcc\x00\x11\x22") == "aa:bb:cc:00:11:22"


def test_payload_digest_is_stable_hex():
    digest = payload_digest(b"hello")
    assert digest == payload_digest(b"hello")
    assert digest.startswith("0x")
    assert len(digest) == 10
    assert digest != payload_digest(b"hello!")


def test_id_generator_tokens_are_unique_and_prefixed():
    generator = IdGenerator(prefix="t")
    tokens = [generator.next_token() for _ in range(40)]

    assert len(set(tokens)) == 40
    assert tokens[0] == "t-1"
    assert tokens[35] == "t-10"
    assert all(token.startswith("t-") for token in tokens)


def test_capture_time_parts_iso_is_utc():
    parts = capture_time_parts(1_500_000)

    assert parts["iso"] == "1970-01-01T00:00:01.500Z"
    assert set(parts) == {"date", "time", "iso"}


def test_format_capture_time_accepts_pattern():
    assert format_capture_time(0, "%Y") in {"1969", "1970"}
