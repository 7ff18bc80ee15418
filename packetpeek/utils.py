"""Small helpers shared by the source adapters and the report layer."""

from __future__ import annotations

import ipaddress
import zlib
from typing import Union

MICROS_PER_SECOND = 1_000_000

_BYTE_UNITS = ("B", "KB", "MB", "GB")


def format_ip(value: Union[bytes, bytearray, str]) -> str:
    """Convert a raw IP buffer into a printable string."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) == 4:
            return ".".join(str(b & 0xFF) for b in value)
        if len(value) == 16:
            return str(ipaddress.IPv6Address(bytes(value)))
    return str(value)


def format_mac(value: Union[bytes, bytearray, str]) -> str:
    if isinstance(value, (bytes, bytearray)):
        return ":".join(f"{b:02x}" for b in value)
    return str(value)


def format_byte_count(value: Union[int, float]) -> str:
    """Render a byte count with a binary unit suffix.

    The value is divided by 1024 while it stays at or above 1024 (up to GB)
    and printed with at most two decimals, trailing zeros dropped:

    >>> format_byte_count(0)
    '0 B'
    >>> format_byte_count(1536)
    '1.5 KB'
    >>> format_byte_count(1048576)
    '1 MB'
    """
    if value == 0:
        return "0 B"

    magnitude = float(value)
    unit = 0
    while abs(magnitude) >= 1024 and unit < len(_BYTE_UNITS) - 1:
        magnitude /= 1024
        unit += 1

    text = f"{magnitude:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_BYTE_UNITS[unit]}"


def payload_digest(payload: bytes) -> str:
    """Short opaque fingerprint of a payload (CRC32, not a security hash)."""
    return f"0x{zlib.crc32(bytes(payload)) & 0xFFFFFFFF:08X}"


__all__ = [
    "MICROS_PER_SECOND",
    "format_ip",
    "format_mac",
    "format_byte_count",
    "payload_digest",
]
