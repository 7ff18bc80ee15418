"""Exception types raised by the capture core."""

from __future__ import annotations


class PacketPeekError(Exception):
    """Base class for packetpeek errors."""


class ConfigurationError(PacketPeekError, ValueError):
    """Raised for invalid construction parameters or settings."""


class SourceError(PacketPeekError, RuntimeError):
    """Raised when a packet source fails while a capture is running."""


class AggregationInvariantViolation(PacketPeekError, AssertionError):
    """Raised when the running counters would no longer match the buffer.

    This signals a programming error in the ingest path (for example evicting a
    packet that was never inserted) and is not meant to be recovered from.
    """


__all__ = ["PacketPeekError", "ConfigurationError", "SourceError", "AggregationInvariantViolation"]
