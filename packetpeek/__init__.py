"""Bounded packet capture with running protocol statistics and security analysis."""

from .errors import AggregationInvariantViolation, ConfigurationError, PacketPeekError, SourceError
from .id_generator import IdGenerator
from .packet import Packet
from .capture_buffer import DEFAULT_CAPACITY, CaptureBuffer
from .stats_aggregator import RunningStats, StatKind, StatsAggregator
from .protocol_catalog import ProtocolCatalog, ProtocolProfile, SecurityTier
from .protocol_analyzer import ProtocolAnalyzer, ProtocolShare, SecurityOverview
from .listeners import CaptureListener, Subscription
from .controller import CaptureController, CaptureSnapshot, CaptureState
from .sources import PacketSource, SyntheticSource, open_source
from .packet_reader import PcapReplaySource, ReplayError
from .live_capture import LiveCapture, LiveCaptureError
from .interfaces import CaptureInterface, list_devices
from .config import CaptureOptions, load_options
from .utils import format_byte_count

__all__ = [
    "PacketPeekError",
    "ConfigurationError",
    "SourceError",
    "AggregationInvariantViolation",
    "IdGenerator",
    "Packet",
    "DEFAULT_CAPACITY",
    "CaptureBuffer",
    "RunningStats",
    "StatKind",
    "StatsAggregator",
    "ProtocolCatalog",
    "ProtocolProfile",
    "SecurityTier",
    "ProtocolAnalyzer",
    "ProtocolShare",
    "SecurityOverview",
    "CaptureListener",
    "Subscription",
    "CaptureController",
    "CaptureSnapshot",
    "CaptureState",
    "PacketSource",
    "SyntheticSource",
    "open_source",
    "PcapReplaySource",
    "ReplayError",
    "LiveCapture",
    "LiveCaptureError",
    "CaptureInterface",
    "list_devices",
    "CaptureOptions",
    "load_options",
    "format_byte_count",
]
