"""Formatting helpers for microsecond capture timestamps."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from .utils import MICROS_PER_SECOND

_DEFAULT_FORMAT = "%d/%m/%Y %H:%M:%S"


def format_capture_time(time_micros: int, fmt: Optional[str] = None) -> str:
    """Render epoch microseconds in local time."""
    pattern = fmt or _DEFAULT_FORMAT
    dt = datetime.fromtimestamp(time_micros / MICROS_PER_SECOND)
    return dt.strftime(pattern)


def capture_time_parts(time_micros: int) -> Dict[str, str]:
    """Split a timestamp into the date/time/ISO triple shown in packet details."""
    local = datetime.fromtimestamp(time_micros / MICROS_PER_SECOND)
    utc = datetime.fromtimestamp(time_micros / MICROS_PER_SECOND, tz=timezone.utc)
    return {
        "date": local.strftime("%Y-%m-%d"),
        "time": local.strftime("%H:%M:%S"),
        "iso": utc.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }


__all__ = ["format_capture_time", "capture_time_parts"]
