"""Capture options and the JSON settings file they can be loaded from."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .capture_buffer import DEFAULT_CAPACITY
from .errors import ConfigurationError
from .protocol_catalog import ProtocolCatalog, ProtocolProfile

logger = logging.getLogger(__name__)

SOURCE_KINDS = ("synthetic", "replay", "live")
DEFAULT_QUEUE_SIZE = 1_000


@dataclass
class CaptureOptions:
    source: str = "synthetic"
    capacity: int = DEFAULT_CAPACITY
    interface: Optional[str] = None
    pcap_path: Optional[str] = None
    bpf_filter: Optional[str] = None
    limit: Optional[int] = None
    interval_min_s: float = 0.5
    interval_max_s: float = 1.5
    seed: Optional[int] = None
    realtime: bool = False
    duration_s: Optional[float] = None
    top_n: int = 5
    queue_size: int = DEFAULT_QUEUE_SIZE
    protocols: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.source not in SOURCE_KINDS:
            raise ConfigurationError(
                f"source must be one of {', '.join(SOURCE_KINDS)}, got {self.source!r}"
            )
        if isinstance(self.capacity, bool) or not isinstance(self.capacity, int) or self.capacity <= 0:
            raise ConfigurationError(f"capacity must be a positive integer, got {self.capacity!r}")
        if self.limit is not None and self.limit < 0:
            raise ConfigurationError(f"limit must not be negative, got {self.limit!r}")
        if self.interval_min_s < 0 or self.interval_max_s < self.interval_min_s:
            raise ConfigurationError("interval_max_s must be >= interval_min_s >= 0")
        if self.duration_s is not None and self.duration_s <= 0:
            raise ConfigurationError("duration_s must be greater than 0 seconds")
        if self.top_n <= 0:
            raise ConfigurationError(f"top_n must be positive, got {self.top_n!r}")
        if self.queue_size <= 0:
            raise ConfigurationError(f"queue_size must be positive, got {self.queue_size!r}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CaptureOptions":
        known = {name for name in cls.__dataclass_fields__}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(unknown))
        try:
            return cls(**{key: value for key, value in data.items() if key in known})
        except TypeError as exc:
            raise ConfigurationError(f"Invalid settings: {exc}") from exc

    def build_catalog(self) -> ProtocolCatalog:
        """Default catalog extended with the profiles listed under ``protocols``."""
        try:
            extra = [ProtocolProfile.from_dict(item) for item in self.protocols]
        except (KeyError, ValueError, TypeError) as exc:
            raise ConfigurationError(f"Invalid protocol profile: {exc}") from exc
        return ProtocolCatalog().with_profiles(*extra)


def load_options(path: Union[str, Path]) -> CaptureOptions:
    """Read a JSON settings file into :class:`CaptureOptions`."""
    settings_path = Path(path)
    try:
        raw = json.loads(settings_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read settings file {settings_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Settings file {settings_path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Settings file {settings_path} must contain a JSON object")
    return CaptureOptions.from_dict(raw)


__all__ = ["CaptureOptions", "SOURCE_KINDS", "load_options"]
