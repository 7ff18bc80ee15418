"""Enumeration of capture-capable network interfaces."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

try:  # pragma: no cover - optional dependency discovered at runtime
    import psutil  # type: ignore
except ImportError:  # pragma: no cover - psutil missing disables address discovery
    psutil = None  # type: ignore


@dataclass(frozen=True)
class CaptureInterface:
    """A network interface a live capture can be opened on."""

    name: str
    addresses: Tuple[str, ...] = ()
    hardware_address: Optional[str] = None
    is_up: Optional[bool] = None
    is_loopback: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "addresses": list(self.addresses),
            "hardware_address": self.hardware_address,
            "is_up": self.is_up,
            "is_loopback": self.is_loopback,
        }


def list_devices(*, include_loopback: bool = True) -> List[CaptureInterface]:
    """Return local interfaces sorted by name.

    psutil supplies addresses, MAC and link state when installed; otherwise
    only interface names from ``socket.if_nameindex()`` are reported.
    """
    devices: Dict[str, CaptureInterface] = {}

    if psutil is not None:
        try:
            stats = psutil.net_if_stats()
            for name, entries in psutil.net_if_addrs().items():
                addresses: List[str] = []
                hardware: Optional[str] = None
                for entry in entries:
                    family = getattr(entry, "family", None)
                    address = getattr(entry, "address", "")
                    if not address:
                        continue
                    if family in _link_families():
                        hardware = address
                    elif family in (socket.AF_INET, socket.AF_INET6):
                        addresses.append(address)
                link = stats.get(name)
                devices[name] = CaptureInterface(
                    name=name,
                    addresses=tuple(addresses),
                    hardware_address=hardware,
                    is_up=bool(link.isup) if link is not None else None,
                    is_loopback=_is_loopback(name, addresses),
                )
        except Exception:  # pragma: no cover - platform dependent
            logger.debug("Failed to enumerate interfaces via psutil", exc_info=True)

    if not devices:
        try:
            for _, name in socket.if_nameindex():
                devices[name] = CaptureInterface(name=name, is_loopback=_is_loopback(name, ()))
        except OSError:  # pragma: no cover - platform dependent
            logger.debug("socket.if_nameindex() failed", exc_info=True)

    return [
        devices[name]
        for name in sorted(devices)
        if include_loopback or not devices[name].is_loopback
    ]


def _link_families() -> Tuple[int, ...]:
    fams: List[int] = []
    if hasattr(socket, "AF_PACKET"):
        fams.append(socket.AF_PACKET)  # type: ignore[attr-defined]
    if hasattr(socket, "AF_LINK"):
        fams.append(socket.AF_LINK)  # type: ignore[attr-defined]
    if psutil is not None and hasattr(psutil, "AF_LINK"):
        fams.append(psutil.AF_LINK)  # type: ignore[attr-defined]
    return tuple(fams)


def _is_loopback(name: str, addresses: Sequence[str]) -> bool:
    if any(addr.startswith("127.") or addr == "::1" for addr in addresses):
        return True
    return name.lower().startswith(("lo", "loopback"))


__all__ = ["CaptureInterface", "list_devices"]
