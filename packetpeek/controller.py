"""Capture state machine coordinating a packet source with buffer and statistics."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum, unique
from typing import Callable, Iterable, List, Optional, Tuple

from .capture_buffer import DEFAULT_CAPACITY, CaptureBuffer
from .listeners import DEFAULT_FEED_SIZE, CaptureListener, Subscription
from .packet import Packet
from .protocol_analyzer import ProtocolAnalyzer
from .protocol_catalog import ProtocolCatalog
from .rate import PacketRateTracker, RatePoint
from .stats_aggregator import RunningStats, StatsAggregator

logger = logging.getLogger(__name__)

PROGRESS_STEP = 2


@unique
class CaptureState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(frozen=True)
class CaptureSnapshot:
    """Buffer contents and counters copied under one lock acquisition."""

    state: CaptureState
    packets: Tuple[Packet, ...]
    stats: RunningStats
    progress: int
    dropped: int


class CaptureController:
    """Owns the capture buffer and statistics and serializes every mutation.

    ``offer`` is the only ingest path. It runs insert, evict accounting and
    insert accounting under the controller lock, and state transitions take the
    same lock, so once ``pause()`` or ``stop()`` returns no further packet can
    be ingested. When a *source* is given, ``start()`` runs a background pump
    that iterates it and feeds ``offer``.
    """

    def __init__(
        self,
        source: Optional[Iterable[Packet]] = None,
        *,
        capacity: int = DEFAULT_CAPACITY,
        catalog: Optional[ProtocolCatalog] = None,
        status_handler: Optional[Callable[[str], None]] = None,
        rate_window_s: int = 60,
    ) -> None:
        self.source = source
        self.status_handler = status_handler
        self.buffer = CaptureBuffer(capacity)
        self.aggregator = StatsAggregator()
        self.catalog = catalog if catalog is not None else ProtocolCatalog()
        self.analyzer = ProtocolAnalyzer(self.aggregator, self.catalog)

        self._rate = PacketRateTracker(rate_window_s)
        self._lock = threading.RLock()
        self._state = CaptureState.IDLE
        self._progress = 0
        self._dropped = 0
        self._listeners: List[CaptureListener] = []

        self._pump: Optional[threading.Thread] = None
        self._pump_stop: Optional[threading.Event] = None
        self.source_error: Optional[BaseException] = None

    # ------------------------------------------------------------------
    def __enter__(self) -> "CaptureController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.stop()

    # ------------------------------------------------------------------
    def start(self) -> None:
        """Begin (or resume) intake. Starting from idle or stopped clears all data."""
        with self._lock:
            previous = self._state
            if previous is CaptureState.RUNNING:
                return
            if previous in (CaptureState.IDLE, CaptureState.STOPPED):
                self._clear_locked()
            self._state = CaptureState.RUNNING

        self._ensure_pump()
        if previous is CaptureState.PAUSED:
            logger.info("Capture resumed")
            self._notify_status("resumed")
        else:
            logger.info("Capture started (capacity=%d)", self.buffer.capacity)
            self._notify_status("running")

    def pause(self) -> None:
        with self._lock:
            if self._state is not CaptureState.RUNNING:
                return
            self._state = CaptureState.PAUSED

        logger.info("Capture paused")
        self._notify_status("paused")

    def stop(self) -> None:
        """Halt intake and freeze buffer and statistics."""
        with self._lock:
            if self._state not in (CaptureState.RUNNING, CaptureState.PAUSED):
                return
            self._state = CaptureState.STOPPED
            self._progress = 0

        self._halt_pump()
        logger.info("Capture stopped with %d packets buffered", len(self.buffer))
        self._notify_status("stopped")

    def reset(self) -> None:
        """Discard all captured data and return to idle."""
        with self._lock:
            self._state = CaptureState.IDLE
            self._clear_locked()

        self._halt_pump()
        logger.info("Capture reset")
        self._notify_status("idle")

    def current_state(self) -> CaptureState:
        with self._lock:
            return self._state

    # ------------------------------------------------------------------
    def offer(self, packet: Packet) -> bool:
        """Ingest *packet* if capture is running. Returns whether it was accepted."""
        with self._lock:
            if self._state is not CaptureState.RUNNING:
                self._dropped += 1
                return False

            try:
                evicted = self.buffer.insert(packet)
            except ValueError:
                logger.warning("Dropping packet with duplicate id %s", packet.id)
                return False

            # Per-key counts must never exceed the buffer length.
            if evicted is not None:
                self.aggregator.on_evict(evicted)
            self.aggregator.on_insert(packet)

            self._rate.add(packet.captured_at, packet.length_bytes)
            self._progress = (self._progress + PROGRESS_STEP) % 100
            listeners = tuple(self._listeners)

        for listener in listeners:
            try:
                listener.on_packet_ingested(packet)
            except Exception:  # pragma: no cover - user supplied listener
                logger.exception("Capture listener raised an exception")
        return True

    # ------------------------------------------------------------------
    def add_listener(self, listener: CaptureListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: CaptureListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def subscribe(self, maxsize: int = DEFAULT_FEED_SIZE) -> Subscription:
        subscription = Subscription(maxsize)
        self.add_listener(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self.remove_listener(subscription)

    # ------------------------------------------------------------------
    @property
    def progress(self) -> int:
        with self._lock:
            return self._progress

    @property
    def dropped_count(self) -> int:
        """Packets offered while the capture was not running."""
        with self._lock:
            return self._dropped

    def rate_points(self) -> List[RatePoint]:
        with self._lock:
            return self._rate.points()

    def packets_per_second(self) -> float:
        with self._lock:
            return self._rate.packets_per_second()

    def snapshot(self) -> CaptureSnapshot:
        with self._lock:
            return CaptureSnapshot(
                state=self._state,
                packets=self.buffer.snapshot(),
                stats=self.aggregator.snapshot(),
                progress=self._progress,
                dropped=self._dropped,
            )

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the source pump finishes. Returns False on timeout."""
        pump = self._pump
        if pump is None:
            return True
        pump.join(timeout)
        return not pump.is_alive()

    # ------------------------------------------------------------------
    def _clear_locked(self) -> None:
        evicted = self.buffer.clear()
        self.aggregator.reset(evicted)
        self._rate.clear()
        self._progress = 0
        self._dropped = 0

    def _ensure_pump(self) -> None:
        if self.source is None:
            return
        with self._lock:
            if self._pump is not None and self._pump.is_alive() and not self._pump_stop.is_set():
                return
            stop_event = threading.Event()
            pump = threading.Thread(
                target=self._run_pump,
                args=(self.source, stop_event),
                name="packetpeek-pump",
                daemon=True,
            )
            self._pump = pump
            self._pump_stop = stop_event
            self.source_error = None
        pump.start()

    def _halt_pump(self) -> None:
        with self._lock:
            pump = self._pump
            stop_event = self._pump_stop
        if pump is None or stop_event is None:
            return

        stop_event.set()
        close = getattr(self.source, "close", None)
        if callable(close):
            try:
                close()
            except Exception:  # pragma: no cover - close failures depend on the source
                logger.exception("Failed to close packet source")

        if pump is not threading.current_thread():
            pump.join(timeout=2.0)
            if pump.is_alive():
                logger.warning("Packet source did not stop within 2 seconds")

    def _run_pump(self, source: Iterable[Packet], stop_event: threading.Event) -> None:
        count = 0
        try:
            for packet in source:
                if stop_event.is_set():
                    break
                if self.offer(packet):
                    count += 1
        except Exception as exc:
            logger.exception("Packet source failed")
            with self._lock:
                self.source_error = exc
            self._notify_status("source error")
            return
        logger.info("Packet source finished after %d accepted packets", count)

    def _notify_status(self, message: str) -> None:
        if self.status_handler is not None:
            try:
                self.status_handler(message)
            except Exception:  # pragma: no cover - user supplied handler
                logger.exception("Status handler raised an exception")


__all__ = ["CaptureController", "CaptureState", "CaptureSnapshot"]
