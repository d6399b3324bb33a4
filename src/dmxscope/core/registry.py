"""
Discovery and liveness tracking of Art-Net universes.

A universe is listed only after it has been seen twice (single stray packets
never show up) and forgotten after it has been idle for the TTL. Pruning runs
on its own timer (:class:`SweepTask`), independent of any redraw cadence.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .models import UniverseKey

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 10.0
DEFAULT_LIVE_WINDOW_S = 0.3
DEFAULT_MIN_SIGHTINGS = 2
DEFAULT_SWEEP_INTERVAL_S = 0.25

SelectionListener = Callable[[Optional[UniverseKey], Optional[UniverseKey]], None]


@dataclass
class UniverseRecord:
    last_seen: float
    sighting_count: int = 0
    activity: bool = False


class UniverseRegistry:
    """Tracks which universes are on the wire and which one is selected."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_S,
        *,
        live_window: float = DEFAULT_LIVE_WINDOW_S,
        min_sightings: int = DEFAULT_MIN_SIGHTINGS,
    ) -> None:
        self.ttl = float(ttl)
        self.live_window = float(live_window)
        self.min_sightings = max(1, int(min_sightings))
        self._records: Dict[UniverseKey, UniverseRecord] = {}
        self._discovered: List[UniverseKey] = []
        self._selected: Optional[UniverseKey] = None
        self._listeners: List[SelectionListener] = []
        self._lock = threading.RLock()

    # ----------------------------------------------------------------- ingest
    def observe(self, key: UniverseKey, now: float) -> bool:
        """
        Record a sighting of ``key`` at ``now``.

        Returns ``True`` when this sighting made the universe discoverable.
        """
        key = UniverseKey(*key)
        became_visible = False
        with self._lock:
            record = self._records.get(key)
            if record is None:
                record = UniverseRecord(last_seen=now)
                self._records[key] = record
            elif now - record.last_seen >= self.ttl:
                # Expired but not swept yet: the debounce starts over.
                record.sighting_count = 0
                if key in self._discovered:
                    self._discovered.remove(key)
            record.last_seen = now
            record.sighting_count += 1
            if record.sighting_count >= self.min_sightings and key not in self._discovered:
                self._discovered.append(key)
                became_visible = True
                logger.info("Discovered universe %s", key)
            auto_select = became_visible and self._selected is None
        if auto_select:
            self.select(key)
        return became_visible

    def sweep(self, now: float) -> List[UniverseKey]:
        """Forget universes idle for at least the TTL; return the removed keys."""
        with self._lock:
            expired = [
                key for key, record in self._records.items() if now - record.last_seen >= self.ttl
            ]
            if not expired:
                return []
            for key in expired:
                del self._records[key]
                if key in self._discovered:
                    self._discovered.remove(key)
            fallback_needed = self._selected in expired
            fallback = self._discovered[0] if self._discovered else None
        for key in expired:
            logger.info("Universe %s timed out", key)
        if fallback_needed:
            self.select(fallback)
        return expired

    # ------------------------------------------------------------------ query
    def discovered(self) -> List[UniverseKey]:
        with self._lock:
            return list(self._discovered)

    def is_discovered(self, key: UniverseKey) -> bool:
        with self._lock:
            return UniverseKey(*key) in self._discovered

    def record(self, key: UniverseKey) -> Optional[UniverseRecord]:
        with self._lock:
            record = self._records.get(UniverseKey(*key))
            if record is None:
                return None
            return UniverseRecord(record.last_seen, record.sighting_count, record.activity)

    def is_live(self, key: UniverseKey, now: float) -> bool:
        with self._lock:
            record = self._records.get(UniverseKey(*key))
            return record is not None and now - record.last_seen < self.live_window

    def activity(self, key: UniverseKey, now: float) -> bool:
        """
        Blink signal for activity LEDs, polled by the UI timer.

        While the universe is live each poll flips the signal; once it goes
        quiet the signal settles at ``False``.
        """
        with self._lock:
            record = self._records.get(UniverseKey(*key))
            if record is None:
                return False
            if now - record.last_seen < self.live_window:
                record.activity = not record.activity
            else:
                record.activity = False
            return record.activity

    # -------------------------------------------------------------- selection
    @property
    def selected(self) -> Optional[UniverseKey]:
        with self._lock:
            return self._selected

    def select(self, key: Optional[UniverseKey]) -> None:
        new = None if key is None else UniverseKey(*key)
        with self._lock:
            old = self._selected
            if old == new:
                return
            self._selected = new
            listeners = list(self._listeners)
        logger.debug("Universe selection %s -> %s", old, new)
        for listener in listeners:
            listener(old, new)

    def add_selection_listener(self, listener: SelectionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._discovered.clear()
        self.select(None)


class SweepTask:
    """Background thread that calls :meth:`UniverseRegistry.sweep` periodically."""

    def __init__(
        self,
        registry: UniverseRegistry,
        interval: float = DEFAULT_SWEEP_INTERVAL_S,
        *,
        clock: Callable[[], float] = time.monotonic,
        thread_name: str | None = None,
    ) -> None:
        self._registry = registry
        self._interval = max(0.01, float(interval))
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._thread_name = thread_name or "DmxScopeUniverseSweep"

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self._thread_name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._registry.sweep(self._clock())
            except Exception:
                logger.exception("Universe sweep failed")

    def stop(self, *, join: bool = False, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if join and self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
