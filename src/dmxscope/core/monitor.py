"""
Session object that wires discovery, history, recording, and playback.

A :class:`MonitorSession` is created from a :class:`MonitorConfig` and owned
by whoever runs it (the CLI, a test, an embedding app). Frames are pushed in
through :meth:`MonitorSession.on_packet` or :meth:`MonitorSession.ingest`;
everything else is the control surface a front-end calls.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..config.runtime import MonitorConfig
from ..dataio.recording_io import load_recording, save_recording
from ..tools.debug import time_block
from .history import EMPTY_VIEW, ChannelHistoryStore
from .models import Frame, PreviewResponse, RecordingSession, UniverseKey
from .playback import FrameSink, PlaybackEngine, PlayResult
from .recording import RecordingBuffer
from .registry import SweepTask, UniverseRegistry
from .ringbuffer import ChronologicalView, HistorySample

logger = logging.getLogger(__name__)


class MonitorSession:
    """Live monitor plus recorder for one Art-Net input stream."""

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        sink: Optional[FrameSink] = None,
        clock: Callable[[], float] = time.monotonic,
        start_sweep: bool = True,
    ) -> None:
        self.config = (config or MonitorConfig()).sanitized()
        self._clock = clock
        cfg = self.config
        self.default_address = UniverseKey(*cfg.default_address)

        self.registry = UniverseRegistry(
            cfg.universe_ttl_s,
            live_window=cfg.live_window_s,
            min_sightings=cfg.min_sightings,
        )
        self.history = ChannelHistoryStore(cfg.history_capacity, cfg.history_window_s)
        self.recording = RecordingBuffer(cfg.max_record_frames, cfg.preview_points)
        self.playback = PlaybackEngine(sink, default_address=self.default_address, clock=clock)
        self._sweep = SweepTask(self.registry, cfg.sweep_interval_s, clock=clock)
        self.registry.add_selection_listener(self._on_selection_changed)
        self._event_filter: Optional[UniverseKey] = None
        self._history_stale = False
        self.frames_ingested = 0
        self._closed = False
        if start_sweep:
            self._sweep.start()

    # --------------------------------------------------------------- lifecycle
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._sweep.stop(join=True, timeout=1.0)
        self.playback.stop()
        self.playback.wait(timeout=1.0)
        self.recording.stop()
        logger.debug("Monitor session closed after %d frame(s)", self.frames_ingested)

    def __enter__(self) -> "MonitorSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ ingest
    def on_packet(
        self,
        net: int,
        subnet: int,
        universe: int,
        values: Sequence[int] | np.ndarray | bytes,
        now: Optional[float] = None,
    ) -> None:
        captured_at = self._clock() if now is None else float(now)
        self.ingest(Frame.from_values(net, subnet, universe, values, captured_at))

    def ingest(self, frame: Frame) -> None:
        """
        Route one frame into discovery, history, and recording.

        History follows the universe selected for display; recording follows
        the event filter, which only :meth:`set_event_filter` changes.
        """
        now = self._clock() if frame.captured_at is None else frame.captured_at
        key = frame.key
        with time_block("MonitorSession.ingest"):
            self.registry.observe(key, now)
            if self._history_stale:
                self._history_stale = False
                self.history.reset()
            shown = self.registry.selected
            if shown is None or shown == key:
                self.history.record(frame.values, now)
            event_filter = self._event_filter
            if event_filter is None or event_filter == key:
                self.recording.append(frame.values, now, key)
            self.frames_ingested += 1

    # ----------------------------------------------------------------- filter
    @property
    def event_filter(self) -> Optional[UniverseKey]:
        return self._event_filter

    @property
    def selected_universe(self) -> Optional[UniverseKey]:
        return self.registry.selected

    def set_event_filter(self, key: UniverseKey | str | None) -> None:
        """Record and show only ``key`` (``None`` records every universe)."""
        if isinstance(key, str):
            key = UniverseKey.parse(key)
        key = None if key is None else UniverseKey(*key)
        self._event_filter = key
        self._history_stale = True
        self.registry.select(key)
        logger.info("Event filter set to %s", key if key is not None else "any universe")

    def _on_selection_changed(
        self, old: Optional[UniverseKey], new: Optional[UniverseKey]
    ) -> None:
        # May run on the sweep thread; the ingest path does the actual reset.
        self._history_stale = True
        logger.info("Showing universe %s", new if new is not None else "any")

    def discovered(self) -> List[UniverseKey]:
        return self.registry.discovered()

    def universe_activity(self, key: UniverseKey) -> bool:
        return self.registry.activity(key, self._clock())

    def read_history(self, channel: int) -> ChronologicalView:
        if self._history_stale:
            return EMPTY_VIEW
        return self.history.read_chronological(channel)

    def latest_level(self, channel: int) -> Optional[HistorySample]:
        if self._history_stale:
            return None
        return self.history.latest(channel)

    # -------------------------------------------------------------- recording
    def set_record_channels(self, channels: Iterable[int]) -> Tuple[int, ...]:
        return self.recording.set_channels(channels)

    def start_recording(self, channels: Iterable[int] | None = None) -> None:
        self.recording.start(channels)

    def stop_recording(self) -> None:
        self.recording.stop()

    def clear_recording(self) -> None:
        self.recording.clear()

    def recording_summary(self) -> Tuple[int, int]:
        """Return ``(frame_count, duration_ms)`` of the buffered recording."""
        return self.recording.summary()

    def get_preview(self, channel: int, max_points: int) -> Optional[PreviewResponse]:
        return self.recording.preview(channel, max_points)

    def save_recording(self, path: str | Path, fmt: Optional[str] = None) -> Path:
        session = self.recording.to_session()
        return save_recording(path, session, fmt, default_address=self.default_address)

    def load_recording(self, path: str | Path) -> RecordingSession:
        """
        Replace the buffered recording with the file at ``path``.

        On any read or format error the buffer is left as it was.
        """
        session = load_recording(path)
        self.recording.load_session(session)
        return session

    # --------------------------------------------------------------- playback
    def play_file(self, path: str | Path, sink: Optional[FrameSink] = None) -> PlayResult:
        return self.playback.play(Path(path), sink)

    def play_recording(self, sink: Optional[FrameSink] = None) -> PlayResult:
        return self.playback.play(self.recording.to_session(), sink)

    def stop_playback(self) -> None:
        self.playback.stop()
