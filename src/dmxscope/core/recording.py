"""
Bounded in-memory recording of selected channels.

Frames are appended from the ingest callback into NumPy arrays that grow by
doubling, so appends are amortized O(1). Two independent caps keep memory
bounded:

- the full-resolution store drops its oldest half in one operation once it
  holds more than ``max_frames`` frames;
- the preview cache keeps every K-th frame and, once it holds more than
  ``preview_points`` points, halves itself and doubles K so it still spans
  the whole recording.

Readers never lock. Writers only ever fill slots past the published frame
count, and trims/growth build fresh arrays, so grabbing ``self._data`` once
gives a consistent snapshot.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .models import (
    DMX_CHANNELS,
    PreviewPoint,
    PreviewResponse,
    RecordingSession,
    UniverseKey,
    normalize_values,
)

logger = logging.getLogger(__name__)

MAX_RECORD_FRAMES = 200_000
PREVIEW_POINTS = 2_000
_INITIAL_CAPACITY = 1024


def normalize_channels(channels: Iterable[int] | None) -> Tuple[int, ...]:
    """Dedupe, drop anything outside ``[1, 512]`` and sort ascending."""
    if channels is None:
        return ()
    result = set()
    for ch in channels:
        try:
            value = int(ch)
        except (TypeError, ValueError):
            continue
        if 1 <= value <= DMX_CHANNELS:
            result.add(value)
    return tuple(sorted(result))


class _Store(NamedTuple):
    timestamps: np.ndarray  # int64 ms, shape (capacity,)
    values: np.ndarray  # uint8, shape (n_channels, capacity)
    addresses: np.ndarray  # uint8, shape (capacity, 3)
    count: int


class _PreviewPoint(NamedTuple):
    seq: int  # absolute append number since start()
    t_ms: int
    row: np.ndarray  # values of the selected channels


class RecordingBuffer:
    """Timestamped value store for the selected channels, plus a preview cache."""

    def __init__(
        self,
        max_frames: int = MAX_RECORD_FRAMES,
        preview_points: int = PREVIEW_POINTS,
    ) -> None:
        if max_frames < 2:
            raise ValueError("max_frames must be at least 2")
        if preview_points < 2:
            raise ValueError("preview_points must be at least 2")
        self.max_frames = int(max_frames)
        self.preview_points = int(preview_points)
        self._write_lock = threading.Lock()
        self._channels: Tuple[int, ...] = ()
        self._index = np.empty(0, dtype=np.intp)
        self._data = self._empty_store(0)
        self._preview: List[_PreviewPoint] = []
        self._preview_stride = 1
        self._appended = 0
        self._t0: Optional[float] = None
        self.active = False

    # ----------------------------------------------------------------- control
    @property
    def channels(self) -> Tuple[int, ...]:
        return self._channels

    def set_channels(self, channels: Iterable[int] | None) -> Tuple[int, ...]:
        """
        Select which channels to record and return the normalized selection.

        Data already buffered for channels that stay selected is kept;
        newly added channels are zero-filled for the frames recorded so far.
        """
        normalized = normalize_channels(channels)
        with self._write_lock:
            if normalized == self._channels:
                return normalized
            old = self._data
            old_rows = {ch: row for row, ch in enumerate(self._channels)}
            capacity = old.timestamps.size
            values = np.zeros((len(normalized), capacity), dtype=np.uint8)
            for row, ch in enumerate(normalized):
                src = old_rows.get(ch)
                if src is not None:
                    values[row, : old.count] = old.values[src, : old.count]
            self._channels = normalized
            self._index = np.asarray(normalized, dtype=np.intp) - 1
            self._data = _Store(old.timestamps.copy(), values, old.addresses.copy(), old.count)
            self._rebuild_preview()
        logger.info("Recording channels set to %s", _describe_channels(normalized))
        return normalized

    def start(self, channels: Iterable[int] | None = None) -> None:
        """Drop all buffered frames and begin recording."""
        if channels is not None:
            self.set_channels(channels)
        with self._write_lock:
            self._reset_locked()
            self.active = True
        if not self._channels:
            logger.warning("Recording started with no channels selected; nothing will be kept")
        else:
            logger.info("Recording started on %d channel(s)", len(self._channels))

    def stop(self) -> None:
        """Stop recording; buffered frames stay until cleared or overwritten."""
        if not self.active:
            return
        self.active = False
        logger.info("Recording stopped after %d frame(s)", self.frame_count)

    def clear(self) -> None:
        """Drop buffered frames, keeping the channel selection."""
        with self._write_lock:
            self._reset_locked()

    def _reset_locked(self) -> None:
        self._data = self._empty_store(_INITIAL_CAPACITY)
        self._preview = []
        self._preview_stride = 1
        self._appended = 0
        self._t0 = None

    def _empty_store(self, capacity: int) -> _Store:
        return _Store(
            timestamps=np.zeros(capacity, dtype=np.int64),
            values=np.zeros((len(self._channels), capacity), dtype=np.uint8),
            addresses=np.zeros((capacity, 3), dtype=np.uint8),
            count=0,
        )

    # ------------------------------------------------------------------ ingest
    def append(
        self,
        values: Sequence[int] | np.ndarray,
        timestamp: float,
        address: Optional[UniverseKey] = None,
    ) -> bool:
        """
        Append one frame while recording; returns ``False`` when ignored.

        ``timestamp`` is a monotonic capture time in seconds. It is stored as
        whole milliseconds relative to the first appended frame.
        """
        if not self.active or not self._channels:
            return False
        levels = normalize_values(values)
        with self._write_lock:
            if not self.active:
                return False
            if self._t0 is None:
                self._t0 = float(timestamp)
            t_ms = int(round((float(timestamp) - self._t0) * 1000.0))

            store = self._data
            count = store.count
            if count > 0 and t_ms < store.timestamps[count - 1]:
                t_ms = int(store.timestamps[count - 1])
            if count >= store.timestamps.size:
                store = self._grow(store)

            row = levels[self._index]
            store.timestamps[count] = t_ms
            store.values[:, count] = row
            if address is not None:
                store.addresses[count] = (address[0], address[1], address[2])
            # Publish only after every sequence holds the new slot.
            self._data = store._replace(count=count + 1)

            seq = self._appended
            self._appended += 1
            if seq % self._preview_stride == 0:
                self._preview.append(_PreviewPoint(seq, t_ms, row.copy()))
                if len(self._preview) > self.preview_points:
                    self._halve_preview()

            if count + 1 > self.max_frames:
                self._trim_to_half()
        return True

    def _grow(self, store: _Store) -> _Store:
        capacity = max(_INITIAL_CAPACITY, store.timestamps.size * 2)
        capacity = max(min(capacity, self.max_frames + 1), store.count + 1)
        count = store.count
        timestamps = np.zeros(capacity, dtype=np.int64)
        timestamps[:count] = store.timestamps[:count]
        values = np.zeros((store.values.shape[0], capacity), dtype=np.uint8)
        values[:, :count] = store.values[:, :count]
        addresses = np.zeros((capacity, 3), dtype=np.uint8)
        addresses[:count] = store.addresses[:count]
        grown = _Store(timestamps, values, addresses, count)
        self._data = grown
        return grown

    def _trim_to_half(self) -> None:
        store = self._data
        keep = self.max_frames // 2
        drop = store.count - keep
        capacity = store.timestamps.size
        timestamps = np.zeros(capacity, dtype=np.int64)
        timestamps[:keep] = store.timestamps[drop : store.count]
        values = np.zeros_like(store.values)
        values[:, :keep] = store.values[:, drop : store.count]
        addresses = np.zeros_like(store.addresses)
        addresses[:keep] = store.addresses[drop : store.count]
        self._data = _Store(timestamps, values, addresses, keep)

        first_seq = self._appended - keep
        self._preview = [p for p in self._preview if p.seq >= first_seq]
        logger.debug("Recording buffer trimmed: dropped %d oldest frame(s)", drop)

    def _halve_preview(self) -> None:
        self._preview_stride *= 2
        stride = self._preview_stride
        self._preview = [p for p in self._preview if p.seq % stride == 0]

    def _rebuild_preview(self) -> None:
        store = self._data
        count = store.count
        stride = 1
        while -(-count // stride) > self.preview_points:
            stride *= 2
        first_seq = self._appended - count
        points: List[_PreviewPoint] = []
        for i in range(count):
            seq = first_seq + i
            if seq % stride == 0:
                points.append(
                    _PreviewPoint(seq, int(store.timestamps[i]), store.values[:, i].copy())
                )
        self._preview_stride = stride
        self._preview = points

    # ------------------------------------------------------------------- query
    @property
    def frame_count(self) -> int:
        return self._data.count

    @property
    def duration_ms(self) -> int:
        store = self._data
        if store.count == 0:
            return 0
        return int(store.timestamps[store.count - 1] - store.timestamps[0])

    @property
    def last_address(self) -> Optional[UniverseKey]:
        store = self._data
        if store.count == 0:
            return None
        net, subnet, universe = (int(v) for v in store.addresses[store.count - 1])
        return UniverseKey(net, subnet, universe)

    def summary(self) -> Tuple[int, int]:
        """Return ``(frame_count, duration_ms)``."""
        store = self._data
        if store.count == 0:
            return 0, 0
        return store.count, int(store.timestamps[store.count - 1] - store.timestamps[0])

    def preview(self, channel: int, max_points: int) -> Optional[PreviewResponse]:
        """
        Downsample ``channel`` to at most ``max_points`` points.

        Points are picked by nearest-index resampling over the full-resolution
        data, so the first and last frames are always included and any
        recorded channel can be previewed. Returns ``None`` when ``channel``
        is not being recorded.
        """
        channels = self._channels
        store = self._data
        try:
            row = channels.index(int(channel))
        except ValueError:
            return None
        if row >= store.values.shape[0]:
            return None
        total = store.count
        if total == 0 or max_points <= 0:
            return PreviewResponse(points=[], frame_count=total, duration_ms=0)

        timestamps = store.timestamps[:total].copy()
        values = store.values[row, :total].copy()
        if total <= max_points:
            indices = np.arange(total)
        else:
            indices = np.rint(np.linspace(0, total - 1, int(max_points))).astype(np.int64)
            indices = np.unique(indices)
        base = int(timestamps[0])
        points = [PreviewPoint(int(timestamps[i]) - base, int(values[i])) for i in indices]
        return PreviewResponse(
            points=points,
            frame_count=total,
            duration_ms=int(timestamps[-1]) - base,
        )

    def cached_preview(self, channel: int) -> List[PreviewPoint]:
        """Return the cached downsample of ``channel`` (offsets from the first frame)."""
        channels = self._channels
        cache = list(self._preview)
        store = self._data
        try:
            row = channels.index(int(channel))
        except ValueError:
            return []
        if store.count == 0 or not cache:
            return []
        base = int(store.timestamps[0])
        return [PreviewPoint(p.t_ms - base, int(p.row[row])) for p in cache if row < p.row.size]

    def to_session(self) -> RecordingSession:
        """Copy the buffered frames into a :class:`RecordingSession`."""
        channels = self._channels
        store = self._data
        count = store.count
        n_rows = min(len(channels), store.values.shape[0])
        channels = channels[:n_rows]
        return RecordingSession(
            channels=channels,
            timestamps_ms=store.timestamps[:count].copy(),
            values={ch: store.values[row, :count].copy() for row, ch in enumerate(channels)},
            addresses=store.addresses[:count].copy(),
        )

    def load_session(self, session: RecordingSession) -> None:
        """Replace the buffer contents with ``session`` (recording stays off)."""
        channels = normalize_channels(session.channels)
        count = session.frame_count
        capacity = max(_INITIAL_CAPACITY, count)
        timestamps = np.zeros(capacity, dtype=np.int64)
        timestamps[:count] = session.timestamps_ms
        values = np.zeros((len(channels), capacity), dtype=np.uint8)
        for row, ch in enumerate(channels):
            values[row, :count] = session.values[ch]
        addresses = np.zeros((capacity, 3), dtype=np.uint8)
        if session.addresses is not None:
            addresses[:count] = session.addresses
        with self._write_lock:
            self.active = False
            self._channels = channels
            self._index = np.asarray(channels, dtype=np.intp) - 1
            self._data = _Store(timestamps, values, addresses, count)
            self._appended = count
            self._t0 = None
            self._rebuild_preview()
        if count > self.max_frames:
            logger.warning(
                "Loaded recording holds %d frames, above the live cap of %d",
                count,
                self.max_frames,
            )


def _describe_channels(channels: Sequence[int]) -> str:
    if not channels:
        return "none"
    if len(channels) > 8:
        return f"{len(channels)} channels ({channels[0]}..{channels[-1]})"
    return ", ".join(str(ch) for ch in channels)
