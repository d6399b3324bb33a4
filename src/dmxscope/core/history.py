"""
Short-term per-channel history for the selected universe.

The ingest callback is the only writer; the redraw timer and tooltips read
copies taken at call time, so no lock is held on the hot path.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import numpy as np

from .models import DMX_CHANNELS
from .ringbuffer import ChannelHistory, ChronologicalView, HistorySample

DEFAULT_HISTORY_CAPACITY = 440
DEFAULT_HISTORY_WINDOW_S = 10.0

EMPTY_VIEW = ChronologicalView(np.zeros(1, dtype=np.uint8), np.zeros(1, dtype=np.float64), 0, 0)


class ChannelHistoryStore:
    """Mapping of channel number (1..512) -> :class:`ChannelHistory`."""

    def __init__(
        self,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        window_seconds: float = DEFAULT_HISTORY_WINDOW_S,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = int(capacity)
        self._window = float(window_seconds)
        self._histories: Dict[int, ChannelHistory] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def window_seconds(self) -> float:
        return self._window

    def record(self, values: Sequence[int] | np.ndarray, timestamp: float) -> None:
        """Append one frame's levels (up to 512 channels) at ``timestamp``."""
        levels = np.asarray(values).reshape(-1)[:DMX_CHANNELS]
        ts = float(timestamp)
        histories = self._histories
        for i in range(levels.size):
            channel = i + 1
            history = histories.get(channel)
            if history is None:
                # Created on first sighting so idle channels cost nothing.
                history = ChannelHistory(self._capacity, self._window)
                histories[channel] = history
            history.append(int(levels[i]), ts)

    def read_chronological(self, channel: int) -> ChronologicalView:
        """
        Return the retained samples of ``channel`` oldest first.

        The result can be iterated any number of times and always yields the
        state as of this call.
        """
        history = self._histories.get(int(channel))
        if history is None:
            return EMPTY_VIEW
        return history.view()

    def snapshot(self, channel: int) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(values, timestamps)`` arrays for ``channel``."""
        return self.read_chronological(channel).arrays()

    def latest(self, channel: int) -> Optional[HistorySample]:
        history = self._histories.get(int(channel))
        if history is None:
            return None
        return history.latest()

    def size(self, channel: int) -> int:
        history = self._histories.get(int(channel))
        return 0 if history is None else history.size

    def channels(self) -> List[int]:
        return sorted(self._histories.keys())

    def reset(self, channel: Optional[int] = None) -> None:
        """Clear one channel, or every channel when ``channel`` is ``None``."""
        if channel is None:
            for history in self._histories.values():
                history.clear()
            return
        history = self._histories.get(int(channel))
        if history is not None:
            history.clear()
