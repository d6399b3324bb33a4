from __future__ import annotations

from collections.abc import Iterator
from typing import Tuple

import numpy as np

HistorySample = Tuple[int, float]


def chronological_start(write_index: int, size: int, capacity: int) -> int:
    """
    Physical index of the oldest retained slot.

    ``write_index`` is the slot the next write goes to, so the oldest of
    ``size`` retained samples sits ``size`` slots behind it. Holds at the
    boundaries: an empty buffer starts at ``write_index`` and a full buffer
    starts at ``write_index`` as well (the slot about to be overwritten).
    """
    if capacity <= 0:
        raise ValueError("capacity must be positive")
    if not 0 <= size <= capacity:
        raise ValueError(f"size {size} outside [0, {capacity}]")
    return (write_index - size + capacity) % capacity


class ChronologicalView:
    """
    Restartable, lazily generated ``(value, timestamp)`` sequence.

    Built from a copy of a ring's arrays, so iterating never observes later
    writes and never moves any cursor.
    """

    __slots__ = ("_values", "_timestamps", "_start", "_size")

    def __init__(self, values: np.ndarray, timestamps: np.ndarray, start: int, size: int) -> None:
        self._values = values
        self._timestamps = timestamps
        self._start = start
        self._size = size

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[HistorySample]:
        capacity = self._values.size
        for i in range(self._size):
            idx = (self._start + i) % capacity
            yield int(self._values[idx]), float(self._timestamps[idx])

    def arrays(self) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(values, timestamps)`` in chronological order."""
        if self._size == 0:
            return np.empty(0, dtype=np.uint8), np.empty(0, dtype=np.float64)
        order = (self._start + np.arange(self._size)) % self._values.size
        return self._values[order], self._timestamps[order]


class ChannelHistory:
    """
    Fixed-size ring of ``(value, timestamp)`` samples for one channel.
    Overwrites the oldest entry when full; samples that fall out of the
    rolling window are dropped by shrinking ``size`` only.
    """

    __slots__ = ("_capacity", "_window", "_values", "_timestamps", "write_index", "size")

    def __init__(self, capacity: int, window: float) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = int(capacity)
        self._window = float(window)
        self._values = np.zeros(self._capacity, dtype=np.uint8)
        self._timestamps = np.zeros(self._capacity, dtype=np.float64)
        self.write_index = 0
        self.size = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, value: int, timestamp: float) -> None:
        idx = self.write_index
        self._values[idx] = value
        self._timestamps[idx] = timestamp
        self.write_index = (idx + 1) % self._capacity
        if self.size < self._capacity:
            self.size += 1

        if self._window <= 0:
            return
        cutoff = timestamp - self._window
        while self.size > 0:
            oldest = chronological_start(self.write_index, self.size, self._capacity)
            if self._timestamps[oldest] >= cutoff:
                break
            self.size -= 1

    def clear(self) -> None:
        self.write_index = 0
        self.size = 0

    def __len__(self) -> int:
        return self.size

    def view(self) -> ChronologicalView:
        size = self.size
        write_index = self.write_index
        start = chronological_start(write_index, size, self._capacity)
        return ChronologicalView(self._values.copy(), self._timestamps.copy(), start, size)

    def latest(self) -> HistorySample | None:
        if self.size == 0:
            return None
        idx = (self.write_index - 1) % self._capacity
        return int(self._values[idx]), float(self._timestamps[idx])
