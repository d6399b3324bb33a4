"""Shared dataclasses for frames, universes, previews, and recorded sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

DMX_CHANNELS = 512
DMX_MAX_VALUE = 255


class UniverseKey(NamedTuple):
    """Address of one Art-Net universe."""

    net: int
    subnet: int
    universe: int

    def __str__(self) -> str:
        return f"{self.net}/{self.subnet}/{self.universe}"

    @classmethod
    def parse(cls, text: str) -> "UniverseKey":
        """Parse ``"net/subnet/universe"`` (as produced by ``str(key)``)."""
        parts = str(text).strip().split("/")
        if len(parts) != 3:
            raise ValueError(f"Expected 'net/subnet/universe', got {text!r}")
        net, subnet, universe = (int(p) for p in parts)
        return cls(net, subnet, universe)


def normalize_values(values: Sequence[int] | np.ndarray | bytes | None) -> np.ndarray:
    """
    Return a 512-wide ``uint8`` copy of ``values``.

    Short input is zero-padded, long input truncated and every value clipped
    to ``[0, 255]``. Undersized frames are repaired here, never rejected.
    """
    out = np.zeros(DMX_CHANNELS, dtype=np.uint8)
    if values is None:
        return out
    if isinstance(values, (bytes, bytearray, memoryview)):
        raw = np.frombuffer(bytes(values[:DMX_CHANNELS]), dtype=np.uint8)
    else:
        arr = np.asarray(values)
        if arr.size == 0:
            return out
        arr = arr.reshape(-1)[:DMX_CHANNELS]
        try:
            arr = arr.astype(np.int64)
        except (TypeError, ValueError):
            arr = np.array([_coerce_level(v) for v in arr], dtype=np.int64)
        raw = np.clip(arr, 0, DMX_MAX_VALUE)
    out[: raw.size] = raw
    return out


def _coerce_level(value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


@dataclass
class Frame:
    """One snapshot of a universe's 512 channel levels."""

    net: int
    subnet: int
    universe: int
    values: np.ndarray
    captured_at: Optional[float] = None

    @classmethod
    def from_values(
        cls,
        net: int,
        subnet: int,
        universe: int,
        values: Sequence[int] | np.ndarray | bytes | None,
        captured_at: Optional[float] = None,
    ) -> "Frame":
        stamp = None if captured_at is None else float(captured_at)
        return cls(int(net), int(subnet), int(universe), normalize_values(values), stamp)

    @property
    def key(self) -> UniverseKey:
        return UniverseKey(self.net, self.subnet, self.universe)


@dataclass
class PreviewPoint:
    t_ms: int
    value: int


@dataclass
class PreviewResponse:
    points: List[PreviewPoint]
    frame_count: int
    duration_ms: int


@dataclass
class RecordingSession:
    """
    A recorded (or loaded) run of frames for a subset of channels.

    ``channels`` holds ascending 1-based channel numbers, ``timestamps_ms``
    the per-frame offsets in milliseconds and ``values`` one ``uint8`` array
    per channel, each as long as ``timestamps_ms``. ``addresses`` is an
    optional ``(frame_count, 3)`` array with the universe each frame came from.
    """

    channels: Tuple[int, ...] = ()
    timestamps_ms: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    values: Dict[int, np.ndarray] = field(default_factory=dict)
    addresses: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.channels = tuple(int(ch) for ch in self.channels)
        self.timestamps_ms = np.asarray(self.timestamps_ms, dtype=np.int64).reshape(-1)
        count = self.timestamps_ms.size
        values: Dict[int, np.ndarray] = {}
        for ch in self.channels:
            seq = self.values.get(ch)
            if seq is None:
                seq = np.zeros(count, dtype=np.uint8)
            seq = np.asarray(seq, dtype=np.uint8).reshape(-1)
            if seq.size != count:
                raise ValueError(
                    f"channel {ch} has {seq.size} values for {count} timestamps"
                )
            values[ch] = seq
        self.values = values
        if self.addresses is not None:
            addresses = np.asarray(self.addresses, dtype=np.uint8).reshape(-1, 3)
            if addresses.shape[0] != count:
                raise ValueError(
                    f"{addresses.shape[0]} addresses for {count} timestamps"
                )
            self.addresses = addresses

    @property
    def frame_count(self) -> int:
        return int(self.timestamps_ms.size)

    @property
    def duration_ms(self) -> int:
        if self.timestamps_ms.size == 0:
            return 0
        return int(self.timestamps_ms[-1] - self.timestamps_ms[0])

    def address_at(self, index: int) -> Optional[UniverseKey]:
        if self.addresses is None:
            return None
        net, subnet, universe = (int(v) for v in self.addresses[index])
        return UniverseKey(net, subnet, universe)

    @property
    def last_address(self) -> Optional[UniverseKey]:
        if self.frame_count == 0:
            return None
        return self.address_at(self.frame_count - 1)

    def frame_values(self, index: int) -> np.ndarray:
        """Return a 512-wide frame with unrecorded channels left at zero."""
        out = np.zeros(DMX_CHANNELS, dtype=np.uint8)
        for ch in self.channels:
            out[ch - 1] = self.values[ch][index]
        return out

    def dense(self) -> np.ndarray:
        """Return all frames as a ``(frame_count, 512)`` array."""
        out = np.zeros((self.frame_count, DMX_CHANNELS), dtype=np.uint8)
        for ch in self.channels:
            out[:, ch - 1] = self.values[ch]
        return out

    def iter_frames(self) -> Iterator[Tuple[int, Optional[UniverseKey], np.ndarray]]:
        """Yield ``(t_ms, address, values[512])`` for each frame in order."""
        for i in range(self.frame_count):
            yield int(self.timestamps_ms[i]), self.address_at(i), self.frame_values(i)
