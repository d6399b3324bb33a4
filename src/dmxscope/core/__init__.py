"""Live state: channel histories, universe discovery, and recording buffers.

:mod:`dmxscope.core.playback` and :mod:`dmxscope.core.monitor` sit on top of
these and of :mod:`dmxscope.dataio`; import them directly.
"""

from .history import ChannelHistoryStore
from .models import (
    DMX_CHANNELS,
    Frame,
    PreviewPoint,
    PreviewResponse,
    RecordingSession,
    UniverseKey,
    normalize_values,
)
from .recording import RecordingBuffer, normalize_channels
from .registry import SweepTask, UniverseRecord, UniverseRegistry
from .ringbuffer import ChannelHistory, ChronologicalView, chronological_start

__all__ = [
    "DMX_CHANNELS",
    "ChannelHistory",
    "ChannelHistoryStore",
    "ChronologicalView",
    "Frame",
    "PreviewPoint",
    "PreviewResponse",
    "RecordingBuffer",
    "RecordingSession",
    "SweepTask",
    "UniverseKey",
    "UniverseRecord",
    "UniverseRegistry",
    "chronological_start",
    "normalize_channels",
    "normalize_values",
]
