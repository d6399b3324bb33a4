"""
Fixed-rate binary recording format (8-bit PCM WAV).

Each DMX channel is one WAV channel and each frame one sample, so every
channel's levels form an equal-length byte sequence. The WAV frame rate
carries the sample rate::

    sample_rate = max(1, round(frame_count * 1000 / duration_ms))

There are no per-frame timestamps. Decoding rebuilds evenly spaced
timestamps from the sample rate, so the original jitter is lost; frame
count and per-channel order survive. The rate is a whole number of Hz, so
the decoded duration, ``(frame_count - 1) * 1000 / sample_rate``, only
approximates the original: at high rates the error stays within a sample
interval, but a short recording at a few Hz can drift by more than one
interval (10 frames over 1040 ms are written at 10 Hz and decode to 900 ms).
Use the JSON Lines format when exact timing matters.
"""

from __future__ import annotations

import logging
import wave
from typing import IO, Union

import numpy as np

from ..core.models import DMX_CHANNELS, RecordingSession
from ..errors import RecordingFormatError

logger = logging.getLogger(__name__)

ZERO_DURATION_RATE = 1000
SAMPLE_WIDTH = 1

Target = Union[str, IO[bytes]]


def compute_sample_rate(frame_count: int, duration_ms: int) -> int:
    """
    Frames per second for a recording of ``frame_count`` frames.

    A recording without measurable duration (a single frame, or every frame
    in the same millisecond) is written at millisecond spacing.
    """
    if frame_count <= 0:
        return 1
    if duration_ms <= 0:
        return ZERO_DURATION_RATE
    return max(1, int(round(frame_count * 1000.0 / float(duration_ms))))


def reconstruct_timestamps(frame_count: int, sample_rate: int) -> np.ndarray:
    """Evenly spaced millisecond offsets for ``frame_count`` samples."""
    if sample_rate <= 0:
        raise ValueError("sample_rate must be positive")
    return np.rint(np.arange(frame_count, dtype=np.float64) * (1000.0 / sample_rate)).astype(np.int64)


def encode(session: RecordingSession, target: Target) -> int:
    """Write ``session`` as a 512-channel WAV; return the sample rate used."""
    rate = compute_sample_rate(session.frame_count, session.duration_ms)
    dense = session.dense()
    with wave.open(target, "wb") as wf:
        wf.setnchannels(DMX_CHANNELS)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(rate)
        # Row-major (frames, channels) is exactly WAV's interleaved layout.
        wf.writeframes(np.ascontiguousarray(dense).tobytes())
    logger.debug("Encoded %d frame(s) as WAV at %d Hz", session.frame_count, rate)
    return rate


def read_sample_rate(source: Target) -> int:
    try:
        with wave.open(source, "rb") as wf:
            return int(wf.getframerate())
    except (wave.Error, EOFError) as exc:
        raise RecordingFormatError(f"not a readable WAV recording: {exc}") from exc


def decode(source: Target) -> RecordingSession:
    """Read a WAV recording into a :class:`RecordingSession` of all its channels."""
    try:
        with wave.open(source, "rb") as wf:
            n_channels = wf.getnchannels()
            width = wf.getsampwidth()
            rate = wf.getframerate()
            n_frames = wf.getnframes()
            payload = wf.readframes(n_frames)
    except (wave.Error, EOFError) as exc:
        raise RecordingFormatError(f"not a readable WAV recording: {exc}") from exc

    if width != SAMPLE_WIDTH:
        raise RecordingFormatError(f"expected 8-bit samples, got {width * 8}-bit")
    if not 1 <= n_channels <= DMX_CHANNELS:
        raise RecordingFormatError(f"unsupported channel count {n_channels}")
    if rate <= 0:
        raise RecordingFormatError(f"invalid sample rate {rate}")
    expected = n_frames * n_channels
    if len(payload) != expected:
        raise RecordingFormatError(
            f"truncated body: {len(payload)} of {expected} bytes present"
        )

    samples = np.frombuffer(payload, dtype=np.uint8).reshape(n_frames, n_channels)
    channels = tuple(range(1, n_channels + 1))
    session = RecordingSession(
        channels=channels,
        timestamps_ms=reconstruct_timestamps(n_frames, rate),
        values={ch: samples[:, ch - 1].copy() for ch in channels},
    )
    logger.debug("Decoded %d WAV frame(s) at %d Hz", n_frames, rate)
    return session
