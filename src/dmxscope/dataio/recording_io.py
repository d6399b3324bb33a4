"""Saving and loading recordings in either file format."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..core.models import RecordingSession, UniverseKey
from ..errors import RecordingFormatError
from . import jsonl_codec, wav_codec

logger = logging.getLogger(__name__)

FORMAT_TEXT = "jsonl"
FORMAT_BINARY = "wav"

_FORMAT_ALIASES = {
    "jsonl": FORMAT_TEXT,
    "json": FORMAT_TEXT,
    "text": FORMAT_TEXT,
    "wav": FORMAT_BINARY,
    "wave": FORMAT_BINARY,
    "binary": FORMAT_BINARY,
}
_SUFFIX_FORMATS = {
    ".jsonl": FORMAT_TEXT,
    ".json": FORMAT_TEXT,
    ".wav": FORMAT_BINARY,
}


def resolve_format(path: str | Path, fmt: Optional[str] = None) -> str:
    """Map an explicit format name, or else the file suffix, to a format."""
    if fmt:
        key = str(fmt).strip().lower()
        if key not in _FORMAT_ALIASES:
            raise ValueError(f"Unknown recording format {fmt!r}")
        return _FORMAT_ALIASES[key]
    return _SUFFIX_FORMATS.get(Path(path).suffix.lower(), FORMAT_TEXT)


def sniff_format(path: str | Path) -> str:
    """Detect the format from the file content, falling back to the suffix."""
    with Path(path).open("rb") as fh:
        head = fh.read(12)
    if len(head) >= 12 and head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return FORMAT_BINARY
    if head.lstrip()[:1] == b"{":
        return FORMAT_TEXT
    return resolve_format(path)


def save_recording(
    path: str | Path,
    session: RecordingSession,
    fmt: Optional[str] = None,
    *,
    default_address: UniverseKey = UniverseKey(0, 0, 0),
) -> Path:
    """
    Write ``session`` to ``path`` atomically.

    The data goes to a temporary file next to ``path`` which then replaces
    it, so a failed save leaves any previous file untouched.
    """
    path = Path(path)
    kind = resolve_format(path, fmt)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        if kind == FORMAT_TEXT:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                jsonl_codec.encode(session, fh, default_address)
                fh.flush()
                os.fsync(fh.fileno())
        else:
            with os.fdopen(fd, "wb") as fh:
                wav_codec.encode(session, fh)
                fh.flush()
                os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    logger.info("Saved %d frame(s) to %s (%s)", session.frame_count, path, kind)
    return path


def load_recording(path: str | Path) -> RecordingSession:
    """
    Load a recording, detecting its format.

    Raises :class:`OSError` when the file cannot be read and
    :class:`RecordingFormatError` when its content is invalid.
    """
    path = Path(path)
    kind = sniff_format(path)
    if kind == FORMAT_BINARY:
        with path.open("rb") as fh:
            session = wav_codec.decode(fh)
    else:
        try:
            with path.open("r", encoding="utf-8") as fh:
                session = jsonl_codec.decode(fh)
        except UnicodeDecodeError as exc:
            raise RecordingFormatError(f"{path} is not UTF-8 text") from exc
    logger.info("Loaded %d frame(s) from %s (%s)", session.frame_count, path, kind)
    return session


@dataclass
class RecordingInfo:
    path: Path
    format: str
    frame_count: int
    duration_ms: int
    channels: Tuple[int, ...]
    sample_rate: Optional[int] = None


def recording_info(path: str | Path) -> RecordingInfo:
    path = Path(path)
    session = load_recording(path)
    kind = sniff_format(path)
    rate = None
    if kind == FORMAT_BINARY:
        with path.open("rb") as fh:
            rate = wav_codec.read_sample_rate(fh)
    return RecordingInfo(
        path=path,
        format=kind,
        frame_count=session.frame_count,
        duration_ms=session.duration_ms,
        channels=session.channels,
        sample_rate=rate,
    )
