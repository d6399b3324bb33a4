"""
JSON Lines recording format.

Line 0 is a header object, every following line one frame::

    {"format":"artnet-jsonl","version":1,"recorded_channels":[1,2,5]}
    {"t_ms":0,"net":0,"subnet":0,"universe":1,"length":512,"values":[...512 ints]}

Frames are always written 512 wide with unrecorded channels at zero, and
``t_ms`` is relative to the first frame. This format keeps the exact
timestamps.

Decoding is fail-fast: the first malformed line raises
:class:`~dmxscope.errors.RecordingFormatError` and nothing is returned.
Files whose header carries a ``channels`` list (written by older players)
hold compact frames where ``values[i]`` belongs to ``channels[i]``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import IO, Any, List, Optional, Sequence, Tuple

import numpy as np

from ..core.models import DMX_CHANNELS, DMX_MAX_VALUE, RecordingSession, UniverseKey
from ..errors import RecordingFormatError

logger = logging.getLogger(__name__)

FORMAT_NAME = "artnet-jsonl"
FORMAT_VERSION = 1
SUPPORTED_VERSIONS = frozenset({1})

_SEPARATORS = (",", ":")


def encode_header(session: RecordingSession) -> str:
    header = {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "recorded_channels": list(session.channels),
    }
    return json.dumps(header, separators=_SEPARATORS)


def iter_encoded_lines(
    session: RecordingSession,
    default_address: UniverseKey = UniverseKey(0, 0, 0),
) -> Iterable[str]:
    """Yield the header and one JSON line per frame (no trailing newlines)."""
    yield encode_header(session)
    if session.frame_count == 0:
        return
    dense = session.dense()
    t0 = int(session.timestamps_ms[0])
    for i in range(session.frame_count):
        address = session.address_at(i) or default_address
        line = {
            "t_ms": int(session.timestamps_ms[i]) - t0,
            "net": int(address.net),
            "subnet": int(address.subnet),
            "universe": int(address.universe),
            "length": DMX_CHANNELS,
            "values": dense[i].tolist(),
        }
        yield json.dumps(line, separators=_SEPARATORS)


def encode(
    session: RecordingSession,
    fp: IO[str],
    default_address: UniverseKey = UniverseKey(0, 0, 0),
) -> int:
    """Write ``session`` to the text stream ``fp``; return the frame count."""
    for line in iter_encoded_lines(session, default_address):
        fp.write(line)
        fp.write("\n")
    return session.frame_count


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _int_field(record: Mapping[str, Any], name: str, lineno: int, *, lo: int, hi: int) -> int:
    if name not in record:
        raise RecordingFormatError(f"missing field {name!r}", line=lineno)
    value = record[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise RecordingFormatError(f"field {name!r} must be an integer, got {value!r}", line=lineno)
    if not lo <= value <= hi:
        raise RecordingFormatError(f"field {name!r}={value} outside [{lo}, {hi}]", line=lineno)
    return value


def _parse_levels(raw: Any, limit: int, lineno: int) -> List[int]:
    if not isinstance(raw, list):
        raise RecordingFormatError("field 'values' must be a list", line=lineno)
    if len(raw) > limit:
        raise RecordingFormatError(
            f"{len(raw)} values where at most {limit} are allowed", line=lineno
        )
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= DMX_MAX_VALUE:
            raise RecordingFormatError(f"invalid channel value {value!r}", line=lineno)
    return raw


def _parse_channel_list(raw: Any, name: str) -> Tuple[int, ...]:
    if not isinstance(raw, list):
        raise RecordingFormatError(f"header {name!r} must be a list", line=1)
    out = []
    for ch in raw:
        if isinstance(ch, bool) or not isinstance(ch, int) or not 1 <= ch <= DMX_CHANNELS:
            raise RecordingFormatError(f"header {name!r} has invalid channel {ch!r}", line=1)
        out.append(ch)
    return tuple(out)


def parse_header(line: str) -> Mapping[str, Any]:
    try:
        header = json.loads(line)
    except json.JSONDecodeError as exc:
        raise RecordingFormatError(f"header is not JSON ({exc.msg})", line=1) from exc
    if not isinstance(header, Mapping):
        raise RecordingFormatError("header is not a JSON object", line=1)
    if header.get("format") != FORMAT_NAME:
        raise RecordingFormatError(
            f"unsupported format {header.get('format')!r}, expected {FORMAT_NAME!r}", line=1
        )
    version = header.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise RecordingFormatError(f"unsupported version {version!r}", line=1)
    return header


def decode(lines: Iterable[str]) -> RecordingSession:
    """Parse a JSON Lines recording into a :class:`RecordingSession`."""
    iterator = iter(lines)
    header_line: Optional[str] = None
    for raw in iterator:
        if raw.strip():
            header_line = raw
            break
    if header_line is None:
        raise RecordingFormatError("empty recording file")
    header = parse_header(header_line.strip())

    compact: Optional[Tuple[int, ...]] = None
    if "channels" in header:
        compact = _parse_channel_list(header["channels"], "channels")
    if "recorded_channels" in header:
        recorded = tuple(sorted(set(_parse_channel_list(header["recorded_channels"], "recorded_channels"))))
    elif compact is not None:
        recorded = tuple(sorted(set(compact)))
    else:
        recorded = tuple(range(1, DMX_CHANNELS + 1))
    value_limit = len(compact) if compact is not None else DMX_CHANNELS
    compact_index = None if compact is None else np.asarray(compact, dtype=np.intp) - 1

    timestamps: List[int] = []
    addresses: List[Tuple[int, int, int]] = []
    frames: List[np.ndarray] = []
    last_t: Optional[int] = None

    for offset, raw in enumerate(iterator):
        lineno = offset + 2
        line = raw.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            raise RecordingFormatError(f"not valid JSON ({exc.msg})", line=lineno) from exc
        if not isinstance(record, Mapping):
            raise RecordingFormatError("frame is not a JSON object", line=lineno)

        t_ms = _int_field(record, "t_ms", lineno, lo=0, hi=2**62)
        if last_t is not None and t_ms < last_t:
            raise RecordingFormatError(f"t_ms went backwards ({t_ms} < {last_t})", line=lineno)
        last_t = t_ms
        net = _int_field(record, "net", lineno, lo=0, hi=127)
        subnet = _int_field(record, "subnet", lineno, lo=0, hi=15)
        universe = _int_field(record, "universe", lineno, lo=0, hi=15)
        if "length" in record:
            _int_field(record, "length", lineno, lo=0, hi=DMX_CHANNELS)
        if "values" not in record:
            raise RecordingFormatError("missing field 'values'", line=lineno)
        levels = _parse_levels(record["values"], value_limit, lineno)

        frame = np.zeros(DMX_CHANNELS, dtype=np.uint8)
        if compact_index is None:
            frame[: len(levels)] = levels
        else:
            frame[compact_index[: len(levels)]] = levels
        timestamps.append(t_ms)
        addresses.append((net, subnet, universe))
        frames.append(frame)

    count = len(timestamps)
    dense = np.vstack(frames) if frames else np.zeros((0, DMX_CHANNELS), dtype=np.uint8)
    session = RecordingSession(
        channels=recorded,
        timestamps_ms=np.asarray(timestamps, dtype=np.int64),
        values={ch: dense[:, ch - 1].copy() for ch in recorded},
        addresses=np.asarray(addresses, dtype=np.uint8).reshape(count, 3),
    )
    logger.debug("Decoded %d JSONL frame(s) for %d channel(s)", count, len(recorded))
    return session


def recorded_channels_hint(channels: Sequence[int]) -> str:
    """Short human summary used by ``dmxscope info``."""
    if len(channels) == DMX_CHANNELS:
        return "all 512"
    return ",".join(str(ch) for ch in channels) or "none"
