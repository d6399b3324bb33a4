"""Recording file input/output.

Utility modules here keep disk-level concerns isolated from the rest of the
application:
- :mod:`jsonl_codec` reads and writes the exact-timing JSON Lines format.
- :mod:`wav_codec` reads and writes the compact fixed-rate WAV format.
- :mod:`recording_io` picks the codec and saves atomically.
- :mod:`file_paths` builds timestamped recording file names.
"""

from .recording_io import (
    FORMAT_BINARY,
    FORMAT_TEXT,
    RecordingInfo,
    load_recording,
    recording_info,
    resolve_format,
    save_recording,
    sniff_format,
)

__all__ = [
    "FORMAT_BINARY",
    "FORMAT_TEXT",
    "RecordingInfo",
    "load_recording",
    "recording_info",
    "resolve_format",
    "save_recording",
    "sniff_format",
]
