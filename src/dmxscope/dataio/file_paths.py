"""Helpers for constructing standard recording file paths."""

import re
from datetime import datetime
from pathlib import Path

from ..config.app_config import AppPaths

# Allow only alphanumerics, underscore, dot, and dash.
_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")

_SUFFIXES = {"jsonl": ".jsonl", "wav": ".wav"}


def _sanitize_name(name: str) -> str:
    """
    Sanitize a recording name for use in a file name.

    - Replace disallowed characters with '_'.
    - Strip leading/trailing underscores.
    - Fall back to 'recording' if nothing remains.
    """
    cleaned = _NAME_RE.sub("_", name).strip("_")
    return cleaned or "recording"


def recording_path(name: str, fmt: str = "jsonl", base: Path | None = None) -> Path:
    """
    Build a timestamped file path for a recording.

    Example: "front_truss_20251204_153045.jsonl"
    """
    suffix = _SUFFIXES.get(fmt)
    if suffix is None:
        raise ValueError(f"Unknown recording format {fmt!r}")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    root = base or AppPaths().recordings
    return root / f"{_sanitize_name(name)}_{timestamp}{suffix}"
