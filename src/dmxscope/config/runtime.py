"""Runtime configuration for the monitor, recorder, and Art-Net adapters."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Tuple

import yaml

ARTNET_PORT = 6454


@dataclass(slots=True)
class MonitorConfig:
    """
    Tuning knobs for history, discovery, recording, and the UDP adapters.

    The defaults match a console sending ~44 frames/s per universe.
    """

    history_capacity: int = 440
    history_window_s: float = 10.0

    universe_ttl_s: float = 10.0
    min_sightings: int = 2
    live_window_s: float = 0.3
    sweep_interval_s: float = 0.25

    max_record_frames: int = 200_000
    preview_points: int = 2_000

    bind_ip: str = "0.0.0.0"
    port: int = ARTNET_PORT
    target_ip: str = "255.255.255.255"
    target_port: int = ARTNET_PORT
    default_address: Tuple[int, int, int] = field(default=(0, 0, 0))

    def sanitized(self) -> MonitorConfig:
        """Return a copy with derived limits applied."""
        net, subnet, universe = _address_triplet(self.default_address)
        return MonitorConfig(
            history_capacity=max(1, int(self.history_capacity)),
            history_window_s=max(0.1, float(self.history_window_s)),
            universe_ttl_s=max(0.1, float(self.universe_ttl_s)),
            min_sightings=max(1, int(self.min_sightings)),
            live_window_s=max(0.01, float(self.live_window_s)),
            sweep_interval_s=max(0.01, float(self.sweep_interval_s)),
            max_record_frames=max(2, int(self.max_record_frames)),
            preview_points=max(2, int(self.preview_points)),
            bind_ip=str(self.bind_ip),
            port=min(65535, max(1, int(self.port))),
            target_ip=str(self.target_ip),
            target_port=min(65535, max(1, int(self.target_port))),
            default_address=(net & 0x7F, subnet & 0x0F, universe & 0x0F),
        )


def _address_triplet(value: Any) -> Tuple[int, int, int]:
    if isinstance(value, str):
        parts = value.split("/")
    else:
        parts = list(value or ())
    if len(parts) != 3:
        raise ValueError(f"default_address must have 3 parts, got {value!r}")
    net, subnet, universe = (int(p) for p in parts)
    return net, subnet, universe


def _recognized_fields() -> set[str]:
    """Return the dataclass field names accepted by :class:`MonitorConfig`."""
    return {f.name for f in fields(MonitorConfig)}


def _normalize_mapping(data: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Flatten a top-level ``monitor`` block into the root mapping."""
    if "monitor" in data and isinstance(data["monitor"], Mapping):
        merged: MutableMapping[str, Any] = {}
        for key, value in data.items():
            if key == "monitor":
                merged.update(value)
            else:
                merged[key] = value
        return merged
    return dict(data)


def config_from_mapping(data: Mapping[str, Any] | None) -> MonitorConfig:
    """Build :class:`MonitorConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return MonitorConfig()
    normalized = _normalize_mapping(data)
    known = _recognized_fields()
    payload = {key: normalized[key] for key in normalized.keys() & known}
    if "default_address" in payload:
        payload["default_address"] = _address_triplet(payload["default_address"])
    return MonitorConfig(**payload).sanitized()


def load_config(path: str | Path | None) -> MonitorConfig:
    """
    Load configuration from ``path``.

    Missing files fall back to default :class:`MonitorConfig`.
    """
    if path is None:
        return MonitorConfig()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return MonitorConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


def save_config(path: str | Path, config: MonitorConfig) -> None:
    """Write ``config`` as YAML under a ``monitor`` block."""
    cfg_path = Path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = {f.name: getattr(config, f.name) for f in fields(MonitorConfig)}
    data["default_address"] = list(data["default_address"])
    with cfg_path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump({"monitor": data}, fh, default_flow_style=False, sort_keys=False)


__all__ = ["ARTNET_PORT", "MonitorConfig", "config_from_mapping", "load_config", "save_config"]
