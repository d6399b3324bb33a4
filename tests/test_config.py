from __future__ import annotations

from pathlib import Path

import pytest

from dmxscope.config import AppPaths, MonitorConfig, config_from_mapping, load_config, save_config


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg == MonitorConfig()
    assert cfg.history_capacity == 440
    assert cfg.universe_ttl_s == 10.0
    assert cfg.max_record_frames == 200_000
    assert load_config(None) == MonitorConfig()


def test_monitor_block_is_flattened_and_unknown_keys_ignored(tmp_path: Path) -> None:
    path = tmp_path / "dmxscope.yaml"
    path.write_text(
        "monitor:\n"
        "  history_capacity: 100\n"
        "  default_address: 1/2/3\n"
        "  colour: blue\n"
        "port: 6455\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.history_capacity == 100
    assert cfg.default_address == (1, 2, 3)
    assert cfg.port == 6455


def test_values_are_clamped() -> None:
    cfg = config_from_mapping({"history_capacity": 0, "preview_points": 1, "default_address": [200, 20, 20]})
    assert cfg.history_capacity == 1
    assert cfg.preview_points == 2
    assert cfg.default_address == (200 & 0x7F, 20 & 0x0F, 20 & 0x0F)


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dmxscope.yaml"
    original = MonitorConfig(history_window_s=5.0, target_ip="10.0.0.255", default_address=(0, 1, 2))
    save_config(path, original)
    assert load_config(path) == original


def test_app_paths_honour_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DMXSCOPE_DATA_ROOT", str(tmp_path / "data"))
    monkeypatch.setenv("DMXSCOPE_CONFIG", str(tmp_path / "cfg.yaml"))
    paths = AppPaths()
    assert paths.recordings == tmp_path / "data" / "recordings"
    assert paths.config_file == tmp_path / "cfg.yaml"
    paths.ensure()
    assert paths.recordings.is_dir()
