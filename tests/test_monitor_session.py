from __future__ import annotations

from pathlib import Path

import pytest

from dmxscope.config import MonitorConfig
from dmxscope.core.models import Frame, UniverseKey
from dmxscope.core.monitor import MonitorSession
from dmxscope.core.playback import PlayResult
from dmxscope.errors import RecordingFormatError

U1 = UniverseKey(0, 0, 1)
U2 = UniverseKey(0, 0, 2)


@pytest.fixture
def session():
    monitor = MonitorSession(MonitorConfig(), start_sweep=False)
    yield monitor
    monitor.close()


def test_discovery_needs_two_packets(session: MonitorSession) -> None:
    session.on_packet(0, 0, 1, [1, 2, 3], now=1.0)
    assert session.discovered() == []

    session.on_packet(0, 0, 1, [4, 5, 6], now=1.02)
    assert session.discovered() == [U1]
    assert session.selected_universe == U1
    assert session.event_filter is None


def test_event_filter_limits_history_but_not_discovery(session: MonitorSession) -> None:
    session.set_event_filter("0/0/1")
    session.on_packet(0, 0, 1, [10], now=1.0)
    session.on_packet(0, 0, 2, [99], now=1.01)
    session.on_packet(0, 0, 2, [98], now=1.02)
    session.on_packet(0, 0, 1, [11], now=1.03)

    assert [v for v, _ in session.read_history(1)] == [10, 11]
    assert set(session.discovered()) == {U1, U2}


def test_changing_filter_resets_history(session: MonitorSession) -> None:
    session.set_event_filter(U1)
    session.on_packet(0, 0, 1, [10], now=1.0)
    session.set_event_filter(U2)
    assert len(session.read_history(1)) == 0

    session.set_event_filter(None)
    session.on_packet(0, 0, 3, [7], now=2.0)
    assert [v for v, _ in session.read_history(1)] == [7]


def test_event_filter_outlives_its_universe(session: MonitorSession) -> None:
    session.set_event_filter(U1)
    session.start_recording([1])
    session.on_packet(0, 0, 1, [10], now=0.0)
    session.on_packet(0, 0, 1, [11], now=0.01)
    session.on_packet(0, 0, 2, [200], now=5.0)
    session.on_packet(0, 0, 2, [201], now=5.01)

    session.registry.sweep(11.0)
    assert session.discovered() == [U2]
    assert session.selected_universe == U2
    assert session.event_filter == U1

    session.on_packet(0, 0, 2, [202], now=11.5)
    session.stop_recording()

    recorded = session.recording.to_session()
    assert recorded.values[1].tolist() == [10, 11]
    assert [v for v, _ in session.read_history(1)] == [202]


def test_cleared_filter_stays_cleared_after_discovery(session: MonitorSession) -> None:
    session.set_event_filter(U1)
    session.set_event_filter(None)
    session.on_packet(0, 0, 2, [1], now=1.0)
    session.on_packet(0, 0, 2, [2], now=1.01)

    assert session.selected_universe == U2
    assert session.event_filter is None


def test_explicit_filter_records_only_its_universe(session: MonitorSession) -> None:
    session.set_event_filter(U1)
    session.start_recording([1])
    session.on_packet(0, 0, 2, [200], now=1.0)
    session.on_packet(0, 0, 1, [10], now=1.01)
    session.on_packet(0, 0, 2, [201], now=1.02)
    session.on_packet(0, 0, 1, [11], now=1.03)
    session.on_packet(0, 0, 2, [202], now=1.04)
    session.stop_recording()

    recorded = session.recording.to_session()
    assert recorded.values[1].tolist() == [10, 11]
    assert [recorded.address_at(i) for i in range(recorded.frame_count)] == [U1, U1]


def test_without_filter_every_universe_is_recorded(session: MonitorSession) -> None:
    session.start_recording([1])
    session.on_packet(0, 0, 1, [10], now=1.0)
    session.on_packet(0, 0, 2, [200], now=1.01)
    session.stop_recording()

    recorded = session.recording.to_session()
    assert recorded.values[1].tolist() == [10, 200]
    assert [recorded.address_at(i) for i in range(recorded.frame_count)] == [U1, U2]


def test_capture_time_zero_is_kept() -> None:
    with MonitorSession(MonitorConfig(), clock=lambda: 99.0, start_sweep=False) as monitor:
        monitor.on_packet(0, 0, 1, [5], now=0.0)
        assert monitor.latest_level(1) == (5, 0.0)

        monitor.ingest(Frame.from_values(0, 0, 1, [6]))
        assert monitor.latest_level(1) == (6, 99.0)


def test_selection_change_off_the_ingest_path_defers_history_reset(session: MonitorSession) -> None:
    session.on_packet(0, 0, 1, [10], now=0.0)
    session.on_packet(0, 0, 1, [11], now=0.01)
    session.on_packet(0, 0, 2, [200], now=5.0)
    session.on_packet(0, 0, 2, [201], now=5.01)
    assert [v for v, _ in session.read_history(1)] == [11]

    # Same call the background sweep makes.
    session.registry.sweep(11.0)
    assert session.selected_universe == U2
    assert session.history.size(1) == 1
    assert len(session.read_history(1)) == 0
    assert session.latest_level(1) is None

    session.on_packet(0, 0, 2, [202], now=11.5)
    assert [v for v, _ in session.read_history(1)] == [202]


def test_record_save_load_and_preview(session: MonitorSession, tmp_path: Path) -> None:
    session.set_event_filter(U1)
    session.start_recording([1, 2])
    for i in range(3):
        session.on_packet(0, 0, 1, [i, 10 + i, 99], now=10.0 + i * 0.02)
    session.stop_recording()
    session.on_packet(0, 0, 1, [50, 50], now=11.0)  # not recorded

    assert session.recording_summary() == (3, 40)
    preview = session.get_preview(2, 10)
    assert [p.value for p in preview.points] == [10, 11, 12]
    assert session.get_preview(3, 10) is None

    path = session.save_recording(tmp_path / "take.jsonl")
    session.clear_recording()
    assert session.recording_summary() == (0, 0)

    loaded = session.load_recording(path)
    assert loaded.channels == (1, 2)
    assert session.recording_summary() == (3, 40)
    assert session.recording.last_address == U1


def test_failed_load_keeps_current_recording(session: MonitorSession, tmp_path: Path) -> None:
    session.start_recording([1])
    session.on_packet(0, 0, 1, [5], now=1.0)
    session.on_packet(0, 0, 1, [6], now=1.1)
    session.stop_recording()

    bad = tmp_path / "bad.jsonl"
    bad.write_text('{"format":"artnet-jsonl","version":1}\n{"t_ms": "soon"}\n', encoding="utf-8")
    with pytest.raises(RecordingFormatError):
        session.load_recording(bad)
    assert session.recording_summary() == (2, 100)


def test_play_recording_to_sink(session: MonitorSession) -> None:
    session.set_record_channels([1])
    session.start_recording()
    session.on_packet(0, 0, 1, [1], now=1.0)
    session.on_packet(0, 0, 1, [2], now=1.01)
    session.stop_recording()

    frames = []
    assert session.play_recording(frames.append) is PlayResult.STARTED
    assert session.playback.wait(timeout=2.0)
    assert [int(f.values[0]) for f in frames] == [1, 2]
    assert {f.key for f in frames} == {U1}


def test_play_file_conflict_and_stop(session: MonitorSession, tmp_path: Path) -> None:
    session.start_recording([1])
    session.on_packet(0, 0, 1, [1], now=1.0)
    session.on_packet(0, 0, 1, [2], now=6.0)
    session.stop_recording()
    path = session.save_recording(tmp_path / "slow.wav")

    frames = []
    assert session.play_file(path, frames.append) is PlayResult.STARTED
    assert session.play_recording(frames.append) is PlayResult.CONFLICT
    session.stop_playback()
    assert session.playback.wait(timeout=2.0)


def test_close_is_idempotent() -> None:
    monitor = MonitorSession()
    monitor.close()
    monitor.close()
