from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import List

import numpy as np
import pytest

from dmxscope.core.models import Frame, RecordingSession, UniverseKey
from dmxscope.core.playback import PlaybackEngine, PlaybackState, PlayResult


class CollectingSink:
    def __init__(self) -> None:
        self.frames: List[Frame] = []
        self.times: List[float] = []

    def __call__(self, frame: Frame) -> None:
        self.frames.append(frame)
        self.times.append(time.monotonic())


def _session(timestamps, addresses=None) -> RecordingSession:
    count = len(timestamps)
    return RecordingSession(
        channels=(1,),
        timestamps_ms=np.asarray(timestamps),
        values={1: np.arange(count) % 256},
        addresses=addresses,
    )


def test_frames_are_replayed_in_order_with_timing() -> None:
    sink = CollectingSink()
    engine = PlaybackEngine(sink)

    assert engine.play(_session([0, 50, 100, 150, 200])) is PlayResult.STARTED
    assert engine.wait(timeout=3.0)

    assert [int(f.values[0]) for f in sink.frames] == [0, 1, 2, 3, 4]
    assert sink.times[-1] - sink.times[0] >= 0.18
    assert engine.frames_sent == 5
    assert engine.state is PlaybackState.IDLE
    assert engine.last_error is None


def test_second_play_is_a_conflict_and_stop_is_idempotent() -> None:
    sink = CollectingSink()
    engine = PlaybackEngine(sink)
    long_take = _session([0, 5000])

    assert engine.play(long_take) is PlayResult.STARTED
    assert engine.play(_session([0])) is PlayResult.CONFLICT
    assert engine.is_playing

    deadline = time.monotonic() + 2.0
    while engine.frames_sent == 0 and time.monotonic() < deadline:
        time.sleep(0.01)

    engine.stop()
    engine.stop()
    assert engine.wait(timeout=2.0)
    assert engine.frames_sent == 1
    assert not engine.is_playing

    engine.stop()  # idle: no-op
    assert engine.state is PlaybackState.IDLE


def test_load_failure_is_reported_not_raised(tmp_path: Path) -> None:
    engine = PlaybackEngine(CollectingSink())

    assert engine.play(tmp_path / "missing.jsonl") is PlayResult.LOAD_FAILED
    assert isinstance(engine.last_error, OSError)
    assert engine.state is PlaybackState.IDLE

    bad = tmp_path / "bad.jsonl"
    bad.write_text('{"format":"something-else","version":1}\n', encoding="utf-8")
    assert engine.play(bad) is PlayResult.LOAD_FAILED
    assert engine.state is PlaybackState.IDLE


def test_recorded_addresses_are_preserved() -> None:
    sink = CollectingSink()
    engine = PlaybackEngine(sink, default_address=UniverseKey(9, 9, 9))
    session = _session([0, 1], addresses=np.array([[1, 2, 3], [0, 0, 4]]))

    engine.play(session)
    engine.wait(timeout=2.0)

    assert [f.key for f in sink.frames] == [UniverseKey(1, 2, 3), UniverseKey(0, 0, 4)]


def test_default_address_without_recorded_addresses() -> None:
    sink = CollectingSink()
    engine = PlaybackEngine(sink, default_address=UniverseKey(0, 1, 2))
    engine.play(_session([0, 1]))
    engine.wait(timeout=2.0)
    assert {f.key for f in sink.frames} == {UniverseKey(0, 1, 2)}


def test_sink_error_aborts_playback() -> None:
    finished = []
    done = threading.Event()

    def broken_sink(frame: Frame) -> None:
        raise RuntimeError("network down")

    engine = PlaybackEngine(broken_sink)
    engine.add_finished_listener(lambda completed: (finished.append(completed), done.set()))

    assert engine.play(_session([0, 10, 20])) is PlayResult.STARTED
    assert done.wait(timeout=2.0)
    engine.wait(timeout=1.0)

    assert finished == [False]
    assert isinstance(engine.last_error, RuntimeError)
    assert engine.frames_sent == 0
    assert engine.state is PlaybackState.IDLE


def test_finished_listener_reports_completion() -> None:
    finished = []
    engine = PlaybackEngine(CollectingSink())
    engine.add_finished_listener(finished.append)
    engine.play(_session([0, 5]))
    engine.wait(timeout=2.0)
    assert finished == [True]


def test_play_without_sink_is_an_error() -> None:
    with pytest.raises(ValueError):
        PlaybackEngine().play(_session([0]))


def test_stop_while_loading_cancels_the_playback(tmp_path: Path) -> None:
    sink = CollectingSink()
    finished = []
    holder = {}

    def loader(path: Path) -> RecordingSession:
        holder["engine"].stop()
        return _session([0, 10, 20])

    engine = PlaybackEngine(sink, loader=loader)
    holder["engine"] = engine
    engine.add_finished_listener(finished.append)

    assert engine.play(tmp_path / "show.jsonl") is PlayResult.STARTED
    assert engine.wait(timeout=2.0)

    assert sink.frames == []
    assert engine.frames_sent == 0
    assert finished == [False]
