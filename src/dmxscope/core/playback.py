"""
Replay of recorded sessions to a frame sink with the original timing.

Playback is best-effort: a background thread waits until each frame's
offset from the start and hands it to the sink. Waiting goes through
``Event.wait`` so :meth:`PlaybackEngine.stop` takes effect within the
current inter-frame gap. Only one playback may run at a time; a second
:meth:`PlaybackEngine.play` is answered with :attr:`PlayResult.CONFLICT`.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..errors import RecordingFormatError
from .models import Frame, RecordingSession, UniverseKey

logger = logging.getLogger(__name__)

FrameSink = Callable[[Frame], None]
PlaybackSource = Union[str, Path, RecordingSession]
FinishedListener = Callable[[bool], None]


class PlaybackState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"


class PlayResult(enum.Enum):
    STARTED = "started"
    CONFLICT = "conflict"
    LOAD_FAILED = "load_failed"


def _default_loader(path: Path) -> RecordingSession:
    from ..dataio.recording_io import load_recording

    return load_recording(path)


class PlaybackEngine:
    """Single-active-playback scheduler."""

    def __init__(
        self,
        sink: Optional[FrameSink] = None,
        *,
        default_address: UniverseKey = UniverseKey(0, 0, 0),
        clock: Callable[[], float] = time.monotonic,
        loader: Callable[[Path], RecordingSession] = _default_loader,
    ) -> None:
        self._sink = sink
        self.default_address = UniverseKey(*default_address)
        self._clock = clock
        self._loader = loader
        self._lock = threading.Lock()
        self._state = PlaybackState.IDLE
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._listeners: List[FinishedListener] = []
        self.frames_sent = 0
        self.last_error: Optional[BaseException] = None

    # ------------------------------------------------------------------ state
    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is not PlaybackState.IDLE

    def set_sink(self, sink: Optional[FrameSink]) -> None:
        self._sink = sink

    def add_finished_listener(self, listener: FinishedListener) -> None:
        """``listener(completed)`` runs on the playback thread when it ends."""
        self._listeners.append(listener)

    # ---------------------------------------------------------------- control
    def play(self, source: PlaybackSource, sink: Optional[FrameSink] = None) -> PlayResult:
        """
        Load ``source`` (a path or a session) and start replaying it.

        Returns :attr:`PlayResult.CONFLICT` without touching the running
        playback when one is active, and :attr:`PlayResult.LOAD_FAILED` when
        the file cannot be read or parsed (see :attr:`last_error`).
        """
        target = sink or self._sink
        if target is None:
            raise ValueError("no frame sink configured for playback")

        with self._lock:
            if self._state is not PlaybackState.IDLE:
                logger.info("Playback request rejected: already %s", self._state.value)
                return PlayResult.CONFLICT
            self._state = PlaybackState.LOADING
            self._stop_event.clear()
            self.last_error = None

        if isinstance(source, RecordingSession):
            session = source
            label = "in-memory recording"
        else:
            label = str(source)
            try:
                session = self._loader(Path(source))
            except (OSError, RecordingFormatError) as exc:
                self.last_error = exc
                self._state = PlaybackState.IDLE
                logger.warning("Playback of %s failed to load: %s", label, exc)
                return PlayResult.LOAD_FAILED

        with self._lock:
            self.frames_sent = 0
            self._state = PlaybackState.PLAYING
            self._thread = threading.Thread(
                target=self._run,
                args=(session, target),
                name="DmxScopePlayback",
                daemon=True,
            )
            self._thread.start()
        logger.info(
            "Playing %s: %d frame(s) over %d ms",
            label,
            session.frame_count,
            session.duration_ms,
        )
        return PlayResult.STARTED

    def stop(self) -> None:
        """Ask the running playback to end after the current frame."""
        if self._state is PlaybackState.IDLE:
            return
        self._stop_event.set()

    cancel = stop

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the playback thread; returns ``True`` once playback is idle."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return self._state is PlaybackState.IDLE

    # ------------------------------------------------------------------- loop
    def _run(self, session: RecordingSession, sink: FrameSink) -> None:
        completed = False
        try:
            completed = self._replay(session, sink)
        except Exception as exc:
            self.last_error = exc
            logger.exception("Playback aborted by sink error")
        finally:
            with self._lock:
                self._state = PlaybackState.IDLE
            logger.info(
                "Playback %s after %d frame(s)",
                "finished" if completed else "stopped",
                self.frames_sent,
            )
            for listener in list(self._listeners):
                try:
                    listener(completed)
                except Exception:
                    logger.exception("Playback finished listener failed")

    def _replay(self, session: RecordingSession, sink: FrameSink) -> bool:
        if session.frame_count == 0:
            return True
        timestamps = session.timestamps_ms
        t0 = int(timestamps[0])
        started = self._clock()
        for t_ms, address, values in session.iter_frames():
            due = started + (t_ms - t0) / 1000.0
            remaining = due - self._clock()
            if remaining > 0 and self._stop_event.wait(remaining):
                return False
            if self._stop_event.is_set():
                return False
            key = address or self.default_address
            sink(Frame(key.net, key.subnet, key.universe, values, self._clock()))
            self.frames_sent += 1
        return True
