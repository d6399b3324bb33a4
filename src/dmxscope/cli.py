"""Command line entry point: ``dmxscope monitor|record|play|info``."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Sequence

from .config import AppPaths, MonitorConfig, load_config
from .core.models import DMX_CHANNELS, UniverseKey
from .core.monitor import MonitorSession
from .core.playback import PlaybackEngine, PlayResult
from .dataio import recording_info
from .dataio.file_paths import recording_path
from .errors import DmxScopeError
from .net.artnet import ArtNetSender, start_receiver

logger = logging.getLogger(__name__)


def parse_channel_spec(text: str) -> List[int]:
    """Parse ``"1-8,12,20-22"`` into a list of channel numbers."""
    channels: List[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            lo_text, hi_text = part.split("-", 1)
            lo, hi = int(lo_text), int(hi_text)
            if lo > hi:
                lo, hi = hi, lo
            channels.extend(range(lo, hi + 1))
        else:
            channels.append(int(part))
    bad = [ch for ch in channels if not 1 <= ch <= DMX_CHANNELS]
    if bad:
        raise argparse.ArgumentTypeError(f"channels out of range 1..{DMX_CHANNELS}: {bad}")
    return channels


def _universe_arg(text: str) -> UniverseKey:
    try:
        return UniverseKey.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dmxscope",
        description="Monitor, record, and replay Art-Net DMX universes",
    )
    parser.add_argument("--config", type=Path, help="YAML file with MonitorConfig overrides")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    mon = sub.add_parser("monitor", help="Print discovered universes and live levels")
    mon.add_argument("--bind-ip", help="Address to listen on")
    mon.add_argument("--port", type=int, help="UDP port to listen on")
    mon.add_argument("--universe", type=_universe_arg, help="Follow only this net/subnet/universe")
    mon.add_argument("--channels", type=parse_channel_spec, default=[1, 2, 3, 4], help="Channels to print")
    mon.add_argument("--interval", type=float, default=1.0, help="Seconds between status lines")
    mon.add_argument("--duration", type=float, help="Stop after this many seconds")

    rec = sub.add_parser("record", help="Record channels from the wire to a file")
    rec.add_argument("--bind-ip", help="Address to listen on")
    rec.add_argument("--port", type=int, help="UDP port to listen on")
    rec.add_argument("--universe", type=_universe_arg, help="Record only this net/subnet/universe")
    rec.add_argument("--channels", type=parse_channel_spec, default=None, help="Channels to record (default: all)")
    rec.add_argument("--duration", type=float, help="Stop after this many seconds (default: Ctrl-C)")
    rec.add_argument("-o", "--output", type=Path, help="Output file (default: timestamped name under data/recordings)")
    rec.add_argument("--format", choices=["jsonl", "wav"], help="File format (default: from suffix)")

    play = sub.add_parser("play", help="Send a recording as Art-Net")
    play.add_argument("path", type=Path)
    play.add_argument("--target-ip", help="Destination address (default: broadcast)")
    play.add_argument("--target-port", type=int, help="Destination UDP port")
    play.add_argument("--universe", type=_universe_arg, help="Address for frames recorded without one")

    info = sub.add_parser("info", help="Summarize a recording file")
    info.add_argument("path", type=Path)
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_config(args: argparse.Namespace) -> MonitorConfig:
    path = args.config if args.config is not None else AppPaths().config_file
    cfg = load_config(path)
    for name in ("bind_ip", "port", "target_ip", "target_port"):
        value = getattr(args, name, None)
        if value is not None:
            setattr(cfg, name, value)
    universe = getattr(args, "universe", None)
    if args.command == "play" and universe is not None:
        cfg.default_address = tuple(universe)
    return cfg.sanitized()


def _run_until(deadline: float | None, tick: float, on_tick=None) -> None:
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(tick if deadline is None else max(0.0, min(tick, deadline - time.monotonic())))
            if on_tick is not None:
                on_tick()
    except KeyboardInterrupt:
        print()


def _cmd_monitor(args: argparse.Namespace, cfg: MonitorConfig) -> int:
    session = MonitorSession(cfg)
    receiver = start_receiver(session.on_packet, bind_ip=cfg.bind_ip, port=cfg.port)
    if args.universe is not None:
        session.set_event_filter(args.universe)

    def status() -> None:
        universes = ", ".join(str(k) for k in session.discovered()) or "none"
        selected = session.selected_universe
        levels = []
        for ch in args.channels:
            latest = session.latest_level(ch)
            levels.append(f"{ch}={latest[0] if latest else '-'}")
        print(f"universes: {universes} | following {selected or 'any'} | {' '.join(levels)}")

    deadline = None if args.duration is None else time.monotonic() + args.duration
    try:
        _run_until(deadline, max(0.05, args.interval), status)
    finally:
        receiver.stop(join=True, timeout=1.0)
        session.close()
    return 0


def _cmd_record(args: argparse.Namespace, cfg: MonitorConfig) -> int:
    session = MonitorSession(cfg)
    if args.universe is not None:
        session.set_event_filter(args.universe)
    channels = args.channels if args.channels is not None else range(1, DMX_CHANNELS + 1)
    output = args.output or recording_path("recording", args.format or "jsonl")

    receiver = start_receiver(session.on_packet, bind_ip=cfg.bind_ip, port=cfg.port)
    session.start_recording(channels)
    print(f"Recording {len(session.recording.channels)} channel(s); Ctrl-C to stop")
    deadline = None if args.duration is None else time.monotonic() + args.duration
    try:
        _run_until(deadline, 0.25)
    finally:
        session.stop_recording()
        receiver.stop(join=True, timeout=1.0)

    frames, duration_ms = session.recording_summary()
    try:
        saved = session.save_recording(output, args.format)
    finally:
        session.close()
    print(f"Saved {frames} frame(s), {duration_ms} ms to {saved}")
    return 0


def _cmd_play(args: argparse.Namespace, cfg: MonitorConfig) -> int:
    with ArtNetSender(cfg.target_ip, cfg.target_port) as sender:
        engine = PlaybackEngine(sender, default_address=UniverseKey(*cfg.default_address))
        result = engine.play(args.path)
        if result is PlayResult.LOAD_FAILED:
            print(f"Could not load {args.path}: {engine.last_error}", file=sys.stderr)
            return 1
        try:
            while not engine.wait(timeout=0.25):
                pass
        except KeyboardInterrupt:
            engine.stop()
            engine.wait(timeout=1.0)
            print()
    if engine.last_error is not None:
        print(f"Playback stopped: {engine.last_error}", file=sys.stderr)
        return 1
    print(f"Sent {engine.frames_sent} frame(s) to {cfg.target_ip}:{cfg.target_port}")
    return 0


def _cmd_info(args: argparse.Namespace, cfg: MonitorConfig) -> int:
    info = recording_info(args.path)
    print(f"file:      {info.path}")
    print(f"format:    {info.format}")
    print(f"frames:    {info.frame_count}")
    print(f"duration:  {info.duration_ms} ms")
    if info.sample_rate is not None:
        print(f"rate:      {info.sample_rate} Hz")
    if len(info.channels) == DMX_CHANNELS:
        print("channels:  all")
    else:
        print(f"channels:  {', '.join(str(ch) for ch in info.channels) or 'none'}")
    return 0


_COMMANDS = {
    "monitor": _cmd_monitor,
    "record": _cmd_record,
    "play": _cmd_play,
    "info": _cmd_info,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        cfg = _resolve_config(args)
        return _COMMANDS[args.command](args, cfg)
    except (OSError, DmxScopeError, ValueError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"dmxscope {args.command}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
