"""
ArtDMX packet codec and thin UDP adapters.

Only the ArtDMX (OpOutput) packet is handled. Other Art-Net opcodes that show
up on the port (ArtPoll and friends) are rejected by :func:`parse_artdmx` and
dropped by the receiver loop.
"""

from __future__ import annotations

import logging
import socket
import struct
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np

from ..config.runtime import ARTNET_PORT
from ..core.models import DMX_CHANNELS, Frame, UniverseKey, normalize_values
from ..errors import ArtNetPacketError

logger = logging.getLogger(__name__)

ARTNET_ID = b"Art-Net\x00"
OP_OUTPUT = 0x5000
PROTOCOL_VERSION = 14
HEADER_SIZE = 18
MAX_PACKET_SIZE = HEADER_SIZE + DMX_CHANNELS

# id, opcode (LE), protocol version (BE), sequence, physical, SubUni, Net, length (BE)
_HEADER = struct.Struct("<8sH")
_BODY = struct.Struct(">HBBBBH")

PacketCallback = Callable[[int, int, int, bytes, float], None]

_DROP_WARN_EVERY = 1000


@dataclass
class ArtDmxPacket:
    net: int
    subnet: int
    universe: int
    data: bytes
    sequence: int = 0
    physical: int = 0

    @property
    def key(self) -> UniverseKey:
        return UniverseKey(self.net, self.subnet, self.universe)

    @property
    def length(self) -> int:
        return len(self.data)


def compute_dmx_length(values: Sequence[int] | np.ndarray) -> int:
    """
    Length field for a 512-channel frame.

    Trailing zeros are trimmed, the result is at least 2 and even. An all-zero
    frame is sent at full length so receivers see every channel go dark.
    """
    levels = normalize_values(values)
    nonzero = np.flatnonzero(levels)
    if nonzero.size == 0:
        return DMX_CHANNELS
    length = max(2, int(nonzero[-1]) + 1)
    if length % 2:
        length += 1
    return min(length, DMX_CHANNELS)


def encode_artdmx(
    key: UniverseKey,
    values: Sequence[int] | np.ndarray,
    sequence: int = 0,
    physical: int = 0,
) -> bytes:
    net, subnet, universe = key
    levels = normalize_values(values)
    length = compute_dmx_length(levels)
    header = _HEADER.pack(ARTNET_ID, OP_OUTPUT) + _BODY.pack(
        PROTOCOL_VERSION,
        sequence & 0xFF,
        physical & 0xFF,
        ((subnet & 0x0F) << 4) | (universe & 0x0F),
        net & 0x7F,
        length,
    )
    return header + levels[:length].tobytes()


def parse_artdmx(packet: bytes) -> ArtDmxPacket:
    """Decode one ArtDMX datagram; raises :class:`ArtNetPacketError` otherwise."""
    if len(packet) < HEADER_SIZE:
        raise ArtNetPacketError(f"packet too short ({len(packet)} bytes)")
    ident, opcode = _HEADER.unpack_from(packet, 0)
    if ident != ARTNET_ID:
        raise ArtNetPacketError("not an Art-Net packet")
    if opcode != OP_OUTPUT:
        raise ArtNetPacketError(f"unsupported opcode 0x{opcode:04x}")
    _version, sequence, physical, subuni, net, length = _BODY.unpack_from(packet, _HEADER.size)
    if length > DMX_CHANNELS:
        raise ArtNetPacketError(f"length {length} exceeds {DMX_CHANNELS} channels")
    if len(packet) < HEADER_SIZE + length:
        raise ArtNetPacketError(
            f"length mismatch: header says {length}, payload has {len(packet) - HEADER_SIZE}"
        )
    return ArtDmxPacket(
        net=net & 0x7F,
        subnet=(subuni >> 4) & 0x0F,
        universe=subuni & 0x0F,
        data=bytes(packet[HEADER_SIZE : HEADER_SIZE + length]),
        sequence=sequence,
        physical=physical,
    )


# --------------------------------------------------------------------- receive
@dataclass
class ReceiverStats:
    packets: int = 0
    dropped: int = 0


def open_receiver_socket(
    bind_ip: str = "0.0.0.0",
    port: int = ARTNET_PORT,
    *,
    timeout: float = 0.25,
) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    if hasattr(socket, "SO_REUSEPORT"):
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except OSError:
            logger.debug("SO_REUSEPORT not supported; continuing without it")
    sock.bind((bind_ip, int(port)))
    sock.settimeout(timeout)
    return sock


def receiver_loop(
    sock,
    on_packet: PacketCallback,
    *,
    stop_event: Optional[threading.Event] = None,
    stats: Optional[ReceiverStats] = None,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Read datagrams from ``sock`` and hand ArtDMX payloads to ``on_packet``.

    Runs until ``stop_event`` is set or the socket is closed. Rejected packets
    are counted and dropped; a failing callback is logged and the loop goes on.
    """
    stats = stats if stats is not None else ReceiverStats()
    while stop_event is None or not stop_event.is_set():
        try:
            datagram, _addr = sock.recvfrom(MAX_PACKET_SIZE + 64)
        except socket.timeout:
            continue
        except OSError:
            if stop_event is not None and stop_event.is_set():
                break
            raise
        if not datagram:
            break

        try:
            packet = parse_artdmx(datagram)
        except ArtNetPacketError as exc:
            stats.dropped += 1
            logger.debug("Dropping datagram: %s", exc)
            if stats.dropped % _DROP_WARN_EVERY == 0:
                logger.warning("Dropped %d non-ArtDMX datagram(s) so far", stats.dropped)
            continue

        stats.packets += 1
        try:
            on_packet(packet.net, packet.subnet, packet.universe, packet.data, clock())
        except Exception:
            logger.exception("Frame callback failed for universe %s", packet.key)


@dataclass
class ReceiverHandle:
    thread: threading.Thread
    stop_event: threading.Event
    sock: socket.socket
    stats: ReceiverStats = field(default_factory=ReceiverStats)

    def stop(self, *, join: bool = False, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if join:
            self.thread.join(timeout)
        self.sock.close()

    def is_alive(self) -> bool:
        return self.thread.is_alive()


def start_receiver(
    on_packet: PacketCallback,
    *,
    bind_ip: str = "0.0.0.0",
    port: int = ARTNET_PORT,
    sock: Optional[socket.socket] = None,
    thread_name: Optional[str] = None,
) -> ReceiverHandle:
    """
    Start a background thread that feeds ``on_packet`` from UDP.

    ``on_packet`` has the signature of :meth:`MonitorSession.on_packet`.
    """
    sock = sock or open_receiver_socket(bind_ip, port)
    stop_event = threading.Event()
    stats = ReceiverStats()

    def _target() -> None:
        try:
            receiver_loop(sock, on_packet, stop_event=stop_event, stats=stats)
        except OSError:
            logger.exception("Art-Net receiver stopped on socket error")

    thread = threading.Thread(
        target=_target,
        name=thread_name or "DmxScopeArtNetReceiver",
        daemon=True,
    )
    thread.start()
    logger.info("Listening for Art-Net on %s:%d", bind_ip, port)
    return ReceiverHandle(thread=thread, stop_event=stop_event, sock=sock, stats=stats)


# ------------------------------------------------------------------------ send
class ArtNetSender:
    """Frame sink that broadcasts each frame as an ArtDMX packet."""

    def __init__(
        self,
        target_ip: str = "255.255.255.255",
        port: int = ARTNET_PORT,
        *,
        sock: Optional[socket.socket] = None,
    ) -> None:
        self.target = (target_ip, int(port))
        self._owns_socket = sock is None
        if sock is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        self._sock = sock
        self._sequence = 0
        self.frames_sent = 0

    def next_sequence(self) -> int:
        # 0 means "sequencing disabled" to receivers; the counter wraps through it.
        self._sequence = (self._sequence + 1) & 0xFF
        return self._sequence

    def __call__(self, frame: Frame) -> None:
        packet = encode_artdmx(frame.key, frame.values, self.next_sequence())
        self._sock.sendto(packet, self.target)
        self.frames_sent += 1

    send = __call__

    def close(self) -> None:
        if self._owns_socket:
            self._sock.close()

    def __enter__(self) -> "ArtNetSender":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
