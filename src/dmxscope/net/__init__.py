"""Art-Net (ArtDMX over UDP) packet codec, receiver, and sender."""

from .artnet import (
    ArtDmxPacket,
    ArtNetSender,
    ReceiverHandle,
    compute_dmx_length,
    encode_artdmx,
    parse_artdmx,
    start_receiver,
)

__all__ = [
    "ArtDmxPacket",
    "ArtNetSender",
    "ReceiverHandle",
    "compute_dmx_length",
    "encode_artdmx",
    "parse_artdmx",
    "start_receiver",
]
