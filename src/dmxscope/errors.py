"""Exceptions raised across component boundaries."""


class DmxScopeError(Exception):
    """Base class for dmxscope errors."""


class RecordingFormatError(DmxScopeError, ValueError):
    """A recording file has a bad header or a corrupt body."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class ArtNetPacketError(DmxScopeError, ValueError):
    """A datagram is not a usable ArtDMX packet."""
