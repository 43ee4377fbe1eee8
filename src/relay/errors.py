"""
Exceptions raised by the relay core.

Only ``TransportClosedError`` ends a pump; the other two are recovered
locally by skipping the offending frame or send.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for relay errors."""

    default_detail: str = "Relay error"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class TransportClosedError(RelayError):
    """A connection could not be read from or written to."""

    default_detail = "Connection closed"


class MalformedFrameError(RelayError):
    """A frame arrived intact but did not have the expected structure."""

    default_detail = "Malformed frame"


class SerializationError(RelayError):
    """An outbound event could not be encoded."""

    default_detail = "Could not encode outbound event"
