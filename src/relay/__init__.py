"""
Realtime voice relay.

Relays a telephony media stream to the OpenAI Realtime API and back,
cancelling the AI's response when the caller barges in.

The FastAPI application lives in ``src.relay.app``.
"""

from .connection import MessageConnection, open_realtime_connection
from .errors import MalformedFrameError, RelayError, SerializationError, TransportClosedError
from .pumps import RealtimePump, TelephonyPump
from .session import RelaySession, SessionConfig
from .turn_state import TurnSnapshot, TurnState

__all__ = [
    # Session
    "RelaySession",
    "SessionConfig",
    "TurnState",
    "TurnSnapshot",
    # Pumps
    "TelephonyPump",
    "RealtimePump",
    # Connections
    "MessageConnection",
    "open_realtime_connection",
    # Errors
    "RelayError",
    "TransportClosedError",
    "MalformedFrameError",
    "SerializationError",
]
