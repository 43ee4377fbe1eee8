"""
Full-duplex text message connections used by the relay.

The pumps only need ``receive_text``, ``send_text`` and ``close``. The
adapters here wrap the two concrete transports (the telephony WebSocket
accepted by FastAPI and the ``websockets`` client connection to the OpenAI
Realtime API) and translate their disconnect errors into
``TransportClosedError``.
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Protocol

import websockets
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import TransportClosedError

if TYPE_CHECKING:
    from ..utils.config import Settings

logger = logging.getLogger(__name__)


class MessageConnection(Protocol):
    """A message channel owned by one session."""

    async def receive_text(self) -> str:
        """Return the next text frame; raise TransportClosedError when closed."""
        ...

    async def send_text(self, data: str) -> None:
        """Send one text frame; raise TransportClosedError when closed."""
        ...

    async def close(self) -> None:
        ...


class TelephonyWebSocket:
    """Adapter for the telephony side's FastAPI/Starlette WebSocket."""

    def __init__(self, websocket: WebSocket):
        self._ws = websocket

    async def receive_text(self) -> str:
        # receive() rather than receive_text(): binary JSON frames are accepted too
        try:
            message = await self._ws.receive()
        except WebSocketDisconnect as e:
            raise TransportClosedError(f"Telephony WebSocket closed (code {e.code})") from e
        except RuntimeError as e:
            # Starlette raises RuntimeError once the socket is already closed
            raise TransportClosedError(f"Telephony WebSocket unavailable: {e}") from e

        if message["type"] == "websocket.disconnect":
            raise TransportClosedError(
                f"Telephony WebSocket closed (code {message.get('code', 1000)})"
            )
        if message.get("text") is not None:
            return message["text"]
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def send_text(self, data: str) -> None:
        try:
            await self._ws.send_text(data)
        except WebSocketDisconnect as e:
            raise TransportClosedError(f"Telephony WebSocket closed (code {e.code})") from e
        except RuntimeError as e:
            raise TransportClosedError(f"Telephony WebSocket unavailable: {e}") from e

    async def close(self) -> None:
        if WebSocketState.DISCONNECTED in (self._ws.client_state, self._ws.application_state):
            return
        try:
            await self._ws.close()
        except RuntimeError:
            logger.debug("Telephony WebSocket already closed")


class RealtimeWebSocket:
    """Adapter for the ``websockets`` client connection to the AI endpoint."""

    def __init__(self, connection: ClientConnection):
        self._ws = connection

    async def receive_text(self) -> str:
        try:
            message = await self._ws.recv()
        except ConnectionClosed as e:
            raise TransportClosedError(f"Realtime connection closed: {e}") from e
        if isinstance(message, bytes):
            return message.decode("utf-8", errors="replace")
        return message

    async def send_text(self, data: str) -> None:
        try:
            await self._ws.send(data)
        except ConnectionClosed as e:
            raise TransportClosedError(f"Realtime connection closed: {e}") from e

    async def close(self) -> None:
        await self._ws.close()


@asynccontextmanager
async def open_realtime_connection(settings: "Settings") -> AsyncIterator[RealtimeWebSocket]:
    """
    Connect to the OpenAI Realtime API.

    Usage:
        async with open_realtime_connection(settings) as ai:
            await ai.send_text(...)

    Raises:
        OSError, WebSocketException: if the endpoint cannot be reached or
            rejects the handshake.
    """
    headers = {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "OpenAI-Beta": "realtime=v1",
    }

    logger.info(f"Connecting to OpenAI Realtime API: {settings.openai_realtime_url}")
    try:
        connection = await websockets.connect(
            settings.openai_realtime_url,
            additional_headers=headers,
            ping_interval=settings.ping_interval,
            ping_timeout=settings.ping_timeout,
        )
    except (OSError, WebSocketException) as e:
        logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
        raise

    logger.info("Connected to OpenAI Realtime API")
    try:
        yield RealtimeWebSocket(connection)
    finally:
        await connection.close()
