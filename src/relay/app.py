"""
FastAPI application for the realtime voice relay.

Provides:
- TwiML webhook that tells the telephony side to open a media stream
- WebSocket endpoint for the media stream, relayed to the OpenAI Realtime API
- Health check and active call endpoints
"""

# IMPORTANT: Configure logging FIRST, before any other imports
# This ensures verbose libraries don't spam debug logs
import logging

# Reduce noise from verbose libraries - set this BEFORE they're imported
logging.getLogger("websockets").setLevel(logging.WARNING)
logging.getLogger("websockets.client").setLevel(logging.WARNING)
logging.getLogger("websockets.server").setLevel(logging.WARNING)
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import Response
from websockets.exceptions import WebSocketException

from ..utils.config import settings
from .connection import TelephonyWebSocket, open_realtime_connection
from .prompts import READY_MESSAGE, WAIT_MESSAGE
from .session import RelaySession, SessionConfig

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Active relay sessions, keyed by connection id
active_sessions: dict[str, RelaySession] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting voice relay server...")
    logger.info(f"Realtime model: {settings.openai_realtime_model}")
    yield
    logger.info("Shutting down voice relay server...")
    active_sessions.clear()


app = FastAPI(
    title="Realtime Voice Relay",
    description="Relays telephony media streams to the OpenAI Realtime API",
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Health Check Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "service": "Realtime Voice Relay",
        "status": "running",
        "active_calls": len(active_sessions),
    }


@app.get("/health")
async def health_check():
    """Detailed health check endpoint."""
    return {
        "status": "healthy",
        "active_calls": len(active_sessions),
        "config": {
            "realtime_model": settings.openai_realtime_model,
            "voice": settings.realtime_voice,
            "audio_format": settings.realtime_audio_format,
            "close_sibling_on_exit": settings.close_sibling_on_exit,
        },
    }


# =============================================================================
# Call Setup
# =============================================================================


@app.api_route("/incoming-call", methods=["GET", "POST"])
async def incoming_call(request: Request):
    """Return TwiML that greets the caller and connects the media stream."""
    stream_url = settings.media_stream_url(request.url.netloc)
    logger.info(f"Incoming call, streaming to {stream_url}")

    twiml = f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Say>{WAIT_MESSAGE}</Say>
    <Pause length="1"/>
    <Say>{READY_MESSAGE}</Say>
    <Connect>
        <Stream url="{stream_url}" />
    </Connect>
</Response>"""

    return Response(content=twiml, media_type="application/xml")


# =============================================================================
# WebSocket Endpoint for Media Streams
# =============================================================================


@app.websocket("/media-stream")
async def media_stream(websocket: WebSocket):
    """
    WebSocket endpoint for the telephony media stream.

    Runs one relay session per connection until the call ends.
    """
    await websocket.accept()
    telephony = TelephonyWebSocket(websocket)

    connection_id = str(uuid.uuid4())[:8]
    logger.info(f"Client connected: {connection_id}")

    try:
        async with open_realtime_connection(settings) as ai:
            session = RelaySession(
                telephony,
                ai,
                SessionConfig.from_settings(settings),
                close_sibling=settings.close_sibling_on_exit,
            )
            active_sessions[connection_id] = session

            await session.send_initial_negotiation()
            await session.run()

    except (OSError, WebSocketException) as e:
        logger.error(f"Error connecting to OpenAI Realtime API: {e}")
    finally:
        active_sessions.pop(connection_id, None)
        await telephony.close()
        logger.info(f"Client disconnected: {connection_id}")


# =============================================================================
# Monitoring
# =============================================================================


@app.get("/calls")
async def list_calls():
    """List all active calls."""
    calls = []
    for connection_id, session in list(active_sessions.items()):
        snapshot = await session.turn_state.snapshot()
        calls.append({
            "connection_id": connection_id,
            "stream_sid": snapshot.stream_sid,
            "responding": snapshot.responding,
            "voice": session.config.voice,
        })
    return {"active_calls": calls}


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(
        "src.relay.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
