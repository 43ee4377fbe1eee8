#!/usr/bin/env python3
"""
Run script for the realtime voice relay.

Usage:
    python run_relay.py

Make sure to:
1. Put OPENAI_API_KEY (and any overrides such as REALTIME_VOICE or
   REALTIME_AUDIO_FORMAT) in .env or the environment
2. Point the telephony side's call webhook at {host}/incoming-call, or
   connect its media stream straight to {host}/media-stream
"""

import logging
import os
import sys

# Configure logging VERY early, before any other imports that might use it
# This suppresses noisy debug output from third-party libraries
logging.getLogger("websockets").setLevel(logging.WARNING)
logging.getLogger("websockets.client").setLevel(logging.WARNING)
logging.getLogger("websockets.server").setLevel(logging.WARNING)
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

# Add src to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the relay server."""
    import uvicorn
    from src.utils.config import settings

    print("=" * 60)
    print("Realtime Voice Relay")
    print("=" * 60)
    print(f"Server: http://{settings.host}:{settings.port}")
    print(f"OpenAI Model: {settings.openai_realtime_model}")
    print(f"Voice: {settings.realtime_voice}")
    print(f"Audio format: {settings.realtime_audio_format}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: http://{settings.host}:{settings.port}/health")
    print(f"  - Incoming call: http://{settings.host}:{settings.port}/incoming-call")
    print(f"  - Media stream: ws://{settings.host}:{settings.port}/media-stream")
    print(f"  - Active Calls: http://{settings.host}:{settings.port}/calls")
    print()

    # Use "info" log level for uvicorn to avoid verbose websocket frame logging
    uvicorn.run(
        "src.relay.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
