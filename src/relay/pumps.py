"""
The two message pumps of a relay session.

TelephonyPump reads Media Streams frames and writes to the AI connection.
RealtimePump reads Realtime API events and writes to the telephony
connection. Each pump owns writes to exactly one connection and shares
nothing with its sibling except the TurnState.

A pump returns when its own connection fails (read or write). Malformed
frames and encoding failures are logged and skipped.
"""

import asyncio
import logging

from pydantic import BaseModel

from .connection import MessageConnection
from .errors import MalformedFrameError, SerializationError, TransportClosedError
from .events import (
    AudioDelta,
    InputAudioAppend,
    RealtimeError,
    RealtimeEvent,
    ResponseCancel,
    ResponseDone,
    ResponseStarted,
    TelephonyEvent,
    TelephonyMedia,
    TelephonyMediaOut,
    TelephonyStart,
    encode_event,
    parse_realtime_event,
    parse_telephony_event,
)
from .turn_state import TurnState

logger = logging.getLogger(__name__)


class TelephonyPump:
    """Forwards caller audio to the AI endpoint and handles barge-in."""

    name = "telephony"

    def __init__(self, telephony: MessageConnection, ai: MessageConnection, turn_state: TurnState):
        self.telephony = telephony
        self.ai = ai
        self.turn_state = turn_state

    async def run(self) -> None:
        """Pump frames until the telephony connection or the AI write path fails."""
        try:
            while True:
                try:
                    message = await self.telephony.receive_text()
                except TransportClosedError as e:
                    logger.info(f"Telephony stream ended: {e}")
                    break

                try:
                    event = parse_telephony_event(message)
                except MalformedFrameError as e:
                    logger.warning(f"Skipping telephony frame: {e}")
                    continue

                await self.handle(event)

        except TransportClosedError as e:
            logger.error(f"Lost AI connection while relaying caller audio: {e}")
        except asyncio.CancelledError:
            logger.info("Telephony->AI pump cancelled")
            raise

    async def handle(self, event: TelephonyEvent) -> None:
        if isinstance(event, TelephonyStart):
            await self.turn_state.record_stream(event.stream_sid)
            logger.info(f"Incoming stream has started: {event.stream_sid}")

        elif isinstance(event, TelephonyMedia):
            await self._send(InputAudioAppend(audio=event.payload))
            try:
                if await self.turn_state.try_interrupt(self._send_cancel):
                    logger.info("Caller interrupted - sent response.cancel")
            except SerializationError as e:
                logger.error(f"Could not send response.cancel: {e}")

        else:
            logger.debug(f"Received non-media event from telephony: {event.event}")

    async def _send_cancel(self) -> None:
        await self.ai.send_text(encode_event(ResponseCancel()))

    async def _send(self, event: BaseModel) -> None:
        try:
            data = encode_event(event)
        except SerializationError as e:
            logger.error(f"Dropping outbound AI event: {e}")
            return
        await self.ai.send_text(data)


class RealtimePump:
    """Tracks response state and forwards AI audio to the caller."""

    name = "ai"

    def __init__(self, ai: MessageConnection, telephony: MessageConnection, turn_state: TurnState):
        self.ai = ai
        self.telephony = telephony
        self.turn_state = turn_state

    async def run(self) -> None:
        """Pump events until the AI connection or the telephony write path fails."""
        try:
            while True:
                try:
                    message = await self.ai.receive_text()
                except TransportClosedError as e:
                    logger.info(f"Realtime stream ended: {e}")
                    break

                try:
                    event = parse_realtime_event(message)
                except MalformedFrameError as e:
                    logger.warning(f"Skipping Realtime event: {e}")
                    continue

                await self.handle(event)

        except TransportClosedError as e:
            logger.error(f"Lost telephony connection while relaying AI audio: {e}")
        except asyncio.CancelledError:
            logger.info("AI->telephony pump cancelled")
            raise

    async def handle(self, event: RealtimeEvent) -> None:
        if isinstance(event, ResponseStarted):
            if await self.turn_state.begin_response():
                logger.debug("AI response started")

        elif isinstance(event, ResponseDone):
            if await self.turn_state.end_response():
                logger.debug("AI response completed")

        elif isinstance(event, AudioDelta):
            if not event.delta:
                logger.debug("Ignoring empty audio delta")
                return
            stream_sid = await self.turn_state.current_stream()
            try:
                data = encode_event(TelephonyMediaOut.for_stream(stream_sid, event.delta))
            except SerializationError as e:
                logger.error(f"Dropping audio delta: {e}")
                return
            await self.telephony.send_text(data)

        elif isinstance(event, RealtimeError):
            logger.error(f"Realtime API error: {event.message}")

        else:
            logger.debug(f"Received event from OpenAI: {event.type}")
