"""
Relay session: one call's pair of connections, its turn state and the two
pumps between them.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .connection import MessageConnection
from .errors import SerializationError, TransportClosedError
from .events import SessionParameters, SessionUpdate, TurnDetection, encode_event
from .prompts import SYSTEM_MESSAGE
from .pumps import RealtimePump, TelephonyPump
from .turn_state import TurnState

if TYPE_CHECKING:
    from ..utils.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionConfig:
    """Negotiation values sent to the AI endpoint in ``session.update``."""
    voice: str = "alloy"
    instructions: str = SYSTEM_MESSAGE
    # Used for both input and output; no transcoding happens in the relay
    audio_format: str = "g711_alaw"
    temperature: float = 0.8
    turn_detection: str = "server_vad"
    modalities: tuple[str, ...] = field(default=("text", "audio"))

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SessionConfig":
        return cls(
            voice=settings.realtime_voice,
            instructions=settings.realtime_instructions,
            audio_format=settings.realtime_audio_format,
            temperature=settings.realtime_temperature,
        )

    def to_session_update(self) -> SessionUpdate:
        return SessionUpdate(
            session=SessionParameters(
                turn_detection=TurnDetection(type=self.turn_detection),
                input_audio_format=self.audio_format,
                output_audio_format=self.audio_format,
                voice=self.voice,
                instructions=self.instructions,
                modalities=list(self.modalities),
                temperature=self.temperature,
            )
        )


class RelaySession:
    """
    Relays one call between the telephony stream and the AI endpoint.

    Usage:
        session = RelaySession(telephony, ai, SessionConfig())
        await session.send_initial_negotiation()
        await session.run()

    When one pump ends, ``close_sibling`` decides what happens to the other
    direction. With ``True`` the session closes the other connection and
    stops its pump, so ``run()`` returns as soon as either side is gone. With
    ``False`` the other pump is left alone and ``run()`` returns only once it
    has ended on its own transport.
    """

    def __init__(
        self,
        telephony: MessageConnection,
        ai: MessageConnection,
        config: Optional[SessionConfig] = None,
        close_sibling: bool = True,
    ):
        if telephony is None or ai is None:
            raise ValueError("RelaySession needs both a telephony and an AI connection")

        self.telephony = telephony
        self.ai = ai
        self.config = config or SessionConfig()
        self.close_sibling = close_sibling
        self.turn_state = TurnState()

        self.ended_by: Optional[str] = None
        self._negotiated = False

    async def send_initial_negotiation(self) -> bool:
        """
        Send the one-time ``session.update`` to the AI endpoint.

        Failures are logged and the session carries on with the endpoint's
        defaults.

        Returns:
            True if the update was transmitted by this call.
        """
        if self._negotiated:
            logger.debug("session.update already sent")
            return False
        self._negotiated = True

        try:
            data = encode_event(self.config.to_session_update())
        except SerializationError as e:
            logger.error(f"Error encoding session.update: {e}")
            return False

        try:
            await self.ai.send_text(data)
        except TransportClosedError as e:
            logger.error(f"Error sending session.update: {e}")
            return False

        logger.info(
            f"Sent session.update: voice={self.config.voice}, audio={self.config.audio_format}"
        )
        return True

    async def run(self) -> None:
        """Run both pumps until the call ends."""
        if not self._negotiated:
            await self.send_initial_negotiation()

        pumps = {
            asyncio.create_task(TelephonyPump(self.telephony, self.ai, self.turn_state).run()): (
                TelephonyPump.name, self.ai
            ),
            asyncio.create_task(RealtimePump(self.ai, self.telephony, self.turn_state).run()): (
                RealtimePump.name, self.telephony
            ),
        }

        try:
            done, pending = await asyncio.wait(pumps, return_when=asyncio.FIRST_COMPLETED)

            first = next(iter(done))
            self.ended_by, sibling = pumps[first]
            logger.info(f"Relay direction '{self.ended_by}' ended")

            for task in done:
                if not task.cancelled() and task.exception():
                    logger.error(f"Pump error: {task.exception()!r}")

            if not pending:
                return

            if self.close_sibling:
                await sibling.close()
                for task in pending:
                    task.cancel()
            else:
                logger.info("Waiting for the remaining direction to end on its own")

            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Pump error: {result!r}")

        finally:
            for task in pumps:
                if not task.done():
                    task.cancel()
            logger.info("Relay session ended")
