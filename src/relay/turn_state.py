"""
Turn-taking state shared by the two pumps of one relay session.

Tracks whether the AI endpoint currently holds the floor and which telephony
stream outbound audio belongs to. Every read and write goes through a single
lock over the whole record, so the barge-in decision (test ``responding``,
send ``response.cancel``, clear ``responding``) is atomic with respect to the
AI-side pump.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnSnapshot:
    """Point-in-time copy of the turn state, for monitoring."""
    stream_sid: Optional[str]
    responding: bool


class TurnState:
    """
    Mutex-guarded turn state for one call.

    Two states: idle and responding. ``begin_response`` moves idle to
    responding; ``end_response`` and ``try_interrupt`` move responding to
    idle. Any other call is a no-op and reports so by returning ``False``.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._stream_sid: Optional[str] = None
        self._responding = False

    async def record_stream(self, stream_sid: str) -> None:
        """Remember the telephony stream id. A later start overwrites it."""
        async with self._lock:
            if self._stream_sid and self._stream_sid != stream_sid:
                logger.warning(f"Stream id replaced: {self._stream_sid} -> {stream_sid}")
            self._stream_sid = stream_sid

    async def current_stream(self) -> Optional[str]:
        async with self._lock:
            return self._stream_sid

    async def begin_response(self) -> bool:
        """AI started generating. Returns True if the state changed."""
        async with self._lock:
            if self._responding:
                return False
            self._responding = True
            return True

    async def end_response(self) -> bool:
        """AI finished generating. Returns True if the state changed."""
        async with self._lock:
            if not self._responding:
                return False
            self._responding = False
            return True

    async def try_interrupt(self, send_cancel: Callable[[], Awaitable[None]]) -> bool:
        """
        Cancel the in-progress response, if there is one.

        ``send_cancel`` is awaited while the lock is held, and ``responding``
        is cleared even if it raises; the exception is re-raised to the
        caller.

        Args:
            send_cancel: Coroutine function that emits ``response.cancel``.

        Returns:
            True if a response was in progress and ``send_cancel`` was invoked.
        """
        async with self._lock:
            if not self._responding:
                return False
            try:
                await send_cancel()
            finally:
                self._responding = False
            return True

    async def snapshot(self) -> TurnSnapshot:
        async with self._lock:
            return TurnSnapshot(stream_sid=self._stream_sid, responding=self._responding)
