"""
Shared test helpers for the relay.

FakeConnection stands in for either peer: frames queued with ``feed()`` are
returned by ``receive_text()``, frames written by the relay are collected in
``sent``, and ``hang_up()`` / ``close()`` make the next read fail the way a
dropped WebSocket does.
"""

import asyncio
import json
import os
from typing import Awaitable, Callable, Optional, Union

os.environ.setdefault("OPENAI_API_KEY", "test-key-for-import-only")

from src.relay.errors import TransportClosedError  # noqa: E402


_CLOSED = object()


class FakeConnection:
    """In-memory full-duplex message connection."""

    def __init__(self, name: str = "fake"):
        self.name = name
        self.sent: list[str] = []
        self.closed = False
        self.close_calls = 0
        self.fail_sends = False
        self.on_send: Optional[Callable[[str], Awaitable[None]]] = None
        self._inbox: asyncio.Queue = asyncio.Queue()

    def feed(self, *frames: Union[str, dict]) -> None:
        for frame in frames:
            self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def hang_up(self) -> None:
        self._inbox.put_nowait(_CLOSED)

    async def receive_text(self) -> str:
        if self.closed:
            raise TransportClosedError(f"{self.name} closed")
        item = await self._inbox.get()
        if item is _CLOSED:
            self.closed = True
            raise TransportClosedError(f"{self.name} closed")
        return item

    async def send_text(self, data: str) -> None:
        if self.closed or self.fail_sends:
            raise TransportClosedError(f"{self.name} closed")
        self.sent.append(data)
        if self.on_send is not None:
            await self.on_send(data)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True
        self._inbox.put_nowait(_CLOSED)

    @property
    def sent_events(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]

    def sent_types(self, key: str = "type") -> list[str]:
        return [event.get(key) for event in self.sent_events]


async def settle(rounds: int = 20) -> None:
    """Let every runnable task advance until it blocks again."""
    for _ in range(rounds):
        await asyncio.sleep(0)
