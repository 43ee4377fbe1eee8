"""
Tests for the relay session.

Covers the one-time session.update negotiation, the end-to-end relay
scenarios with both pumps running, and the sibling-close policy applied
when one direction of the call ends.
"""

import asyncio

import pytest

from conftest import FakeConnection, settle
from src.relay.session import RelaySession, SessionConfig
from src.utils.config import Settings


def run(coro):
    return asyncio.run(coro)


def start(stream_sid="S1"):
    return {"event": "start", "start": {"streamSid": stream_sid}}


def media(payload):
    return {"event": "media", "media": {"payload": payload}}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def telephony():
    return FakeConnection("telephony")


@pytest.fixture
def ai():
    return FakeConnection("ai")


# ============================================================================
# Construction and Negotiation
# ============================================================================


class TestNegotiation:

    def test_requires_both_connections(self, telephony):
        with pytest.raises(ValueError):
            RelaySession(telephony, None)
        with pytest.raises(ValueError):
            RelaySession(None, telephony)

    def test_fresh_session_is_idle(self, telephony, ai):
        async def scenario():
            return await RelaySession(telephony, ai).turn_state.snapshot()

        snapshot = run(scenario())
        assert snapshot.stream_sid is None
        assert snapshot.responding is False

    def test_session_update_is_sent_once(self, telephony, ai):
        config = SessionConfig(voice="shimmer", instructions="Hi.", audio_format="pcm16", temperature=0.7)

        async def scenario():
            session = RelaySession(telephony, ai, config)
            first = await session.send_initial_negotiation()
            second = await session.send_initial_negotiation()
            return first, second

        assert run(scenario()) == (True, False)
        assert ai.sent_types() == ["session.update"]
        session = ai.sent_events[0]["session"]
        assert session["voice"] == "shimmer"
        assert session["instructions"] == "Hi."
        assert session["input_audio_format"] == session["output_audio_format"] == "pcm16"
        assert session["turn_detection"]["type"] == "server_vad"
        assert session["temperature"] == pytest.approx(0.7)
        assert telephony.sent == []

    def test_negotiation_failure_is_not_fatal(self, telephony, ai):
        async def scenario():
            ai.fail_sends = True
            session = RelaySession(telephony, ai)
            sent = await session.send_initial_negotiation()

            ai.fail_sends = False
            runner = asyncio.create_task(session.run())
            telephony.feed(media("aaaa"))
            await settle()
            telephony.hang_up()
            await asyncio.wait_for(runner, timeout=1)
            return sent

        assert run(scenario()) is False
        # No second negotiation attempt; audio still relayed
        assert ai.sent_types() == ["input_audio_buffer.append"]

    def test_run_negotiates_before_relaying(self, telephony, ai):
        async def scenario():
            telephony.feed(media("aaaa"))
            telephony.hang_up()
            await asyncio.wait_for(RelaySession(telephony, ai).run(), timeout=1)

        run(scenario())
        assert ai.sent_types() == ["session.update", "input_audio_buffer.append"]

    def test_config_from_settings(self):
        settings = Settings(
            openai_api_key="sk-test",
            realtime_voice="echo",
            realtime_audio_format="g711_ulaw",
            realtime_instructions="Be nice.",
            realtime_temperature=1.0,
        )
        config = SessionConfig.from_settings(settings)
        assert config == SessionConfig(
            voice="echo", instructions="Be nice.", audio_format="g711_ulaw", temperature=1.0
        )


# ============================================================================
# End-to-End Relay
# ============================================================================


class TestRelay:

    def test_media_while_idle_is_appended_only(self, telephony, ai):
        async def scenario():
            session = RelaySession(telephony, ai)
            await session.send_initial_negotiation()
            runner = asyncio.create_task(session.run())

            telephony.feed(start("S1"), media("aaaa"))
            await settle()
            snapshot = await session.turn_state.snapshot()

            telephony.hang_up()
            await asyncio.wait_for(runner, timeout=1)
            return snapshot

        snapshot = run(scenario())
        assert snapshot.stream_sid == "S1"
        assert ai.sent_events[1:] == [{"type": "input_audio_buffer.append", "audio": "aaaa"}]

    def test_barge_in_cancels_response(self, telephony, ai):
        async def scenario():
            session = RelaySession(telephony, ai)
            runner = asyncio.create_task(session.run())

            ai.feed({"type": "response.create"})
            await settle()
            telephony.feed(media("bbbb"))
            await settle()
            snapshot = await session.turn_state.snapshot()

            telephony.hang_up()
            await asyncio.wait_for(runner, timeout=1)
            return snapshot

        snapshot = run(scenario())
        assert snapshot.responding is False
        assert ai.sent_events[1:] == [
            {"type": "input_audio_buffer.append", "audio": "bbbb"},
            {"type": "response.cancel"},
        ]

    def test_ai_audio_reaches_caller_with_stream_tag(self, telephony, ai):
        async def scenario():
            session = RelaySession(telephony, ai)
            runner = asyncio.create_task(session.run())

            telephony.feed(start("S1"))
            await settle()
            ai.feed({"type": "response.audio.delta", "delta": "xyz"})
            await settle()

            ai.hang_up()
            await asyncio.wait_for(runner, timeout=1)

        run(scenario())
        assert telephony.sent_events == [
            {"event": "media", "streamSid": "S1", "media": {"payload": "xyz"}}
        ]

    def test_done_after_barge_in_sends_no_second_cancel(self, telephony, ai):
        async def scenario():
            session = RelaySession(telephony, ai)
            runner = asyncio.create_task(session.run())

            ai.feed({"type": "response.create"})
            await settle()
            telephony.feed(media("m1"))
            await settle()
            ai.feed({"type": "response.done"})
            await settle()
            telephony.feed(media("m2"))
            await settle()

            telephony.hang_up()
            await asyncio.wait_for(runner, timeout=1)

        run(scenario())
        assert ai.sent_types().count("response.cancel") == 1
        assert ai.sent_types()[-1] == "input_audio_buffer.append"


# ============================================================================
# Sibling Policy
# ============================================================================


class TestSiblingPolicy:

    def test_telephony_hangup_closes_ai_side(self, telephony, ai):
        async def scenario():
            session = RelaySession(telephony, ai, close_sibling=True)
            runner = asyncio.create_task(session.run())
            await settle()

            telephony.hang_up()
            await asyncio.wait_for(runner, timeout=1)
            return session.ended_by

        assert run(scenario()) == "telephony"
        assert ai.close_calls == 1
        assert telephony.close_calls == 0

    def test_ai_failure_closes_telephony_side(self, telephony, ai):
        async def scenario():
            session = RelaySession(telephony, ai, close_sibling=True)
            runner = asyncio.create_task(session.run())
            await settle()

            ai.hang_up()
            await asyncio.wait_for(runner, timeout=1)
            return session.ended_by

        assert run(scenario()) == "ai"
        assert telephony.close_calls == 1

    def test_leave_open_keeps_ai_pump_running(self, telephony, ai):
        async def scenario():
            session = RelaySession(telephony, ai, close_sibling=False)
            runner = asyncio.create_task(session.run())
            await settle()

            telephony.hang_up()
            await settle()
            still_running = not runner.done()

            # The AI-side pump still processes events after the caller is gone
            ai.feed({"type": "response.create"})
            await settle()
            responding = (await session.turn_state.snapshot()).responding

            ai.hang_up()
            await asyncio.wait_for(runner, timeout=1)
            return still_running, responding, session.ended_by

        still_running, responding, ended_by = run(scenario())
        assert still_running
        assert responding is True
        assert ended_by == "telephony"
        assert ai.close_calls == 0
        assert telephony.close_calls == 0
