"""Tests for the keepalive timer."""

import asyncio

from remootio.keepalive import Keepalive, KeepaliveState


class Recorder:
    def __init__(self) -> None:
        self.pings = 0
        self.timeouts = 0

    def ping(self) -> None:
        self.pings += 1

    def timeout(self) -> None:
        self.timeouts += 1


def _keepalive(recorder: Recorder, interval_ms: int = 100) -> Keepalive:
    return Keepalive(interval_ms, on_ping=recorder.ping, on_timeout=recorder.timeout)


class TestKeepalive:
    """Ping cadence and reply window."""

    def test_reply_window_is_half_interval(self) -> None:
        assert _keepalive(Recorder(), 60000).reply_timeout_ms == 30000

    def test_explicit_reply_window(self) -> None:
        """A configured reply window replaces the half-interval default."""
        async def scenario():
            recorder = Recorder()
            keepalive = Keepalive(100, on_ping=recorder.ping, on_timeout=recorder.timeout, reply_timeout_ms=20)
            keepalive.start()
            await asyncio.sleep(0.135)
            keepalive.stop()
            return recorder

        recorder = asyncio.run(scenario())
        assert recorder.pings == 1
        assert recorder.timeouts == 1

    def test_start_arms_send_timer(self) -> None:
        async def scenario():
            recorder = Recorder()
            keepalive = _keepalive(recorder)
            keepalive.start()
            state = keepalive.state
            keepalive.stop()
            return state, recorder.pings

        state, pings = asyncio.run(scenario())
        assert state is KeepaliveState.ARMED
        assert pings == 0

    def test_ping_then_reply_pending(self) -> None:
        """After one interval a PING goes out and the reply timer runs."""
        async def scenario():
            recorder = Recorder()
            keepalive = _keepalive(recorder)
            keepalive.start()
            await asyncio.sleep(0.12)
            state = keepalive.state
            keepalive.stop()
            return state, recorder

        state, recorder = asyncio.run(scenario())
        assert state is KeepaliveState.REPLY_PENDING
        assert recorder.pings == 1
        assert recorder.timeouts == 0

    def test_traffic_cancels_reply_timer(self) -> None:
        """Any traffic in the reply window re-arms the send timer."""
        async def scenario():
            recorder = Recorder()
            keepalive = _keepalive(recorder)
            keepalive.start()
            await asyncio.sleep(0.12)
            keepalive.observe_traffic()
            state = keepalive.state
            await asyncio.sleep(0.06)
            keepalive.stop()
            return state, recorder

        state, recorder = asyncio.run(scenario())
        assert state is KeepaliveState.ARMED
        assert recorder.timeouts == 0

    def test_timeout_without_reply(self) -> None:
        """No traffic within half an interval after a PING times out exactly once."""
        async def scenario():
            recorder = Recorder()
            keepalive = _keepalive(recorder)
            keepalive.start()
            await asyncio.sleep(0.3)
            return keepalive.state, recorder

        state, recorder = asyncio.run(scenario())
        assert state is KeepaliveState.IDLE
        assert recorder.pings == 1
        assert recorder.timeouts == 1

    def test_traffic_while_armed_is_ignored(self) -> None:
        async def scenario():
            keepalive = _keepalive(Recorder())
            keepalive.start()
            keepalive.observe_traffic()
            state = keepalive.state
            keepalive.stop()
            return state, keepalive.state

        armed, stopped = asyncio.run(scenario())
        assert armed is KeepaliveState.ARMED
        assert stopped is KeepaliveState.IDLE

    def test_stop_cancels_pending_ping(self) -> None:
        async def scenario():
            recorder = Recorder()
            keepalive = _keepalive(recorder)
            keepalive.start()
            keepalive.stop()
            await asyncio.sleep(0.15)
            return recorder

        recorder = asyncio.run(scenario())
        assert recorder.pings == 0
        assert recorder.timeouts == 0
