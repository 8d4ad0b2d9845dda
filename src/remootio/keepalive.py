"""Keepalive timer for detecting silently broken connections.

The device closes the connection after 120 seconds without traffic, so the
client sends a PING every interval. If nothing at all arrives within half an
interval after a PING, the connection is considered broken.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class KeepaliveState(Enum):
    """Which timer, if any, is outstanding."""
    IDLE = "idle"
    ARMED = "armed"
    REPLY_PENDING = "reply_pending"


class Keepalive:
    """
    Owns the ping timer and the reply timer; at most one is armed.

    State transitions:
        IDLE --start--> ARMED --ping sent--> REPLY_PENDING
        REPLY_PENDING --traffic--> ARMED
        REPLY_PENDING --reply timeout--> IDLE (on_timeout called)
        any --stop--> IDLE
    """

    def __init__(
        self,
        interval_ms: int,
        on_ping: Callable[[], None],
        on_timeout: Callable[[], None],
        reply_timeout_ms: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Args:
            interval_ms: Time between PING frames.
            on_ping: Sends a PING frame.
            on_timeout: Called once when no reply arrived in time.
            reply_timeout_ms: Reply window after a PING (default: half the interval).
            loop: Event loop for the timers (default: the running loop).
        """
        self.interval_ms = interval_ms
        self.reply_timeout_ms = interval_ms / 2 if reply_timeout_ms is None else reply_timeout_ms
        self._on_ping = on_ping
        self._on_timeout = on_timeout
        self._explicit_loop = loop
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._ping_sent_at: Optional[float] = None
        self._state = KeepaliveState.IDLE

    @property
    def state(self) -> KeepaliveState:
        return self._state

    def start(self) -> None:
        """Arm the ping timer for a full interval."""
        self._cancel()
        self._arm(self.interval_ms / 1000)

    def stop(self) -> None:
        """Cancel whichever timer is outstanding."""
        self._cancel()
        self._state = KeepaliveState.IDLE
        self._loop = self._explicit_loop

    def observe_traffic(self) -> None:
        """Any inbound frame proves the connection is alive."""
        if self._state is not KeepaliveState.REPLY_PENDING:
            return
        self._cancel()
        elapsed = self._get_loop().time() - (self._ping_sent_at or 0.0)
        # Keep the ping cadence: the next PING is due one interval after the last
        self._arm(max(self.interval_ms / 1000 - elapsed, 0.0))

    def _arm(self, delay: float) -> None:
        self._handle = self._get_loop().call_later(delay, self._ping_due)
        self._state = KeepaliveState.ARMED

    def _ping_due(self) -> None:
        loop = self._get_loop()
        self._ping_sent_at = loop.time()
        self._handle = loop.call_later(self.reply_timeout_ms / 1000, self._reply_timed_out)
        self._state = KeepaliveState.REPLY_PENDING
        self._on_ping()

    def _reply_timed_out(self) -> None:
        self._handle = None
        self._state = KeepaliveState.IDLE
        logger.debug("No reply to PING within %s ms", self.reply_timeout_ms)
        self._on_timeout()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop
