"""
Remootio device client.

RemootioDevice keeps one authenticated, encrypted session with a single
Remootio device over its websocket API.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from .config import DeviceConfig
from .crypto import decrypt_frame, encrypt_payload
from .events import (
    Authenticated,
    Connected,
    Connecting,
    Disconnect,
    ErrorEvent,
    EventEmitter,
    IncomingMessage,
    Listener,
    OutgoingMessage,
    SessionEvent,
)
from .frames import (
    AuthFrame,
    EncryptedFrame,
    HelloFrame,
    PingFrame,
    SentFrame,
    decode_frame,
    encode_frame,
    encode_payload,
)
from .keepalive import Keepalive
from .models import Action, ActionResponse, ActionType, Challenge
from .state import SessionState, should_advance
from .transport import Transport, WebsocketTransport
from .types import DecryptionError, FrameError, TransportError

logger = logging.getLogger(__name__)

TransportFactory = Callable[[DeviceConfig], Transport]


class SessionPhase(Enum):
    """Lifecycle of a RemootioDevice session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class SendStatus(Enum):
    """Outcome of a send call."""
    SENT = "sent"
    NOT_CONNECTED = "not_connected"
    NOT_AUTHENTICATED = "not_authenticated"
    NO_ACTION_ID = "no_action_id"


@dataclass(frozen=True)
class SendResult:
    """Result of a send call. Refused sends carry no frame."""
    status: SendStatus
    frame: Optional[SentFrame] = None
    action: Optional[Action] = None

    @property
    def sent(self) -> bool:
        return self.status is SendStatus.SENT


def websocket_transport(config: DeviceConfig) -> Transport:
    """Default transport factory."""
    return WebsocketTransport(config.url)


def _log_close_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.warning("Closing the transport failed: %s", task.exception())


class RemootioDevice:
    """
    Client for the websocket API of one Remootio device.

    Create one instance per device. The client keeps the connection alive
    by sending a PING frame every ``ping_interval_ms``; if no frame at all
    arrives within half that time the connection is considered broken and
    is dropped.

    Outcomes are reported through events (see ``remootio.events``); send
    calls never block and return a SendResult describing whether the frame
    was handed to the transport.

    Example usage:
        ```python
        device = RemootioDevice(DeviceConfig("192.168.1.155", secret_key, auth_key))
        device.add_listener(lambda e: device.send_trigger(), Authenticated)
        device.add_listener(lambda e: device.authenticate(), Connected)
        device.connect(auto_reconnect=True)
        ```
    """

    def __init__(
        self,
        config: DeviceConfig,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Device address, API keys and keepalive interval.
            transport_factory: Builds a Transport per connection attempt
                (default: websocket to ``config.url``).
        """
        self.config = config
        self._transport_factory = transport_factory or websocket_transport
        self._state = SessionState()
        self._events = EventEmitter()
        self._phase = SessionPhase.IDLE
        self._transport: Optional[Transport] = None
        self._task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._auto_reconnect = False
        self._disconnect_requested = False
        self._keepalive = Keepalive(
            config.ping_interval_ms,
            on_ping=self._send_keepalive_ping,
            on_timeout=self._keepalive_timed_out,
            reply_timeout_ms=config.reply_timeout_ms,
        )

    @classmethod
    def from_keys(
        cls,
        device_ip: str,
        api_secret_key: str,
        api_auth_key: str,
        ping_interval_ms: Optional[int] = None,
    ) -> "RemootioDevice":
        """Creates a client from the values shown in the Remootio app."""
        kwargs = {}
        if ping_interval_ms:
            kwargs["ping_interval_ms"] = ping_interval_ms
        return cls(DeviceConfig(device_ip, api_secret_key, api_auth_key, **kwargs))

    # MARK: - Properties

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def is_connected(self) -> bool:
        """Whether the transport is open."""
        return self._transport is not None and self._transport.is_open

    @property
    def is_authenticated(self) -> bool:
        """Whether the authentication QUERY round-trip completed on this connection."""
        return (
            self.is_connected
            and self._state.session_key is not None
            and self._phase is SessionPhase.AUTHENTICATED
        )

    @property
    def last_action_id(self) -> Optional[int]:
        """Last action id acknowledged by the device; None before the challenge."""
        return self._state.last_action_id

    # MARK: - Events

    def add_listener(self, listener: Listener, event_type: Optional[type] = None) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        return self._events.add_listener(listener, event_type)

    def remove_listener(self, listener: Listener) -> None:
        self._events.remove_listener(listener)

    def _emit(self, event: SessionEvent) -> None:
        self._events.emit(event)

    # MARK: - Lifecycle

    def connect(self, auto_reconnect: bool = False) -> None:
        """
        Start connecting to the device. Must be called from a running event loop.

        Args:
            auto_reconnect: Reconnect whenever the connection is lost, until
                disconnect() is called.
        """
        if self._task is not None and not self._task.done():
            logger.warning("connect() called while a session is already running")
            self._auto_reconnect = self._auto_reconnect or auto_reconnect
            return
        self._auto_reconnect = auto_reconnect
        self._disconnect_requested = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def disconnect(self) -> None:
        """Close the connection and stop reconnecting.

        Returns immediately; await wait_closed() to know when the
        transport has closed.
        """
        self._auto_reconnect = False
        self._disconnect_requested = True
        transport = self._transport
        if transport is not None and transport.is_open:
            self._close_task = asyncio.get_running_loop().create_task(transport.close())
            self._close_task.add_done_callback(_log_close_failure)

    async def wait_closed(self) -> None:
        """Wait until the session task has finished.

        Raises:
            TransportError: If closing the transport after disconnect() failed
        """
        if self._task is not None:
            await self._task
        close_task, self._close_task = self._close_task, None
        if close_task is not None:
            await close_task

    async def _run(self) -> None:
        retry_delayed = False
        while True:
            if retry_delayed:
                await asyncio.sleep(self.config.reconnect_delay_ms / 1000)
                if self._disconnect_requested:
                    break
            opened = await self._attempt()
            if not self._auto_reconnect:
                break
            logger.info("Connection to %s lost; reconnecting", self.config.url)
            retry_delayed = not opened

    async def _attempt(self) -> bool:
        """One connection: open, process messages until closed. Returns whether it opened."""
        self._state.reset()
        self._phase = SessionPhase.CONNECTING
        self._emit(Connecting())

        transport = self._transport_factory(self.config)
        self._transport = transport
        opened = False
        try:
            await transport.open()
            opened = True
            if self._disconnect_requested:
                await transport.close()
            else:
                self._on_open()
                async for message in transport.messages():
                    self._handle_message(message)
        except TransportError as e:
            logger.info("Transport error: %s", e)
            self._emit(ErrorEvent(str(e)))
        finally:
            self._keepalive.stop()
            self._transport = None
            self._state.reset()
            self._phase = SessionPhase.CLOSED

        self._emit(Disconnect())
        return opened

    def _on_open(self) -> None:
        logger.info("Connected to %s", self.config.url)
        self._phase = SessionPhase.CONNECTED
        self._emit(Connected())
        self._keepalive.start()

    # MARK: - Keepalive

    def _send_keepalive_ping(self) -> None:
        self.send_ping()

    def _keepalive_timed_out(self) -> None:
        self._emit(
            ErrorEvent(
                f"No response for PING message in {self._keepalive.reply_timeout_ms:g} ms. "
                "Connection is broken."
            )
        )
        if self._transport is not None:
            self._transport.terminate()

    # MARK: - Receiving

    def _handle_message(self, raw: Union[str, bytes]) -> None:
        try:
            self._process_message(raw)
        except Exception as e:
            logger.exception("Unexpected error while handling a message")
            self._emit(ErrorEvent(f"Unexpected error while handling a message: {e}"))

    def _process_message(self, raw: Union[str, bytes]) -> None:
        try:
            frame = decode_frame(raw)
        except FrameError as e:
            logger.warning("Dropping message: %s", e)
            self._emit(ErrorEvent(str(e)))
            return

        # Any frame, not only PONG, answers a PING
        self._keepalive.observe_traffic()
        logger.debug("Received %s frame", frame.type)

        if not isinstance(frame, EncryptedFrame):
            self._emit(IncomingMessage(frame))
            return

        try:
            payload = decrypt_frame(
                frame,
                self.config.api_secret_key,
                self.config.api_auth_key,
                self._state.session_key,
            )
        except DecryptionError as e:
            logger.warning("Cannot decrypt frame: %s", e)
            self._emit(IncomingMessage(frame))
            self._emit(ErrorEvent(f"Authentication or encryption error: {e}"))
            return

        self._emit(IncomingMessage(frame, payload))

        if isinstance(payload, Challenge):
            self._on_challenge(payload)
        elif isinstance(payload, ActionResponse):
            self._on_action_response(payload)

    def _on_challenge(self, challenge: Challenge) -> None:
        self._state.session_key = challenge.session_key
        self._state.last_action_id = challenge.initial_action_id
        self._state.last_sent_action_id = None
        self._state.awaiting_auth_query_response = True
        self._phase = SessionPhase.AUTHENTICATING
        # The first QUERY under the session key completes authentication
        result = self.send_query()
        if not result.sent:
            self._emit(ErrorEvent(f"Cannot send authentication QUERY: {result.status.value}"))

    def _on_action_response(self, response: ActionResponse) -> None:
        if self._state.last_action_id is None:
            logger.warning("Action response received before the challenge")
        elif should_advance(self._state.last_action_id, response.id):
            self._state.last_action_id = response.id

        if response.type is ActionType.QUERY and self._state.awaiting_auth_query_response:
            self._state.awaiting_auth_query_response = False
            self._phase = SessionPhase.AUTHENTICATED
            logger.info("Authenticated with %s", self.config.url)
            self._emit(Authenticated())

    # MARK: - Sending

    def send_frame(self, frame: SentFrame) -> SendResult:
        """
        Send a frame as is.

        Args:
            frame: Plaintext frame, or an already built EncryptedFrame.

        Returns:
            SendResult; NOT_CONNECTED if the transport is not open.
        """
        transport = self._transport
        if transport is None or not transport.is_open:
            logger.warning("The websocket client is not connected; %s frame not sent", frame.type)
            return SendResult(SendStatus.NOT_CONNECTED)

        transport.send(encode_frame(frame))
        logger.debug("Sent %s frame", frame.type)
        self._emit(OutgoingMessage(frame))
        return SendResult(SendStatus.SENT, frame=frame)

    def send_encrypted_frame(self, action: Action) -> SendResult:
        """
        Encrypt an action under the session key and send it.

        The action id must be the next id after last_action_id modulo
        0x7FFFFFFF; the send_* helpers take care of that.

        Returns:
            SendResult; NOT_CONNECTED or NOT_AUTHENTICATED if refused.
        """
        transport = self._transport
        if transport is None or not transport.is_open:
            logger.warning("The websocket client is not connected; %s action not sent", action.type.value)
            return SendResult(SendStatus.NOT_CONNECTED)

        frame = encrypt_payload(
            encode_payload(action),
            self.config.api_secret_key,
            self.config.api_auth_key,
            self._state.session_key,
        )
        if frame is None:
            logger.warning("Authenticate the session first; %s action not sent", action.type.value)
            return SendResult(SendStatus.NOT_AUTHENTICATED)

        transport.send(encode_frame(frame))
        self._state.last_sent_action_id = action.id
        logger.debug("Sent %s action id=%d", action.type.value, action.id)
        self._emit(OutgoingMessage(frame, action))
        return SendResult(SendStatus.SENT, frame=frame, action=action)

    def send_action(self, action_type: ActionType, duration: Optional[int] = None) -> SendResult:
        """
        Send an action with the next action id.

        Args:
            action_type: Action to perform.
            duration: Keep the output active for this long; only for
                TRIGGER, TRIGGER_SECONDARY, OPEN and CLOSE.

        Returns:
            SendResult; NO_ACTION_ID before the challenge has been received.

        Raises:
            ValueError: If duration is given for an action that does not take one
        """
        if duration is not None:
            if not action_type.accepts_duration:
                raise ValueError(f"{action_type.value} does not accept a duration")
            if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
                raise ValueError(f"duration must be a positive integer, got {duration!r}")

        action_id = self._state.next_send_id()
        if action_id is None:
            logger.warning("No action id yet; authenticate first. %s action not sent", action_type.value)
            return SendResult(SendStatus.NO_ACTION_ID)

        return self.send_encrypted_frame(Action(type=action_type, id=action_id, duration=duration))

    def authenticate(self) -> SendResult:
        """Start authentication by sending an AUTH frame.

        The device answers with a challenge; the client then switches to the
        session key and sends a QUERY. The Authenticated event follows the
        response to that QUERY.
        """
        return self.send_frame(AuthFrame())

    def send_hello(self) -> SendResult:
        """Send a HELLO frame; the device answers with SERVER_HELLO."""
        return self.send_frame(HelloFrame())

    def send_ping(self) -> SendResult:
        """Send a PING frame. The client sends these periodically on its own."""
        return self.send_frame(PingFrame())

    def send_query(self) -> SendResult:
        """Ask for the gate status."""
        return self.send_action(ActionType.QUERY)

    def send_trigger(self, duration: Optional[int] = None) -> SendResult:
        """Trigger the control output (opens or closes the gate)."""
        return self.send_action(ActionType.TRIGGER, duration)

    def send_trigger_secondary(self, duration: Optional[int] = None) -> SendResult:
        """Trigger the free relay output. Remootio 2 with API version 2 or above only."""
        return self.send_action(ActionType.TRIGGER_SECONDARY, duration)

    def send_open(self, duration: Optional[int] = None) -> SendResult:
        """Open the gate if it is closed. Needs a gate status sensor."""
        return self.send_action(ActionType.OPEN, duration)

    def send_close(self, duration: Optional[int] = None) -> SendResult:
        """Close the gate if it is open. Needs a gate status sensor."""
        return self.send_action(ActionType.CLOSE, duration)

    def send_restart(self) -> SendResult:
        """Restart the device."""
        return self.send_action(ActionType.RESTART)
