"""Session events delivered to listeners."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .frames import ReceivedFrame, SentFrame
from .models import Action, EncryptedPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connecting:
    """A connection attempt started."""


@dataclass(frozen=True)
class Connected:
    """The transport is open."""


@dataclass(frozen=True)
class Authenticated:
    """The authentication QUERY round-trip completed."""


@dataclass(frozen=True)
class Disconnect:
    """The transport closed."""


@dataclass(frozen=True)
class ErrorEvent:
    """A peer-observable fault; the session keeps running."""
    message: str


@dataclass(frozen=True)
class OutgoingMessage:
    """A frame was handed to the transport.

    payload is the action before encryption, for ENCRYPTED frames only.
    """
    frame: SentFrame
    payload: Optional[Action] = None


@dataclass(frozen=True)
class IncomingMessage:
    """A frame was received.

    payload is the decrypted content for ENCRYPTED frames, or None when
    the frame is plaintext or failed verification.
    """
    frame: ReceivedFrame
    payload: Optional[EncryptedPayload] = None


SessionEvent = Union[
    Connecting,
    Connected,
    Authenticated,
    Disconnect,
    ErrorEvent,
    OutgoingMessage,
    IncomingMessage,
]

Listener = Callable[[SessionEvent], None]


class EventEmitter:
    """Registry of event listeners, optionally filtered by event class."""

    def __init__(self) -> None:
        self._listeners: list[tuple[Listener, Optional[type]]] = []

    def add_listener(self, listener: Listener, event_type: Optional[type] = None) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Called with each event.
            event_type: Only deliver events of this class (default: all).

        Returns:
            A callable that removes the listener.
        """
        entry = (listener, event_type)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def remove_listener(self, listener: Listener) -> None:
        """Remove every registration of listener."""
        self._listeners = [e for e in self._listeners if e[0] != listener]

    def emit(self, event: SessionEvent) -> None:
        """Deliver an event. A failing listener is logged and skipped."""
        for listener, event_type in list(self._listeners):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, type(event).__name__)
