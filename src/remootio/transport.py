"""
Transport interfaces for the session.

The session only needs to open a connection, send text messages, iterate
received messages and close the connection, either gracefully or by force.
WebsocketTransport implements this on top of the websockets library.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException
from websockets.protocol import State

from .types import TransportError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Abstract base class for a bidirectional text message stream."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether messages can be sent."""
        pass

    @abstractmethod
    async def open(self) -> None:
        """Open the connection. Raises TransportError on failure."""
        pass

    @abstractmethod
    def send(self, text: str) -> None:
        """Queue a text message; returns without waiting for the write."""
        pass

    @abstractmethod
    def messages(self) -> AsyncIterator[Union[str, bytes]]:
        """Iterate received messages until the connection closes."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection gracefully."""
        pass

    @abstractmethod
    def terminate(self) -> None:
        """Drop the connection immediately, without a closing handshake."""
        pass


class WebsocketTransport(Transport):
    """Transport over a websocket connection."""

    def __init__(self, url: str, open_timeout: Optional[float] = 10.0) -> None:
        """
        Args:
            url: Websocket URL, e.g. ``ws://192.168.1.155:8080/``.
            open_timeout: Seconds to wait for the opening handshake.
        """
        self.url = url
        self.open_timeout = open_timeout
        self._ws: Optional[ClientConnection] = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._terminated = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def open(self) -> None:
        try:
            # Liveness is handled with PING frames, not websocket pings
            self._ws = await connect(self.url, open_timeout=self.open_timeout, ping_interval=None)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"Cannot connect to {self.url}: {e}") from e
        self._writer = asyncio.get_running_loop().create_task(self._write_loop())

    def send(self, text: str) -> None:
        if not self.is_open:
            raise TransportError("Websocket is not open")
        self._outbox.put_nowait(text)

    async def messages(self) -> AsyncIterator[Union[str, bytes]]:
        if self._ws is None:
            return
        try:
            async for message in self._ws:
                yield message
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as e:
            if not self._terminated:
                raise TransportError(f"Connection lost: {e}") from e
        finally:
            self._stop_writer()

    async def close(self) -> None:
        try:
            if self._ws is not None:
                await self._ws.close()
        except (OSError, WebSocketException) as e:
            raise TransportError(f"Cannot close connection to {self.url}: {e}") from e
        finally:
            self._stop_writer()

    def terminate(self) -> None:
        if self._ws is not None:
            self._terminated = True
            self._ws.transport.abort()
        self._stop_writer()

    async def _write_loop(self) -> None:
        while True:
            text = await self._outbox.get()
            try:
                await self._ws.send(text)
            except ConnectionClosed:
                logger.debug("Websocket closed while sending; dropping %d queued messages", self._outbox.qsize())
                return

    def _stop_writer(self) -> None:
        if self._writer is not None:
            self._writer.cancel()
            self._writer = None
