# Persistent Connection Transport
# Event-based full-duplex transport seam plus the Socket.IO implementation

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

import socketio
from socketio import exceptions as sio_exceptions

from wishpernet.common.errors import TransportError

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]


class Transport(ABC):
    """
    Full-duplex event transport the connection controller speaks through.

    Handlers are coroutines taking one argument: the event payload (None
    for connect, the reason if any for disconnect).
    """

    @abstractmethod
    def on(self, event: str, handler: EventHandler) -> None:
        """Register the handler for an inbound event."""

    @abstractmethod
    async def connect(self, url: str) -> None:
        """Open the connection. Raises TransportError on failure."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection."""

    @abstractmethod
    async def emit(self, event: str, data: Dict[str, Any]) -> None:
        """Fire-and-forget send. Raises TransportError when not connected."""

    @abstractmethod
    async def call(self, event: str, data: Dict[str, Any], timeout: float) -> Any:
        """
        Single-shot request answered by an acknowledgement.

        The answer goes to this caller only; it is never delivered as a
        broadcast event.

        Raises:
            TransportError: On timeout or when not connected
        """

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while the connection is up."""


class SocketIOTransport(Transport):
    """
    Transport over a Socket.IO connection (python-socketio AsyncClient).

    Reconnection is handled by the Socket.IO client; every successful
    reconnect fires the connect handler again.
    """

    def __init__(self, client: Optional[socketio.AsyncClient] = None):
        self.client = client if client is not None else socketio.AsyncClient(reconnection=True)

    def on(self, event: str, handler: EventHandler) -> None:
        async def dispatch(*args):
            await handler(args[0] if args else None)

        self.client.on(event, dispatch)

    async def connect(self, url: str) -> None:
        logger.info("Connecting to %s", url)
        try:
            await self.client.connect(url)
        except sio_exceptions.ConnectionError as e:
            raise TransportError(f"Connection to {url} failed: {e}") from e

    async def disconnect(self) -> None:
        await self.client.disconnect()

    async def emit(self, event: str, data: Dict[str, Any]) -> None:
        if not self.client.connected:
            raise TransportError("Not connected")
        try:
            await self.client.emit(event, data)
        except sio_exceptions.BadNamespaceError as e:
            raise TransportError(f"Emit '{event}' failed: {e}") from e

    async def call(self, event: str, data: Dict[str, Any], timeout: float) -> Any:
        if not self.client.connected:
            raise TransportError("Not connected")
        try:
            return await self.client.call(event, data, timeout=timeout)
        except sio_exceptions.TimeoutError as e:
            raise TransportError(f"No acknowledgement for '{event}' within {timeout}s") from e
        except sio_exceptions.BadNamespaceError as e:
            raise TransportError(f"Call '{event}' failed: {e}") from e

    @property
    def connected(self) -> bool:
        return self.client.connected
