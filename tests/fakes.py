# Test Doubles
# In-memory transport, recording view and issuer used across the test suite

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from wishpernet.client.tokens import RoomCheck
from wishpernet.client.transport import EventHandler, Transport
from wishpernet.client.view import ChatView, DisplayedMessage
from wishpernet.common.errors import TransportError

ROOM_TOKEN = "ab" * 32
OTHER_ROOM_TOKEN = "cd" * 32
SHARE_TOKEN = "0123456789abcdef" * 4


class FakeTransport(Transport):
    """
    Transport that records outbound traffic and lets tests inject events.

    connect() fires the connect handler the way a real Socket.IO client
    does; drop() simulates an unexpected connection loss.
    """

    def __init__(self):
        self.handlers: Dict[str, EventHandler] = {}
        self.emitted: List[Tuple[str, Dict[str, Any]]] = []
        self.calls: List[Tuple[str, Dict[str, Any], float]] = []
        self.url: Optional[str] = None
        self.ack: Any = None
        self.ack_error: Optional[Exception] = None
        self.connect_error: Optional[Exception] = None
        self.emit_gate: Optional[asyncio.Event] = None
        self.emit_error: Optional[Exception] = None
        self._connected = False

    def on(self, event: str, handler: EventHandler) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.url = url
        self._connected = True
        await self.fire("connect")

    async def disconnect(self) -> None:
        was_connected = self._connected
        self._connected = False
        if was_connected:
            await self.fire("disconnect", "client disconnect")

    async def emit(self, event: str, data: Dict[str, Any]) -> None:
        if not self._connected:
            raise TransportError("Not connected")
        if self.emit_gate is not None:
            await self.emit_gate.wait()
        if self.emit_error is not None:
            raise self.emit_error
        self.emitted.append((event, data))

    async def call(self, event: str, data: Dict[str, Any], timeout: float) -> Any:
        if not self._connected:
            raise TransportError("Not connected")
        self.calls.append((event, data, timeout))
        if self.ack_error is not None:
            raise self.ack_error
        return self.ack

    @property
    def connected(self) -> bool:
        return self._connected

    async def fire(self, event: str, data: Any = None) -> None:
        await self.handlers[event](data)

    async def drop(self) -> None:
        self._connected = False
        await self.fire("disconnect", "transport close")

    async def reconnect(self) -> None:
        self._connected = True
        await self.fire("connect")

    def payloads(self, event: str) -> List[Dict[str, Any]]:
        return [data for name, data in self.emitted if name == event]


class RecordingView(ChatView):
    """Records everything the controller shows."""

    def __init__(self):
        self.messages: List[DisplayedMessage] = []
        self.system: List[str] = []
        self.statuses: List[str] = []
        self.user_counts: List[int] = []
        self.send_enabled: List[bool] = []
        self.alerts: List[str] = []
        self.errors: List[str] = []
        self.navigations = 0

    def render_message(self, message: DisplayedMessage) -> None:
        self.messages.append(message)

    def show_system_message(self, text: str) -> None:
        self.system.append(text)

    def set_status(self, status: str) -> None:
        self.statuses.append(status)

    def set_user_count(self, count: int) -> None:
        self.user_counts.append(count)

    def set_send_enabled(self, enabled: bool) -> None:
        self.send_enabled.append(enabled)

    def alert(self, message: str) -> None:
        self.alerts.append(message)

    def notify_error(self, message: str) -> None:
        self.errors.append(message)

    def navigate_to_entry(self) -> None:
        self.navigations += 1


class FakeIssuer:
    """Stands in for TokenIssuerClient without any HTTP."""

    def __init__(self, check: Optional[RoomCheck] = None, new_room: str = ROOM_TOKEN):
        self.check = check if check is not None else RoomCheck(exists=True)
        self.new_room = new_room
        self.checked: List[str] = []
        self.created = 0
        self.error: Optional[Exception] = None
        self.before_return = None  # optional callable run while the check is "in flight"

    async def request_new_room(self) -> str:
        self.created += 1
        if self.error is not None:
            raise self.error
        return self.new_room

    async def check_room_exists(self, token: str) -> RoomCheck:
        self.checked.append(token)
        if self.error is not None:
            raise self.error
        if self.before_return is not None:
            self.before_return()
        return self.check
