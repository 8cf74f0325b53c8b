# Connection Controller
# Live connection lifecycle, room join handshake, inbound dispatch and outbound sends

import logging
import secrets
from enum import Enum
from typing import Any, Optional

from wishpernet.client.client_state import Session, SessionStore
from wishpernet.client.crypto import DECRYPTION_FAILED_PLACEHOLDER, RoomCipher, RoomKeyring
from wishpernet.client.share import ShareFlow, build_invite_link
from wishpernet.client.tokens import TokenIssuerClient, is_valid_token_shape
from wishpernet.client.transport import Transport
from wishpernet.client.view import ChatView, DisplayedMessage
from wishpernet.common.errors import TransportError
from wishpernet.common.protocol import (
    Event, JoinRoomRequest, MembershipChange, MessageEnvelope, RoomError,
    RoomJoined, SendMessageRequest, now_ms,
)
from wishpernet.common.result import Failure, Result, Success
from wishpernet.config import ClientConfig

logger = logging.getLogger(__name__)

ROOM_NOT_FOUND_MESSAGE = "This chat room does not exist or has expired."


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_ROOM_JOIN = "awaiting-room-join"
    JOINED = "joined"


class ConnectionController:
    """
    Client side of one chat room over a persistent connection.

    State machine:
        DISCONNECTED -> CONNECTING -> AWAITING_ROOM_JOIN -> JOINED
        any state -> DISCONNECTED on drop (session kept, key evicted)
        room-error -> DISCONNECTED, session cleared, back to entry

    Features:
    - Canonical token adoption (share token -> primary room token)
    - Decrypt-on-receive with per-message-id deduplication
    - Encrypt-before-send with a single in-flight send
    - Share links through a single-shot acknowledged request

    The controller owns its RoomKeyring; keys live only while the
    connection to the room is up.
    """

    def __init__(
        self,
        transport: Transport,
        store: SessionStore,
        view: ChatView,
        issuer: TokenIssuerClient,
        config: Optional[ClientConfig] = None,
        keyring: Optional[RoomKeyring] = None
    ):
        self.transport = transport
        self.store = store
        self.view = view
        self.issuer = issuer
        self.config = config if config is not None else ClientConfig()

        self.keyring = keyring if keyring is not None else RoomKeyring()
        self.cipher = RoomCipher(self.keyring)
        self.share = ShareFlow(transport, timeout=self.config.share_timeout)

        self.state = ConnectionState.DISCONNECTED
        self.room_token: Optional[str] = None  # canonical token of the active room
        self.sending = False

        self.event_handlers = {
            Event.CONNECT: self._handle_connect,
            Event.DISCONNECT: self._handle_disconnect,
            Event.ROOM_JOINED: self._handle_room_joined,
            Event.ROOM_ERROR: self._handle_room_error,
            Event.NEW_MESSAGE: self._handle_new_message,
            Event.USER_JOINED: self._handle_user_joined,
            Event.USER_LEFT: self._handle_user_left,
        }
        for event, handler in self.event_handlers.items():
            self.transport.on(event.value, handler)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """
        Open the chat for the stored session.

        Steps:
        1. Load the session (none -> back to entry)
        2. Confirm the room still exists and resolve its canonical token
        3. Connect; the join request goes out once the connection is up

        Returns:
            True if the connection was opened
        """
        session = self.store.load()
        if session is None:
            self.view.navigate_to_entry()
            return False

        generation = self.store.generation
        try:
            check = await self.issuer.check_room_exists(session.room_token)
        except TransportError as e:
            logger.error("[%s] Room check failed: %s", session.username, e)
            self.view.alert("Failed to join room. Please try again.")
            return False

        if self.store.generation != generation:
            logger.info("[%s] Session ended during room check", session.username)
            return False

        if not check.exists:
            self.store.clear()
            self.view.alert(ROOM_NOT_FOUND_MESSAGE)
            self.view.navigate_to_entry()
            return False

        if check.primary_room_token and check.primary_room_token != session.room_token:
            session = self.store.adopt_room_token(check.primary_room_token)
            logger.info("[%s] Resolved share token to canonical room", session.username)

        self.room_token = session.room_token
        try:
            await self.connect()
        except TransportError:
            return False
        return True

    async def connect(self) -> None:
        """
        Open the persistent connection.

        Raises:
            TransportError: If the connection cannot be established
        """
        self.state = ConnectionState.CONNECTING
        try:
            await self.transport.connect(self.config.socket_url)
        except TransportError as e:
            logger.error("Connection failed: %s", e)
            self.state = ConnectionState.DISCONNECTED
            self.view.set_status("Disconnected")
            self.view.alert("Could not connect to the chat server.")
            raise

    async def leave(self) -> None:
        """Leave the room: drop keys and session, close the connection."""
        session = self.store.load()
        if session is not None:
            logger.info("[%s] Leaving room", session.username)
        self.keyring.clear()
        self.store.clear()
        self.room_token = None
        self.state = ConnectionState.DISCONNECTED
        if self.transport.connected:
            await self.transport.disconnect()
        self.view.navigate_to_entry()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_message(self, text: str) -> Result[None]:
        """
        Encrypt and submit a chat message.

        Blank input is rejected locally. While a send is in flight the send
        affordance is disabled and further sends are refused; it is
        re-enabled whatever the outcome.

        Returns:
            Success(None) once handed to the transport, otherwise Failure
        """
        message = text.strip()
        if not message:
            return Failure("empty message")

        if self.sending:
            return Failure("send already in progress")

        session = self.store.load()
        if session is None or not self.transport.connected:
            self.view.alert("Not connected to chat. Please refresh the page.")
            return Failure("not connected")

        self.sending = True
        self.view.set_send_enabled(False)
        try:
            encrypted = self.cipher.encrypt(message, session.room_token)
            if not encrypted.ok:
                logger.error("[%s] Encryption failed: %s", session.username, encrypted.reason)
                self.view.alert("Failed to encrypt message. Please try again.")
                return Failure(f"encryption failed: {encrypted.reason}")

            request = SendMessageRequest(
                room_token=session.room_token,
                encrypted_message=encrypted.value,
                timestamp=now_ms(),
                username=session.username,
            )
            try:
                await self.transport.emit(Event.SEND_MESSAGE.value, request.to_payload())
            except TransportError as e:
                logger.error("[%s] Send failed: %s", session.username, e)
                self.view.alert(f"Failed to send message: {e}")
                return Failure("send failed")

            return Success(None)
        finally:
            self.sending = False
            self.view.set_send_enabled(True)

    async def request_share_link(self) -> Result[str]:
        """
        Get an invite link for the current room.

        Returns:
            Success(link) or Failure(reason)
        """
        session = self.store.load()
        if session is None:
            return Failure("no active session")

        generation = self.store.generation
        result = await self.share.request_share_token(session.room_token)
        if self.store.generation != generation:
            return Failure("session ended")
        if not result.ok:
            self.view.notify_error("Could not create a share link.")
            return result

        return Success(build_invite_link(self.config.public_origin, result.value))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _handle_connect(self, _data: Any) -> None:
        self.view.set_status("Connected")
        session = self.store.load()
        if session is None:
            logger.warning("Connected without an active session")
            return

        self.room_token = session.room_token
        self.state = ConnectionState.AWAITING_ROOM_JOIN
        request = JoinRoomRequest(room_token=session.room_token, username=session.username)
        try:
            await self.transport.emit(Event.JOIN_ROOM.value, request.to_payload())
        except TransportError as e:
            logger.error("[%s] Join request failed: %s", session.username, e)
            self.view.notify_error("Could not join the room.")
            return
        logger.info("[%s] Join requested", session.username)

    async def _handle_disconnect(self, _reason: Any) -> None:
        if self.room_token is not None:
            self.keyring.evict(self.room_token)
        self.state = ConnectionState.DISCONNECTED
        self.view.set_status("Disconnected")
        logger.info("Disconnected from server")

    async def _handle_room_joined(self, data: Any) -> None:
        try:
            joined = RoomJoined.from_payload(data)
        except ValueError as e:
            logger.warning("Malformed room-joined event: %s", e)
            self.view.notify_error("Received a malformed event from the server.")
            return

        session = self.store.load()
        if session is None:
            logger.info("Ignoring room-joined after the session ended")
            return

        # Join by share token resolves to one canonical room token
        if joined.room_token and joined.room_token != session.room_token:
            if is_valid_token_shape(joined.room_token):
                self.keyring.evict(session.room_token)
                session = self.store.adopt_room_token(joined.room_token)
                logger.info("[%s] Adopted canonical room token", session.username)
            else:
                logger.warning("[%s] Ignoring malformed room token in room-joined", session.username)
                self.view.notify_error("Received a malformed event from the server.")

        self.room_token = session.room_token
        self.state = ConnectionState.JOINED
        self.view.set_status("Connected")
        self.view.set_user_count(joined.user_count)
        logger.info("[%s] Joined room (%d online, %d in history)",
                    session.username, joined.user_count, len(joined.messages))

        if joined.skipped:
            logger.warning("[%s] Dropped %d malformed history entries", session.username, joined.skipped)
            self.view.notify_error(f"{joined.skipped} message(s) in the history could not be read.")

        for envelope in joined.messages:
            self._display_envelope(envelope, session)

    async def _handle_room_error(self, data: Any) -> None:
        try:
            error = RoomError.from_payload(data)
        except ValueError:
            error = RoomError(message=ROOM_NOT_FOUND_MESSAGE)

        logger.warning("Room rejected by server: %s", error.message)
        self.keyring.clear()
        self.store.clear()
        self.room_token = None
        self.state = ConnectionState.DISCONNECTED
        self.view.alert(error.message)
        self.view.navigate_to_entry()
        if self.transport.connected:
            await self.transport.disconnect()

    async def _handle_new_message(self, data: Any) -> None:
        try:
            envelope = MessageEnvelope.from_payload(data)
        except ValueError as e:
            logger.warning("Malformed new-message event: %s", e)
            self.view.notify_error("Received a malformed message from the server.")
            return

        session = self.store.load()
        if session is None:
            return
        self._display_envelope(envelope, session)

    async def _handle_user_joined(self, data: Any) -> None:
        change = self._parse_membership(data)
        if change is not None:
            self.view.show_system_message(f"{change.username} joined the chat")
            self.view.set_user_count(change.user_count)

    async def _handle_user_left(self, data: Any) -> None:
        change = self._parse_membership(data)
        if change is not None:
            self.view.show_system_message(f"{change.username} left the chat")
            self.view.set_user_count(change.user_count)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parse_membership(self, data: Any) -> Optional[MembershipChange]:
        try:
            return MembershipChange.from_payload(data)
        except ValueError as e:
            logger.warning("Malformed membership event: %s", e)
            self.view.notify_error("Received a malformed event from the server.")
            return None

    def _display_envelope(self, envelope: MessageEnvelope, session: Session) -> Optional[DisplayedMessage]:
        """
        Decrypt and render one message unless its id was already displayed.

        A message that fails to decrypt is rendered as a placeholder and its
        id is still recorded, so a replay does not render it again.
        """
        message_id = envelope.message_id or self._local_message_id(envelope)
        if message_id in self.store.displayed:
            return None

        result = self.cipher.decrypt(envelope.encrypted_message, session.room_token)
        if result.ok:
            text, decrypted = result.value, True
        else:
            logger.warning("[%s] Could not decrypt message from %s: %s",
                           session.username, envelope.username, result.reason)
            text, decrypted = DECRYPTION_FAILED_PLACEHOLDER, False

        self.store.displayed.check_and_add(message_id)
        message = DisplayedMessage(
            message_id=message_id,
            username=envelope.username,
            text=text,
            timestamp=envelope.timestamp,
            is_sent=envelope.username == session.username,
            decrypted=decrypted,
        )
        self.view.render_message(message)
        return message

    @staticmethod
    def _local_message_id(envelope: MessageEnvelope) -> str:
        # Unique per call: a message without a server id is never deduplicated
        return f"msg-{envelope.timestamp}-{envelope.username}-{secrets.token_hex(3)}"
