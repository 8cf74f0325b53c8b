# Room Entry Flow
# Create a new room or join an existing one, then persist the session

import logging

from wishpernet.client.client_state import Session, SessionStore
from wishpernet.client.tokens import TokenIssuerClient, require_valid_token
from wishpernet.common.errors import RoomNotFoundError

logger = logging.getLogger(__name__)


class RoomEntry:
    """Everything that happens before the chat connection is opened."""

    def __init__(self, issuer: TokenIssuerClient, store: SessionStore):
        self.issuer = issuer
        self.store = store

    async def create_room(self, username: str) -> Session:
        """
        Create a room and store the session for it.

        Raises:
            ValueError: If username is blank
            InvalidTokenError: If the server returned a malformed token
            TransportError: On HTTP failure
        """
        if not username.strip():
            raise ValueError("username must not be empty")
        room_token = await self.issuer.request_new_room()
        session = self.store.save(username, room_token)
        logger.info("[%s] Room created", session.username)
        return session

    async def join_existing_room(self, username: str, token: str) -> Session:
        """
        Join via a room token or a share token.

        The supplied token is stored as-is; it is resolved to the canonical
        room token when the chat starts and again when the join is accepted.

        Raises:
            ValueError: If username is blank
            InvalidTokenError: If the token fails the shape check (no request made)
            RoomNotFoundError: If the room does not exist or has expired
            TransportError: On HTTP failure
        """
        if not username.strip():
            raise ValueError("username must not be empty")
        require_valid_token(token)

        check = await self.issuer.check_room_exists(token)
        if not check.exists:
            raise RoomNotFoundError("This chat room does not exist or has expired.")

        session = self.store.save(username, token)
        logger.info("[%s] Joining existing room (%d online)", session.username, check.user_count)
        return session
