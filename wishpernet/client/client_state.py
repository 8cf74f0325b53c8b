# Client Session State Management
# Ephemeral per-tab identity (username + room token) and displayed-message bookkeeping

from dataclasses import dataclass
from typing import MutableMapping, Optional, Set

from wishpernet.client.tokens import is_valid_token_shape, require_valid_token

ROOM_TOKEN_KEY = "_roomToken"
USERNAME_KEY = "_username"


@dataclass(frozen=True)
class Session:
    """The active identity: always a username and a room token together."""
    username: str
    room_token: str

    def __repr__(self) -> str:
        return f"Session(username={self.username!r}, room_token=<hidden>)"


class DisplayedMessageIds:
    """
    Message ids already rendered in the current session.

    Makes the receive path idempotent when the server redelivers messages
    (history replay after a reconnect, at-least-once delivery). Not part
    of the security boundary.
    """

    def __init__(self):
        self._seen: Set[str] = set()

    def check_and_add(self, message_id: str) -> bool:
        """
        Record `message_id` as displayed.

        Returns:
            True if this is the first time it was seen, False for a duplicate
        """
        if message_id in self._seen:
            return False
        self._seen.add(message_id)
        return True

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def clear(self) -> None:
        self._seen.clear()


class SessionStore:
    """
    Holds exactly one active Session.

    Lifecycle:
    - save() at room creation/join time
    - load() at chat initialization and reconnect
    - clear() on explicit leave or when the server rejects the room

    Storage is any string mapping (an in-memory dict by default) so the
    same store can sit on top of a browser-session-like backend. The
    `generation` counter changes on every save/clear, which lets callers
    detect that the session was replaced or cleared while they awaited.
    """

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None):
        self.storage: MutableMapping[str, str] = storage if storage is not None else {}
        self.displayed = DisplayedMessageIds()
        self.generation = 0

    def save(self, username: str, room_token: str) -> Session:
        """
        Store a new session, replacing any previous one.

        Raises:
            ValueError: If username is blank
            InvalidTokenError: If room_token fails the shape check
        """
        username = username.strip() if isinstance(username, str) else ""
        if not username:
            raise ValueError("username must not be empty")
        require_valid_token(room_token)

        self.storage[ROOM_TOKEN_KEY] = room_token
        self.storage[USERNAME_KEY] = username
        self.displayed.clear()
        self.generation += 1
        return Session(username=username, room_token=room_token)

    def load(self) -> Optional[Session]:
        """Return the active session, or None if either half is missing or invalid."""
        room_token = self.storage.get(ROOM_TOKEN_KEY)
        username = self.storage.get(USERNAME_KEY)
        if not username or not is_valid_token_shape(room_token):
            return None
        return Session(username=username, room_token=room_token)

    def adopt_room_token(self, room_token: str) -> Session:
        """
        Replace the stored token with the server's canonical one.

        Username and displayed ids are kept: it is still the same room.

        Raises:
            LookupError: If there is no active session
            InvalidTokenError: If room_token fails the shape check
        """
        current = self.load()
        if current is None:
            raise LookupError("no active session")
        require_valid_token(room_token)
        self.storage[ROOM_TOKEN_KEY] = room_token
        return Session(username=current.username, room_token=room_token)

    def clear(self) -> None:
        """Forget the session and everything displayed during it."""
        self.storage.pop(ROOM_TOKEN_KEY, None)
        self.storage.pop(USERNAME_KEY, None)
        self.displayed.clear()
        self.generation += 1
