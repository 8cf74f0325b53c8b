# Protocol Events and Payload Formats
# Socket.IO event names plus parsing/validation of every payload the client speaks

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Event(str, Enum):
    """Event names on the persistent connection."""
    # Outbound
    JOIN_ROOM = "join-room"
    SEND_MESSAGE = "send-message"
    GENERATE_SHARE_TOKEN = "generate-share-token"

    # Inbound
    ROOM_JOINED = "room-joined"
    ROOM_ERROR = "room-error"
    NEW_MESSAGE = "new-message"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"

    # Connection lifecycle (emitted by the transport itself)
    CONNECT = "connect"
    DISCONNECT = "disconnect"


def now_ms() -> int:
    """Current time in Unix milliseconds."""
    return int(time.time() * 1000)


def decode_payload(data: Any) -> Dict[str, Any]:
    """
    Normalize an inbound payload to a dict.

    The reference server sends its events as JSON-encoded strings rather
    than objects, so both forms are accepted.

    Raises:
        ValueError: If the payload is not a JSON object
    """
    if isinstance(data, (str, bytes)):
        data = json.loads(data)
    if not isinstance(data, dict):
        raise ValueError(f"Payload must be a JSON object, got {type(data).__name__}")
    return data


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string or null")
    return value


def _int_field(data: Dict[str, Any], key: str, default: Optional[int] = None) -> int:
    value = data.get(key, default)
    # bool is an int subclass; a JSON true/false is not a count or a timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Field '{key}' must be an integer")
    return value


@dataclass
class JoinRoomRequest:
    """Outbound join-room request."""
    room_token: str
    username: str

    def to_payload(self) -> Dict[str, Any]:
        return {"roomToken": self.room_token, "username": self.username}


@dataclass
class SendMessageRequest:
    """
    Outbound encrypted message submission.

    Fields:
    - room_token: Canonical room the message belongs to
    - encrypted_message: base64(nonce || ciphertext || tag)
    - timestamp: Sender clock, epoch milliseconds
    - username: Display name of the sender
    """
    room_token: str
    encrypted_message: str
    timestamp: int
    username: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "roomToken": self.room_token,
            "encryptedMessage": self.encrypted_message,
            "timestamp": self.timestamp,
            "username": self.username,
        }


@dataclass
class ShareTokenRequest:
    """Outbound generate-share-token request (answered by acknowledgement)."""
    room_token: str

    def to_payload(self) -> Dict[str, Any]:
        return {"roomToken": self.room_token}


@dataclass
class MessageEnvelope:
    """
    One encrypted chat message as broadcast by the server.

    The envelope carries no room identifier: it is only ever decrypted with
    the key of the room it was received on.
    """
    username: str
    encrypted_message: str
    timestamp: int
    message_id: Optional[str] = None

    @staticmethod
    def from_payload(data: Any) -> 'MessageEnvelope':
        """
        Parse a new-message payload (or one entry of a history replay).

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        data = decode_payload(data)
        return MessageEnvelope(
            username=_require_str(data, "username"),
            encrypted_message=_require_str(data, "encryptedMessage"),
            timestamp=_int_field(data, "timestamp"),
            message_id=_optional_str(data, "messageId"),
        )


@dataclass
class RoomJoined:
    """
    Inbound join acceptance, including the canonical token and history.

    Malformed history entries are dropped and counted in `skipped` so one
    bad record cannot block the join.
    """
    user_count: int
    room_token: Optional[str] = None
    messages: List[MessageEnvelope] = field(default_factory=list)
    skipped: int = 0

    @staticmethod
    def from_payload(data: Any) -> 'RoomJoined':
        data = decode_payload(data)
        raw_messages = data.get("messages") or []
        if not isinstance(raw_messages, list):
            raise ValueError("Field 'messages' must be a list")
        messages = []
        skipped = 0
        for raw in raw_messages:
            try:
                messages.append(MessageEnvelope.from_payload(raw))
            except ValueError:
                skipped += 1

        return RoomJoined(
            user_count=_int_field(data, "userCount", 0),
            room_token=_optional_str(data, "roomToken"),
            messages=messages,
            skipped=skipped,
        )


@dataclass
class RoomError:
    """Inbound join rejection."""
    message: str

    @staticmethod
    def from_payload(data: Any) -> 'RoomError':
        data = decode_payload(data)
        message = data.get("message")
        if not isinstance(message, str) or not message:
            message = "Room does not exist or has expired"
        return RoomError(message=message)


@dataclass
class MembershipChange:
    """Inbound user-joined / user-left notification."""
    username: str
    user_count: int

    @staticmethod
    def from_payload(data: Any) -> 'MembershipChange':
        data = decode_payload(data)
        return MembershipChange(
            username=_require_str(data, "username"),
            user_count=_int_field(data, "userCount", 0),
        )
