# Wire Payload Tests

import json

import pytest

from wishpernet.common.protocol import (
    Event, JoinRoomRequest, MembershipChange, MessageEnvelope, RoomError,
    RoomJoined, SendMessageRequest, ShareTokenRequest, decode_payload,
)

from fakes import ROOM_TOKEN


class TestOutboundPayloads:
    """Outbound payloads use the server's camelCase field names."""

    def test_join_room(self):
        payload = JoinRoomRequest(room_token=ROOM_TOKEN, username="alice").to_payload()
        assert payload == {"roomToken": ROOM_TOKEN, "username": "alice"}

    def test_send_message(self):
        payload = SendMessageRequest(
            room_token=ROOM_TOKEN,
            encrypted_message="AAAA",
            timestamp=1700000000000,
            username="alice",
        ).to_payload()
        assert payload == {
            "roomToken": ROOM_TOKEN,
            "encryptedMessage": "AAAA",
            "timestamp": 1700000000000,
            "username": "alice",
        }

    def test_share_token(self):
        assert ShareTokenRequest(ROOM_TOKEN).to_payload() == {"roomToken": ROOM_TOKEN}

    def test_event_names(self):
        assert Event.JOIN_ROOM.value == "join-room"
        assert Event.GENERATE_SHARE_TOKEN.value == "generate-share-token"
        assert Event.NEW_MESSAGE.value == "new-message"


class TestInboundPayloads:

    def test_decode_accepts_json_string(self):
        """Reference server sends events as JSON strings."""
        assert decode_payload('{"message": "x"}') == {"message": "x"}
        assert decode_payload({"message": "x"}) == {"message": "x"}

    @pytest.mark.parametrize("data", ["[1, 2]", "not json", None, 42, "null"])
    def test_decode_rejects_non_objects(self, data):
        with pytest.raises(ValueError):
            decode_payload(data)

    def test_message_envelope(self):
        envelope = MessageEnvelope.from_payload({
            "username": "bob",
            "encryptedMessage": "AAAA",
            "timestamp": 1700000000000,
            "messageId": "m-1",
        })
        assert envelope == MessageEnvelope("bob", "AAAA", 1700000000000, "m-1")

    def test_message_envelope_without_id(self):
        envelope = MessageEnvelope.from_payload(
            json.dumps({"username": "bob", "encryptedMessage": "AAAA", "timestamp": 1})
        )
        assert envelope.message_id is None

    @pytest.mark.parametrize("payload", [
        {"encryptedMessage": "AAAA", "timestamp": 1},
        {"username": "bob", "timestamp": 1},
        {"username": "bob", "encryptedMessage": "AAAA"},
        {"username": "bob", "encryptedMessage": "AAAA", "timestamp": "1"},
        {"username": "bob", "encryptedMessage": "AAAA", "timestamp": True},
        {"username": "bob", "encryptedMessage": 5, "timestamp": 1},
        {"username": "bob", "encryptedMessage": "AAAA", "timestamp": 1, "messageId": 7},
    ])
    def test_message_envelope_rejects_bad_fields(self, payload):
        with pytest.raises(ValueError):
            MessageEnvelope.from_payload(payload)

    def test_room_joined(self):
        joined = RoomJoined.from_payload({
            "roomToken": ROOM_TOKEN,
            "userCount": 2,
            "messages": [
                {"username": "bob", "encryptedMessage": "AAAA", "timestamp": 1, "messageId": "m-1"},
                {"username": "bob"},
            ],
        })
        assert joined.room_token == ROOM_TOKEN
        assert joined.user_count == 2
        assert [m.message_id for m in joined.messages] == ["m-1"]
        assert joined.skipped == 1

    def test_room_joined_minimal(self):
        joined = RoomJoined.from_payload({"userCount": 1})
        assert joined.room_token is None
        assert joined.messages == []

    def test_room_joined_messages_must_be_list(self):
        with pytest.raises(ValueError):
            RoomJoined.from_payload({"userCount": 1, "messages": "nope"})

    def test_room_error(self):
        assert RoomError.from_payload('{"message": "Room does not exist or has expired"}').message \
            == "Room does not exist or has expired"

    def test_room_error_default_message(self):
        assert RoomError.from_payload({}).message == "Room does not exist or has expired"

    def test_membership_change(self):
        change = MembershipChange.from_payload({"username": "carol", "userCount": 3})
        assert change == MembershipChange("carol", 3)
