# Session Store Tests

import pytest

from wishpernet.client.client_state import (
    ROOM_TOKEN_KEY, USERNAME_KEY, DisplayedMessageIds, Session, SessionStore,
)
from wishpernet.common.errors import InvalidTokenError

from fakes import OTHER_ROOM_TOKEN, ROOM_TOKEN


class TestSessionStore:
    """Username and room token always travel together."""

    def test_save_and_load(self):
        store = SessionStore()
        saved = store.save("alice", ROOM_TOKEN)

        assert saved == Session(username="alice", room_token=ROOM_TOKEN)
        assert store.load() == saved

    def test_save_strips_username(self):
        store = SessionStore()
        assert store.save("  alice ", ROOM_TOKEN).username == "alice"

    @pytest.mark.parametrize("username", ["", "   "])
    def test_blank_username_rejected(self, username):
        store = SessionStore()
        with pytest.raises(ValueError):
            store.save(username, ROOM_TOKEN)
        assert store.load() is None

    def test_malformed_token_rejected(self):
        store = SessionStore()
        with pytest.raises(InvalidTokenError):
            store.save("alice", "ROOM")
        assert store.storage == {}

    def test_empty_store(self):
        assert SessionStore().load() is None

    def test_half_a_session_is_no_session(self):
        """Missing either key means there is no session."""
        assert SessionStore({ROOM_TOKEN_KEY: ROOM_TOKEN}).load() is None
        assert SessionStore({USERNAME_KEY: "alice"}).load() is None
        assert SessionStore({ROOM_TOKEN_KEY: "garbage", USERNAME_KEY: "alice"}).load() is None

    def test_external_storage_mapping(self):
        """Store works on top of any string mapping."""
        backing = {}
        SessionStore(backing).save("alice", ROOM_TOKEN)

        assert backing == {ROOM_TOKEN_KEY: ROOM_TOKEN, USERNAME_KEY: "alice"}
        assert SessionStore(backing).load() == Session("alice", ROOM_TOKEN)

    def test_clear(self):
        store = SessionStore()
        store.save("alice", ROOM_TOKEN)
        store.displayed.check_and_add("m1")

        store.clear()

        assert store.load() is None
        assert len(store.displayed) == 0

    def test_generation_changes_on_save_and_clear(self):
        store = SessionStore()
        start = store.generation

        store.save("alice", ROOM_TOKEN)
        assert store.generation == start + 1

        store.clear()
        assert store.generation == start + 2

    def test_adopt_room_token(self):
        """Canonical correction keeps username, displayed ids and generation."""
        store = SessionStore()
        store.save("alice", ROOM_TOKEN)
        store.displayed.check_and_add("m1")
        generation = store.generation

        adopted = store.adopt_room_token(OTHER_ROOM_TOKEN)

        assert adopted == Session("alice", OTHER_ROOM_TOKEN)
        assert store.load() == adopted
        assert "m1" in store.displayed
        assert store.generation == generation

    def test_adopt_requires_session(self):
        with pytest.raises(LookupError):
            SessionStore().adopt_room_token(ROOM_TOKEN)

    def test_adopt_rejects_malformed_token(self):
        store = SessionStore()
        store.save("alice", ROOM_TOKEN)
        with pytest.raises(InvalidTokenError):
            store.adopt_room_token("bad")
        assert store.load().room_token == ROOM_TOKEN

    def test_session_repr_hides_token(self):
        assert ROOM_TOKEN not in repr(Session("alice", ROOM_TOKEN))


class TestDisplayedMessageIds:

    def test_first_seen_then_duplicate(self):
        ids = DisplayedMessageIds()
        assert ids.check_and_add("m1") is True
        assert ids.check_and_add("m1") is False
        assert ids.check_and_add("m2") is True
        assert len(ids) == 2

    def test_clear(self):
        ids = DisplayedMessageIds()
        ids.check_and_add("m1")
        ids.clear()
        assert "m1" not in ids
