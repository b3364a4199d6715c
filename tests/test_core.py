"""
Tests for the room registry: creation, joining, readiness, sealing and departure.
"""

import pytest

from core import (
    PASSWORD_ALPHABET,
    InvalidName,
    NameTaken,
    NotAllReady,
    RoomFull,
    RoomUnavailable,
    clamp_max_players,
    generate_password,
)


class TestCreateRoom:
    @pytest.mark.parametrize("name", ["abc", "abcd", "twelve_chars"])
    def test_accepts_names_within_bounds(self, registry, name):
        room = registry.create_room(name, 2, "host")
        assert room.name == name
        assert name in registry

    @pytest.mark.parametrize("name", ["", "ab", "thirteen_char"])
    def test_rejects_names_out_of_bounds(self, registry, name):
        with pytest.raises(InvalidName):
            registry.create_room(name, 2, "host")
        assert len(registry) == 0

    def test_rejects_duplicate_name(self, registry):
        registry.create_room("abcd", 2, "host")
        with pytest.raises(NameTaken) as exc_info:
            registry.create_room("abcd", 3, "other")
        assert exc_info.value.message == "Room name already exists."
        assert registry.get_room("abcd").host_id == "host"

    @pytest.mark.parametrize("requested,expected", [(-5, 2), (0, 2), (2, 2), (3, 3), (4, 4), (1000, 4)])
    def test_clamps_max_players(self, registry, requested, expected):
        room = registry.create_room("abcd", requested, "host")
        assert room.max_players == expected
        assert clamp_max_players(requested) == expected

    def test_host_is_ready_peer_one(self, registry):
        room = registry.create_room("abcd", 2, "host")
        assert room.host_id == "host"
        assert room.sealed is False
        assert room.player_list() == [{"peerId": 1, "ready": True}]

    def test_password_format(self, registry):
        room = registry.create_room("abcd", 2, "host")
        assert len(room.password) == 4
        assert all(c in PASSWORD_ALPHABET for c in room.password)

    def test_generate_password_length(self):
        assert len(generate_password(10)) == 10


class TestJoinRoom:
    def test_assigns_sequential_peer_ids(self, registry):
        registry.create_room("abcd", 4, "host")
        peer_ids = [registry.join_room("abcd", f"guest{i}")[1] for i in range(3)]
        assert peer_ids == [2, 3, 4]

    def test_joiner_starts_not_ready(self, registry):
        registry.create_room("abcd", 2, "host")
        room, peer_id = registry.join_room("abcd", "guest")
        assert room.players["guest"].ready is False
        assert room.player_list() == [{"peerId": 1, "ready": True}, {"peerId": 2, "ready": False}]

    def test_missing_room_is_unavailable(self, registry):
        with pytest.raises(RoomUnavailable) as exc_info:
            registry.join_room("nope", "guest")
        assert exc_info.value.message == "Room not found or is sealed."

    def test_full_room(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.join_room("abcd", "guest")
        with pytest.raises(RoomFull) as exc_info:
            registry.join_room("abcd", "late")
        assert exc_info.value.message == "Room is full."
        assert len(registry.get_room("abcd").players) == 2

    def test_sealed_room_is_unavailable_with_capacity_left(self, registry):
        registry.create_room("abcd", 4, "host")
        registry.seal_room("abcd", "host")
        with pytest.raises(RoomUnavailable):
            registry.join_room("abcd", "late")

    def test_peer_ids_not_reused_after_departure(self, registry):
        registry.create_room("abcd", 4, "host")
        registry.join_room("abcd", "second")
        registry.join_room("abcd", "third")
        registry.leave_room("abcd", "second")
        _, peer_id = registry.join_room("abcd", "fourth")
        assert peer_id == 4
        assert registry.get_room("abcd").peer_ids() == [1, 3, 4]


class TestSetReady:
    def test_updates_flag_and_returns_list(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.join_room("abcd", "guest")
        players = registry.set_ready("abcd", "guest", True)
        assert players == [{"peerId": 1, "ready": True}, {"peerId": 2, "ready": True}]

    def test_unknown_room_or_player_is_noop(self, registry):
        registry.create_room("abcd", 2, "host")
        assert registry.set_ready("zzzz", "host", False) is None
        assert registry.set_ready("abcd", "stranger", True) is None
        assert registry.set_ready(None, "host", True) is None


class TestSealRoom:
    def test_host_seals_when_all_ready(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.join_room("abcd", "guest")
        registry.set_ready("abcd", "guest", True)
        assert registry.seal_room("abcd", "host") == [1, 2]
        assert registry.get_room("abcd").sealed is True

    def test_not_all_ready(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.join_room("abcd", "guest")
        with pytest.raises(NotAllReady):
            registry.seal_room("abcd", "host")
        assert registry.get_room("abcd").sealed is False

    def test_non_host_is_ignored(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.join_room("abcd", "guest")
        registry.set_ready("abcd", "guest", True)
        assert registry.seal_room("abcd", "guest") is None
        assert registry.get_room("abcd").sealed is False

    def test_resealing_is_noop(self, registry):
        registry.create_room("abcd", 2, "host")
        assert registry.seal_room("abcd", "host") == [1]
        assert registry.seal_room("abcd", "host") is None

    def test_ready_changes_after_seal_keep_room_sealed(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.seal_room("abcd", "host")
        registry.set_ready("abcd", "host", False)
        assert registry.get_room("abcd").sealed is True


class TestLeaveRoom:
    def test_host_departure_destroys_room(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.join_room("abcd", "guest")
        result = registry.leave_room("abcd", "host")
        assert result.host_departed is True
        assert list(result.room.players) == ["guest"]
        assert "abcd" not in registry
        with pytest.raises(RoomUnavailable):
            registry.join_room("abcd", "late")

    def test_guest_departure_refreshes_list(self, registry):
        registry.create_room("abcd", 2, "host")
        registry.join_room("abcd", "guest")
        result = registry.leave_room("abcd", "guest")
        assert result.host_departed is False
        assert result.players == [{"peerId": 1, "ready": True}]
        assert registry.get_room("abcd").is_joinable()

    def test_unknown_player_is_noop(self, registry):
        registry.create_room("abcd", 2, "host")
        assert registry.leave_room("abcd", "stranger") is None
        assert registry.leave_room(None, "host") is None
