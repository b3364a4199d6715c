from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from logging_config import get_logger

logger = get_logger(__name__)

ROOM_NAME_MIN_LENGTH = 3
ROOM_NAME_MAX_LENGTH = 12
MIN_PLAYERS = 2
MAX_PLAYERS = 4
PASSWORD_LENGTH = 4
PASSWORD_ALPHABET = string.ascii_lowercase + string.digits


class RoomError(Exception):
    message = "Room error."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidName(RoomError):
    message = "Invalid room name length."


class NameTaken(RoomError):
    message = "Room name already exists."


class RoomUnavailable(RoomError):
    message = "Room not found or is sealed."


class RoomFull(RoomError):
    message = "Room is full."


class NotAllReady(RoomError):
    message = "Not all players are ready."


class AlreadyInRoom(RoomError):
    message = "Already in a room."


@dataclass
class Player:
    peer_id: int
    client_id: str
    ready: bool = False

    def summary(self) -> dict:
        return {"peerId": self.peer_id, "ready": self.ready}


@dataclass
class Room:
    name: str
    password: str
    max_players: int
    host_id: str
    players: Dict[str, Player] = field(default_factory=dict)
    sealed: bool = False
    next_peer_id: int = 1

    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def is_joinable(self) -> bool:
        return not self.sealed and not self.is_full()

    def add_player(self, client_id: str, ready: bool) -> Player:
        player = Player(peer_id=self.next_peer_id, client_id=client_id, ready=ready)
        self.players[client_id] = player
        self.next_peer_id += 1
        return player

    def player_list(self) -> List[dict]:
        return [p.summary() for p in sorted(self.players.values(), key=lambda p: p.peer_id)]

    def peer_ids(self) -> List[int]:
        return sorted(p.peer_id for p in self.players.values())

    def find_peer(self, peer_id: int) -> Optional[Player]:
        for player in self.players.values():
            if player.peer_id == peer_id:
                return player
        return None

    def snapshot(self) -> dict:
        return {
            "name": self.name,
            "password": self.password,
            "maxPlayers": self.max_players,
            "hostId": self.host_id,
            "players": self.player_list(),
            "sealed": self.sealed,
        }


@dataclass
class Client:
    id: str
    room_id: Optional[str] = None


@dataclass
class LeaveResult:
    room: Room
    host_departed: bool
    players: List[dict] = field(default_factory=list)


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def clamp_max_players(value: int) -> int:
    return min(max(int(value), MIN_PLAYERS), MAX_PLAYERS)


class RoomRegistry:
    """In-memory owner of every room, keyed by room name.

    Operations never touch connections; they return rooms, identities and
    peer lists for the caller to fan out.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Room] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, name: object) -> bool:
        return name in self._rooms

    def get_room(self, name: Optional[str]) -> Optional[Room]:
        if name is None:
            return None
        return self._rooms.get(name)

    def list_rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def create_room(self, name: str, max_players: int, requester: str) -> Room:
        if not ROOM_NAME_MIN_LENGTH <= len(name) <= ROOM_NAME_MAX_LENGTH:
            raise InvalidName()
        if name in self._rooms:
            raise NameTaken()

        room = Room(
            name=name,
            password=generate_password(),
            max_players=clamp_max_players(max_players),
            host_id=requester,
        )
        room.add_player(requester, ready=True)
        self._rooms[name] = room
        logger.info(f"Room created: {name} by {requester} (max_players={room.max_players})")
        return room

    def join_room(self, name: str, requester: str) -> Tuple[Room, int]:
        room = self._rooms.get(name)
        if room is None or room.sealed:
            raise RoomUnavailable()
        if room.is_full():
            raise RoomFull()

        player = room.add_player(requester, ready=False)
        logger.info(f"Client {requester} joined room {name} as peer {player.peer_id}")
        return room, player.peer_id

    def set_ready(self, room_id: Optional[str], requester: str, is_ready: bool) -> Optional[List[dict]]:
        room = self.get_room(room_id)
        if room is None or requester not in room.players:
            return None

        room.players[requester].ready = bool(is_ready)
        return room.player_list()

    def seal_room(self, room_id: Optional[str], requester: str) -> Optional[List[int]]:
        room = self.get_room(room_id)
        if room is None or room.host_id != requester or room.sealed:
            return None

        if not all(p.ready for p in room.players.values()):
            raise NotAllReady()

        room.sealed = True
        logger.info(f"Room {room.name} sealed with peers {room.peer_ids()}")
        return room.peer_ids()

    def leave_room(self, room_id: Optional[str], requester: str) -> Optional[LeaveResult]:
        room = self.get_room(room_id)
        if room is None or requester not in room.players:
            return None

        del room.players[requester]

        if room.host_id == requester:
            self._rooms.pop(room.name, None)
            logger.info(f"Host left, room {room.name} closed")
            return LeaveResult(room=room, host_departed=True)

        return LeaveResult(room=room, host_departed=False, players=room.player_list())
