import asyncio
import json
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple
from uuid import uuid4

from fastapi import APIRouter, WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from core import AlreadyInRoom, Client, Room, RoomError, RoomRegistry
from logging_config import get_logger
from schemas import RELAY_TYPES, client_message_adapter

logger = get_logger(__name__)

ws_router = APIRouter()


def _reject_constant(name: str) -> None:
    raise ValueError(f"Non-finite number {name} is not valid JSON")


def encode(message: dict) -> str:
    return json.dumps(message, allow_nan=False)


class Connection(Protocol):
    @property
    def is_open(self) -> bool: ...

    def send(self, text: str) -> None: ...


def plan_broadcast(room: Room, message: dict, connections: Mapping[str, Connection]) -> List[Tuple[Connection, str]]:
    """Build the send instructions for one room broadcast.

    The message is serialized once; players whose connection is gone or no
    longer open are skipped.
    """
    text = encode(message)
    plan: List[Tuple[Connection, str]] = []
    for player in sorted(room.players.values(), key=lambda p: p.peer_id):
        connection = connections.get(player.client_id)
        if connection is not None and connection.is_open:
            plan.append((connection, text))
    return plan


class ConnectionRouter:
    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry
        self._clients: Dict[Connection, Client] = {}
        self._connections: Dict[str, Connection] = {}
        self._handlers: Dict[str, Callable] = {
            "create_room": self._create_room,
            "join_room": self._join_room,
            "set_ready": self._set_ready,
            "seal_room": self._seal_room,
        }
        for relay_type in RELAY_TYPES:
            self._handlers[relay_type] = self._relay

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def on_connect(self, connection: Connection) -> Client:
        client = Client(id=uuid4().hex)
        self._clients[connection] = client
        self._connections[client.id] = connection
        logger.info(f"Client connected: {client.id}")
        return client

    def on_message(self, connection: Connection, raw_text: str) -> None:
        client = self._clients.get(connection)
        if client is None:
            logger.warning("Message from unregistered connection dropped")
            return

        try:
            data = json.loads(raw_text, parse_constant=_reject_constant)
        except (TypeError, ValueError):
            logger.warning(f"Malformed JSON from {client.id} dropped")
            return

        try:
            message = client_message_adapter.validate_python(data)
        except ValidationError as exc:
            logger.warning(f"Invalid message from {client.id} dropped: {exc.error_count()} error(s)")
            return

        handler = self._handlers[message.type]
        try:
            handler(connection, client, message)
        except RoomError as exc:
            logger.info(f"Rejected {message.type} from {client.id}: {exc.message}")
            self._reply(connection, {"type": "error", "message": exc.message})

    def on_disconnect(self, connection: Connection) -> None:
        client = self._clients.pop(connection, None)
        if client is None:
            return
        self._connections.pop(client.id, None)

        result = self.registry.leave_room(client.room_id, client.id)
        if result is not None:
            if result.host_departed:
                self._broadcast(result.room, {"type": "room_closed"})
                for player in result.room.players.values():
                    remaining = self._client_by_id(player.client_id)
                    if remaining is not None:
                        remaining.room_id = None
            else:
                self._broadcast(result.room, {"type": "player_list_update", "players": result.players})
        logger.info(f"Client disconnected: {client.id}")

    def _client_by_id(self, client_id: str) -> Optional[Client]:
        connection = self._connections.get(client_id)
        if connection is None:
            return None
        return self._clients.get(connection)

    def _current_room(self, client: Client) -> Optional[Room]:
        room = self.registry.get_room(client.room_id)
        if room is None or client.id not in room.players:
            return None
        return room

    def _create_room(self, connection, client, message) -> None:
        if self._current_room(client) is not None:
            raise AlreadyInRoom()

        room = self.registry.create_room(message.name, message.max_players, client.id)
        client.room_id = room.name
        self._reply(connection, {"type": "room_created", "room": room.snapshot()})

    def _join_room(self, connection, client, message) -> None:
        if self._current_room(client) is not None:
            raise AlreadyInRoom()

        room, peer_id = self.registry.join_room(message.name, client.id)
        client.room_id = room.name
        self._reply(connection, {"type": "join_success", "room": room.snapshot(), "myPeerId": peer_id})
        self._broadcast(room, {"type": "player_list_update", "players": room.player_list()})

    def _set_ready(self, connection, client, message) -> None:
        players = self.registry.set_ready(client.room_id, client.id, message.is_ready)
        if players is not None:
            self._broadcast(self.registry.get_room(client.room_id), {"type": "player_list_update", "players": players})

    def _seal_room(self, connection, client, message) -> None:
        peer_ids = self.registry.seal_room(client.room_id, client.id)
        if peer_ids is not None:
            self._broadcast(self.registry.get_room(client.room_id), {"type": "start_game", "players": peer_ids})

    def _relay(self, connection, client, message) -> None:
        room = self._current_room(client)
        if room is None:
            logger.debug(f"{message.type} from {client.id} outside a room dropped")
            return

        target = room.find_peer(message.target)
        target_connection = self._connections.get(target.client_id) if target else None
        if target_connection is None or not target_connection.is_open:
            logger.debug(f"{message.type} to peer {message.target} in {room.name} dropped: no such open peer")
            return

        sender = room.players[client.id]
        forwarded = {"type": message.type, "from": sender.peer_id}
        if "payload" in message.model_fields_set:
            forwarded["payload"] = message.payload
        try:
            text = encode(forwarded)
        except ValueError:
            logger.warning(f"{message.type} from {client.id} dropped: payload is not valid JSON")
            return
        target_connection.send(text)
        logger.debug(f"Relayed {message.type} in {room.name}: {sender.peer_id} -> {message.target}")

    def _reply(self, connection: Connection, message: dict) -> None:
        if connection.is_open:
            connection.send(encode(message))

    def _broadcast(self, room: Room, message: dict) -> None:
        for connection, text in plan_broadcast(room, message, self._connections):
            connection.send(text)


class WebSocketConnection:
    """Fire-and-forget adapter over a Starlette websocket.

    Outbound text is queued and written by a dedicated task, so a slow peer
    never blocks message processing for anyone else.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._outbox: "asyncio.Queue[str]" = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

    @property
    def remote(self) -> str:
        client = self.websocket.client
        return f"{client.host}:{client.port}" if client else "unknown"

    @property
    def is_open(self) -> bool:
        return not self._closed and self.websocket.client_state == WebSocketState.CONNECTED

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._writer = self._loop.create_task(self._drain())

    def send(self, text: str) -> None:
        # senders may run on another event loop thread
        if self.is_open and self._loop is not None:
            self._loop.call_soon_threadsafe(self._outbox.put_nowait, text)

    async def _drain(self) -> None:
        while True:
            text = await self._outbox.get()
            try:
                await self.websocket.send_text(text)
            except Exception as exc:
                logger.warning(f"Send to {self.remote} failed, marking connection closed: {exc}")
                self._closed = True
                return

    async def close(self) -> None:
        self._closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass


@ws_router.websocket("/ws")
async def ws_relay(websocket: WebSocket) -> None:
    router: ConnectionRouter = websocket.app.state.router

    await websocket.accept()
    connection = WebSocketConnection(websocket)
    connection.start()
    client = router.on_connect(connection)
    logger.debug(f"Client {client.id} is {connection.remote}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                try:
                    text = (message.get("bytes") or b"").decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning(f"Undecodable binary frame from {client.id} dropped")
                    continue
            router.on_message(connection, text)
    except Exception:
        logger.exception(f"WebSocket error for client {client.id}")
    finally:
        await connection.close()
        router.on_disconnect(connection)
