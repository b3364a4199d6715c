from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CreateRoomMessage(InboundMessage):
    type: Literal["create_room"]
    name: str
    max_players: int = Field(alias="maxPlayers")


class JoinRoomMessage(InboundMessage):
    type: Literal["join_room"]
    name: str


class SetReadyMessage(InboundMessage):
    type: Literal["set_ready"]
    is_ready: bool = Field(alias="isReady")


class SealRoomMessage(InboundMessage):
    type: Literal["seal_room"]


class RelayMessage(InboundMessage):
    type: Literal["offer", "answer", "ice_candidate"]
    target: StrictInt
    payload: Any = None


ClientMessage = Annotated[
    Union[CreateRoomMessage, JoinRoomMessage, SetReadyMessage, SealRoomMessage, RelayMessage],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)

RELAY_TYPES = ("offer", "answer", "ice_candidate")


class HealthResponse(BaseModel):
    status: str
    rooms: int
    clients: int


class RoomSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    player_count: int = Field(serialization_alias="playerCount")
    max_players: int = Field(serialization_alias="maxPlayers")
