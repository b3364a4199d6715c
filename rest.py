from typing import List

from fastapi import APIRouter, Depends, Request

from core import RoomRegistry
from schemas import HealthResponse, RoomSummary

router = APIRouter()


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


@router.get("/health", response_model=HealthResponse)
def health(request: Request, registry: RoomRegistry = Depends(get_registry)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        rooms=len(registry),
        clients=request.app.state.router.client_count,
    )


@router.get("/rooms", response_model=List[RoomSummary])
def list_rooms(registry: RoomRegistry = Depends(get_registry)) -> List[RoomSummary]:
    rooms = [r for r in registry.list_rooms() if r.is_joinable()]
    return [
        RoomSummary(
            name=r.name,
            player_count=len(r.players),
            max_players=r.max_players,
        )
        for r in rooms
    ]
