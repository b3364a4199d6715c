from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, get_settings
from core import RoomRegistry
from logging_config import get_logger
from rest import router as rest_router
from ws import ConnectionRouter, ws_router

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title="P2P Signaling Relay")
    app.state.registry = RoomRegistry()
    app.state.router = ConnectionRouter(app.state.registry)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rest_router)
    app.include_router(ws_router)

    logger.info("Signaling relay application initialized")
    return app


app = create_app()
