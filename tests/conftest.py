import json

import pytest
from fastapi.testclient import TestClient

from config import Settings
from core import RoomRegistry
from main import create_app
from ws import ConnectionRouter


class FakeConnection:
    """In-memory stand-in for a websocket connection."""

    def __init__(self) -> None:
        self.is_open = True
        self.sent = []

    def send(self, text: str) -> None:
        self.sent.append(json.loads(text))

    def drain(self) -> list:
        messages, self.sent = self.sent, []
        return messages


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def router(registry):
    return ConnectionRouter(registry)


@pytest.fixture
def connect(router):
    def _connect():
        connection = FakeConnection()
        router.on_connect(connection)
        return connection

    return _connect


@pytest.fixture
def send(router):
    def _send(connection, **message):
        router.on_message(connection, json.dumps(message))

    return _send


@pytest.fixture
def app():
    return create_app(Settings())


@pytest.fixture
def client(app):
    return TestClient(app)
