from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fastapi.testclient import TestClient

from quizroom.application import app
from quizroom.runtime_types import ClientConnection, RoomRuntime


class FakeWebSocket:
    """Collects outbound frames; optionally fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict[str, Any]] = []
        self.closed_with: int | None = None

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def types(self) -> list[str]:
        return [message["type"] for message in self.sent]


class StalledWebSocket(FakeWebSocket):
    """A peer that stopped reading: every send hangs until cancelled."""

    async def send_json(self, data: dict[str, Any]) -> None:
        await asyncio.sleep(3600)


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def room_factory():
    def build(room_id: str = "ROOM1", *peer_ids: str) -> tuple[RoomRuntime, dict[str, FakeWebSocket]]:
        room = RoomRuntime(room_id=room_id)
        sockets: dict[str, FakeWebSocket] = {}
        for peer_id in peer_ids:
            sockets[peer_id] = FakeWebSocket()
            room.connections[peer_id] = ClientConnection(peer_id=peer_id, websocket=sockets[peer_id])
        return room, sockets

    return build


def color_question(question_id: str = "q1") -> dict[str, Any]:
    return {
        "id": question_id,
        "text": "Color?",
        "type": "single-choice",
        "options": ["Red", "Blue"],
    }
