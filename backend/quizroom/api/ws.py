from __future__ import annotations

from fastapi import APIRouter, WebSocket

from quizroom.runtime import runtime

router = APIRouter(tags=["websocket"])


def _connection_id(ws: WebSocket) -> str | None:
    # partysocket sends its stable socket id as ``_pk``.
    return ws.query_params.get("_pk") or ws.query_params.get("id")


@router.websocket("/api/ws/{room_id}")
async def websocket_api(ws: WebSocket, room_id: str) -> None:
    await runtime.handle_websocket(ws, room_id, _connection_id(ws))


@router.websocket("/ws/{room_id}")
async def websocket_compat(ws: WebSocket, room_id: str) -> None:
    await runtime.handle_websocket(ws, room_id, _connection_id(ws))


@router.websocket("/parties/main/{room_id}")
async def websocket_party(ws: WebSocket, room_id: str) -> None:
    await runtime.handle_websocket(ws, room_id, _connection_id(ws))
