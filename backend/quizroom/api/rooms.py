from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from quizroom.config import settings
from quizroom.runtime import runtime
from quizroom.runtime_results import EXPORT_MEDIA_TYPES, export_filename, render_export
from quizroom.runtime_snapshot import serialize_state
from quizroom.runtime_types import RoomState
from quizroom.runtime_utils import iso_now

router = APIRouter(tags=["rooms"])


async def _require_room_state(room_id: str) -> RoomState:
    state = await runtime.get_room_state(room_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return state


@router.post("/api/rooms")
async def create_room() -> dict[str, object]:
    try:
        room_id = await runtime.create_room()
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail="Could not allocate a room code") from exc
    return {"roomId": room_id}


@router.get("/api/rooms/{room_id}/health")
async def room_health(room_id: str) -> dict[str, object]:
    state = await _require_room_state(room_id)
    return {
        "status": "ok",
        "timestamp": iso_now(),
        "participants": len(state.participants),
        "questions": len(state.questions),
    }


@router.get("/api/rooms/{room_id}/state")
async def room_state(room_id: str) -> dict[str, object]:
    state = await _require_room_state(room_id)
    return serialize_state(state)


@router.get("/api/rooms/{room_id}/export")
async def export_room(
    room_id: str,
    format: Literal["json", "csv", "text"] = Query(default="json"),
) -> Response:
    state = await _require_room_state(room_id)
    body = render_export(state, format, version=settings.service_version)
    return Response(
        content=body,
        media_type=EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{export_filename(format)}"'},
    )
