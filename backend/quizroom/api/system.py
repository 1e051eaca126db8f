from __future__ import annotations

from fastapi import APIRouter

from quizroom.config import settings
from quizroom.runtime import runtime
from quizroom.runtime_utils import iso_now

router = APIRouter(tags=["system"])


@router.get("/")
@router.get("/test")
async def service_info() -> dict[str, object]:
    return {
        "message": settings.service_name,
        "version": settings.service_version,
        "status": "running",
        "timestamp": iso_now(),
    }


@router.get("/api/health")
async def health() -> dict[str, object]:
    ws_stats = await runtime.get_ws_stats()
    ws_summary = {
        "activeConnections": ws_stats["stats"].get("activeConnections", 0),
        "peakConnections": ws_stats["stats"].get("peakConnections", 0),
        "connectAttempts": ws_stats["stats"].get("connectAttempts", 0),
        "connectRejected": ws_stats["stats"].get("connectRejected", 0),
    }
    return {
        "status": "ok",
        "timestamp": iso_now(),
        "activeRooms": runtime.active_rooms_count,
        "websocket": ws_summary,
    }


@router.get("/api/ws-stats")
async def websocket_stats() -> dict[str, object]:
    return await runtime.get_ws_stats()
