from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from .config import settings
from .runtime_authority import authorize, clear_host, is_host, release_host
from .runtime_constants import (
    HANDOFF_CLOSE_CODE,
    POLICY_VIOLATION_CLOSE_CODE,
    SEND_TIMEOUT_CLOSE_CODE,
)
from .runtime_errors import AuthorizationError, InvalidMessageError, RoomError
from .runtime_snapshot import serialize_state
from .runtime_state_machine import apply_action, remove_participant
from .runtime_types import ClientConnection, RoomRuntime, RoomState
from .runtime_utils import (
    now_ms,
    random_id,
    random_room_code,
    sanitize_connection_id,
    sanitize_room_id,
)
from .schemas.messages import (
    IdentifyAction,
    ResetQuizAction,
    decode_action,
    error_message,
    host_disconnected_message,
    identified_message,
    sync_message,
)

logger = logging.getLogger(__name__)


class QuizRuntime:
    def __init__(self) -> None:
        self.rooms: dict[str, RoomRuntime] = {}
        self.rooms_lock = asyncio.Lock()
        self._ws_stats: dict[str, int] = {
            "connectAttempts": 0,
            "connectSuccess": 0,
            "connectRejected": 0,
            "connectHandoff": 0,
            "disconnects": 0,
            "staleDisconnects": 0,
            "sendFailures": 0,
            "sendTimeouts": 0,
            "messageReceived": 0,
            "messageRejected": 0,
            "actionDenied": 0,
            "actionRejected": 0,
            "hostBound": 0,
            "hostReleased": 0,
            "roomsEvicted": 0,
            "activeConnections": 0,
            "peakConnections": 0,
        }

    @property
    def active_rooms_count(self) -> int:
        return len(self.rooms)

    def _increment_stat(self, key: str, amount: int = 1) -> None:
        self._ws_stats[key] = int(self._ws_stats.get(key, 0)) + amount

    def _on_connect(self) -> None:
        self._increment_stat("connectSuccess")
        active_connections = int(self._ws_stats.get("activeConnections", 0)) + 1
        self._ws_stats["activeConnections"] = active_connections
        if active_connections > int(self._ws_stats.get("peakConnections", 0)):
            self._ws_stats["peakConnections"] = active_connections

    def _on_disconnect(self) -> None:
        self._increment_stat("disconnects")
        active_connections = max(0, int(self._ws_stats.get("activeConnections", 0)) - 1)
        self._ws_stats["activeConnections"] = active_connections

    def _mark_state_changed(self, room: RoomRuntime) -> None:
        room.state_version = max(1, int(room.state_version or 1) + 1)

    def _log_ws_event(self, event: str, level: int = logging.INFO, **fields: object) -> None:
        logger.log(
            level,
            "ws.%s %s",
            event,
            json.dumps(fields, ensure_ascii=False, separators=(",", ":")),
        )

    async def get_ws_stats(self) -> dict[str, Any]:
        async with self.rooms_lock:
            room_summaries = [
                {
                    "roomId": room.room_id,
                    "connections": len(room.connections),
                    "participants": len(room.state.participants),
                    "questions": len(room.state.questions),
                    "hasHost": room.host_peer_id is not None,
                    "stateVersion": room.state_version,
                    "createdAt": room.created_at_ms,
                }
                for room in self.rooms.values()
            ]
            active_rooms = len(room_summaries)

        room_summaries.sort(key=lambda item: int(item.get("connections", 0)), reverse=True)

        return {
            "generatedAt": now_ms(),
            "activeRooms": active_rooms,
            "stats": dict(self._ws_stats),
            "rooms": room_summaries[:50],
        }

    async def get_room(self, room_id: str) -> RoomRuntime | None:
        async with self.rooms_lock:
            return self.rooms.get(sanitize_room_id(room_id))

    async def get_room_state(self, room_id: str) -> RoomState | None:
        room = await self.get_room(room_id)
        if room is None:
            return None
        return room.state

    async def create_room(self) -> str:
        async with self.rooms_lock:
            for _ in range(24):
                room_id = random_room_code()
                if room_id in self.rooms:
                    continue
                room = self._create_room(room_id)
                self.rooms[room_id] = room
                self._schedule_eviction(room)
                self._log_ws_event("room_created", roomId=room_id)
                return room_id

        raise RuntimeError("Failed to allocate room code")

    async def shutdown(self) -> None:
        async with self.rooms_lock:
            rooms = list(self.rooms.values())
            self.rooms.clear()

        for room in rooms:
            async with room.lock:
                self._cancel_eviction(room)
                room.connections.clear()

        self._ws_stats["activeConnections"] = 0
        # Locks bind to the loop that first waits on them.
        self.rooms_lock = asyncio.Lock()

    async def handle_websocket(
        self,
        websocket: WebSocket,
        room_id: str,
        connection_id: str | None = None,
    ) -> None:
        await websocket.accept()
        self._increment_stat("connectAttempts")

        room_id_value = sanitize_room_id(room_id)
        if not room_id_value:
            self._increment_stat("connectRejected")
            await self._send_safe(
                websocket,
                {"type": "error", "code": "INVALID_ROOM_ID", "message": "Room id required"},
                room_id="-",
                peer_id="-",
            )
            await websocket.close(code=POLICY_VIOLATION_CLOSE_CODE)
            self._log_ws_event("connect_rejected", level=logging.WARNING, roomId="-", code="INVALID_ROOM_ID")
            return

        peer_id = sanitize_connection_id(connection_id) or random_id()
        previous: ClientConnection | None = None

        while True:
            room = await self._get_or_create_room(room_id_value)
            async with room.lock:
                if self.rooms.get(room_id_value) is not room:
                    # Evicted between lookup and lock; fetch a fresh room.
                    continue
                self._cancel_eviction(room)
                previous = room.connections.get(peer_id)
                room.connections[peer_id] = ClientConnection(peer_id=peer_id, websocket=websocket)
                await self._send_safe(
                    websocket,
                    sync_message(serialize_state(room.state)),
                    room_id=room_id_value,
                    peer_id=peer_id,
                )
            break

        if previous is not None:
            self._increment_stat("connectHandoff")
            self._log_ws_event("connect_handoff", roomId=room_id_value, peerId=peer_id)
            try:
                await previous.websocket.close(code=HANDOFF_CLOSE_CODE)
            except Exception as exc:
                logger.debug("[HANDOFF_CLOSE_FAIL] room=%s peer=%s reason=%r", room_id_value, peer_id, exc)
        else:
            self._on_connect()
            self._log_ws_event("connect", roomId=room_id_value, peerId=peer_id)

        disconnect_code: int | None = None
        disconnect_reason = "unknown"

        try:
            while True:
                raw = await self._receive_frame(websocket)
                self._increment_stat("messageReceived")

                async with room.lock:
                    current = room.connections.get(peer_id)
                    if current is None or current.websocket is not websocket:
                        disconnect_reason = "superseded"
                        break
                    await self._handle_message(room, current, raw)
        except WebSocketDisconnect as exc:
            disconnect_code = exc.code
            disconnect_reason = "websocket_disconnect"
        except Exception:
            disconnect_reason = "server_error"
            logger.exception("Unexpected websocket error for room %s peer %s", room_id_value, peer_id)
        finally:
            # Must finish even if this handler is cancelled.
            await asyncio.shield(
                self._cleanup_connection(
                    room_id_value,
                    peer_id,
                    websocket=websocket,
                    reason=disconnect_reason,
                    close_code=disconnect_code,
                )
            )

    @staticmethod
    async def _receive_frame(websocket: WebSocket) -> str | bytes | None:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes")

    async def _handle_message(
        self,
        room: RoomRuntime,
        connection: ClientConnection,
        raw: str | bytes | None,
    ) -> None:
        """Validate, authorize and apply one frame, then broadcast the new snapshot.

        Must be called with ``room.lock`` held.
        """
        peer_id = connection.peer_id
        try:
            action = decode_action(raw, max_message_bytes=settings.max_message_bytes)
            host_bound = authorize(room, peer_id, action)
            next_state = apply_action(room.state, action, peer_id)
        except RoomError as exc:
            if isinstance(exc, InvalidMessageError):
                self._increment_stat("messageRejected")
            elif isinstance(exc, AuthorizationError):
                self._increment_stat("actionDenied")
            else:
                self._increment_stat("actionRejected")
            self._log_ws_event(
                "message_rejected",
                level=logging.WARNING,
                roomId=room.room_id,
                peerId=peer_id,
                code=exc.code,
            )
            await self._send_safe(
                connection.websocket,
                error_message(exc),
                room_id=room.room_id,
                peer_id=peer_id,
            )
            return

        room.state = next_state
        if host_bound:
            self._increment_stat("hostBound")
            self._log_ws_event("host_bound", roomId=room.room_id, peerId=peer_id)
        if isinstance(action, ResetQuizAction):
            clear_host(room)
            self._log_ws_event("room_reset", roomId=room.room_id, peerId=peer_id)

        logger.debug("[ACTION] room=%s peer=%s type=%s", room.room_id, peer_id, action.type)

        if isinstance(action, IdentifyAction):
            await self._send_safe(
                connection.websocket,
                identified_message(peer_id, is_host(room, peer_id)),
                room_id=room.room_id,
                peer_id=peer_id,
            )
        await self._broadcast_state(room)

    async def _cleanup_connection(
        self,
        room_id: str,
        peer_id: str,
        websocket: WebSocket | None = None,
        reason: str = "unknown",
        close_code: int | None = None,
    ) -> None:
        async with self.rooms_lock:
            room = self.rooms.get(room_id)

        if room is None:
            return

        async with room.lock:
            current = room.connections.get(peer_id)
            if current is None:
                return
            if websocket is not None and current.websocket is not websocket:
                # Stale disconnect from an old socket after connection handoff.
                self._increment_stat("staleDisconnects")
                self._log_ws_event(
                    "disconnect_stale_ignored",
                    roomId=room_id,
                    peerId=peer_id,
                    reason=reason,
                    closeCode=close_code,
                )
                return

            room.connections.pop(peer_id, None)
            self._on_disconnect()
            room.state = remove_participant(room.state, peer_id)

            was_host = release_host(room, peer_id)
            if was_host:
                self._increment_stat("hostReleased")
                self._log_ws_event("host_released", roomId=room_id, peerId=peer_id)
                await self._broadcast(room, host_disconnected_message())

            await self._broadcast_state(room)

            if not room.connections:
                self._schedule_eviction(room)

            self._log_ws_event(
                "disconnect",
                roomId=room_id,
                peerId=peer_id,
                wasHost=was_host,
                reason=reason,
                closeCode=close_code,
            )

    async def _get_or_create_room(self, room_id: str) -> RoomRuntime:
        async with self.rooms_lock:
            existing = self.rooms.get(room_id)
            if existing is not None:
                return existing

            room = self._create_room(room_id)
            self.rooms[room_id] = room
            self._log_ws_event("room_created", roomId=room_id)
            return room

    def _create_room(self, room_id: str) -> RoomRuntime:
        return RoomRuntime(room_id=room_id, created_at_ms=now_ms())

    def _cancel_eviction(self, room: RoomRuntime) -> None:
        task = room.eviction_timer
        room.eviction_timer = None
        if task is not None and not task.done():
            task.cancel()

    def _schedule_eviction(self, room: RoomRuntime) -> None:
        self._cancel_eviction(room)
        delay_seconds = settings.empty_room_ttl_seconds

        async def runner() -> None:
            if delay_seconds:
                await asyncio.sleep(delay_seconds)
            await self._evict_if_empty(room)

        room.eviction_timer = asyncio.create_task(runner())

    async def _evict_if_empty(self, room: RoomRuntime) -> None:
        async with self.rooms_lock:
            async with room.lock:
                if room.connections:
                    return
                if self.rooms.get(room.room_id) is not room:
                    return
                self.rooms.pop(room.room_id, None)
                room.eviction_timer = None
        self._increment_stat("roomsEvicted")
        self._log_ws_event("room_evicted", roomId=room.room_id)

    async def _send_safe(
        self,
        websocket: WebSocket,
        data: dict[str, Any],
        room_id: str | None = None,
        peer_id: str | None = None,
    ) -> None:
        try:
            await asyncio.wait_for(websocket.send_json(data), timeout=settings.send_timeout_seconds)
        except asyncio.TimeoutError:
            self._increment_stat("sendFailures")
            self._increment_stat("sendTimeouts")
            self._log_ws_event(
                "send_timeout",
                level=logging.WARNING,
                roomId=room_id or "-",
                peerId=peer_id or "-",
                timeoutSeconds=settings.send_timeout_seconds,
            )
            await self._close_stalled(websocket, room_id=room_id, peer_id=peer_id)
        except Exception as exc:
            # Connection may already be closed.
            self._increment_stat("sendFailures")
            logger.debug(
                "[SEND_FAIL] room=%s peer=%s reason=%s ws_client_state=%s ws_application_state=%s",
                room_id or "-",
                peer_id or "-",
                repr(exc),
                getattr(websocket, "client_state", None),
                getattr(websocket, "application_state", None),
            )

    async def _close_stalled(
        self,
        websocket: WebSocket,
        room_id: str | None = None,
        peer_id: str | None = None,
    ) -> None:
        try:
            await asyncio.wait_for(
                websocket.close(code=SEND_TIMEOUT_CLOSE_CODE),
                timeout=settings.send_timeout_seconds,
            )
        except Exception as exc:
            logger.debug("[STALLED_CLOSE_FAIL] room=%s peer=%s reason=%r", room_id or "-", peer_id or "-", exc)

    async def _broadcast(self, room: RoomRuntime, data: dict[str, Any]) -> None:
        await asyncio.gather(
            *(
                self._send_safe(
                    connection.websocket,
                    data,
                    room_id=room.room_id,
                    peer_id=connection.peer_id,
                )
                for connection in list(room.connections.values())
            )
        )

    async def _broadcast_state(self, room: RoomRuntime) -> None:
        self._mark_state_changed(room)
        await self._broadcast(room, sync_message(serialize_state(room.state)))


runtime = QuizRuntime()
