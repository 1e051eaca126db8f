from __future__ import annotations

from .runtime_constants import HOST_ONLY_ACTION_TYPES
from .runtime_errors import AuthorizationError
from .runtime_types import RoomRuntime
from .schemas.messages import ClientAction, IdentifyAction


def is_host_only(action: ClientAction) -> bool:
    return action.type in HOST_ONLY_ACTION_TYPES


def is_host(room: RoomRuntime, peer_id: str) -> bool:
    return room.host_peer_id is not None and room.host_peer_id == peer_id


def claim_host(room: RoomRuntime, peer_id: str) -> bool:
    """Bind ``peer_id`` as host if nobody holds the role. First claim wins."""
    if room.host_peer_id is not None:
        return False
    room.host_peer_id = peer_id
    return True


def release_host(room: RoomRuntime, peer_id: str) -> bool:
    if not is_host(room, peer_id):
        return False
    room.host_peer_id = None
    return True


def clear_host(room: RoomRuntime) -> None:
    room.host_peer_id = None


def authorize(room: RoomRuntime, peer_id: str, action: ClientAction) -> bool:
    """Apply host binding side effects of ``action`` and enforce host-only actions.

    Returns True when this action bound the sender as host. Raises
    ``AuthorizationError`` for host-only actions from any other connection,
    including when no host is bound.
    """
    bound = False
    if isinstance(action, IdentifyAction) and action.isHost:
        bound = claim_host(room, peer_id)

    if is_host_only(action) and not is_host(room, peer_id):
        raise AuthorizationError()
    return bound
