"""WebSocket endpoint for following a discussion's live scores."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from agora_votes.models import discussion_room
from agora_votes.services.realtime import ConnectionRegistry, get_connection_registry

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)


def get_registry_dep() -> ConnectionRegistry:
    """Return the shared connection registry."""
    return get_connection_registry()


RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry_dep)]


async def _join(websocket: WebSocket, registry: ConnectionRegistry, discussion_id: int) -> None:
    present = registry.join(discussion_room(discussion_id), websocket)
    await websocket.send_json(
        {
            "event": "discussion_joined",
            "data": {"discussion_id": discussion_id, "users_present": present},
        }
    )


def _discussion_id(message: dict[str, Any]) -> int | None:
    value = message.get("discussion_id")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


@router.websocket("/ws/discussions/{discussion_id}")
async def discussion_ws(
    websocket: WebSocket,
    discussion_id: int,
    registry: RegistryDep,
) -> None:
    """Join ``discussion_<id>`` and receive ``vote_update`` frames.

    Clients may send ``join_discussion`` / ``leave_discussion`` with a
    ``discussion_id`` to switch rooms, and ``ping`` to keep the socket alive.
    """
    await websocket.accept()
    await _join(websocket, registry, discussion_id)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                logger.debug("Ignoring non-JSON frame on %s", registry.room_of(websocket))
                continue
            if not isinstance(message, dict):
                continue
            kind = message.get("type")
            if kind == "ping":
                await websocket.send_json({"event": "pong"})
            elif kind == "join_discussion":
                target = _discussion_id(message)
                if target is not None:
                    await _join(websocket, registry, target)
            elif kind == "leave_discussion":
                target = _discussion_id(message)
                if target is not None:
                    registry.leave(discussion_room(target), websocket)
                    await websocket.send_json(
                        {"event": "discussion_left", "data": {"discussion_id": target}}
                    )
    except WebSocketDisconnect:
        pass
    finally:
        room = registry.disconnect(websocket)
        logger.debug("WebSocket closed (last room: %s)", room)
