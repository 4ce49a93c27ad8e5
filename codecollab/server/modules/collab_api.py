from __future__ import annotations

import logging
import secrets
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect

from codecollab.collab import ClientSession, Room, SyncProtocolHandler
from codecollab.collab import events
from codecollab.server.core.collab import handler_from_request, handler_from_websocket

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/collab", tags=["Collaboration"])


def _client_id(websocket: WebSocket) -> str:
    """Use the caller-supplied id when present; fall back to an anon token."""
    supplied = (
        websocket.headers.get("x-codecollab-client")
        or websocket.query_params.get("client_id")
        or ""
    ).strip()
    return supplied or f"anon:{secrets.token_hex(4)}"


@router.websocket("/ws")
async def collab_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    handler = handler_from_websocket(websocket)
    session = ClientSession(client_id=_client_id(websocket), websocket=websocket)
    LOGGER.info("User connected: %s", session.client_id)

    try:
        initial_room = (websocket.query_params.get("room") or "").strip()
        if initial_room:
            await handler.join(session, initial_room)
        while True:
            raw = await websocket.receive_text()
            await handler.handle_text(session, raw)
    except WebSocketDisconnect:
        pass
    except Exception as exc:  # pragma: no cover - network path
        LOGGER.warning("Collab websocket error (%s): %s", session.client_id, exc, exc_info=True)
        try:
            await handler.send(
                session,
                events.ERROR,
                error="server_exception",
                detail=str(exc),
            )
        except Exception:
            LOGGER.debug("Could not report server error to %s", session.client_id)
    finally:
        handler.disconnect(session)


def _require_room(handler: SyncProtocolHandler, room_key: str) -> Room:
    room = handler.registry.get_room(room_key)
    if room is None:
        raise HTTPException(status_code=404, detail="room_not_found")
    return room


@router.get("/health")
async def collab_health(
    handler: SyncProtocolHandler = Depends(handler_from_request),
) -> Dict[str, Any]:
    return {
        "ok": True,
        "stats": handler.registry.stats(),
        "pending_agent_calls": handler.pending,
    }


@router.get("/rooms")
async def collab_rooms(
    handler: SyncProtocolHandler = Depends(handler_from_request),
) -> Dict[str, Any]:
    return {"ok": True, "rooms": [room.summary() for room in handler.registry]}


@router.get("/rooms/{room_key}")
async def collab_room_snapshot(
    room_key: str,
    handler: SyncProtocolHandler = Depends(handler_from_request),
) -> Dict[str, Any]:
    room = _require_room(handler, room_key)
    return {
        "ok": True,
        "room": room.key,
        "revision": room.revision,
        "members": room.member_ids(),
        "tree": room.tree.snapshot(),
    }


@router.get("/rooms/{room_key}/fingerprint")
async def collab_room_fingerprint(
    room_key: str,
    handler: SyncProtocolHandler = Depends(handler_from_request),
) -> Dict[str, Any]:
    room = _require_room(handler, room_key)
    return {
        "ok": True,
        "room": room.key,
        "revision": room.revision,
        "hash": room.tree.fingerprint(),
    }
