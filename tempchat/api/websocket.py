# tempchat/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from tempchat.core import state
from tempchat.core.errors import NotFound, RoomError
from tempchat.models.models import PostMessageRequest

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSE_ROOM_NOT_FOUND = 4404
CLOSE_NOT_A_MEMBER = 4403

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws/{room_id}")
async def websocket_endpoint(websocket: WebSocket, room_id: str, name: str = ""):
    """
    Real-time channel for one room.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Ping:
        {"action": "ping"}
        Response: {"type": "pong"}

    Sync (pull over the socket):
        {"action": "sync"}
        Response: {"type": "room_snapshot", "room": {...RoomDetail...}}

    Send Message:
        {"action": "send_message", "data": {"content": "hi", "kind": "text", ...}}
        Response: {"type": "message_posted", "message": {...}}
        The sender is always the connection's name.

    Server -> Client Messages:
    -------------------------
    Room events (best effort, reconciled by the client's next poll):
        {"type": "message", "room_id": "...", "data": {...}, "timestamp": 0}
        {"type": "member_join", "room_id": "...", "data": {"name": "...", "members": [...]}, ...}
        {"type": "room_deleted", "room_id": "...", "data": {...}, ...}

    Error:
        {"type": "error", "code": "...", "message": "..."}

    Lifecycle:
    ==========
    1. Client joins the room over REST, then connects with ?name=
    2. Unknown/expired rooms are refused with close code 4404,
       names not on the roster with 4403
    3. On disconnect the connection is dropped from the room
    4. Deleting the room closes every connection after "room_deleted"
    """
    try:
        room = await state.room_service.get_room(room_id)
    except NotFound:
        await websocket.close(code=CLOSE_ROOM_NOT_FOUND)
        return
    except RoomError as e:
        logger.error("WebSocket refused for room %s: %s", room_id, e)
        await websocket.close(code=1011)
        return

    if name not in room.members:
        await websocket.close(code=CLOSE_NOT_A_MEMBER)
        return

    await state.connection_manager.connect(websocket, room_id, name)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
                action = message.get("action") if isinstance(message, dict) else None
                logger.debug("Websocket input from %s: action=%s", name, action)

                if action == "ping":
                    await websocket.send_json({"type": "pong"})

                elif action == "sync":
                    detail = await state.room_service.get_room_detail(room_id)
                    await websocket.send_json({"type": "room_snapshot", "room": detail.model_dump()})

                elif action == "send_message":
                    request = PostMessageRequest(**{**(message.get("data") or {}), "sender": name})
                    posted = await state.room_service.post_message(room_id, request)
                    state.message_counter += 1
                    await websocket.send_json({"type": "message_posted", "message": posted.model_dump()})

                else:
                    await websocket.send_json(
                        {
                            "type": "error",
                            "code": "unknown_action",
                            "message": f"Unknown action: {action}",
                        }
                    )

            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "code": "invalid_json", "message": "Invalid JSON"})
            except ValidationError as e:
                await websocket.send_json({"type": "error", "code": "invalid_message", "message": str(e)})
            except RoomError as e:
                await websocket.send_json({"type": "error", "code": e.code, "message": e.message})

    except WebSocketDisconnect:
        state.connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        state.connection_manager.disconnect(websocket)
