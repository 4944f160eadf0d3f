# tempchat/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, HTTPException

from tempchat.api.routes.utils import to_http_error
from tempchat.core import state
from tempchat.core.errors import RoomError
from tempchat.models.models import (
    CreateRoomRequest,
    JoinRoomRequest,
    Message,
    PostMessageRequest,
    Room,
    RoomDetail,
)

router = APIRouter()

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@router.get("/rooms", response_model=List[Room])
async def list_rooms():
    """
    List all rooms that have not expired, newest first.

    Side Effects:
        - Expired rooms found while listing are deleted with their messages
    """
    try:
        return await state.room_service.list_rooms()
    except RoomError as e:
        raise to_http_error(e)


@router.post("/rooms", response_model=Room)
async def create_room(request: CreateRoomRequest):
    """
    Create a new room. The creator becomes its first member.

    Args:
        request: CreateRoomRequest with name, description, member_limit,
                 time_limit (hours), creator and an optional client-chosen id

    Returns:
        Room: The newly created room with its computed expires_at

    Raises:
        HTTPException: 400 if name or creator is blank, 409 if the id is taken
    """
    if not request.name.strip():
        raise HTTPException(status_code=400, detail="Room name required")
    if not request.creator.strip():
        raise HTTPException(status_code=400, detail="Creator name required")

    try:
        return await state.room_service.create_room(request)
    except RoomError as e:
        raise to_http_error(e)


@router.get("/rooms/{room_id}", response_model=RoomDetail)
async def get_room(room_id: str):
    """
    Get a room with its messages and shared files.

    Raises:
        HTTPException: 404 if the room doesn't exist or has expired
    """
    try:
        return await state.room_service.get_room_detail(room_id)
    except RoomError as e:
        raise to_http_error(e)


@router.post("/rooms/{room_id}/join", response_model=Room)
async def join_room(room_id: str, request: JoinRoomRequest):
    """
    Join a room under a display name.

    Raises:
        HTTPException: 400 blank name, 404 unknown/expired room,
                       409 room_full / name_taken / version_conflict
    """
    if not request.name.strip():
        raise HTTPException(status_code=400, detail="Name required")

    try:
        return await state.room_service.join_room(room_id, request.name)
    except RoomError as e:
        raise to_http_error(e)


@router.delete("/rooms/{room_id}")
async def delete_room(room_id: str, requester: str):
    """
    Delete a room and everything in it. Creator only.

    Args:
        room_id: Room to delete
        requester: Display name of the member asking (query parameter)

    Side Effects:
        - Messages are deleted with the room
        - "room_deleted" is broadcast and the room's WebSockets are closed
    """
    try:
        await state.room_service.delete_room(room_id, requester)
    except RoomError as e:
        raise to_http_error(e)
    return {"status": "deleted", "room_id": room_id}


@router.get("/rooms/{room_id}/messages", response_model=List[Message])
async def list_messages(room_id: str):
    try:
        return await state.room_service.list_messages(room_id)
    except RoomError as e:
        raise to_http_error(e)


@router.post("/rooms/{room_id}/messages", response_model=Message)
async def post_message(room_id: str, request: PostMessageRequest):
    """
    Post a text or file message to a room.

    File messages carry the URL returned by POST /upload.

    Raises:
        HTTPException: 404 room_not_found, 403 not_member, 409 duplicate_id
    """
    try:
        message = await state.room_service.post_message(room_id, request)
    except RoomError as e:
        raise to_http_error(e)

    state.message_counter += 1
    return message
