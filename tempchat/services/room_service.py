# tempchat/services/room_service.py

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Set, TypeVar

from tempchat.core.clock import Clock, now_ms
from tempchat.core.ids import generate_id
from tempchat.core.errors import NotCreator, NotFound, NotMember, RoomNotFound, VersionConflict
from tempchat.models.models import (
    CreateRoomRequest,
    Message,
    PostMessageRequest,
    Room,
    RoomDetail,
    RoomEvent,
)
from tempchat.services import lifecycle
from tempchat.services.message_log import MessageLog
from tempchat.services.room_store import RoomStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Broadcaster(Protocol):
    async def broadcast_to_room(self, room_id: str, message: dict) -> None:
        ...


# ============================================================================
# ROOM SERVICE
# ============================================================================

class RoomService:
    """
    Room lifecycle operations exposed to the HTTP and WebSocket layers.

    Every read goes to the store of record and is passed through the lifecycle
    policy: an expired room is deleted on the spot (messages included) and
    reported as NotFound. Writes are persisted first; the matching real-time
    event is then handed to the broadcaster as a fire-and-forget task whose
    failure is logged and never reaches the caller.

    Attributes:
        rooms: RoomStore
        messages: MessageLog
        broadcaster: Anything with ``async broadcast_to_room(room_id, event)``
                     (ConnectionManager, AsyncRedisPubSubService, GooglePubSubService)
        clock: Callable returning epoch milliseconds
    """

    def __init__(
        self,
        rooms: RoomStore,
        messages: MessageLog,
        broadcaster: Optional[Broadcaster] = None,
        clock: Clock = now_ms,
        join_max_attempts: int = 3,
    ) -> None:
        self.rooms = rooms
        self.messages = messages
        self.broadcaster = broadcaster
        self.clock = clock
        self.join_max_attempts = max(1, join_max_attempts)

        self._pending: Set[asyncio.Task] = set()
        self._sweeper: Optional[asyncio.Task] = None

    @staticmethod
    async def _store(call: Callable[..., T], *args, **kwargs) -> T:
        # SQLAlchemy sessions block, so store calls run in a worker thread
        return await asyncio.to_thread(call, *args, **kwargs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_room(self, room_id: str) -> Room:
        """
        Get a live room.

        Raises:
            NotFound: Room absent, or expired (in which case it is deleted now)
        """
        room = await self._store(self.rooms.get, room_id)
        if lifecycle.is_expired(room, self.clock()):
            logger.info("⌛ Room %s has expired. Deleting...", room_id)
            await self._store(self.rooms.delete, room_id)
            raise NotFound(f"Room {room_id} has expired")
        return room

    async def get_room_detail(self, room_id: str) -> RoomDetail:
        room = await self.get_room(room_id)
        return RoomDetail.build(room, await self._store(self.messages.list_by_room, room_id))

    async def list_messages(self, room_id: str) -> List[Message]:
        await self.get_room(room_id)
        return await self._store(self.messages.list_by_room, room_id)

    async def list_rooms(self) -> List[Room]:
        return await self._store(self.rooms.list_active, self.clock())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_room(self, request: CreateRoomRequest) -> Room:
        """
        Create a room with its creator as the first member.

        Raises:
            DuplicateId: The requested id is already used
        """
        created_at = self.clock()
        room = Room(
            id=request.id or generate_id(),
            name=request.name,
            description=request.description or "",
            member_limit=request.member_limit,
            time_limit=request.time_limit,
            created_at=created_at,
            expires_at=lifecycle.compute_expires_at(created_at, request.time_limit),
            creator=request.creator,
            members=[request.creator],
        )
        await self._store(self.rooms.create, room)
        logger.info("✓ Created room: %s (%s) by %s", room.name, room.id, room.creator)
        return room

    async def join_room(self, room_id: str, name: str) -> Room:
        """
        Admit ``name`` into a room.

        The member list is written with a compare-and-swap on the room version;
        when another join lands in between, the room is re-read and the
        admission re-checked, up to ``join_max_attempts`` times.

        Raises:
            NotFound: Room absent or expired
            RoomFull: The roster is at its member limit
            NameTaken: The exact name is already on the roster
            VersionConflict: Lost the race on every attempt
        """
        for attempt in range(1, self.join_max_attempts + 1):
            room = await self.get_room(room_id)
            admitted = lifecycle.can_admit(room, name)
            try:
                updated = await self._store(
                    self.rooms.update_members, room_id, admitted.members, expected_version=room.version
                )
            except VersionConflict:
                logger.info("Join race on room %s (attempt %d), retrying", room_id, attempt)
                continue

            logger.info("→ %s joined '%s' (%d/%d members)", name, updated.name, len(updated.members), updated.member_limit)
            self._fan_out(room_id, "member_join", {"name": name, "members": updated.members})
            return updated

        raise VersionConflict(f"Room {room_id} kept changing, please try again")

    async def delete_room(self, room_id: str, requester_name: str) -> None:
        """
        Delete a room and all its messages. Only its creator may do this.

        Raises:
            NotFound: Room absent or expired
            NotCreator: ``requester_name`` is not the room's creator
        """
        room = await self.get_room(room_id)
        if not lifecycle.can_delete(room, requester_name):
            raise NotCreator(f"Only {room.creator} can delete this room")

        if not await self._store(self.rooms.delete, room_id):
            raise NotFound(f"Room {room_id} not found")
        self._fan_out(room_id, "room_deleted", {"deleted_by": requester_name})

    async def post_message(self, room_id: str, request: PostMessageRequest) -> Message:
        """
        Append a message to a live room.

        Raises:
            RoomNotFound: Room absent or expired
            NotMember: The sender never joined the room
            DuplicateId: The message id is already used in this room
        """
        try:
            room = await self.get_room(room_id)
        except NotFound as e:
            raise RoomNotFound(str(e)) from e

        if request.sender not in room.members:
            raise NotMember(f"{request.sender} is not a member of this room")

        message = Message(
            id=request.id or generate_id(),
            room_id=room_id,
            kind=request.kind,
            content=request.content,
            sender=request.sender,
            timestamp=request.timestamp if request.timestamp is not None else self.clock(),
            file_name=request.file_name,
            file_size=request.file_size,
            file_type=request.file_type,
            file_url=request.file_url,
        )
        await self._store(self.messages.append, room_id, message)
        self._fan_out(room_id, "message", message.model_dump())
        return message

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _fan_out(self, room_id: str, event_type: str, data: dict) -> None:
        if self.broadcaster is None:
            return
        event = RoomEvent(type=event_type, room_id=room_id, data=data, timestamp=self.clock())
        task = asyncio.create_task(self._broadcast(room_id, event.model_dump()))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _broadcast(self, room_id: str, event: dict) -> None:
        try:
            await self.broadcaster.broadcast_to_room(room_id, event)
        except Exception as e:
            logger.warning("Broadcast of %s to room %s failed: %s", event.get("type"), room_id, e)

    async def flush_broadcasts(self) -> None:
        """Wait for every in-flight broadcast to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Expiry sweep
    # ------------------------------------------------------------------

    async def sweep_expired(self) -> int:
        return await self._store(self.rooms.sweep_expired, self.clock())

    def start_sweeper(self, interval_seconds: float) -> None:
        if interval_seconds <= 0 or self._sweeper is not None:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(interval_seconds))
        logger.info("Room sweeper started (every %ss)", interval_seconds)

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep_expired()
            except Exception as e:
                logger.warning("Expired room sweep failed: %s", e)

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
