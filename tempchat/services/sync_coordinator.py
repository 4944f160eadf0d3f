# tempchat/services/sync_coordinator.py

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterable, Awaitable, Callable, Optional

from tempchat.core.clock import Clock, now_ms
from tempchat.core.config import settings
from tempchat.core.ids import generate_id
from tempchat.core.errors import NotFound, StoreUnavailable
from tempchat.models.models import Message, PostMessageRequest, Room, RoomDetail
from tempchat.services import lifecycle
from tempchat.services.rooms_client import RoomsApiClient

logger = logging.getLogger(__name__)

GoneCallback = Callable[[str], Optional[Awaitable[None]]]


# ============================================================================
# CLIENT-SIDE ROOM SYNC
# ============================================================================

class SyncCoordinator:
    """
    Keeps one client's view of a room consistent with the server.

    Two channels feed the local ``state``:

    Pull:
        ``refresh()`` re-fetches the whole room (metadata + messages) and
        replaces local state wholesale. ``start()`` runs it on an interval.
        Always correct, lags by at most one poll interval.

    Push:
        ``apply_event()`` merges real-time events (RoomEvent dicts). Delivery is
        best effort, so merging is idempotent: messages are de-duplicated by id
        and members by exact name. The next pull is the consistency backstop.

    Local mutations (join, send) are applied optimistically, persisted through
    the API, and rolled back if the API call fails.

    Once the room is gone (404 on pull, ``room_deleted`` push, or the expiry
    countdown hits zero) local state is cleared, background tasks stop and
    ``on_gone`` is called with the reason.
    """

    def __init__(
        self,
        api: RoomsApiClient,
        room_id: str,
        user_name: str,
        poll_interval: float = settings.POLL_INTERVAL_SECONDS,
        clock: Clock = now_ms,
        on_gone: Optional[GoneCallback] = None,
    ) -> None:
        self.api = api
        self.room_id = room_id
        self.user_name = user_name
        self.poll_interval = poll_interval
        self.clock = clock
        self.on_gone = on_gone

        self.state: Optional[RoomDetail] = None
        self.gone = False
        self.time_left = ""

        self._poll_task: Optional[asyncio.Task] = None
        self._countdown_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def refresh(self) -> Optional[RoomDetail]:
        """
        Replace local state with the server's view of the room.

        A transient StoreUnavailable is retried once before it is raised.
        """
        try:
            detail = await self._fetch_with_retry()
        except NotFound:
            await self._mark_gone("not_found")
            return None

        self.state = detail
        return detail

    async def _fetch_with_retry(self) -> RoomDetail:
        try:
            return await self.api.get_room(self.room_id)
        except StoreUnavailable:
            logger.info("Refresh of room %s failed, retrying once", self.room_id)
            return await self.api.get_room(self.room_id)

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------

    @property
    def has_joined(self) -> bool:
        return self.state is not None and self.user_name in self.state.members

    @property
    def is_creator(self) -> bool:
        return self.state is not None and self.state.creator == self.user_name

    async def join(self) -> Room:
        """
        Join the room as ``user_name``.

        Raises whatever the server answered (RoomFull, NameTaken, NotFound,
        StoreUnavailable, ...) after undoing the optimistic roster change.
        """
        added = self.state is not None and self._add_member(self.user_name)
        try:
            room = await self.api.join_room(self.room_id, self.user_name)
        except Exception:
            if added and self.state is not None and self.user_name in self.state.members:
                self.state.members.remove(self.user_name)
            raise

        if self.state is not None:
            self.state = self.state.model_copy(update=room.model_dump())
        return room

    async def send_message(self, content: str) -> Message:
        return await self._send(PostMessageRequest(kind="text", content=content, sender=self.user_name))

    async def send_file(self, file_name: str, data: bytes, file_type: Optional[str] = None) -> Message:
        """
        Upload a file to the blob store, then share it as a file message.

        Raises:
            UploadFailed: The upload failed; nothing was applied locally
        """
        upload = await self.api.upload(file_name, data, file_type)
        return await self._send(
            PostMessageRequest(
                kind="file",
                content=f"Shared a file: {file_name}",
                sender=self.user_name,
                file_name=file_name,
                file_size=len(data),
                file_type=file_type or upload.content_type,
                file_url=upload.url,
            )
        )

    async def _send(self, request: PostMessageRequest) -> Message:
        request = request.model_copy(update={"id": generate_id(), "timestamp": self.clock()})
        optimistic = Message(room_id=self.room_id, **request.model_dump())
        self._add_message(optimistic)

        try:
            message = await self.api.post_message(self.room_id, request)
        except Exception:
            self._remove_message(optimistic.id)
            raise
        return message

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def apply_event(self, event: dict) -> None:
        """
        Merge one real-time event into local state.

        Events for other rooms, and events arriving before the first pull, are
        ignored; the next refresh carries them anyway.
        """
        if event.get("room_id") != self.room_id:
            return

        event_type = event.get("type")
        data = event.get("data") or {}

        if event_type == "room_deleted":
            await self._mark_gone("deleted")
            return
        if self.state is None:
            return

        if event_type == "message":
            self._add_message(Message(**data))
        elif event_type == "member_join":
            for name in data.get("members") or [data.get("name")]:
                if name:
                    self._add_member(name)
        elif event_type == "room_update":
            fields = {k: v for k, v in data.items() if k in Room.model_fields and k != "id"}
            self.state = self.state.model_copy(update=fields)
        else:
            logger.debug("Ignoring unknown event type %s", event_type)

    async def consume(self, events: AsyncIterable[dict]) -> None:
        """Apply every event from a push stream until it ends or the room is gone."""
        async for event in events:
            await self.apply_event(event)
            if self.gone:
                break

    def _add_message(self, message: Message) -> bool:
        if self.state is None or any(m.id == message.id for m in self.state.messages):
            return False

        # Keep timestamp order; equal timestamps stay in arrival order
        messages = self.state.messages
        index = len(messages)
        while index > 0 and messages[index - 1].timestamp > message.timestamp:
            index -= 1
        messages.insert(index, message)

        if message.kind == "file":
            self.state = RoomDetail.build(self.state.room(), messages)
        return True

    def _remove_message(self, message_id: str) -> None:
        if self.state is None:
            return
        remaining = [m for m in self.state.messages if m.id != message_id]
        self.state = RoomDetail.build(self.state.room(), remaining)

    def _add_member(self, name: str) -> bool:
        if self.state is None or name in self.state.members:
            return False
        self.state.members.append(name)
        return True

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start polling and the expiry countdown."""
        if self._poll_task is None:
            self._poll_task = asyncio.create_task(self._poll_loop())
        if self._countdown_task is None:
            self._countdown_task = asyncio.create_task(self._countdown_loop())

    async def _poll_loop(self) -> None:
        while not self.gone:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.refresh()
            except StoreUnavailable as e:
                logger.warning("Polling room %s failed: %s", self.room_id, e)

    async def _countdown_loop(self) -> None:
        while not self.gone:
            if self.state is not None:
                remaining = lifecycle.time_remaining(self.state, self.clock())
                if remaining <= 0:
                    await self._mark_gone("expired")
                    return
                self.time_left = lifecycle.format_time_left(remaining)
            await asyncio.sleep(1)

    async def close(self) -> None:
        """Cancel polling and countdown; safe to call more than once."""
        current = asyncio.current_task()
        tasks = [t for t in (self._poll_task, self._countdown_task) if t is not None]
        self._poll_task = self._countdown_task = None

        for task in tasks:
            if task is not current:
                task.cancel()
        for task in tasks:
            if task is current:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _mark_gone(self, reason: str) -> None:
        if self.gone:
            return
        self.gone = True
        self.state = None
        self.time_left = ""
        logger.info("Room %s is gone (%s)", self.room_id, reason)

        await self.close()
        if self.on_gone is not None:
            result = self.on_gone(reason)
            if asyncio.iscoroutine(result):
                await result
