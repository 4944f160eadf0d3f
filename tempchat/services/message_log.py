from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from tempchat.core.errors import DuplicateId, RoomNotFound
from tempchat.models.database import session_scope
from tempchat.models.models import Message
from tempchat.models.tables import MessageRecord, RoomRecord

logger = logging.getLogger(__name__)


class MessageLog:
    """
    Append-only, per-room message storage.

    Messages are never edited; they disappear only when their room is deleted.
    Listing orders by ``timestamp`` and falls back on insertion order for ties.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def append(self, room_id: str, message: Message) -> Message:
        """
        Append a message to a room.

        Raises:
            RoomNotFound: The room does not exist (or was deleted meanwhile)
            DuplicateId: The room already holds a message with this id
        """
        message = message.model_copy(update={"room_id": room_id})
        try:
            with session_scope(self.session_factory) as db:
                if db.get(RoomRecord, room_id) is None:
                    raise RoomNotFound(f"Room {room_id} not found")
                db.add(MessageRecord.from_model(message))
        except IntegrityError as e:
            # Either the room vanished between the check and the insert (FK)
            # or the id is already used in this room (unique constraint).
            with session_scope(self.session_factory) as db:
                room_exists = db.get(RoomRecord, room_id) is not None
            if not room_exists:
                raise RoomNotFound(f"Room {room_id} not found") from e
            raise DuplicateId(f"Message id {message.id} already exists in room {room_id}") from e

        logger.debug("Appended message %s to room %s", message.id, room_id)
        return message

    def list_by_room(self, room_id: str) -> List[Message]:
        with session_scope(self.session_factory) as db:
            records = db.scalars(
                select(MessageRecord)
                .where(MessageRecord.room_id == room_id)
                .order_by(MessageRecord.timestamp.asc(), MessageRecord.seq.asc())
            ).all()
            return [r.to_model() for r in records]

    def count(self) -> int:
        with session_scope(self.session_factory) as db:
            return db.scalar(select(func.count()).select_from(MessageRecord)) or 0
