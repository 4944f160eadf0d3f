from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from tempchat.core.errors import DuplicateId, NotFound, VersionConflict
from tempchat.models.database import session_scope
from tempchat.models.models import Room
from tempchat.models.tables import MessageRecord, RoomRecord

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM PERSISTENCE
# ============================================================================


class RoomStore:
    """
    Durable CRUD for rooms, keyed by id, with cascading message deletion.

    Every call opens its own short session against the store of record; nothing
    is cached, so reads always reflect the latest committed state. Callers are
    responsible for applying the expiry check (see ``lifecycle.is_expired``)
    before trusting a room returned by ``get``.

    Usage:
        store = RoomStore(session_factory)
        store.create(room)
        room = store.get(room.id)
        store.update_members(room.id, [*room.members, "bob"], expected_version=room.version)
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def create(self, room: Room) -> Room:
        """
        Insert a new room.

        Raises:
            DuplicateId: A room with the same id already exists
        """
        try:
            with session_scope(self.session_factory) as db:
                db.add(RoomRecord.from_model(room))
        except IntegrityError as e:
            raise DuplicateId(f"Room id {room.id} already exists") from e
        logger.info("✓ Stored room %s (%s)", room.id, room.name)
        return room

    def get(self, room_id: str) -> Room:
        """
        Fetch a room by id.

        Raises:
            NotFound: No room with that id
        """
        with session_scope(self.session_factory) as db:
            record = db.get(RoomRecord, room_id)
            if record is None:
                raise NotFound(f"Room {room_id} not found")
            return record.to_model()

    def update_members(
        self,
        room_id: str,
        members: List[str],
        expected_version: Optional[int] = None,
    ) -> Room:
        """
        Replace the member list of a room.

        Without ``expected_version`` the last writer wins. With it, the write
        only lands if the stored version still matches, and bumps the version.

        Raises:
            NotFound: No room with that id
            VersionConflict: The stored version moved on since it was read
        """
        with session_scope(self.session_factory) as db:
            stmt = update(RoomRecord).where(RoomRecord.id == room_id)
            if expected_version is not None:
                stmt = stmt.where(RoomRecord.version == expected_version)
            result = db.execute(
                stmt.values(members=list(members), version=RoomRecord.version + 1)
            )

            if result.rowcount == 0:
                if db.get(RoomRecord, room_id) is None:
                    raise NotFound(f"Room {room_id} not found")
                raise VersionConflict(
                    f"Room {room_id} changed since version {expected_version}"
                )

            record = db.get(RoomRecord, room_id, populate_existing=True)
            return record.to_model()

    def delete(self, room_id: str) -> bool:
        """
        Delete a room and all of its messages in one transaction.

        Returns:
            True if the room was deleted, False if it didn't exist
        """
        with session_scope(self.session_factory) as db:
            db.execute(delete(MessageRecord).where(MessageRecord.room_id == room_id))
            result = db.execute(delete(RoomRecord).where(RoomRecord.id == room_id))
            deleted = result.rowcount > 0

        if deleted:
            logger.info("✓ Deleted room: %s", room_id)
        return deleted

    def sweep_expired(self, now: int) -> int:
        """
        Delete every room whose ``expires_at <= now``, with its messages.

        Returns:
            Number of rooms removed
        """
        with session_scope(self.session_factory) as db:
            expired_ids = db.scalars(
                select(RoomRecord.id).where(RoomRecord.expires_at <= now)
            ).all()
            if not expired_ids:
                return 0
            db.execute(delete(MessageRecord).where(MessageRecord.room_id.in_(expired_ids)))
            db.execute(delete(RoomRecord).where(RoomRecord.id.in_(expired_ids)))

        logger.info("🧹 Cleaned up %d expired rooms", len(expired_ids))
        return len(expired_ids)

    def list_active(self, now: int) -> List[Room]:
        """
        List rooms that have not expired, newest first.

        Expired rooms found on the way are deleted (lazy garbage collection).
        """
        self.sweep_expired(now)
        with session_scope(self.session_factory) as db:
            records = db.scalars(
                select(RoomRecord)
                .where(RoomRecord.expires_at > now)
                .order_by(RoomRecord.created_at.desc())
            ).all()
            return [r.to_model() for r in records]

    def count(self) -> int:
        with session_scope(self.session_factory) as db:
            return db.scalar(select(func.count()).select_from(RoomRecord)) or 0
