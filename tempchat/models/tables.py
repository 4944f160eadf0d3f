"""
Relational tables for rooms and their messages.
"""

from sqlalchemy import JSON, BigInteger, Column, ForeignKey, Integer, String, Text, UniqueConstraint

from .database import Base
from .models import Message, Room


class RoomRecord(Base):
    __tablename__ = "rooms"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    member_limit = Column(Integer, nullable=False, default=10)
    time_limit = Column(Integer, nullable=False, default=24)
    created_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False, index=True)
    creator = Column(String(255), nullable=False)
    members = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)

    @classmethod
    def from_model(cls, room: Room) -> "RoomRecord":
        return cls(**room.model_dump())

    def to_model(self) -> Room:
        return Room(
            id=self.id,
            name=self.name,
            description=self.description or "",
            member_limit=self.member_limit,
            time_limit=self.time_limit,
            created_at=self.created_at,
            expires_at=self.expires_at,
            creator=self.creator,
            members=list(self.members or []),
            version=self.version,
        )

    def __repr__(self):
        return f"<RoomRecord {self.id} '{self.name}'>"


class MessageRecord(Base):
    __tablename__ = "messages"
    __table_args__ = (UniqueConstraint("room_id", "id", name="uq_messages_room_id_id"),)

    # Insertion order, breaks timestamp ties
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(50), nullable=False)
    room_id = Column(String(50), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default="text")
    content = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=True)
    file_size = Column(BigInteger, nullable=True)
    file_type = Column(String(100), nullable=True)
    file_url = Column(Text, nullable=True)
    sender = Column(String(255), nullable=False)
    timestamp = Column(BigInteger, nullable=False, index=True)

    @classmethod
    def from_model(cls, message: Message) -> "MessageRecord":
        return cls(**message.model_dump())

    def to_model(self) -> Message:
        return Message(
            id=self.id,
            room_id=self.room_id,
            kind=self.kind,
            content=self.content,
            sender=self.sender,
            timestamp=self.timestamp,
            file_name=self.file_name,
            file_size=self.file_size,
            file_type=self.file_type,
            file_url=self.file_url,
        )

    def __repr__(self):
        return f"<MessageRecord {self.id} from {self.sender}>"
