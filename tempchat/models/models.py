# tempchat/models/models.py
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from tempchat.core.config import settings

MessageKind = Literal["text", "file"]
EventType = Literal["message", "member_join", "room_update", "room_deleted"]

# Upper bounds keep computed epoch-ms values inside a signed 64-bit column
MAX_MEMBER_LIMIT = 10_000
MAX_TIME_LIMIT_HOURS = 24 * 365
MAX_TIMESTAMP_MS = 2**53 - 1
MAX_FILE_SIZE = 2**63 - 1


class Room(BaseModel):
    id: str
    name: str
    description: Optional[str] = ""
    member_limit: int
    time_limit: int
    created_at: int
    expires_at: int
    creator: str
    members: List[str] = Field(default_factory=list)
    version: int = 1


class Message(BaseModel):
    id: str
    room_id: str
    kind: MessageKind = "text"
    content: str
    sender: str
    timestamp: int
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    file_url: Optional[str] = None


class SharedFile(BaseModel):
    id: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    url: Optional[str] = None
    sender: str
    timestamp: int


class RoomDetail(Room):
    """A room together with its ordered messages and the files shared in it."""

    messages: List[Message] = Field(default_factory=list)
    files: List[SharedFile] = Field(default_factory=list)

    @classmethod
    def build(cls, room: Room, messages: List[Message]) -> "RoomDetail":
        files = [
            SharedFile(
                id=m.id,
                file_name=m.file_name,
                file_size=m.file_size,
                file_type=m.file_type,
                url=m.file_url,
                sender=m.sender,
                timestamp=m.timestamp,
            )
            for m in messages
            if m.kind == "file"
        ]
        return cls(**room.model_dump(), messages=messages, files=files)

    def room(self) -> Room:
        return Room(**self.model_dump(exclude={"messages", "files"}))


class CreateRoomRequest(BaseModel):
    id: Optional[str] = Field(None, max_length=50)
    name: str = Field(..., max_length=255)
    description: Optional[str] = ""
    member_limit: int = Field(default_factory=lambda: settings.DEFAULT_MEMBER_LIMIT, gt=0, le=MAX_MEMBER_LIMIT)
    time_limit: int = Field(
        default_factory=lambda: settings.DEFAULT_TIME_LIMIT_HOURS, gt=0, le=MAX_TIME_LIMIT_HOURS
    )
    creator: str = Field(..., max_length=255)


class JoinRoomRequest(BaseModel):
    name: str = Field(..., max_length=255)


class PostMessageRequest(BaseModel):
    id: Optional[str] = Field(None, max_length=50)
    kind: MessageKind = "text"
    content: str
    sender: str = ""
    timestamp: Optional[int] = Field(None, ge=0, le=MAX_TIMESTAMP_MS)
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0, le=MAX_FILE_SIZE)
    file_type: Optional[str] = None
    file_url: Optional[str] = None

    @model_validator(mode="after")
    def check_file_fields(self) -> "PostMessageRequest":
        if self.kind == "file" and not (self.file_name and self.file_url):
            raise ValueError("file messages require file_name and file_url")
        return self


class RoomEvent(BaseModel):
    type: EventType
    room_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: int


class UploadResponse(BaseModel):
    url: str
    pathname: str
    size: int
    content_type: Optional[str] = None
