"""
Models for tempchat: pydantic API models and SQLAlchemy tables.
"""

from .models import (
    CreateRoomRequest,
    JoinRoomRequest,
    Message,
    PostMessageRequest,
    Room,
    RoomDetail,
    RoomEvent,
    SharedFile,
    UploadResponse,
)
from .database import Base, build_engine, init_db, make_session_factory, session_scope
from .tables import MessageRecord, RoomRecord
