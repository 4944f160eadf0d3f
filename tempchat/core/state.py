# tempchat/core/state.py
from __future__ import annotations

from datetime import datetime, timezone

from tempchat.core.config import settings
from tempchat.models.database import build_engine, make_session_factory
from tempchat.services.blob_store import LocalBlobStore
from tempchat.services.connection_manager import ConnectionManager
from tempchat.services.message_log import MessageLog
from tempchat.services.room_service import RoomService
from tempchat.services.room_store import RoomStore

# Global singletons for app state
engine = build_engine(settings.DATABASE_URL)
session_factory = make_session_factory(engine)

connection_manager = ConnectionManager()
blob_store = LocalBlobStore(settings.UPLOAD_DIR, settings.PUBLIC_BASE_URL)

# The broadcaster is swapped for Redis / Google Pub/Sub on startup when configured
room_service = RoomService(
    rooms=RoomStore(session_factory),
    messages=MessageLog(session_factory),
    broadcaster=connection_manager,
    join_max_attempts=settings.JOIN_MAX_ATTEMPTS,
)

# Set on startup when PUB_SUB_SERVICE is "redis" / "google_pub_sub"
redis_service = None
redis_listener = None
google_pub_sub = None

# Metrics
message_counter: int = 0
app_start_time: datetime = datetime.now(timezone.utc)
