# tempchat/api/routes/metrics.py
from fastapi import APIRouter
from datetime import datetime, timezone

from tempchat.core import state
from tempchat.core.config import settings

router = APIRouter()


@router.get("/metrics")
def get_metrics():
    """
    Usage metrics for this instance.

    Returns:
        dict: Message statistics since startup (total, per second, daily
              projection), stored rooms, live WebSocket connections and the
              configured fan-out backend.

    Example Response:
        {
            "total_messages": 1200,
            "uptime_hours": 3.5,
            "daily_messages_projected": 8228,
            "messages_per_second": 0.1,
            "stored_rooms": 14,
            "concurrent_connections": 23,
            "rooms_with_connections": 6,
            "pub_sub_service": "redis"
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()

    if uptime_seconds > 0:
        messages_per_second = state.message_counter / uptime_seconds
        daily_messages = int(messages_per_second * 86400)
    else:
        messages_per_second = 0
        daily_messages = 0

    return {
        # Statistics
        "total_messages": state.message_counter,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "daily_messages_projected": daily_messages,
        "messages_per_second": round(messages_per_second, 2),

        # Capacity
        "stored_rooms": state.room_service.rooms.count(),
        "concurrent_connections": len(state.connection_manager.connection_rooms),
        "rooms_with_connections": len(state.connection_manager.rooms),

        # Fan-out
        "pub_sub_service": settings.PUB_SUB_SERVICE,
    }
