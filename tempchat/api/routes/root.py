# tempchat/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "tempchat - temporary rooms for messages and files",
        "version": "1.0",
        "features": ["expiring_rooms", "member_limits", "file_sharing", "realtime_fanout"],
        "endpoints": {
            "websocket": "/ws/{room_id}?name=...",
            "rooms": "/rooms",
            "messages": "/rooms/{room_id}/messages",
            "upload": "/upload?filename=...",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
