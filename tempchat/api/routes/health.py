# tempchat/api/routes/health.py

from fastapi import APIRouter, HTTPException
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from tempchat.core import state
from tempchat.core.errors import StoreUnavailable
from tempchat.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    """
    Health check endpoint.

    Returns store reachability plus room, message and connection counts.
    Used by container health probes and monitoring.

    Raises:
        HTTPException: 503 if the store cannot be reached
    """
    try:
        with state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        rooms = state.room_service.rooms.count()
        messages = state.room_service.messages.count()
    except (SQLAlchemyError, StoreUnavailable) as e:
        logger.error("Health check failed: %s", e)
        raise HTTPException(status_code=503, detail="Store unavailable")

    return {
        "status": "healthy",
        "store": "connected",
        "rooms": rooms,
        "messages": messages,
        "connections": len(state.connection_manager.connection_rooms),
        "rooms_with_connections": len(state.connection_manager.rooms),
    }


@router.get("/health/db")
def health_db():
    """
    Report which of the expected tables exist in the store.
    """
    try:
        tables = inspect(state.engine).get_table_names()
    except SQLAlchemyError as e:
        logger.error("Database inspection failed: %s", e)
        raise HTTPException(status_code=503, detail="Store unavailable")

    return {
        "connection": "Connected",
        "tables": sorted(t for t in tables if t in ("rooms", "messages")),
    }
