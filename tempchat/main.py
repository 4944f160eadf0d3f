# tempchat/main.py

from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from tempchat.core import state
from tempchat.core.config import settings
from tempchat.core.logging import setup_logging, get_logger
from tempchat.api.routes import root, health, metrics, rooms, upload
from tempchat.api import websocket as websocket_module
from tempchat.models.database import init_db
from tempchat.services.blob_store import FILES_ROUTE
from tempchat.services.gcloud_pub_sub import GooglePubSubService
from tempchat.services.redis_pub_sub import AsyncRedisPubSubService

# Configure logging first
setup_logging()
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="tempchat - Temporary Rooms")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(rooms.router)
app.include_router(upload.router)

# WebSocket routes
app.include_router(websocket_module.router)

# Shared files
app.mount(FILES_ROUTE, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="files")


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Application starting - fan-out via %s", settings.PUB_SUB_SERVICE)

    init_db(state.engine)

    if settings.PUB_SUB_SERVICE == "redis":
        redis_service = AsyncRedisPubSubService(
            state.connection_manager,
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            access_key=settings.REDIS_ACCESS_KEY,
            ssl=settings.REDIS_SSL,
        )
        await redis_service.connect()

        # Store globally
        state.redis_service = redis_service
        state.room_service.broadcaster = redis_service

        # Start subscriber in background
        state.redis_listener = asyncio.create_task(redis_service.listen("room:*"))
    elif settings.PUB_SUB_SERVICE == "google_pub_sub":
        google_pub_sub = GooglePubSubService(
            state.connection_manager,
            project_id=settings.PROJECT_ID,
            topic_id=settings.TOPIC_ID,
            subscription_id=settings.SUBSCRIPTION_ID,
        )
        google_pub_sub.start(asyncio.get_running_loop())

        state.google_pub_sub = google_pub_sub
        state.room_service.broadcaster = google_pub_sub

    state.room_service.start_sweeper(settings.SWEEP_INTERVAL_SECONDS)


@app.on_event("shutdown")
async def on_shutdown():
    await state.room_service.stop_sweeper()
    await state.room_service.flush_broadcasts()

    if state.redis_service is not None:
        state.redis_listener.cancel()
        try:
            await state.redis_listener
        except asyncio.CancelledError:
            pass
        await state.redis_service.close()
    if state.google_pub_sub is not None:
        state.google_pub_sub.shutdown()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tempchat.main:app", host="0.0.0.0", port=8000)
