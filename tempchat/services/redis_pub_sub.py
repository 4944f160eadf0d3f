# tempchat/services/redis_pub_sub.py
import json
import logging
from typing import Optional

import redis.asyncio as redis

from tempchat.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

ROOM_CHANNEL_PREFIX = "room:"


class AsyncRedisPubSubService:
    """
    Room fan-out over Redis Pub/Sub, one channel per room (``room:{room_id}``).

    Every instance publishes events to the room's channel and runs one
    ``room:*`` pattern listener that hands what it receives to its local
    ConnectionManager. Redis Pub/Sub is fire-and-forget, which matches the
    best-effort delivery contract of the real-time channel.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        host: str = "localhost",
        port: int = 6379,
        access_key: str = "",
        ssl: bool = False,
    ):
        self.connection_manager = connection_manager
        self.host = host
        self.port = port
        self.access_key = access_key
        self.ssl = ssl
        self.client: Optional[redis.Redis] = None
        self.pubsub = None

    @property
    def url(self) -> str:
        scheme = "rediss" if self.ssl else "redis"
        auth = f":{self.access_key}@" if self.access_key else ""
        return f"{scheme}://{auth}{self.host}:{self.port}"

    async def connect(self):
        """Establish async connection to Redis."""
        self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info(f"✓ Connected to Redis at {self.host}:{self.port}")

    async def publish(self, channel: str, message: dict):
        """Publish message to channel."""
        await self.client.publish(channel, json.dumps(message))
        logger.debug(f"📤 Published to Redis channel '{channel}'")

    async def broadcast_to_room(self, room_id: str, message: dict):
        """
        Broadcast an event to a room via its Redis channel.

        Args:
            room_id: Target room id
            message: Event dict (must include room_id)
        """
        await self.publish(f"{ROOM_CHANNEL_PREFIX}{room_id}", message)
        logger.info(f"📨 Broadcasted {message.get('type')} to room {room_id} via Redis")

    async def route(self, message: dict) -> None:
        """Hand one Redis pub/sub message to the local connection manager."""
        if message.get("type") not in ("message", "pmessage"):
            return
        try:
            data = json.loads(message["data"])
        except (TypeError, ValueError) as e:
            logger.error(f"Error decoding Redis message: {e}")
            return

        room_id = data.get("room_id")
        if not room_id:
            logger.warning("Redis message without room_id - ignoring")
            return

        logger.debug(f"➡ Redis: Routing {data.get('type')} to room={room_id}")
        await self.connection_manager.broadcast_to_room(room_id, data)

    async def listen(self, channel: str = f"{ROOM_CHANNEL_PREFIX}*"):
        """
        Listen to Redis channels and broadcast to local WebSockets.

        For multi-room support, call this with a pattern:
            await redis_service.listen("room:*")
        """
        self.pubsub = self.client.pubsub()

        if "*" in channel:
            await self.pubsub.psubscribe(channel)
            logger.info(f"✓ Subscribed to Redis pattern '{channel}'")
        else:
            await self.pubsub.subscribe(channel)
            logger.info(f"✓ Subscribed to Redis channel '{channel}'")

        async for message in self.pubsub.listen():
            try:
                await self.route(message)
            except Exception as e:
                logger.error(f"Error processing Redis message: {e}")

    async def close(self):
        """Close connections."""
        if self.pubsub:
            await self.pubsub.punsubscribe()
            await self.pubsub.unsubscribe()
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
