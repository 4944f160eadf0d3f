import asyncio
import json
import logging
from typing import Optional

from google.cloud import pubsub_v1

from tempchat.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class GooglePubSubService:
    """
    Room fan-out over a single Google Cloud Pub/Sub topic.

    Every event carries its ``room_id``; each instance pulls from its
    subscription and routes events to its local ConnectionManager. The
    streaming-pull callback runs on a Pub/Sub worker thread, so delivery is
    scheduled back onto the FastAPI event loop.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        project_id: str,
        topic_id: str,
        subscription_id: str,
        publisher: Optional[pubsub_v1.PublisherClient] = None,
        subscriber: Optional[pubsub_v1.SubscriberClient] = None,
    ) -> None:
        self.connection_manager = connection_manager
        self.publisher = publisher or pubsub_v1.PublisherClient()
        self.subscriber = subscriber or pubsub_v1.SubscriberClient()
        self.topic_path = self.publisher.topic_path(project_id, topic_id)
        self.subscription_path = self.subscriber.subscription_path(project_id, subscription_id)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._streaming_future = None

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Call this once on app startup.
        - loop: FastAPI's event loop, where delivery to WebSockets happens
        """
        self._loop = loop
        self._streaming_future = self.subscriber.subscribe(self.subscription_path, callback=self._callback)
        logger.info(f"✓ Listening for events on {self.subscription_path}")

    def _callback(self, message) -> None:
        try:
            event = json.loads(message.data.decode("utf-8"))
            room_id = event.get("room_id")

            if room_id and self._loop is not None:
                delivery = asyncio.run_coroutine_threadsafe(
                    self.connection_manager.broadcast_to_room(room_id, event), self._loop
                )
                delivery.add_done_callback(lambda f: self._log_delivery(room_id, f))
            else:
                logger.warning("Pub/Sub event without room_id - ignoring")

            message.ack()
        except Exception as exc:
            logger.error(f"Error processing Pub/Sub message: {exc}")
            message.nack()

    @staticmethod
    def _log_delivery(room_id: str, future) -> None:
        if future.cancelled():
            logger.warning(f"Delivery to room {room_id} was cancelled")
        elif future.exception() is not None:
            logger.error(f"Delivery to room {room_id} failed: {future.exception()}")

    def publish_event(self, event: dict) -> str:
        """
        Publish a dict to the topic. Returns Pub/Sub message ID.
        NOTE: This is synchronous (blocks until publish is done).
        """
        data = json.dumps(event).encode("utf-8")
        future = self.publisher.publish(self.topic_path, data=data)
        return future.result()

    async def broadcast_to_room(self, room_id: str, message: dict) -> None:
        message_id = await asyncio.to_thread(self.publish_event, {**message, "room_id": room_id})
        logger.info(f"📨 Published {message.get('type')} for room {room_id} to Pub/Sub ({message_id})")

    def shutdown(self) -> None:
        """Call this once on app shutdown."""
        if self._streaming_future is not None:
            self._streaming_future.cancel()
            self._streaming_future = None
        self.subscriber.close()
