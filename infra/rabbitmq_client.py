"""
RabbitMQ client for the email notification queue.

Purpose:
- Publish email jobs produced by location updates to a durable queue
- Let workers.notification_worker consume and deliver them out of band
- Support multiple consumers for horizontal scaling

Job payload:
{
  "type": "email_notification",
  "kind": "arrived" | "en_route",
  "to": "...", "subject": "...", "text": "...", "html": "...",
  "attempt": 1
}

Production notes:
- Messages are persistent and acknowledged only after handling
- Failed deliveries are republished with attempt+1 until NOTIFY_MAX_ATTEMPTS
"""
import json
import logging
from typing import Awaitable, Callable, Optional

import aio_pika  # async RabbitMQ client

from config.settings import settings

logger = logging.getLogger(__name__)

EMAIL_QUEUE = "email_notifications"


class RabbitMQClient:
    """Async RabbitMQ publisher / consumer for email jobs."""

    def __init__(self, url: str):
        self.url = url
        self._connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._channel: Optional[aio_pika.abc.AbstractChannel] = None

    async def _ensure_connection(self):
        """Lazily connect to RabbitMQ, open a channel and declare the queue."""
        if self._connection and not self._connection.is_closed and self._channel:
            return
        logger.info("[RabbitMQClient] Connecting to %s", self.url)
        self._connection = await aio_pika.connect_robust(self.url)
        self._channel = await self._connection.channel()
        await self._channel.declare_queue(EMAIL_QUEUE, durable=True)
        logger.info("[RabbitMQClient] Connected and queue '%s' declared", EMAIL_QUEUE)

    async def publish_email_job(self, job: dict) -> bool:
        await self._ensure_connection()
        assert self._channel is not None
        payload = {"type": "email_notification", **job}
        logger.info("[RabbitMQClient] Publishing %s mail to %s (attempt %s)",
                    payload.get("kind"), payload.get("to"), payload.get("attempt", 1))
        await self._channel.default_exchange.publish(
            aio_pika.Message(
                body=json.dumps(payload).encode("utf-8"),
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            ),
            routing_key=EMAIL_QUEUE,
        )
        return True

    async def consume_email_jobs(self, handler: Callable[[dict], Awaitable[None]], prefetch: int = 10):
        """
        Feed every queued job to `handler`. A message is acked once the
        handler returns; malformed bodies are logged and dropped.
        """
        await self._ensure_connection()
        assert self._channel is not None
        await self._channel.set_qos(prefetch_count=prefetch)
        queue = await self._channel.declare_queue(EMAIL_QUEUE, durable=True)
        async with queue.iterator() as it:
            async for message in it:
                async with message.process(requeue=False):
                    try:
                        payload = json.loads(message.body.decode("utf-8"))
                    except (UnicodeDecodeError, json.JSONDecodeError) as e:
                        logger.warning("[RabbitMQClient] Dropping malformed message: %s", e)
                        continue
                    if payload.get("type") != "email_notification":
                        logger.info("[RabbitMQClient] Ignoring message type=%s", payload.get("type"))
                        continue
                    await handler(payload)

    async def disconnect(self):
        if self._connection and not self._connection.is_closed:
            await self._connection.close()
            logger.info("[RabbitMQClient] Connection closed")
        self._connection = None
        self._channel = None

# Singleton instance, used by other services
rabbitmq_client = RabbitMQClient(settings.RABBITMQ_URL)
