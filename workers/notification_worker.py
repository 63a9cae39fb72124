"""
Email notification delivery worker.

Purpose:
- Consume email jobs that location updates published to RabbitMQ
- Deliver each with a bounded timeout (NOTIFIER_TIMEOUT_SEC)
- Republish failed jobs with attempt+1 until NOTIFY_MAX_ATTEMPTS, then drop
- Run as a separate process (scale horizontally)

Usage:
- python -m workers.notification_worker
"""
import asyncio
import logging

from pydantic import ValidationError

from config.settings import settings
from core.logging import configure_logging
from infra.rabbitmq_client import rabbitmq_client
from models.journey import EmailJob
from services.notification_service import send_once

logger = logging.getLogger(__name__)


class NotificationDeliveryWorker:
    """Worker to deliver email jobs from the RabbitMQ queue."""

    def __init__(self, publisher=rabbitmq_client):
        self.publisher = publisher
        self.delivered = 0
        self.failed = 0

    async def handle(self, payload: dict) -> bool:
        """
        Deliver one job.

        Returns True if delivered. A failed job is republished for another
        attempt unless it has used them all.
        """
        try:
            job = EmailJob.model_validate(payload)
        except ValidationError as e:
            logger.warning("Dropping invalid email job: %s", e)
            self.failed += 1
            return False

        if await send_once(job):
            self.delivered += 1
            logger.info("Delivered %s mail to %s", job.kind, job.to)
            return True

        if job.attempt < settings.NOTIFY_MAX_ATTEMPTS:
            await asyncio.sleep(settings.NOTIFY_RETRY_BACKOFF_SEC)
            retry = job.model_copy(update={"attempt": job.attempt + 1})
            try:
                await self.publisher.publish_email_job(retry.model_dump())
                logger.info("Requeued %s mail to %s (attempt %s)", job.kind, job.to, retry.attempt)
                return False
            except Exception as e:
                logger.error("Requeue failed for %s: %s", job.to, e)

        self.failed += 1
        logger.error("Giving up on %s mail to %s after %s attempt(s)", job.kind, job.to, job.attempt)
        return False

    async def run(self):
        """Start consuming and delivering jobs until cancelled."""
        logger.info("Notification worker started")
        try:
            await rabbitmq_client.consume_email_jobs(self.handle)
        finally:
            await rabbitmq_client.disconnect()
            logger.info("Worker stopped. Delivered: %s, Failed: %s", self.delivered, self.failed)


async def main():
    """Entry point for running the worker."""
    configure_logging(settings.LOG_LEVEL)
    worker = NotificationDeliveryWorker()
    await worker.run()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker interrupted")
