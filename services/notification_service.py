# services/notification_service.py
"""
Render passenger emails and deliver them without holding up the request.

- Preferred: publish to RabbitMQ (workers.notification_worker delivers)
- Fallback: a tracked background asyncio task in this process

Both paths share the same policy: every attempt is bounded by
NOTIFIER_TIMEOUT_SEC, at most NOTIFY_MAX_ATTEMPTS attempts, then the mail is
logged as lost. Journey state is never rolled back for a failed mail.
"""
import asyncio
import logging
from typing import Iterable, List, Optional

from config.settings import settings
from infra.rabbitmq_client import rabbitmq_client
from models.journey import EmailJob
from services.notification_evaluator import NotificationEvent
from tools import notifier

logger = logging.getLogger(__name__)

BRAND = "Yathra Bus Tracking"

_CARD = (
    '<div style="font-family: \'Segoe UI\', Tahoma, sans-serif; max-width: 600px; margin: auto; '
    'padding: 30px; border: 1px solid #e2e8f0; border-radius: 12px;">'
    '<h1 style="color: #2563eb; text-align: center; font-size: 24px;">{brand}</h1>{body}'
    '<hr style="border: none; border-top: 1px solid #f1f5f9; margin: 30px 0;">'
    '<p style="font-size: 12px; color: #94a3b8; text-align: center;">{footer}</p></div>'
)


def render_arrived(dropoff: str) -> tuple[str, str, str]:
    subject = f"Arrived at {dropoff}"
    text = f"You have reached your destination: {dropoff}. Thank you for traveling with us!"
    body = (
        '<h2 style="color: #059669;">Destination Reached!</h2>'
        f"<p>Your bus has arrived at your destination: <strong>{dropoff}</strong>.</p>"
        "<p>Thank you for choosing Yathra. We hope you had a pleasant journey!</p>"
    )
    return subject, text, _CARD.format(brand=BRAND, body=body, footer="Yathra Automated Arrival Notification")


def render_en_route(bus_number: str, event: NotificationEvent) -> tuple[str, str, str]:
    lat, lng = event.location.lat, event.location.lng
    subject = f"Live Update: Bus {bus_number} Tracking"
    text = (
        f"Bus {bus_number} Update: Current Location - Lat: {lat:.4f}, Lng: {lng:.4f}. "
        f"Estimated time to reach {event.dropoff_location}: {event.eta_minutes} mins "
        f"({event.distance_km:.1f} km away)."
    )
    map_link = f"https://www.google.com/maps?q={lat},{lng}"
    body = (
        '<h2 style="color: #1e293b;">Tracking Update</h2>'
        f"<p>Your bus (<strong>{bus_number}</strong>) is currently on its way to "
        f"<strong>{event.dropoff_location}</strong>.</p>"
        f"<p><strong>Distance remaining:</strong> {event.distance_km:.1f} km</p>"
        f"<p><strong>Estimated arrival:</strong> {event.eta_minutes} minutes</p>"
        f'<p><a href="{map_link}">View Live Location on Maps</a></p>'
        "<p>Next update will be sent in 15 minutes.</p>"
    )
    return subject, text, _CARD.format(brand=BRAND, body=body, footer="Yathra Tracking System")


def build_job(event: NotificationEvent, to: str, bus_number: str) -> EmailJob:
    if event.kind == "arrived":
        subject, text, html = render_arrived(event.dropoff_location)
    else:
        subject, text, html = render_en_route(bus_number, event)
    return EmailJob(kind=event.kind, passenger_id=event.passenger_id, to=to, subject=subject, text=text, html=html)


async def send_once(job: EmailJob, timeout: Optional[float] = None) -> bool:
    """One timeout-bounded delivery attempt. Never raises."""
    timeout = settings.NOTIFIER_TIMEOUT_SEC if timeout is None else timeout
    try:
        return bool(await asyncio.wait_for(
            asyncio.to_thread(notifier.send_email, job.to, job.subject, job.text, job.html),
            timeout=timeout,
        ))
    except asyncio.TimeoutError:
        logger.warning("Email to %s timed out after %ss (attempt %s)", job.to, timeout, job.attempt)
    except Exception:
        logger.exception("Email to %s raised (attempt %s)", job.to, job.attempt)
    return False


class NotificationService:
    def __init__(self):
        self.sent_notifications: List[dict] = []
        self._tasks: set[asyncio.Task] = set()

    async def dispatch(self, jobs: Iterable[EmailJob]) -> int:
        """Hand jobs off for delivery and return immediately. Returns how many were queued."""
        count = 0
        for job in jobs:
            count += 1
            if settings.USE_RABBITMQ:
                try:
                    await rabbitmq_client.publish_email_job(job.model_dump())
                    self._record(job, published=True, delivered=None)
                    continue
                except Exception as e:
                    logger.error("RabbitMQ publish failed (%s); delivering in-process", e)
            task = asyncio.create_task(self.deliver(job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return count

    async def deliver(self, job: EmailJob) -> bool:
        """In-process delivery with the retry policy."""
        max_attempts = max(1, settings.NOTIFY_MAX_ATTEMPTS)
        while True:
            delivered = await send_once(job)
            if delivered or job.attempt >= max_attempts:
                break
            await asyncio.sleep(settings.NOTIFY_RETRY_BACKOFF_SEC)
            job = job.model_copy(update={"attempt": job.attempt + 1})
        if not delivered:
            logger.error("Giving up on %s mail to %s after %s attempt(s)", job.kind, job.to, job.attempt)
        self._record(job, published=False, delivered=delivered)
        return delivered

    async def drain(self):
        """Wait for in-process deliveries (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _record(self, job: EmailJob, published: bool, delivered: Optional[bool]):
        self.sent_notifications.append({
            "kind": job.kind,
            "passenger_id": job.passenger_id,
            "to": job.to,
            "subject": job.subject,
            "attempts": job.attempt,
            "published": published,
            "delivered": delivered,
        })
        del self.sent_notifications[:-100]

    def recent_notifications(self):
        """Return the last 20 notifications; synchronous helper for compatibility."""
        return self.sent_notifications[-20:]

    def reset(self):
        self.sent_notifications.clear()
        self._tasks.clear()

# singleton
notification_service = NotificationService()
