import os
import sys
from pathlib import Path

# Tests run on the in-memory store with every external service off.
# Must be set before config.settings is imported.
os.environ["USE_DB"] = "false"
os.environ["MYSQL_ASYNC_URL"] = "disabled"
os.environ["USE_REDIS"] = "false"
os.environ["USE_RABBITMQ"] = "false"
os.environ.pop("EMAIL_USER", None)
os.environ.pop("EMAIL_PASS", None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# Ensure project root is on sys.path so top-level packages import without installing
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


# Explicitly enable pytest-asyncio plugin for async tests/fixtures
pytest_plugins = ("pytest_asyncio",)


from config.settings import settings
from core.locks import bus_locks
from main import app
from services.journey_service import journey_service
from services.notification_service import notification_service
from tools import notifier


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    """Fresh in-memory store, locks and delivery log for every test; no retry sleeps."""
    journey_service.reset()
    bus_locks.reset()
    notification_service.reset()
    monkeypatch.setattr(settings, "NOTIFY_RETRY_BACKOFF_SEC", 0)
    yield
    journey_service.reset()
    bus_locks.reset()
    notification_service.reset()


@pytest.fixture()
def outbox(monkeypatch):
    """Capture emails instead of talking to SMTP."""
    sent = []

    def fake_send_email(to, subject, text, html=None):
        sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return True

    monkeypatch.setattr(notifier, "send_email", fake_send_email)
    return sent


@pytest_asyncio.fixture()
async def client():
    """Async test client for the API app, served in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
