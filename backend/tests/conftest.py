"""Shared fixtures: an in-memory database and fakes for mail, oracle and alerts."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow.adapters.email import MailMessage, MailThread
from leadflow.config import Settings, load_service_catalog
from leadflow.database import Base
import leadflow.models  # noqa: F401  registers the tables on Base.metadata

NOW = datetime(2025, 3, 12, 15, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    values = {
        "timezone": "America/New_York",
        "confidence_threshold": 0.70,
        "follow_up_after_days": 3,
        "abandon_after_days": 4,
        "flush_batch_size": 50,
        "send_delay_seconds": 0.0,
        "daily_email_quota": 400,
        "email_footer": "Reply STOP to unsubscribe",
        "default_booking_link": "https://calendly.com/your-name/30min",
        "review_email": "owner@example.com",
        "slack_webhook_url": "",
    }
    values.update(overrides)
    return Settings(**values)


class FakeTransport:
    """Records sends and read marks; serves threads from memory."""

    def __init__(self, threads=None, send_ok=True):
        self.threads = list(threads or [])
        self.send_ok = send_ok
        self.sent = []
        self.marked = []
        self.history = {}

    async def send(self, to_email, subject, body):
        self.sent.append((to_email, subject, body))
        return self.send_ok

    def search_unread(self, limit):
        return [t for t in self.threads if t.key not in self.marked][:limit]

    def thread_for(self, address, limit=10):
        return self.history.get(address)

    def mark_read(self, thread):
        self.marked.append(thread.key)
        return True


class FakeNotifier:
    def __init__(self):
        self.reviews = []
        self.hot = []
        self.bookings = []

    async def notify_manual_review(self, lead, reason, reply_text):
        self.reviews.append((lead.email, reason))
        return True

    async def notify_hot_lead(self, lead, topics, status_line):
        self.hot.append((lead.email, topics))
        return True

    async def notify_booking(self, lead, service, booking_time):
        self.bookings.append((lead.email, service, booking_time))
        return True


def reply_thread(sender: str, body: str, uid: str = "1") -> MailThread:
    return MailThread(key=sender, messages=[
        MailMessage(uid=uid, sender=f"Prospect <{sender}>", subject="Re: Free Audit", body=body, unread=True),
    ])


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def catalog():
    return load_service_catalog()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    with session_factory() as s:
        yield s


@pytest.fixture
def redis_client():
    r = MagicMock()
    r.lock.return_value.acquire.return_value = True
    r.get.return_value = None
    return r
