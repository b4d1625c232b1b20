"""
Pytest configuration and shared fixtures.

src/ is put on sys.path to simulate Lambda's import behavior, where
Code.from_asset("src") makes src/ the root of the package.
"""

import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import List

import boto3
import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add repository root AND src/ to sys.path if missing."""
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"

    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Ensure boto3 has offline-friendly defaults so tests do not require AWS access.
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")

# Lambda environment variables used by handlers
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("MAIL_BACKEND", "ses")
os.environ.setdefault("MAIL_SENDER", "tickets@example.com")
os.environ.setdefault("BUYERS_TABLE", "test-buyers")
os.environ.setdefault("EVENTS_TABLE", "test-events")
os.environ.setdefault("BATCHES_TABLE", "test-batches")
os.environ.setdefault("TICKETS_TABLE", "test-tickets")

# Create a default boto3 session so resources/clients do not error during import.
boto3.setup_default_session(region_name="eu-west-2")

from models.buyer import Buyer  # noqa: E402
from models.event import Batch, Event  # noqa: E402
from models.timestamp import Timestamp  # noqa: E402
from repositories.memory_repo import InMemoryTicketStore  # noqa: E402
from services.mail_service import Mailer  # noqa: E402
from utils.error_handling import DeliveryFailedError  # noqa: E402

# 2026-03-14 21:00 UTC
EVENT_START = 1773522000


class RecordingMailer(Mailer):
    """Mailer that keeps sent messages in memory; can be told to fail."""

    def __init__(self, fail: bool = False):
        super().__init__("tickets@example.com")
        self.fail = fail
        self.sent: List[dict] = []

    def send(self, recipient, subject, html_body, attachment, filename) -> str:
        if self.fail:
            raise DeliveryFailedError()
        self.sent.append(
            {
                "recipient": recipient,
                "subject": subject,
                "html_body": html_body,
                "attachment": attachment,
                "filename": filename,
            }
        )
        return f"msg-{len(self.sent)}"


@pytest.fixture
def buyer() -> Buyer:
    return Buyer(id="buyer-1", name="Ana Souza", email="ana@example.com")


@pytest.fixture
def event() -> Event:
    return Event(
        id="event-1",
        title="Rock in Rio",
        starts_at=Timestamp.resolved(EVENT_START),
        venue="Parque Olimpico",
    )


@pytest.fixture
def batch() -> Batch:
    return Batch(id="batch-1", event_id="event-1", name="Lote 1", price=Decimal("150"), quantity=3)


@pytest.fixture
def store(buyer, event, batch) -> InMemoryTicketStore:
    """In-memory store seeded with one buyer, one event and one batch."""
    store = InMemoryTicketStore()
    store.put_buyer(buyer)
    store.put_event(event)
    store.put_batch(batch)
    return store


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def failing_mailer() -> RecordingMailer:
    return RecordingMailer(fail=True)
