"""Pytest configuration and shared fixtures for Freight Learning tests."""

from datetime import datetime, timedelta

import pytest
import pytz

from freight_learning.database.operations import DatabaseOperations
from freight_learning.learning.learning_engine import LearningEngine
from freight_learning.learning.notification_queue import NotificationQueue
from freight_learning.learning.pattern_tracker import PatternTracker

CUSTOMER_ID = 42


class FixedClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def db_ops():
    """Create an in-memory SQLite DatabaseOperations instance for testing.

    Initializes all database tables and yields the instance.
    """
    db = DatabaseOperations("sqlite:///:memory:")
    db.init_database()

    yield db


@pytest.fixture
def clock():
    """Clock pinned to Wednesday 2026-10-14 14:30 UTC."""
    return FixedClock(datetime(2026, 10, 14, 14, 30, tzinfo=pytz.utc))


@pytest.fixture
def customer_id():
    return CUSTOMER_ID


@pytest.fixture
def notification_queue(db_ops):
    return NotificationQueue(db_ops)


@pytest.fixture
def engine(db_ops, clock, notification_queue):
    """LearningEngine for the test customer with a fixed clock."""
    return LearningEngine(db_ops, CUSTOMER_ID, clock=clock, notification_queue=notification_queue)


@pytest.fixture
def tracker(db_ops, clock):
    """PatternTracker for the test customer, bucketing in UTC."""
    return PatternTracker(db_ops, CUSTOMER_ID, clock=clock, timezone="UTC")
