"""Tests for the learning NotificationQueue."""

from unittest.mock import MagicMock

import pytest

from freight_learning.exceptions import NotificationNotFoundError
from freight_learning.learning.notification_queue import NotificationQueue


def _queue_term(queue, term, customer_id=42, confidence="medium"):
    return queue.create_notification(
        customer_id=customer_id,
        user_query=f"How many {term} last week?",
        unknown_term=term,
        confidence=confidence,
    )


class TestCreateNotification:
    """Test suite for queueing notifications."""

    def test_created_pending(self, notification_queue):
        notification = _queue_term(notification_queue, "drayage", confidence="low")

        assert notification.id is not None
        assert notification.status == "pending"
        assert notification.confidence == "low"
        assert notification.resolved_at is None

    def test_invalid_confidence(self, notification_queue):
        with pytest.raises(ValueError):
            _queue_term(notification_queue, "drayage", confidence="certain")

    def test_storage_error_propagates(self):
        broken = MagicMock()
        broken.create_notification.side_effect = ConnectionError("store unreachable")
        queue = NotificationQueue(broken)

        with pytest.raises(ConnectionError):
            _queue_term(queue, "drayage")


class TestQueries:
    """Test suite for reading the queue."""

    def test_pending_newest_first(self, notification_queue):
        first = _queue_term(notification_queue, "drayage")
        second = _queue_term(notification_queue, "deadhead")

        pending = notification_queue.get_pending()

        assert [n.id for n in pending] == [second.id, first.id]

    def test_by_customer(self, notification_queue):
        _queue_term(notification_queue, "drayage", customer_id=1)
        _queue_term(notification_queue, "deadhead", customer_id=2)

        assert [n.unknown_term for n in notification_queue.get_by_customer(2)] == ["deadhead"]

    def test_counts_include_every_status(self, notification_queue):
        first = _queue_term(notification_queue, "drayage")
        _queue_term(notification_queue, "deadhead")
        notification_queue.dismiss(first.id, user_id="admin")

        assert notification_queue.get_counts() == {"pending": 1, "resolved": 0, "dismissed": 1}

    def test_read_failures_return_empty(self):
        broken = MagicMock()
        broken.get_notifications.side_effect = ConnectionError("store unreachable")
        broken.count_notifications_by_status.side_effect = ConnectionError("store unreachable")
        queue = NotificationQueue(broken)

        assert queue.get_pending() == []
        assert queue.get_resolved() == []
        assert queue.get_counts() == {"pending": 0, "resolved": 0, "dismissed": 0}


class TestResolution:
    """Test suite for closing notifications."""

    def test_resolve_added_hard(self, notification_queue):
        notification = _queue_term(notification_queue, "drayage")

        resolved = notification_queue.resolve(notification.id, "added_hard", "admin", notes="port moves")

        assert resolved.status == "resolved"
        assert resolved.resolution_type == "added_hard"
        assert resolved.resolved_by == "admin"
        assert resolved.resolution_notes == "port moves"
        assert resolved.resolved_at is not None
        assert notification_queue.get_pending() == []

    def test_dismiss(self, notification_queue):
        notification = _queue_term(notification_queue, "drayage")

        dismissed = notification_queue.dismiss(notification.id, "admin")

        assert dismissed.status == "dismissed"
        assert dismissed.resolution_type == "dismissed"

    def test_resolved_listing(self, notification_queue):
        first = _queue_term(notification_queue, "drayage")
        second = _queue_term(notification_queue, "deadhead")
        _queue_term(notification_queue, "reefer")
        notification_queue.resolve(first.id, "added_soft", "admin")
        notification_queue.dismiss(second.id, "admin")

        resolved = notification_queue.get_resolved()

        assert {n.id for n in resolved} == {first.id, second.id}
        assert len(notification_queue.get_resolved(limit=1)) == 1

    def test_unknown_resolution_type(self, notification_queue):
        notification = _queue_term(notification_queue, "drayage")

        with pytest.raises(ValueError):
            notification_queue.resolve(notification.id, "approved", "admin")

    def test_missing_notification(self, notification_queue):
        with pytest.raises(NotificationNotFoundError):
            notification_queue.resolve(9999, "added_soft", "admin")
