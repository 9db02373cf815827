"""Review queue for terms the assistant could not resolve on its own.

When a customer clarifies an unfamiliar term, the assistant emits a hidden
learning flag. Each flag becomes a pending notification that an admin either
promotes to knowledge (``added_hard`` / ``added_soft``) or dismisses.
"""

from typing import Optional

from freight_learning.database.models import utcnow
from freight_learning.exceptions import NotificationNotFoundError
from freight_learning.utils.logger import get_logger

logger = get_logger(__name__)

CONFIDENCE_LEVELS = ("high", "medium", "low")
RESOLUTION_TYPES = ("added_hard", "added_soft", "dismissed")
STATUSES = ("pending", "resolved", "dismissed")


class NotificationQueue:
    """Admin review queue backed by the ai_learning_notifications table."""

    def __init__(self, db_ops):
        """Initialize NotificationQueue.

        Args:
            db_ops: DatabaseOperations instance
        """
        self.db_ops = db_ops

    def create_notification(
        self,
        customer_id: int,
        user_query: str,
        unknown_term: str,
        confidence: str = "medium",
        customer_name: Optional[str] = None,
        conversation_id: Optional[str] = None,
        ai_response: Optional[str] = None,
        suggested_field: Optional[str] = None,
        suggested_keywords: Optional[list[str]] = None,
    ):
        """Queue a pending notification.

        Raises:
            ValueError: If confidence is not high, medium or low
            PersistenceError: If the notification could not be stored
        """
        if confidence not in CONFIDENCE_LEVELS:
            raise ValueError(f"Invalid confidence: {confidence}")

        try:
            notification = self.db_ops.create_notification(
                customer_id=customer_id,
                customer_name=customer_name,
                conversation_id=conversation_id,
                user_query=user_query,
                unknown_term=unknown_term,
                ai_response=ai_response,
                suggested_field=suggested_field,
                suggested_keywords=suggested_keywords,
                confidence=confidence,
                status="pending",
            )
        except Exception as e:
            logger.error("Error creating notification", customer_id=customer_id, error=str(e))
            raise

        logger.info(
            "Learning notification queued",
            customer_id=customer_id,
            term=unknown_term,
            notification_id=notification.id,
        )
        return notification

    def get_pending(self) -> list:
        """Pending notifications, newest first."""
        try:
            return self.db_ops.get_notifications(statuses=["pending"])
        except Exception as e:
            logger.error("Error fetching pending notifications", error=str(e))
            return []

    def get_by_customer(self, customer_id: int) -> list:
        """All notifications for a customer, newest first."""
        try:
            return self.db_ops.get_notifications(customer_id=customer_id)
        except Exception as e:
            logger.error("Error fetching notifications by customer", customer_id=customer_id, error=str(e))
            return []

    def get_counts(self) -> dict[str, int]:
        """Notification counts for each status."""
        try:
            counts = self.db_ops.count_notifications_by_status()
        except Exception as e:
            logger.error("Error counting notifications", error=str(e))
            counts = {}
        return {status: counts.get(status, 0) for status in STATUSES}

    def resolve(
        self,
        notification_id: int,
        resolution_type: str,
        user_id: str,
        notes: Optional[str] = None,
    ):
        """Close a notification.

        Args:
            notification_id: Notification ID
            resolution_type: added_hard, added_soft or dismissed
            user_id: Reviewer
            notes: Optional reviewer notes

        Returns:
            The updated notification

        Raises:
            ValueError: If resolution_type is unknown
            NotificationNotFoundError: If the notification does not exist
        """
        if resolution_type not in RESOLUTION_TYPES:
            raise ValueError(f"Invalid resolution type: {resolution_type}")

        status = "dismissed" if resolution_type == "dismissed" else "resolved"
        try:
            notification = self.db_ops.update_notification(
                notification_id,
                status=status,
                resolution_type=resolution_type,
                resolution_notes=notes,
                resolved_by=user_id,
                resolved_at=utcnow(),
            )
        except Exception as e:
            logger.error("Error resolving notification", notification_id=notification_id, error=str(e))
            raise

        if notification is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")

        logger.info(
            "Learning notification resolved",
            notification_id=notification_id,
            status=status,
            resolution_type=resolution_type,
        )
        return notification

    def dismiss(self, notification_id: int, user_id: str, notes: Optional[str] = None):
        """Shorthand for resolving as dismissed."""
        return self.resolve(notification_id, "dismissed", user_id, notes)

    def get_resolved(self, limit: int = 50) -> list:
        """Resolved and dismissed notifications, most recently closed first."""
        try:
            return self.db_ops.get_notifications(
                statuses=["resolved", "dismissed"],
                order_by_resolved=True,
                limit=limit,
            )
        except Exception as e:
            logger.error("Error fetching resolved notifications", error=str(e))
            return []
