"""Database CRUD operations for Freight Learning."""

import copy
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import and_, create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as SQLSession, sessionmaker
from sqlalchemy.pool import StaticPool

from freight_learning.database.models import (
    TABLES,
    Base,
    CustomerIntelligenceProfile,
    CustomerKnowledge,
    LearningCorrection,
    LearningNotification,
    UsageEvent,
    utcnow,
)
from freight_learning.exceptions import PersistenceError, UnknownTableError


def _to_dict(obj) -> Dict[str, Any]:
    return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}


class DatabaseOperations:
    """Manages database sessions and CRUD operations.

    The generic ``find_one``/``insert``/``update`` methods are the store
    contract offered to callers outside this package. The learning engine,
    tracker and queue use the domain operations below instead, because those
    run their read-modify-write inside a single locked transaction.
    """

    def __init__(self, database_url: str):
        """
        Initialize database operations.

        Args:
            database_url: SQLAlchemy database URL (e.g., sqlite:///freight_learning.db)
        """
        self.database_url = database_url

        if "sqlite" in database_url:
            self.engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        else:
            self.engine = create_engine(database_url, echo=False)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def get_session(self) -> SQLSession:
        """
        Get a new database session.

        Returns:
            SQLAlchemy session object.
        """
        return self.SessionLocal()

    def init_database(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def check_database(self) -> bool:
        """
        Check if all required tables exist.

        Returns:
            True if all tables exist, False otherwise.
        """
        inspector = self._get_inspector()
        existing_tables = set(inspector.get_table_names())
        return set(TABLES).issubset(existing_tables)

    def _get_inspector(self):
        """Get SQLAlchemy inspector for database introspection."""
        from sqlalchemy import inspect
        return inspect(self.engine)

    # ==================== Generic Store Contract ====================

    def _model(self, table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise UnknownTableError(f"Unknown table: {table}") from None

    @staticmethod
    def _where(model, filters: Dict[str, Any]):
        return and_(*(getattr(model, column) == value for column, value in filters.items()))

    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Fetch a single row matching every filter.

        Args:
            table: Logical table name (e.g. "ai_knowledge").
            filters: Column -> value equality filters.

        Returns:
            Row as a dict, or None if nothing matches.
        """
        model = self._model(table)
        session = self.get_session()
        try:
            stmt = select(model).where(self._where(model, filters)).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            return _to_dict(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError("find_one", table, str(e)) from e
        finally:
            session.close()

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a row.

        Args:
            table: Logical table name.
            record: Column -> value mapping.

        Returns:
            The stored row as a dict (including generated id and defaults).
        """
        model = self._model(table)
        session = self.get_session()
        try:
            row = model(**record)
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_dict(row)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("insert", table, str(e)) from e
        finally:
            session.close()

    def update(self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]) -> int:
        """
        Apply a patch to all rows matching the filters.

        Args:
            table: Logical table name.
            filters: Column -> value equality filters.
            patch: Column -> new value mapping.

        Returns:
            Number of rows updated.
        """
        model = self._model(table)
        session = self.get_session()
        try:
            rows = session.execute(select(model).where(self._where(model, filters))).scalars().all()
            for row in rows:
                for column, value in patch.items():
                    setattr(row, column, value)
            session.commit()
            return len(rows)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("update", table, str(e)) from e
        finally:
            session.close()

    # ==================== Knowledge Operations ====================

    def upsert_knowledge(
        self,
        customer_id: int,
        key: str,
        definition: str,
        confidence: float,
        source: str,
        blend: Callable[[Optional[float]], float],
        knowledge_type: str = "term",
        scope: str = "customer",
        now: Optional[datetime] = None,
    ) -> CustomerKnowledge:
        """
        Insert a knowledge entry or reinforce the existing one.

        The lookup and write happen in one transaction with the row locked
        where the backend supports it.

        Args:
            customer_id: Customer ID.
            key: Normalized key (lowercase term).
            definition: Definition text; replaces any existing definition.
            confidence: Confidence used when inserting a new entry.
            source: Extraction source (explicit, implicit, correction).
            blend: Maps the existing confidence (possibly None) to the new one.
            knowledge_type: "term" or "product".
            scope: Knowledge scope; learned entries are "customer".
            now: Timestamp for updated_at.

        Returns:
            CustomerKnowledge object.
        """
        now = now or utcnow()
        session = self.get_session()
        try:
            stmt = (
                select(CustomerKnowledge)
                .where(
                    and_(
                        CustomerKnowledge.customer_id == customer_id,
                        CustomerKnowledge.scope == scope,
                        CustomerKnowledge.knowledge_type == knowledge_type,
                        CustomerKnowledge.key == key,
                    )
                )
                .with_for_update()
            )
            entry = session.execute(stmt).scalar_one_or_none()

            if entry is None:
                entry = CustomerKnowledge(
                    customer_id=customer_id,
                    scope=scope,
                    knowledge_type=knowledge_type,
                    key=key,
                    label=key,
                    definition=definition,
                    confidence=confidence,
                    source=source,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
            else:
                entry.definition = definition
                entry.confidence = blend(entry.confidence)
                entry.is_active = True
                entry.updated_at = now

            session.add(entry)
            session.commit()
            session.refresh(entry)
            return entry
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("upsert", CustomerKnowledge.__tablename__, str(e)) from e
        finally:
            session.close()

    def get_active_knowledge(
        self,
        customer_id: int,
        knowledge_type: str = "term",
        min_confidence: float = 0.0,
        scope: str = "customer",
    ) -> List[CustomerKnowledge]:
        """
        Get active knowledge entries at or above a confidence floor.

        Args:
            customer_id: Customer ID.
            knowledge_type: "term" or "product".
            min_confidence: Inclusive confidence floor.
            scope: Knowledge scope.

        Returns:
            List of CustomerKnowledge objects ordered by key.
        """
        session = self.get_session()
        try:
            stmt = (
                select(CustomerKnowledge)
                .where(
                    and_(
                        CustomerKnowledge.customer_id == customer_id,
                        CustomerKnowledge.scope == scope,
                        CustomerKnowledge.knowledge_type == knowledge_type,
                        CustomerKnowledge.is_active.is_(True),
                        CustomerKnowledge.confidence >= min_confidence,
                    )
                )
                .order_by(CustomerKnowledge.key)
            )
            return session.execute(stmt).scalars().all()
        finally:
            session.close()

    # ==================== Profile Operations ====================

    def get_profile(self, customer_id: int) -> Optional[CustomerIntelligenceProfile]:
        """
        Get a customer's intelligence profile.

        Args:
            customer_id: Customer ID.

        Returns:
            CustomerIntelligenceProfile object or None if not found.
        """
        session = self.get_session()
        try:
            stmt = select(CustomerIntelligenceProfile).where(
                CustomerIntelligenceProfile.customer_id == customer_id
            )
            return session.execute(stmt).scalar_one_or_none()
        finally:
            session.close()

    def update_profile_preferences(
        self,
        customer_id: int,
        mutate: Callable[[Dict[str, Dict[str, float]]], Dict[str, Dict[str, float]]],
        now: Optional[datetime] = None,
    ) -> Dict[str, Dict[str, float]]:
        """
        Read-modify-write the profile's preference weights atomically.

        The profile row is locked (SELECT ... FOR UPDATE) for the duration of
        the transaction, so two turns for the same customer cannot interleave
        their read and write. A profile is created if none exists.

        Args:
            customer_id: Customer ID.
            mutate: Receives a private copy of the current weights and returns
                the weights to store.
            now: Timestamp for updated_at.

        Returns:
            The stored preference weights.
        """
        now = now or utcnow()
        session = self.get_session()
        try:
            stmt = (
                select(CustomerIntelligenceProfile)
                .where(CustomerIntelligenceProfile.customer_id == customer_id)
                .with_for_update()
            )
            profile = session.execute(stmt).scalar_one_or_none()

            current = copy.deepcopy(profile.preferences) if profile and profile.preferences else {}
            updated = mutate(current)

            if profile is None:
                profile = CustomerIntelligenceProfile(
                    customer_id=customer_id,
                    preferences=updated,
                    created_at=now,
                    updated_at=now,
                )
            else:
                profile.preferences = updated
                profile.updated_at = now

            session.add(profile)
            session.commit()
            return updated
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(
                "update_preferences", CustomerIntelligenceProfile.__tablename__, str(e)
            ) from e
        finally:
            session.close()

    # ==================== Correction Operations ====================

    def add_correction(
        self,
        customer_id: int,
        correction_data: Dict[str, Any],
        context: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LearningCorrection:
        """
        Append a correction record.

        Args:
            customer_id: Customer ID.
            correction_data: Decoded correction payload.
            context: Original message text.
            now: Creation timestamp.

        Returns:
            LearningCorrection object.
        """
        session = self.get_session()
        try:
            correction = LearningCorrection(
                customer_id=customer_id,
                correction_data=correction_data,
                context=context,
                processed=False,
                created_at=now or utcnow(),
            )
            session.add(correction)
            session.commit()
            session.refresh(correction)
            return correction
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("insert", LearningCorrection.__tablename__, str(e)) from e
        finally:
            session.close()

    def get_corrections(
        self,
        customer_id: int,
        processed: Optional[bool] = None,
    ) -> List[LearningCorrection]:
        """
        Get corrections for a customer, oldest first.

        Args:
            customer_id: Customer ID.
            processed: Optional filter on the processed flag.

        Returns:
            List of LearningCorrection objects.
        """
        session = self.get_session()
        try:
            stmt = select(LearningCorrection).where(LearningCorrection.customer_id == customer_id)
            if processed is not None:
                stmt = stmt.where(LearningCorrection.processed.is_(processed))
            stmt = stmt.order_by(LearningCorrection.created_at, LearningCorrection.id)
            return session.execute(stmt).scalars().all()
        finally:
            session.close()

    def mark_correction_processed(self, correction_id: int) -> bool:
        """
        Flag a correction as reviewed.

        Args:
            correction_id: Correction ID.

        Returns:
            True if the correction existed.
        """
        session = self.get_session()
        try:
            correction = session.get(LearningCorrection, correction_id)
            if correction is None:
                return False
            correction.processed = True
            session.commit()
            return True
        finally:
            session.close()

    # ==================== Usage Event Operations ====================

    def add_usage_event(
        self,
        customer_id: int,
        event_type: str,
        event_details: Optional[Dict[str, Any]],
        hour_of_day: int,
        day_of_week: int,
        created_at: Optional[datetime] = None,
    ) -> UsageEvent:
        """
        Append a usage event.

        Args:
            customer_id: Customer ID.
            event_type: report_generated, question_asked or section_added.
            event_details: Free-form details.
            hour_of_day: Local hour (0-23).
            day_of_week: Local day, Sunday = 0.
            created_at: Event timestamp (naive UTC).

        Returns:
            UsageEvent object.
        """
        session = self.get_session()
        try:
            event = UsageEvent(
                customer_id=customer_id,
                event_type=event_type,
                event_details=event_details,
                hour_of_day=hour_of_day,
                day_of_week=day_of_week,
                created_at=created_at or utcnow(),
            )
            session.add(event)
            session.commit()
            session.refresh(event)
            return event
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("insert", UsageEvent.__tablename__, str(e)) from e
        finally:
            session.close()

    def get_usage_events_since(self, customer_id: int, since: datetime) -> List[UsageEvent]:
        """
        Get a customer's usage events created at or after a timestamp.

        Args:
            customer_id: Customer ID.
            since: Naive UTC lower bound.

        Returns:
            List of UsageEvent objects, oldest first.
        """
        session = self.get_session()
        try:
            stmt = (
                select(UsageEvent)
                .where(
                    and_(
                        UsageEvent.customer_id == customer_id,
                        UsageEvent.created_at >= since,
                    )
                )
                .order_by(UsageEvent.created_at, UsageEvent.id)
            )
            return session.execute(stmt).scalars().all()
        finally:
            session.close()

    # ==================== Notification Operations ====================

    def create_notification(self, **fields) -> LearningNotification:
        """
        Create a learning notification.

        Args:
            **fields: LearningNotification column values.

        Returns:
            LearningNotification object.
        """
        session = self.get_session()
        try:
            notification = LearningNotification(**fields)
            session.add(notification)
            session.commit()
            session.refresh(notification)
            return notification
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("insert", LearningNotification.__tablename__, str(e)) from e
        finally:
            session.close()

    def get_notifications(
        self,
        statuses: Optional[List[str]] = None,
        customer_id: Optional[int] = None,
        order_by_resolved: bool = False,
        limit: Optional[int] = None,
    ) -> List[LearningNotification]:
        """
        Query learning notifications, newest first.

        Args:
            statuses: Optional status filter.
            customer_id: Optional customer filter.
            order_by_resolved: Order by resolved_at instead of created_at.
            limit: Optional maximum number of rows.

        Returns:
            List of LearningNotification objects.
        """
        session = self.get_session()
        try:
            stmt = select(LearningNotification)
            if statuses:
                stmt = stmt.where(LearningNotification.status.in_(statuses))
            if customer_id is not None:
                stmt = stmt.where(LearningNotification.customer_id == customer_id)
            order_column = (
                LearningNotification.resolved_at if order_by_resolved else LearningNotification.created_at
            )
            stmt = stmt.order_by(order_column.desc(), LearningNotification.id.desc())
            if limit:
                stmt = stmt.limit(limit)
            return session.execute(stmt).scalars().all()
        finally:
            session.close()

    def count_notifications_by_status(self) -> Dict[str, int]:
        """
        Count notifications per status.

        Returns:
            Dictionary of status -> count.
        """
        session = self.get_session()
        try:
            stmt = select(LearningNotification.status, func.count(LearningNotification.id)).group_by(
                LearningNotification.status
            )
            return {status: count for status, count in session.execute(stmt).all()}
        finally:
            session.close()

    def update_notification(self, notification_id: int, **patch) -> Optional[LearningNotification]:
        """
        Update a learning notification.

        Args:
            notification_id: Notification ID.
            **patch: Column values to set.

        Returns:
            Updated LearningNotification or None if not found.
        """
        session = self.get_session()
        try:
            notification = session.get(LearningNotification, notification_id)
            if notification is None:
                return None
            for column, value in patch.items():
                setattr(notification, column, value)
            session.commit()
            session.refresh(notification)
            return notification
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("update", LearningNotification.__tablename__, str(e)) from e
        finally:
            session.close()
