"""SQLAlchemy ORM models for the Freight Learning store."""

from datetime import datetime
from typing import Optional

import pytz
from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp for column defaults."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# ---------------------------------------------------------------------------
# Knowledge & profile models
# ---------------------------------------------------------------------------

class CustomerKnowledge(Base):
    """Learned terminology or product entry for a customer.

    One row per (customer, scope, knowledge_type, key). Re-observing the
    same key updates the row in place, which keeps at most one active
    definition per term.
    """

    __tablename__ = "ai_knowledge"
    __table_args__ = (
        UniqueConstraint("customer_id", "scope", "knowledge_type", "key", name="unique_customer_knowledge"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    scope: Mapped[str] = mapped_column(String(50), default="customer", nullable=False)
    knowledge_type: Mapped[str] = mapped_column(String(50), default="term", nullable=False)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    definition: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    source: Mapped[str] = mapped_column(String(50), default="explicit", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<CustomerKnowledge(id={self.id}, customer_id={self.customer_id}, key={self.key})>"


class CustomerIntelligenceProfile(Base):
    """Per-customer profile document.

    ``preferences`` maps category -> {value: weight}. The remaining document
    fields are maintained by the profile editor and only carried here.
    """

    __tablename__ = "customer_intelligence_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)
    preferences: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    priorities: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    products: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    markets: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    terminology: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<CustomerIntelligenceProfile(id={self.id}, customer_id={self.customer_id})>"


# ---------------------------------------------------------------------------
# Append-only logs
# ---------------------------------------------------------------------------

class LearningCorrection(Base):
    """A correction the customer gave the assistant, awaiting review."""

    __tablename__ = "ai_learning_corrections"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    correction_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LearningCorrection(id={self.id}, customer_id={self.customer_id}, processed={self.processed})>"


class UsageEvent(Base):
    """Discrete usage event feeding pattern analysis."""

    __tablename__ = "customer_usage_events"
    __table_args__ = (
        Index("ix_usage_customer_created", "customer_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    event_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    hour_of_day: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<UsageEvent(id={self.id}, customer_id={self.customer_id}, event_type={self.event_type})>"


class LearningNotification(Base):
    """Unknown term the assistant flagged for admin review."""

    __tablename__ = "ai_learning_notifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    conversation_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_query: Mapped[str] = mapped_column(Text, nullable=False)
    unknown_term: Mapped[str] = mapped_column(String(255), nullable=False)
    ai_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    suggested_field: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    suggested_keywords: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    confidence: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolution_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LearningNotification(id={self.id}, term={self.unknown_term}, status={self.status})>"


# Logical table name -> model, for the generic find_one/insert/update contract
TABLES = {
    model.__tablename__: model
    for model in (
        CustomerKnowledge,
        CustomerIntelligenceProfile,
        LearningCorrection,
        UsageEvent,
        LearningNotification,
    )
}
