"""Database module for Freight Learning."""

from freight_learning.database.models import (
    Base,
    CustomerKnowledge,
    CustomerIntelligenceProfile,
    LearningCorrection,
    UsageEvent,
    LearningNotification,
)
from freight_learning.database.operations import DatabaseOperations
from freight_learning.database.init_db import (
    init_database,
    check_database,
    reset_database,
    get_database_ops,
)

__all__ = [
    "Base",
    "CustomerKnowledge",
    "CustomerIntelligenceProfile",
    "LearningCorrection",
    "UsageEvent",
    "LearningNotification",
    "DatabaseOperations",
    "init_database",
    "check_database",
    "reset_database",
    "get_database_ops",
]
