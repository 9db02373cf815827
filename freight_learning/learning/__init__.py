"""Learning system modules for Freight Learning.

This package learns from customer conversations and usage:

- matchers: Regex matchers proposing terminology, preferences, corrections and products
- learning_engine: Persists extractions with confidence blending and reads them back
- pattern_tracker: Records usage events and derives habits and proactive insights
- notification_queue: Admin review queue for terms the assistant flagged
"""

from freight_learning.learning.learning_engine import LearningEngine, TurnLearningResult
from freight_learning.learning.matchers import LearningExtraction
from freight_learning.learning.notification_queue import NotificationQueue
from freight_learning.learning.pattern_tracker import (
    PatternTracker,
    ProactiveInsight,
    UsageEventType,
    UsagePattern,
)

__all__ = [
    "LearningEngine",
    "LearningExtraction",
    "NotificationQueue",
    "PatternTracker",
    "ProactiveInsight",
    "TurnLearningResult",
    "UsageEventType",
    "UsagePattern",
]
