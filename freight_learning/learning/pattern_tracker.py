"""Usage pattern tracking.

Records discrete usage events and derives descriptive habits from them: the
hour a customer usually works, the weekday they usually run reports, and the
report types they keep coming back to. Thresholds are plain repetition counts,
not significance tests.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Optional

from freight_learning.config.settings import TrackerConfig, settings as default_settings
from freight_learning.utils.clock import DAY_NAMES, Clock, js_day_of_week, now_utc, to_local, to_naive_utc
from freight_learning.utils.logger import get_logger

logger = get_logger(__name__)


class UsageEventType(str, Enum):
    REPORT_GENERATED = "report_generated"
    QUESTION_ASKED = "question_asked"
    SECTION_ADDED = "section_added"


@dataclass
class UsagePattern:
    """A habit derived from recent usage events."""
    pattern_type: str      # time_of_day, day_of_week, report_type
    key: str               # peak_hour_14, peak_day_3, report_type_table
    value: Any
    frequency: int
    confidence: float
    description: str


@dataclass
class ProactiveInsight:
    """Something worth telling the customer before they ask."""
    insight_type: str
    title: str
    message: str
    priority: int
    metadata: dict = field(default_factory=dict)


def _report_type(details: Optional[dict]) -> Optional[str]:
    if not details:
        return None
    report_type = details.get("reportType") or details.get("report_type")
    return str(report_type) if report_type else None


class PatternTracker:
    """Records usage events for one customer and analyzes their habits."""

    def __init__(
        self,
        db_ops,
        customer_id: int,
        clock: Optional[Clock] = None,
        config: Optional[TrackerConfig] = None,
        timezone: Optional[str] = None,
    ):
        """Initialize PatternTracker.

        Args:
            db_ops: DatabaseOperations instance for events.
            customer_id: The customer being tracked.
            clock: Callable returning the current time (defaults to UTC now).
            config: Habit thresholds (defaults to global settings).
            timezone: Timezone used for hour/day buckets (defaults to settings).
        """
        self.db_ops = db_ops
        self.customer_id = int(customer_id)
        self.clock = clock or now_utc
        self.config = config or default_settings.tracker
        self.timezone = timezone or default_settings.timezone

    def record_usage(self, event_type, details: Optional[dict] = None):
        """Append a usage event stamped with the current local hour and weekday.

        Args:
            event_type: UsageEventType or its string value
            details: Free-form details, e.g. {"reportType": "table"}

        Returns:
            The stored UsageEvent, or None if it could not be stored

        Raises:
            ValueError: If event_type is not a known usage event type
        """
        event_type = UsageEventType(event_type)
        now = self.clock()
        local = to_local(now, self.timezone)

        try:
            event = self.db_ops.add_usage_event(
                customer_id=self.customer_id,
                event_type=event_type.value,
                event_details=details or {},
                hour_of_day=local.hour,
                day_of_week=js_day_of_week(local),
                created_at=to_naive_utc(now),
            )
        except Exception as e:
            logger.error(
                "Failed to record usage",
                customer_id=self.customer_id,
                event_type=event_type.value,
                error=str(e),
            )
            return None

        logger.debug(
            "Usage recorded",
            customer_id=self.customer_id,
            event_type=event_type.value,
            hour=local.hour,
        )
        return event

    def analyze_patterns(self) -> list[UsagePattern]:
        """Derive time-of-day, day-of-week and report-type habits.

        Only events from the last ``window_days`` (30) are considered.

        Returns:
            Patterns in the order time_of_day, day_of_week, report_type
        """
        since = to_naive_utc(self.clock()) - timedelta(days=self.config.window_days)
        try:
            events = self.db_ops.get_usage_events_since(self.customer_id, since)
        except Exception as e:
            logger.error("Failed to load usage events", customer_id=self.customer_id, error=str(e))
            return []

        if not events:
            return []

        total = len(events)
        patterns = []

        hours = Counter(event.hour_of_day for event in events)
        peak_hour, hour_count = hours.most_common(1)[0]
        if hour_count >= self.config.peak_hour_min:
            patterns.append(
                UsagePattern(
                    pattern_type="time_of_day",
                    key=f"peak_hour_{peak_hour}",
                    value=peak_hour,
                    frequency=hour_count,
                    confidence=hour_count / total,
                    description=f"Most active around {peak_hour:02d}:00",
                )
            )

        days = Counter(event.day_of_week for event in events)
        peak_day, day_count = days.most_common(1)[0]
        if day_count >= self.config.peak_day_min:
            patterns.append(
                UsagePattern(
                    pattern_type="day_of_week",
                    key=f"peak_day_{peak_day}",
                    value=peak_day,
                    frequency=day_count,
                    confidence=day_count / total,
                    description=f"Most active on {DAY_NAMES[peak_day]}s",
                )
            )

        report_types = Counter(
            report_type
            for report_type in (_report_type(event.event_details) for event in events)
            if report_type
        )
        for report_type, count in report_types.items():
            if count >= self.config.report_type_min:
                patterns.append(
                    UsagePattern(
                        pattern_type="report_type",
                        key=f"report_type_{report_type}",
                        value=report_type,
                        frequency=count,
                        confidence=count / total,
                        description=f"Frequently builds {report_type} reports",
                    )
                )

        logger.info(
            "Usage patterns analyzed",
            customer_id=self.customer_id,
            events=total,
            patterns=[p.key for p in patterns],
        )
        return patterns

    def generate_insights(self) -> list[ProactiveInsight]:
        """Turn strong weekday habits into reminders, highest priority first."""
        today = js_day_of_week(to_local(self.clock(), self.timezone))
        insights = []

        for pattern in self.analyze_patterns():
            if pattern.pattern_type != "day_of_week" or pattern.frequency < self.config.reminder_min:
                continue
            day_name = DAY_NAMES[pattern.value]
            if pattern.value == today:
                insights.append(
                    ProactiveInsight(
                        insight_type="reminder",
                        title=f"{day_name} report",
                        message=f"It's {day_name}! You often run reports on {day_name}s.",
                        priority=8,
                        metadata={"day_of_week": pattern.value, "frequency": pattern.frequency},
                    )
                )
            else:
                insights.append(
                    ProactiveInsight(
                        insight_type="reminder",
                        title=f"{day_name} habit",
                        message=f"You often run reports on {day_name}s.",
                        priority=3,
                        metadata={"day_of_week": pattern.value, "frequency": pattern.frequency},
                    )
                )

        insights.extend(self.detect_anomalies())
        insights.sort(key=lambda insight: insight.priority, reverse=True)
        return insights

    def detect_anomalies(self) -> list[ProactiveInsight]:
        """Extension point for shipment anomaly insights; none are produced yet."""
        return []
