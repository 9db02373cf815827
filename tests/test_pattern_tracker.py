"""Tests for the PatternTracker."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import pytz

from freight_learning.learning.pattern_tracker import PatternTracker, UsageEventType

CUSTOMER_ID = 42


def _record(tracker, count, event_type=UsageEventType.REPORT_GENERATED, details=None):
    for _ in range(count):
        tracker.record_usage(event_type, details)


class TestRecordUsage:
    """Test suite for usage event recording."""

    def test_event_is_bucketed(self, tracker, db_ops, clock):
        event = tracker.record_usage("report_generated", {"reportType": "lane_summary"})

        assert event is not None
        assert event.hour_of_day == 14
        assert event.day_of_week == 3  # Wednesday, Sunday = 0
        assert event.event_details == {"reportType": "lane_summary"}
        assert event.created_at == datetime(2026, 10, 14, 14, 30)

    def test_local_timezone_buckets(self, db_ops, clock):
        tracker = PatternTracker(db_ops, CUSTOMER_ID, clock=clock, timezone="America/Chicago")

        event = tracker.record_usage(UsageEventType.QUESTION_ASKED)

        assert event.hour_of_day == 9
        assert event.day_of_week == 3

    def test_sunday_is_zero(self, tracker, clock):
        clock.set(datetime(2026, 10, 18, 10, 0, tzinfo=pytz.utc))

        event = tracker.record_usage(UsageEventType.SECTION_ADDED)

        assert event.day_of_week == 0

    def test_unknown_event_type(self, tracker):
        with pytest.raises(ValueError):
            tracker.record_usage("dashboard_opened")

    def test_storage_failure_returns_none(self, clock):
        broken = MagicMock()
        broken.add_usage_event.side_effect = ConnectionError("store unreachable")
        tracker = PatternTracker(broken, CUSTOMER_ID, clock=clock, timezone="UTC")

        assert tracker.record_usage(UsageEventType.REPORT_GENERATED) is None


class TestAnalyzePatterns:
    """Test suite for habit detection."""

    def test_no_events(self, tracker):
        assert tracker.analyze_patterns() == []

    def test_peak_hour_and_day(self, tracker):
        _record(tracker, 5)

        patterns = {p.key: p for p in tracker.analyze_patterns()}

        assert set(patterns) == {"peak_hour_14", "peak_day_3"}
        hour = patterns["peak_hour_14"]
        assert hour.pattern_type == "time_of_day"
        assert hour.value == 14
        assert hour.frequency == 5
        assert hour.confidence == pytest.approx(1.0)
        assert patterns["peak_day_3"].description == "Most active on Wednesdays"

    def test_hour_needs_five_occurrences(self, tracker):
        _record(tracker, 4)

        keys = [p.key for p in tracker.analyze_patterns()]

        assert keys == ["peak_day_3"]

    def test_day_needs_three_occurrences(self, tracker):
        _record(tracker, 2)

        assert tracker.analyze_patterns() == []

    def test_confidence_is_share_of_events(self, tracker, clock):
        _record(tracker, 5)
        clock.advance(hours=3)
        _record(tracker, 5)

        hour = next(p for p in tracker.analyze_patterns() if p.pattern_type == "time_of_day")

        assert hour.frequency == 5
        assert hour.confidence == pytest.approx(0.5)

    def test_old_events_ignored(self, tracker, clock):
        clock.set(datetime(2026, 9, 10, 14, 30, tzinfo=pytz.utc))
        _record(tracker, 5)
        clock.set(datetime(2026, 10, 14, 14, 30, tzinfo=pytz.utc))
        _record(tracker, 2)

        assert tracker.analyze_patterns() == []

    def test_report_types(self, tracker):
        _record(tracker, 3, details={"reportType": "lane_summary"})
        _record(tracker, 2, details={"report_type": "carrier_scorecard"})

        report_patterns = [p for p in tracker.analyze_patterns() if p.pattern_type == "report_type"]

        assert [p.key for p in report_patterns] == ["report_type_lane_summary"]
        assert report_patterns[0].frequency == 3

    def test_customers_are_isolated(self, tracker, db_ops, clock):
        _record(tracker, 5)
        other = PatternTracker(db_ops, CUSTOMER_ID + 1, clock=clock, timezone="UTC")

        assert other.analyze_patterns() == []


class TestInsights:
    """Test suite for proactive insights."""

    def test_habit_day_is_today(self, tracker):
        _record(tracker, 5)

        insights = tracker.generate_insights()

        assert len(insights) == 1
        assert insights[0].priority == 8
        assert insights[0].message.startswith("It's Wednesday!")
        assert insights[0].metadata == {"day_of_week": 3, "frequency": 5}

    def test_habit_day_is_another_day(self, tracker, clock):
        clock.set(datetime(2026, 10, 12, 9, 0, tzinfo=pytz.utc))
        _record(tracker, 5)
        clock.set(datetime(2026, 10, 14, 14, 30, tzinfo=pytz.utc))

        insights = tracker.generate_insights()

        assert len(insights) == 1
        assert insights[0].priority == 3
        assert insights[0].message == "You often run reports on Mondays."

    def test_weak_habit_has_no_insight(self, tracker):
        _record(tracker, 4)

        assert tracker.generate_insights() == []

    def test_no_anomalies_yet(self, tracker):
        assert tracker.detect_anomalies() == []
