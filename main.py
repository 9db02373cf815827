"""
Freight Learning - Operator CLI

Runs the customer learning subsystem against the configured database:
feed a conversation turn through the learning engine, record usage events,
and inspect what has been learned about a customer.
"""

import argparse
import dataclasses
import json
import sys

from freight_learning.config.settings import settings
from freight_learning.database.init_db import get_database_ops, init_database
from freight_learning.learning import LearningEngine, NotificationQueue, PatternTracker, UsageEventType
from freight_learning.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _notification_dict(notification) -> dict:
    return {column.name: getattr(notification, column.name) for column in notification.__table__.columns}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="freight-learning", description=__doc__.strip().splitlines()[0])
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables")

    turn = sub.add_parser("process-turn", help="Learn from one conversation turn")
    turn.add_argument("--customer", type=int, required=True)
    turn.add_argument("--message", required=True)
    turn.add_argument("--response", default="")
    turn.add_argument("--tool", action="append", default=[], dest="tools")

    usage = sub.add_parser("record-usage", help="Record a usage event")
    usage.add_argument("--customer", type=int, required=True)
    usage.add_argument("--event-type", required=True, choices=[t.value for t in UsageEventType])
    usage.add_argument("--report-type", default=None)

    for name, help_text in (
        ("patterns", "Show usage patterns"),
        ("insights", "Show proactive insights"),
        ("learned", "Show learned terminology and preferences"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("--customer", type=int, required=True)

    notifications = sub.add_parser("notifications", help="List pending learning notifications")
    notifications.add_argument("--customer", type=int, default=None)

    return parser


def run(args) -> int:
    if args.command == "init-db":
        init_database(args.database_url)
        print("Database initialized.")
        return 0

    db_ops = get_database_ops(args.database_url)

    if args.command == "process-turn":
        engine = LearningEngine(db_ops, args.customer, notification_queue=NotificationQueue(db_ops))
        result = engine.process_turn_detailed(args.message, args.response, args.tools)
        _print_json({
            "extractions": [dataclasses.asdict(e) for e in result.extractions],
            "failures": [{"key": f.extraction.key, "error": f.error} for f in result.failures],
            "flagged_term": result.flagged_term,
        })
        return 1 if result.failures else 0

    if args.command == "record-usage":
        tracker = PatternTracker(db_ops, args.customer)
        details = {"reportType": args.report_type} if args.report_type else {}
        event = tracker.record_usage(args.event_type, details)
        if event is None:
            print("Failed to record usage event.", file=sys.stderr)
            return 1
        _print_json({"id": event.id, "hour_of_day": event.hour_of_day, "day_of_week": event.day_of_week})
        return 0

    if args.command == "patterns":
        patterns = PatternTracker(db_ops, args.customer).analyze_patterns()
        _print_json([dataclasses.asdict(p) for p in patterns])
        return 0

    if args.command == "insights":
        insights = PatternTracker(db_ops, args.customer).generate_insights()
        _print_json([dataclasses.asdict(i) for i in insights])
        return 0

    if args.command == "learned":
        engine = LearningEngine(db_ops, args.customer)
        _print_json({
            "terminology": engine.get_learned_terminology(),
            "preferences": engine.get_learned_preferences(),
        })
        return 0

    if args.command == "notifications":
        queue = NotificationQueue(db_ops)
        items = queue.get_by_customer(args.customer) if args.customer is not None else queue.get_pending()
        _print_json([_notification_dict(n) for n in items])
        return 0

    return 2


def main(argv=None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)

    problems = settings.validate()
    if problems:
        logger.error("Invalid configuration", problems=problems)
        print(f"\n❌ Invalid configuration: {', '.join(problems)}", file=sys.stderr)
        return 1

    setup_logging(
        level=settings.logging.level,
        log_file=settings.logging.log_file or None,
        log_format=settings.logging.format,
    )

    try:
        return run(args)
    except Exception as e:
        logger.error("Fatal error", error=str(e))
        print(f"\n❌ Fatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
