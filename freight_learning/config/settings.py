"""
Configuration management for Freight Learning.
Loads settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import pytz
from dotenv import load_dotenv

# Load .env from project root
PROJECT_ROOT = Path(__file__).parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    return int(raw) if raw else default


@dataclass
class DatabaseConfig:
    url: str = ""

    def __post_init__(self):
        default_url = f"sqlite:///{PROJECT_ROOT / 'data' / 'freight_learning.db'}"
        self.url = os.getenv("DATABASE_URL", self.url or default_url)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_file: str = ""
    format: str = "json"   # json or console

    def __post_init__(self):
        self.level = os.getenv("LOG_LEVEL", self.level)
        self.log_file = os.getenv("LOG_FILE", self.log_file)
        self.format = os.getenv("LOG_FORMAT", self.format).lower()


@dataclass
class LearningConfig:
    """Confidence blending constants for the learning engine."""

    terminology_reinforcement: float = 0.1
    default_existing_confidence: float = 0.5
    explicit_increment: float = 0.3
    implicit_increment: float = 0.1
    competitor_decay: float = 0.05
    preference_threshold: float = 0.3      # strictly greater than
    terminology_min_confidence: float = 0.5

    def __post_init__(self):
        self.explicit_increment = _env_float("LEARNING_EXPLICIT_INCREMENT", self.explicit_increment)
        self.implicit_increment = _env_float("LEARNING_IMPLICIT_INCREMENT", self.implicit_increment)
        self.competitor_decay = _env_float("LEARNING_COMPETITOR_DECAY", self.competitor_decay)
        self.preference_threshold = _env_float("LEARNING_PREFERENCE_THRESHOLD", self.preference_threshold)
        self.terminology_min_confidence = _env_float(
            "LEARNING_TERMINOLOGY_MIN_CONFIDENCE", self.terminology_min_confidence
        )


@dataclass
class TrackerConfig:
    """Habit thresholds for usage pattern analysis."""

    window_days: int = 30
    peak_hour_min: int = 5
    peak_day_min: int = 3
    report_type_min: int = 3
    reminder_min: int = 5

    def __post_init__(self):
        self.window_days = _env_int("TRACKER_WINDOW_DAYS", self.window_days)
        self.peak_hour_min = _env_int("TRACKER_PEAK_HOUR_MIN", self.peak_hour_min)
        self.peak_day_min = _env_int("TRACKER_PEAK_DAY_MIN", self.peak_day_min)
        self.report_type_min = _env_int("TRACKER_REPORT_TYPE_MIN", self.report_type_min)
        self.reminder_min = _env_int("TRACKER_REMINDER_MIN", self.reminder_min)


@dataclass
class Settings:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    timezone: str = "UTC"

    def __post_init__(self):
        self.timezone = os.getenv("FREIGHT_TIMEZONE", self.timezone)

    def validate(self) -> list[str]:
        """Validate configuration. Returns list of problems."""
        problems = []
        if not self.database.url:
            problems.append("DATABASE_URL")
        if self.logging.format not in ("json", "console"):
            problems.append(f"LOG_FORMAT (must be json or console, got {self.logging.format})")
        if self.timezone not in pytz.all_timezones_set:
            problems.append(f"FREIGHT_TIMEZONE (unknown timezone: {self.timezone})")
        if not 0.0 <= self.learning.preference_threshold <= 1.0:
            problems.append("LEARNING_PREFERENCE_THRESHOLD (must be within 0..1)")
        if self.tracker.window_days <= 0:
            problems.append("TRACKER_WINDOW_DAYS (must be positive)")
        return problems


# Global settings singleton
settings = Settings()
