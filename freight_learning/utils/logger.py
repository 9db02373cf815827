"""
Structured logging for the learning subsystem, built on structlog.

Every log line emitted while a conversation turn is processed carries the
turn id and customer id (bound with ``turn_context``). Customer free text is
clipped before rendering, and store credentials are redacted.
"""

import logging
import os
import re
import sys
import uuid
from contextlib import contextmanager
from pathlib import Path

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "console")

# Event keys holding text typed by customers or produced by the assistant
_FREE_TEXT_KEYS = {"message", "user_message", "user_query", "context", "ai_response", "definition"}
MAX_FREE_TEXT = 120

_CREDENTIAL_PATTERNS = [
    re.compile(r"(?:postgres(?:ql)?|mysql)(?:\+\w+)?://[^:/\s]+:[^@\s]+@"),  # DSN with password
    re.compile(r"eyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+"),       # JWT service keys
    re.compile(r"sbp_[A-Za-z0-9]+"),                                          # hosted store tokens
]

_CREDENTIAL_KEYS = {"password", "api_key", "token", "secret", "service_role_key", "database_url"}


def _clip_free_text(logger, method_name, event_dict):
    """Shorten conversation text so a log line never holds a whole message."""
    for key in _FREE_TEXT_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > MAX_FREE_TEXT:
            event_dict[key] = value[:MAX_FREE_TEXT] + "..."
    return event_dict


def _redact_credentials(logger, method_name, event_dict):
    for key, value in list(event_dict.items()):
        if key.lower() in _CREDENTIAL_KEYS:
            event_dict[key] = "[REDACTED]"
        elif isinstance(value, str):
            for pattern in _CREDENTIAL_PATTERNS:
                value = pattern.sub("[REDACTED]", value)
            event_dict[key] = value
    return event_dict


def new_turn_id() -> str:
    """Short random id for one conversation turn."""
    return uuid.uuid4().hex[:8]


@contextmanager
def turn_context(customer_id: int, turn_id: str = None):
    """Bind ``turn_id`` and ``customer_id`` to every log line in the block.

    Example:
        >>> with turn_context(42) as turn_id:
        ...     logger.info("Processing conversation turn")
    """
    turn_id = turn_id or new_turn_id()
    with bound_contextvars(turn_id=turn_id, customer_id=customer_id):
        yield turn_id


def setup_logging(level: str = "INFO", log_file: str = None, log_format: str = "json") -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Optional file that receives a copy of every record
        log_format: "json" for machine-readable lines, "console" for humans

    Raises:
        ValueError: If level or log_format is not recognized.
    """
    level_upper = level.upper()
    if level_upper not in LOG_LEVELS:
        raise ValueError(f"Invalid logging level: {level}")
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {log_format}")

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level_upper)

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _clip_free_text,
            _redact_credentials,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
        handler.setLevel(level_upper)
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
        # Learned terminology is customer data
        os.chmod(log_file, 0o600)
        logging.getLogger().addHandler(handler)


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """
    Get a structured logger.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Terminology stored", key="hot load", confidence=0.9)
    """
    return structlog.get_logger(name)
