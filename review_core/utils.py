"""
Utility functions for the review core
"""

import logging
from datetime import date, datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> datetime | None:
    """Safely parse an ISO-8601 timestamp"""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_aware(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        # JavaScript toISOString() uses a trailing Z
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_aware(datetime.fromisoformat(text))
        except ValueError:
            pass

    logger.warning(f"Failed to parse timestamp: {value!r}")
    return None


def format_timestamp(value: datetime | None) -> str | None:
    """Format datetime as ISO-8601 string"""
    if value is None:
        return None
    return ensure_aware(value).isoformat()


def calculate_success_rate(correct: int, total: int) -> float:
    """Calculate success rate as a fraction"""
    if total == 0:
        return 0.0
    return correct / total
