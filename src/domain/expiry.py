"""
Expiry date rules.

All comparisons happen on calendar dates in UTC. Naive values are read as
UTC. Missing or unparseable expiry values never match and never raise.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Union

from .models import Item

logger = logging.getLogger(__name__)

ExpiryValue = Union[str, date, datetime, None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_expiry(value: ExpiryValue) -> Optional[datetime]:
    """
    Parse an expiry value into an aware UTC datetime.

    Args:
        value: ISO-8601 string ("2025-06-11", "2025-06-11T00:00:00Z",
               "2025-06-11T02:00:00+02:00"), date, datetime or None

    Returns:
        datetime in UTC, or None when the value is missing or invalid
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Invalid expiry value: {value!r}")
            return None
    else:
        logger.debug(f"Unsupported expiry value type: {type(value).__name__}")
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_utc_date(value: ExpiryValue) -> Optional[date]:
    """Truncate an expiry value to its calendar date in UTC."""
    parsed = parse_expiry(value)
    return parsed.date() if parsed else None


def reference_tomorrow(now: Optional[datetime] = None) -> date:
    """
    UTC calendar date one day after the current UTC date.

    Args:
        now: Reference instant (defaults to the current time)

    Returns:
        date: Tomorrow in UTC
    """
    reference = parse_expiry(now) if now is not None else utc_now()
    return reference.date() + timedelta(days=1)


def is_tomorrow(value: ExpiryValue, now: Optional[datetime] = None) -> bool:
    """Check if an expiry value falls on the reference tomorrow."""
    expiry = to_utc_date(value)
    if expiry is None:
        return False
    return expiry == reference_tomorrow(now)


def expiring_within(
    items: Iterable[Item],
    days: int,
    now: Optional[datetime] = None
) -> List[Item]:
    """
    Items expiring between now and now + days (inclusive), soonest first.

    Already-expired, soft-deleted and undated items are excluded. The nightly
    job does not use this; it backs the app's "expiring soon" dashboard view.

    Args:
        items: Items to filter
        days: Window length in days
        now: Reference instant (defaults to the current time)

    Returns:
        List of matching items sorted by expiry instant
    """
    start = parse_expiry(now) if now is not None else utc_now()
    end = start + timedelta(days=days)

    matches = []
    for item in items:
        if item.is_deleted:
            continue
        expiry = parse_expiry(item.expiry_date)
        if expiry is not None and start <= expiry <= end:
            matches.append((expiry, item))

    matches.sort(key=lambda pair: pair[0])
    return [item for _, item in matches]


def format_expiry_date(value: ExpiryValue) -> str:
    """
    Format an expiry value for display, e.g. "June 11, 2025".

    The raw value is returned unchanged when it cannot be parsed.
    """
    expiry = to_utc_date(value)
    if expiry is None:
        return '' if value is None else str(value)
    return f"{expiry:%B} {expiry.day}, {expiry.year}"
