"""Timestamp parsing for header and JSON record values."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional


def parse_iso_timestamp(value: object) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp such as ``2015-08-14T21:06:41.321Z``.

    Raises:
        ValueError: If the value is present but not a timestamp.
    """
    if value is None or value == "":
        return None
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 7231 date header, returning None if absent or invalid."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def format_iso_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format a timestamp the way the service writes them."""
    if value is None:
        return None
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
