"""
Timestamp parsing for API responses.

The sessions endpoint has returned expirations in several shapes over time
(millisecond precision with offset, plain RFC 3339, 'Z' suffix). The formats
below are tried in order, then dateutil's ISO parser as a last resort.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

TIMESTAMP_FORMATS = (
    '%Y-%m-%dT%H:%M:%S.%f%z',   # 2024-01-01T12:00:00.000-05:00
    '%Y-%m-%dT%H:%M:%S%z',      # 2024-01-01T12:00:00+00:00 / ...Z
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%d %H:%M:%S %z',
)


def parse_timestamp(raw) -> Optional[datetime]:
    """Parse an API timestamp into an aware UTC datetime.

    Naive results are assumed to be UTC. Returns None if nothing matches.
    """
    if isinstance(raw, datetime):
        parsed = raw
    elif not raw or not isinstance(raw, str):
        return None
    else:
        parsed = None
        for fmt in TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue

        if parsed is None:
            try:
                parsed = dateutil_parser.isoparse(raw)
            except (ValueError, OverflowError):
                logger.debug(f"Unparseable timestamp: {raw!r}")
                return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
