# backend/fincatch/utils/date_utils.py
"""
Date and timestamp helpers for the valuation engine.

All engine timestamps are unix seconds (int, UTC). This module centralizes
the conversions and the few calendar rules the engine relies on.

Usage:
    from fincatch.utils.date_utils import generate_timestamps, get_last_trading_timestamp

    points = generate_timestamps(start_ts, end_ts, interval_days=7)
"""

import time
from datetime import date, datetime, timedelta, timezone

SECONDS_PER_DAY = 86400

# Monday trading windows open at 02:15 UTC (Asian session)
_MONDAY_OPEN_HOUR = 2
_MONDAY_OPEN_MINUTE = 15


def now_timestamp() -> int:
    """Current time as unix seconds."""
    return int(time.time())


def timestamp_to_datetime(timestamp: int) -> datetime:
    """Convert unix seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def timestamp_to_date(timestamp: int) -> date:
    """Convert unix seconds to the UTC calendar date."""
    return timestamp_to_datetime(timestamp).date()


def date_to_timestamp(d: date) -> int:
    """Convert a date to unix seconds at 00:00:00 UTC."""
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp())


def get_last_trading_timestamp(now_ts: int | None = None) -> int:
    """
    Get the timestamp that closes the most recent trading window.

    On Saturday, Sunday, and Monday before 02:15 UTC markets are closed, so
    the timestamp snaps back to the most recent Saturday 02:00 UTC. A one-day
    window ending there covers Friday's session. Any other time is returned
    unchanged.

    Args:
        now_ts: Reference time in unix seconds (default: now)

    Returns:
        Unix seconds to use as the end of the "current" candle window
    """
    if now_ts is None:
        now_ts = now_timestamp()

    now = timestamp_to_datetime(now_ts)
    weekday = now.weekday()  # Monday = 0, Sunday = 6

    if weekday == 5:
        days_to_saturday = 0
    elif weekday == 6:
        days_to_saturday = 1
    elif weekday == 0 and (now.hour, now.minute) < (_MONDAY_OPEN_HOUR, _MONDAY_OPEN_MINUTE):
        days_to_saturday = 2
    else:
        return now_ts

    saturday = (now - timedelta(days=days_to_saturday)).replace(
        hour=2, minute=0, second=0, microsecond=0
    )
    return int(saturday.timestamp())


def generate_timestamps(start_ts: int, end_ts: int, interval_days: int = 1) -> list[int]:
    """
    Generate evenly spaced timestamps from start to end (inclusive).

    The end timestamp is always the last element, appended explicitly when
    the stepped sequence does not land on it.

    Args:
        start_ts: First timestamp
        end_ts: Last timestamp
        interval_days: Spacing in days (must be >= 1)

    Returns:
        Sorted list of unix seconds; empty if start_ts > end_ts

    Example:
        >>> generate_timestamps(0, 2 * 86400 + 100, 1)
        [0, 86400, 172800, 172900]
    """
    if start_ts > end_ts:
        return []

    step = interval_days * SECONDS_PER_DAY
    timestamps = list(range(start_ts, end_ts + 1, step))

    if timestamps[-1] != end_ts:
        timestamps.append(end_ts)

    return timestamps


def days_remaining(target_ts: int, now_ts: int) -> int:
    """
    Whole days (rounded up) from now until a target timestamp.

    Returns 0 if the target is in the past.
    """
    if target_ts < now_ts:
        return 0
    seconds = target_ts - now_ts
    return -(-seconds // SECONDS_PER_DAY)
