"""Due-time rules shared by the refresh protocols.

All comparisons are strict: a feed is due only once `now` is past its due time.
"""

from datetime import datetime, timedelta
from enum import StrEnum


class Feed(StrEnum):
    OBSERVATION = "observation"
    HOURLY = "hourly"
    DAILY = "daily"
    WARNINGS = "warnings"


def is_due(due: datetime, now: datetime) -> bool:
    return now > due


def overdue_due_time(now: datetime, delay: timedelta) -> datetime:
    """Retry time after a fetch that returned nothing new."""
    return now + delay


def due_after_issue(
    issue_time: datetime,
    update_frequency: timedelta,
    update_delay: timedelta,
    now: datetime,
    overdue_delay: timedelta,
) -> datetime:
    """Next due time for freshly issued data.

    The next issue is expected `update_frequency` after this one, plus a delay
    for it to appear in the API. If that moment has already passed the data is
    running late, so retry after `overdue_delay` instead.
    """
    due = issue_time + update_frequency + update_delay
    if now > due:
        return now + overdue_delay
    return due


def due_at_next_issue(
    next_issue_time: datetime,
    update_delay: timedelta,
    now: datetime,
    overdue_delay: timedelta,
) -> datetime:
    """Next due time when the publisher advertises its next issue time."""
    due = next_issue_time + update_delay
    if now > due:
        return now + overdue_delay
    return due


def earliest(*due_times: datetime) -> datetime:
    return min(due_times)


def format_duration(duration: timedelta) -> str:
    """Compact duration for logs, e.g. 1h2m03s, 4m05s, 09s."""
    total_seconds = int(duration.total_seconds())
    hours = total_seconds // 3600
    minutes = total_seconds // 60 % 60
    seconds = total_seconds % 60
    if hours > 0:
        return f"{hours}h{minutes}m{seconds:02d}s"
    if minutes > 0:
        return f"{minutes}m{seconds:02d}s"
    return f"{seconds:02d}s"
