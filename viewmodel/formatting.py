"""Display formatting for date group headings and event times."""
from datetime import date, datetime, timedelta
from typing import Optional

from viewmodel.event_grouping import parse_timestamp


def format_date(date_key: str, today: date) -> str:
    """
    Format a YYYY-MM-DD date key as a group heading.

    Args:
        date_key: Date group key
        today: Reference date

    Returns:
        "Today", "Tomorrow" or e.g. "Monday, January 1, 2024"
    """
    group_date = datetime.strptime(date_key, '%Y-%m-%d').date()

    if group_date == today:
        return 'Today'
    if group_date == today + timedelta(days=1):
        return 'Tomorrow'
    return f"{group_date:%A}, {group_date:%B} {group_date.day}, {group_date.year}"


def format_time(start_time: Optional[str]) -> str:
    """
    Format an event timestamp as a 12-hour clock time, e.g. "10:00 AM".

    Returns an empty string if the timestamp cannot be parsed.
    """
    parsed = parse_timestamp(start_time)
    if parsed is None:
        return ''
    hour = parsed.hour % 12 or 12
    return f"{hour}:{parsed.minute:02d} {'AM' if parsed.hour < 12 else 'PM'}"
