"""Filtering and date grouping of events for display."""
import logging
import re
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from viewmodel.models import DateGroup, Event, StatusFilter

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 3339 timestamp into an aware UTC datetime.

    Naive values are taken as UTC. Fractional seconds beyond microseconds
    are truncated.

    Args:
        value: Timestamp string, e.g. "2024-01-01T10:00:00Z"

    Returns:
        Aware datetime in UTC, or None if parsing fails
    """
    if not isinstance(value, str) or not value.strip():
        return None

    # Go emits up to nanoseconds; strptime only takes six digits
    value = re.sub(r'(\.\d{6})\d+', r'\1', value.strip())

    timestamp_formats = [
        '%Y-%m-%dT%H:%M:%S.%f%z',
        '%Y-%m-%dT%H:%M:%S%z',
        '%Y-%m-%dT%H:%M%z',
        '%Y-%m-%dT%H:%M:%S.%f',
        '%Y-%m-%dT%H:%M:%S',
        '%Y-%m-%dT%H:%M',
        '%Y-%m-%d',
    ]

    for fmt in timestamp_formats:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    return None


class EventGrouper:
    """Applies the status filter and builds proximity-ordered date groups."""

    DATE_FORMAT = '%Y-%m-%d'

    def filter_events(
        self,
        events: List[Event],
        status_filter: StatusFilter,
        hide_single_events: bool,
        today: date
    ) -> List[DateGroup]:
        """
        Filter events by status, group them by date and order the groups.

        Args:
            events: Events in load order
            status_filter: Review status filter to apply
            hide_single_events: Drop date groups holding exactly one event
            today: Reference date for proximity ordering

        Returns:
            Date groups ordered by distance from today
        """
        survivors = self.apply_status_filter(events, status_filter)
        groups = self.group_events_by_date(survivors, today)

        if hide_single_events:
            groups = [group for group in groups if len(group) > 1]

        logger.debug(
            f"Filtered {len(events)} events into {len(groups)} date groups "
            f"(filter={status_filter.value}, hide_single={hide_single_events})"
        )
        return groups

    def apply_status_filter(
        self,
        events: List[Event],
        status_filter: StatusFilter
    ) -> List[Event]:
        return [event for event in events if status_filter.accepts(event)]

    def group_events_by_date(self, events: List[Event], today: date) -> List[DateGroup]:
        """
        Group events by calendar date, closest dates first.

        Groups are created in order of first appearance and sorted stably,
        so equally distant dates keep that order.

        Args:
            events: Events to group
            today: Reference date for proximity ordering

        Returns:
            List of DateGroup objects
        """
        events_by_date: Dict[str, List[Event]] = {}

        for event in events:
            date_key = self.event_date_key(event)
            if date_key is None:
                logger.warning(
                    f"Skipping event '{event.uid}' with unparseable "
                    f"start_time: {event.start_time!r}"
                )
                continue
            events_by_date.setdefault(date_key, []).append(event)

        groups = [
            DateGroup(date=date_key, events=date_events)
            for date_key, date_events in events_by_date.items()
        ]
        groups.sort(key=lambda group: self.day_distance(group.date, today))
        return groups

    def event_date_key(self, event: Event) -> Optional[str]:
        """UTC calendar date of the event start as YYYY-MM-DD."""
        start = parse_timestamp(event.start_time)
        if start is None:
            return None
        return start.strftime(self.DATE_FORMAT)

    def day_distance(self, date_key: str, today: date) -> int:
        group_date = datetime.strptime(date_key, self.DATE_FORMAT).date()
        return abs((group_date - today).days)
