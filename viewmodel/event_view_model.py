"""View-model mediating between the events API and the review dashboard."""
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from api_client.events_api import EventsApiClient, FetchError, UpdateError
from viewmodel.event_grouping import EventGrouper
from viewmodel.models import DateGroup, EditField, EditState, Event, OverlayRecord, StatusFilter
from viewmodel.notifications import Notifier

logger = logging.getLogger(__name__)


class EventViewModel:
    """
    Holds the local event cache and the filtered, date-grouped view of it.

    Every update goes to the server first. Local state is only patched
    after the server acknowledges the write, then the derived views are
    recomputed.
    """

    LOCATION_MERGE_LOGIC = 'overwrite_empty'
    LOCATION_REASON = 'Manual location override for Meetup events'
    OVERLAY_SOURCE = 'manual'

    LOAD_FAILED_MESSAGE = 'Failed to load events. Please try again.'

    def __init__(
        self,
        api_client: EventsApiClient,
        notifier: Optional[Notifier] = None,
        grouper: Optional[EventGrouper] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the view-model.

        Args:
            api_client: Client for the events API
            notifier: Receives alerts and notifications (default: logging Notifier)
            grouper: Filtering and grouping pipeline
            clock: Returns the current time; drives "today" and overlay timestamps
        """
        self.api_client = api_client
        self.notifier = notifier or Notifier()
        self.grouper = grouper or EventGrouper()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.events: List[Event] = []
        self.grouped_events: List[DateGroup] = []
        self.filtered_events: List[DateGroup] = []
        self.stats: Dict[str, Any] = {}
        self.loading = False
        self.status_filter = StatusFilter.ALL
        self.hide_single_events = False

    @property
    def today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    @property
    def total_events(self) -> int:
        return len(self.events)

    @property
    def visible_events(self) -> int:
        return sum(len(group) for group in self.grouped_events)

    def load(self) -> bool:
        """
        Replace the local event list with the server's.

        A failure raises a blocking alert and leaves the previous events in
        place. The loading flag is cleared on every exit path.

        Returns:
            True if the events were loaded
        """
        self.loading = True
        try:
            raw_events = self.api_client.get_events()
            events = [Event.from_dict(raw) for raw in raw_events]
            groups = self._group(events)
        except (FetchError, KeyError, TypeError) as e:
            logger.error(
                f"Error loading events: {e}",
                extra={'status_code': getattr(e, 'status_code', None)},
                exc_info=True
            )
            self.notifier.alert(self.LOAD_FAILED_MESSAGE)
            return False
        finally:
            self.loading = False

        self.events = events
        self.grouped_events = groups
        self.filtered_events = groups
        logger.info(f"Loaded {len(events)} events")
        return True

    def load_stats(self) -> bool:
        """
        Refresh the summary stats. Failures are logged only.

        Returns:
            True if the stats were loaded
        """
        try:
            self.stats = self.api_client.get_stats()
            return True
        except FetchError as e:
            logger.error(f"Error loading stats: {e}", exc_info=True)
            return False

    def filter_events(self) -> List[DateGroup]:
        """Recompute the date groups from the current events and filters."""
        self.grouped_events = self._group(self.events)
        self.filtered_events = self.grouped_events
        return self.filtered_events

    def _group(self, events: List[Event]) -> List[DateGroup]:
        return self.grouper.filter_events(
            events,
            self.status_filter,
            self.hide_single_events,
            self.today
        )

    def set_status_filter(self, status_filter: Union[StatusFilter, str, None]) -> List[DateGroup]:
        if not isinstance(status_filter, StatusFilter):
            status_filter = StatusFilter.parse(status_filter)
        self.status_filter = status_filter
        return self.filter_events()

    def set_hide_single_events(self, hide: bool) -> List[DateGroup]:
        self.hide_single_events = bool(hide)
        return self.filter_events()

    def find_event(self, uid: str, recurrence_id: Optional[str] = '') -> Optional[Event]:
        for event in self.events:
            if event.matches(uid, recurrence_id):
                return event
        return None

    def update_event_status(self, uid: str, recurrence_id: Optional[str], approved: bool) -> bool:
        """
        Approve or reject one event occurrence.

        On success the matching occurrence is patched locally, the views are
        recomputed and the stats are refreshed.

        Args:
            uid: Event UID
            recurrence_id: Occurrence ID ("" or None for non-recurring)
            approved: True to approve, False to reject

        Returns:
            True if the server accepted the update
        """
        rejected = not approved

        try:
            self.api_client.patch_event(uid, recurrence_id, rejected=rejected)
        except UpdateError as e:
            logger.error(f"Error updating status for {uid}: {e}", exc_info=True)
            self.notifier.notify('Failed to update event status. Please try again.', 'error')
            return False

        for event in self.events:
            if event.matches(uid, recurrence_id):
                event.rejected = rejected

        self.filter_events()
        self.load_stats()
        self.notifier.notify('Event status updated successfully!', 'success')
        return True

    def update_event_organization(
        self,
        uid: str,
        recurrence_id: Optional[str],
        organization: str
    ) -> bool:
        """Change the organization of one event occurrence."""
        try:
            self.api_client.patch_event(uid, recurrence_id, organization=organization)
        except UpdateError as e:
            logger.error(f"Error updating organization for {uid}: {e}", exc_info=True)
            self.notifier.notify('Failed to update event organization. Please try again.', 'error')
            return False

        for event in self.events:
            if event.matches(uid, recurrence_id):
                event.organization = organization

        self.filter_events()
        self.notifier.notify('Event organization updated successfully!', 'success')
        return True

    def update_event_type(self, uid: str, recurrence_id: Optional[str], event_type: str) -> bool:
        """
        Change the type of an event.

        The server applies a type change to the whole series, so every local
        event with this uid is updated whatever its recurrence_id.
        """
        try:
            self.api_client.patch_event(uid, recurrence_id, type=event_type)
        except UpdateError as e:
            logger.error(f"Error updating event type for {uid}: {e}", exc_info=True)
            self.notifier.notify('Failed to update event type. Please try again.', 'error')
            return False

        for event in self.events:
            if event.uid == uid:
                event.type = event_type

        self.filter_events()
        self.notifier.notify('Event type updated successfully!', 'success')
        return True

    def set_location_overlay(self, uid: str, recurrence_id: Optional[str], location: str) -> bool:
        """
        Override the location of one event occurrence.

        Returns:
            True if the server accepted the overlay
        """
        field = EditField.LOCATION.value

        try:
            self.api_client.set_overlay(
                uid,
                field=field,
                value=location,
                merge_logic=self.LOCATION_MERGE_LOGIC,
                reason=self.LOCATION_REASON
            )
        except UpdateError as e:
            logger.error(f"Error setting location overlay for {uid}: {e}", exc_info=True)
            self.notifier.notify('Failed to set location overlay. Please try again.', 'error')
            return False

        timestamp = self._clock().astimezone(timezone.utc).isoformat(timespec='milliseconds')
        for event in self.events:
            if event.matches(uid, recurrence_id):
                event.overlay[field] = OverlayRecord(
                    value=location,
                    merge_logic=self.LOCATION_MERGE_LOGIC,
                    source=self.OVERLAY_SOURCE,
                    timestamp=timestamp.replace('+00:00', 'Z'),
                    reason=self.LOCATION_REASON
                )

        self.filter_events()
        self.notifier.notify('Location overlay set successfully!', 'success')
        return True

    def remove_location_overlay(self, uid: str, recurrence_id: Optional[str]) -> bool:
        """Drop the location override of one event occurrence."""
        field = EditField.LOCATION.value

        try:
            self.api_client.delete_overlay(uid, field)
        except UpdateError as e:
            logger.error(f"Error removing location overlay for {uid}: {e}", exc_info=True)
            self.notifier.notify('Failed to remove location overlay. Please try again.', 'error')
            return False

        for event in self.events:
            if event.matches(uid, recurrence_id):
                event.overlay.pop(field, None)

        self.filter_events()
        self.notifier.notify('Location overlay removed successfully!', 'success')
        return True

    def start_edit(self, event: Event, edit_field: EditField) -> None:
        """Enter edit mode for one field, remembering its current value."""
        if edit_field is EditField.ORGANIZATION:
            original = event.organization
        elif edit_field is EditField.TYPE:
            original = event.type
        else:
            original = event.display_location or ''
            event.location_draft = original

        event.original_values[edit_field] = original
        event.edit_states[edit_field] = EditState.EDITING

    def save_organization_change(self, event: Event, organization: str) -> bool:
        return self._save(
            event,
            EditField.ORGANIZATION,
            lambda: self.update_event_organization(event.uid, event.recurrence_id, organization)
        )

    def cancel_organization_change(self, event: Event) -> None:
        event.organization = event.original_values.get(EditField.ORGANIZATION, event.organization)
        event.edit_states[EditField.ORGANIZATION] = EditState.VIEWING

    def save_type_change(self, event: Event, event_type: str) -> bool:
        return self._save(
            event,
            EditField.TYPE,
            lambda: self.update_event_type(event.uid, event.recurrence_id, event_type)
        )

    def cancel_type_change(self, event: Event) -> None:
        event.type = event.original_values.get(EditField.TYPE, event.type)
        event.edit_states[EditField.TYPE] = EditState.VIEWING

    def save_location_change(self, event: Event, location: Optional[str] = None) -> bool:
        """
        Set or clear the location override from the edit field.

        A non-empty value sets the overlay. An empty value removes an
        existing overlay and does nothing when there is none.

        Args:
            event: Event being edited
            location: New location; defaults to the event's location_draft

        Returns:
            False only if a remote write failed
        """
        if location is None:
            location = event.location_draft
        new_location = (location or '').strip()

        def apply() -> bool:
            if new_location:
                return self.set_location_overlay(event.uid, event.recurrence_id, new_location)
            if EditField.LOCATION.value in event.overlay:
                return self.remove_location_overlay(event.uid, event.recurrence_id)
            logger.debug(f"No location overlay to clear for {event.uid}")
            return True

        return self._save(event, EditField.LOCATION, apply)

    def cancel_location_change(self, event: Event) -> None:
        event.location_draft = event.original_values.get(EditField.LOCATION) or ''
        event.edit_states[EditField.LOCATION] = EditState.VIEWING

    def _save(self, event: Event, edit_field: EditField, action: Callable[[], bool]) -> bool:
        event.edit_states[edit_field] = EditState.SAVING
        try:
            return action()
        finally:
            event.edit_states[edit_field] = EditState.VIEWING
