"""Data models for the event review dashboard."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class StatusFilter(Enum):
    """Review status filter applied before grouping."""
    ALL = "all"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: Optional[str]) -> "StatusFilter":
        """
        Parse a filter name. Empty or missing means no filter.

        Raises:
            ValueError: If the name is not a known filter
        """
        if not value or not value.strip():
            return cls.ALL
        return cls(value.strip().lower())

    def accepts(self, event: "Event") -> bool:
        if self is StatusFilter.APPROVED:
            return not event.rejected
        if self is StatusFilter.REJECTED:
            return event.rejected
        return True


class EditField(Enum):
    """Event fields that can be edited from the dashboard."""
    ORGANIZATION = "organization"
    TYPE = "type"
    LOCATION = "location"


class EditState(Enum):
    """Per-field edit state of an event."""
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"


@dataclass
class OverlayRecord:
    """Manual override for one event field, with provenance."""
    value: str
    merge_logic: str
    source: str
    timestamp: str
    reason: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OverlayRecord":
        return cls(
            value=data.get('value', ''),
            merge_logic=data.get('mergeLogic', ''),
            source=data.get('source', ''),
            timestamp=data.get('timestamp', ''),
            reason=data.get('reason', '')
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            'value': self.value,
            'mergeLogic': self.merge_logic,
            'source': self.source,
            'timestamp': self.timestamp,
            'reason': self.reason
        }


@dataclass
class Event:
    """One calendar occurrence as served by the events API."""
    uid: str
    start_time: str
    recurrence_id: str = ''
    organization: str = ''
    type: str = ''
    rejected: bool = False
    summary: str = ''
    description: Optional[str] = None
    location: Optional[str] = None
    end_time: Optional[str] = None
    rrule: Optional[str] = None
    created: Optional[str] = None
    modified: Optional[str] = None
    overlay: Dict[str, OverlayRecord] = field(default_factory=dict)

    # UI-only state, never sent to the server
    edit_states: Dict[EditField, EditState] = field(default_factory=dict)
    original_values: Dict[EditField, Optional[str]] = field(default_factory=dict)
    location_draft: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """
        Build an Event from an API payload.

        Missing or null recurrence IDs become "" and unknown keys are ignored.

        Args:
            data: Raw event dictionary from GET /api/events

        Returns:
            Event with all edit states reset to VIEWING

        Raises:
            KeyError: If uid is missing
            TypeError: If the payload, its overlay or start_time has the wrong type
        """
        if not isinstance(data, dict):
            raise TypeError(f"Event payload must be an object, got {type(data).__name__}")

        raw_overlay = data.get('overlay') or {}
        if not isinstance(raw_overlay, dict):
            raise TypeError(f"Event overlay must be an object, got {type(raw_overlay).__name__}")

        start_time = data.get('start_time') or ''
        if not isinstance(start_time, str):
            raise TypeError(f"Event start_time must be a string, got {type(start_time).__name__}")

        overlay = {
            name: OverlayRecord.from_dict(record)
            for name, record in raw_overlay.items()
            if isinstance(record, dict)
        }

        event = cls(
            uid=data['uid'],
            start_time=start_time,
            recurrence_id=data.get('recurrence_id') or '',
            organization=data.get('organization') or '',
            type=data.get('type') or '',
            rejected=bool(data.get('rejected', False)),
            summary=data.get('summary') or '',
            description=data.get('description'),
            location=data.get('location'),
            end_time=data.get('end_time'),
            rrule=data.get('rrule'),
            created=data.get('created'),
            modified=data.get('modified'),
            overlay=overlay
        )
        event.reset_edit_states()
        return event

    @property
    def key(self) -> Tuple[str, str]:
        return (self.uid, self.recurrence_id or '')

    def matches(self, uid: str, recurrence_id: Optional[str]) -> bool:
        """True if this is the occurrence identified by uid and recurrence_id."""
        return self.key == (uid, recurrence_id or '')

    @property
    def display_location(self) -> Optional[str]:
        override = self.overlay.get(EditField.LOCATION.value)
        if override is not None:
            return override.value
        return self.location

    def reset_edit_states(self) -> None:
        self.edit_states = {edit_field: EditState.VIEWING for edit_field in EditField}
        self.original_values = {}
        self.location_draft = ''

    def edit_state(self, edit_field: EditField) -> EditState:
        return self.edit_states.get(edit_field, EditState.VIEWING)


@dataclass
class DateGroup:
    """Events sharing a calendar date (YYYY-MM-DD, UTC)."""
    date: str
    events: List[Event]

    def __len__(self) -> int:
        return len(self.events)
