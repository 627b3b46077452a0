"""Data models for event reconciliation."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

STATUS_ACTIVE = 'active'
STATUS_CANCELLED = 'cancelled'
VALID_STATUSES = (STATUS_ACTIVE, STATUS_CANCELLED)


@dataclass
class EventInput:
    """Freshly scraped event."""
    id: str
    title: str
    date: str
    time: str
    url: str


@dataclass
class StoredEvent:
    """Event as persisted inside a date record."""
    id: str
    title: str
    time: str
    url: str
    status: str = STATUS_ACTIVE
    cancelled_at: Optional[str] = None

    def to_dict(self) -> dict:
        """
        Serialize to a plain dict.

        cancelled_at is only written for cancelled events.
        """
        data = {
            'id': self.id,
            'title': self.title,
            'time': self.time,
            'url': self.url,
            'status': self.status,
        }
        if self.cancelled_at is not None:
            data['cancelled_at'] = self.cancelled_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'StoredEvent':
        """
        Build a StoredEvent from a plain dict.

        Raises:
            KeyError: If a required field is missing
            ValueError: If status is not a known value
        """
        status = data['status']
        if status not in VALID_STATUSES:
            raise ValueError(f"Unknown event status: {status!r}")

        cancelled_at = data.get('cancelled_at')
        if (status == STATUS_CANCELLED) != (cancelled_at is not None):
            logger.warning(
                f"Stored event '{data.get('id')}' has status {status!r} "
                f"with cancelled_at={cancelled_at!r}"
            )

        return cls(
            id=str(data['id']),
            title=str(data['title']),
            time=str(data['time']),
            url=str(data['url']),
            status=status,
            cancelled_at=cancelled_at,
        )


@dataclass
class CalendarEvent:
    """Stored event with its date attached, handed to calendar consumers."""
    id: str
    title: str
    date: str
    time: str
    url: str
    status: str
    cancelled_at: Optional[str] = None

    @classmethod
    def from_stored(cls, date: str, event: StoredEvent) -> 'CalendarEvent':
        return cls(
            id=event.id,
            title=event.title,
            date=date,
            time=event.time,
            url=event.url,
            status=event.status,
            cancelled_at=event.cancelled_at,
        )

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'title': self.title,
            'date': self.date,
            'time': self.time,
            'url': self.url,
            'status': self.status,
        }
        if self.cancelled_at is not None:
            data['cancelled_at'] = self.cancelled_at
        return data


@dataclass
class DateRecord:
    """All events stored for one calendar date."""
    date: str
    updated_at: str
    events: List[StoredEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'date': self.date,
            'updated_at': self.updated_at,
            'events': [event.to_dict() for event in self.events],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'DateRecord':
        """
        Build a DateRecord from a plain dict.

        Raises:
            KeyError, TypeError, ValueError: If the data is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"Date record must be an object, got {type(data).__name__}")

        events = data.get('events', [])
        if not isinstance(events, list):
            raise TypeError("Date record 'events' must be a list")

        return cls(
            date=str(data['date']),
            updated_at=str(data.get('updated_at', '')),
            events=[StoredEvent.from_dict(item) for item in events],
        )


@dataclass
class ScrapeResult:
    """Output of a calendar scrape."""
    events: List[EventInput]
    fetched_months: List[str]


@dataclass
class SyncResult:
    """Result of a reconcile run."""
    added: int = 0
    updated: int = 0
    reactivated: int = 0
    cancelled: int = 0
    dates_written: int = 0
