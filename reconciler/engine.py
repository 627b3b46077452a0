"""Reconciliation of scraped events against stored date records."""
import logging
from datetime import date as date_type
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from reconciler.models import (
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    CalendarEvent,
    DateRecord,
    EventInput,
    StoredEvent,
    SyncResult,
)
from storage.base import DateRecordStore

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S'
DATE_FORMAT = '%Y-%m-%d'
TIME_FORMAT = '%H:%M'


class EventReconciler:
    """Merges scraped events into durable per-date records."""

    def __init__(self, store: DateRecordStore):
        """
        Initialize the reconciler.

        Args:
            store: Date record store holding the persisted state
        """
        self.store = store

    def reconcile(
        self,
        scraped_events: Iterable[EventInput],
        fetched_months: Iterable[str],
        now: Optional[datetime] = None
    ) -> SyncResult:
        """
        Merge freshly scraped events into the stored date records.

        Stored future events that no longer appear are marked cancelled,
        but only for dates whose month was fetched successfully. An empty
        fetched_months means every month counts as fetched.

        Args:
            scraped_events: Events from the scraper, each with its own date
            fetched_months: Months (YYYY-MM) scraped successfully in this run
            now: Clock value for this run (defaults to the current time)

        Returns:
            SyncResult with per-run counts

        Raises:
            ValueError: If a scraped event has an unparsable date or time
        """
        now = now or datetime.now()
        now_string = now.strftime(TIMESTAMP_FORMAT)
        today = now.date()
        fetched = set(fetched_months)

        scraped_by_date = self._group_by_date(scraped_events)
        all_dates = sorted(set(self.store.list_keys()) | set(scraped_by_date))

        logger.info(
            f"Reconciling {len(all_dates)} dates "
            f"({len(scraped_by_date)} with scraped events, "
            f"{len(fetched)} fetched months)"
        )

        result = SyncResult()

        for date in all_dates:
            existing = self.store.load(date)
            can_cancel = not fetched or date[:7] in fetched

            merged = self._merge_events(
                existing.events if existing else [],
                scraped_by_date.get(date, {}),
                date,
                today,
                now_string,
                can_cancel,
                result
            )

            if not merged:
                continue

            self.store.save(
                date,
                DateRecord(date=date, updated_at=now_string, events=merged)
            )
            result.dates_written += 1

        logger.info(
            f"Reconcile complete: {result.added} added, {result.updated} updated, "
            f"{result.reactivated} reactivated, {result.cancelled} cancelled, "
            f"{result.dates_written} dates written"
        )
        return result

    def get_all_events(self) -> List[CalendarEvent]:
        """
        Read every stored date record.

        Returns:
            All events with their date attached, sorted by (date, time)
        """
        all_events = []

        for date in self.store.list_keys():
            record = self.store.load(date)
            if record is None:
                continue
            all_events.extend(
                CalendarEvent.from_stored(date, event) for event in record.events
            )

        all_events.sort(key=lambda event: (event.date, event.time))
        return all_events

    def _group_by_date(
        self,
        scraped_events: Iterable[EventInput]
    ) -> Dict[str, Dict[str, EventInput]]:
        """
        Group scraped events by date, then by id.

        A repeated id on the same date replaces the earlier one.
        """
        grouped: Dict[str, Dict[str, EventInput]] = {}

        for event in scraped_events:
            self._validate_event(event)
            by_id = grouped.setdefault(event.date, {})
            if event.id in by_id:
                logger.warning(
                    f"Duplicate event id '{event.id}' on {event.date} in "
                    f"scraped input, keeping the last occurrence"
                )
            by_id[event.id] = event

        return grouped

    def _validate_event(self, event: EventInput) -> None:
        if not self._is_canonical(event.date, DATE_FORMAT):
            raise ValueError(
                f"Invalid date for event '{event.id}': {event.date!r}"
            )

        if not self._is_canonical(event.time, TIME_FORMAT):
            raise ValueError(
                f"Invalid time for event '{event.id}': {event.time!r}"
            )

    @staticmethod
    def _is_canonical(value: str, fmt: str) -> bool:
        """Return True if value parses with fmt and is zero-padded."""
        try:
            return datetime.strptime(value, fmt).strftime(fmt) == value
        except (TypeError, ValueError):
            return False

    def _merge_events(
        self,
        existing: List[StoredEvent],
        scraped: Dict[str, EventInput],
        date: str,
        today: date_type,
        now_string: str,
        can_cancel: bool,
        result: SyncResult
    ) -> List[StoredEvent]:
        """
        Merge stored and scraped events for a single date.

        Args:
            existing: Events currently stored for the date
            scraped: Scraped events for the date, keyed by id
            date: Date key (YYYY-MM-DD)
            today: Date of this run
            now_string: Timestamp of this run
            can_cancel: Whether the date's month was fetched successfully
            result: Counters updated in place

        Returns:
            Merged events sorted by time
        """
        merged = []
        existing_by_id = {event.id: event for event in existing}

        for event_id, scraped_event in scraped.items():
            previous = existing_by_id.pop(event_id, None)
            if previous is None:
                result.added += 1
            elif previous.status == STATUS_CANCELLED:
                logger.info(f"Reactivating event '{event_id}' on {date}")
                result.reactivated += 1
            else:
                result.updated += 1

            merged.append(StoredEvent(
                id=event_id,
                title=scraped_event.title,
                time=scraped_event.time,
                url=scraped_event.url,
                status=STATUS_ACTIVE,
            ))

        # YYYY-MM-DD keys order the same as the dates they name
        is_upcoming = date >= today.strftime(DATE_FORMAT)

        for event in existing_by_id.values():
            if is_upcoming and event.status == STATUS_ACTIVE and can_cancel:
                logger.info(f"Cancelling event '{event.id}' on {date}")
                event.status = STATUS_CANCELLED
                event.cancelled_at = now_string
                result.cancelled += 1
            merged.append(event)

        merged.sort(key=lambda event: event.time)
        return merged
