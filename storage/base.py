"""Storage interface for date records."""
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from reconciler.models import DateRecord

DATE_KEY_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def is_date_key(key: str) -> bool:
    """Return True if key is a real calendar date in YYYY-MM-DD form."""
    if not DATE_KEY_PATTERN.match(key):
        return False
    try:
        datetime.strptime(key, '%Y-%m-%d')
    except ValueError:
        return False
    return True


class DateRecordStore(ABC):
    """Key-value store mapping a calendar date to its DateRecord."""

    @abstractmethod
    def load(self, date: str) -> Optional[DateRecord]:
        """
        Load the record for a date.

        Args:
            date: Date key (YYYY-MM-DD)

        Returns:
            DateRecord, or None if missing or unreadable
        """

    @abstractmethod
    def save(self, date: str, record: DateRecord) -> None:
        """
        Persist the record for a date, replacing any previous one.

        Raises on I/O failure.
        """

    @abstractmethod
    def list_keys(self) -> List[str]:
        """Return all stored date keys in ascending order."""
