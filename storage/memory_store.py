"""In-memory date record store."""
import copy
from typing import Dict, List, Optional

from reconciler.models import DateRecord
from storage.base import DateRecordStore


class InMemoryDateStore(DateRecordStore):
    """Dict-backed store, used in tests and dry runs."""

    def __init__(self, records: Optional[Dict[str, DateRecord]] = None):
        self._records: Dict[str, DateRecord] = {}
        for date, record in (records or {}).items():
            self.save(date, record)

    def load(self, date: str) -> Optional[DateRecord]:
        record = self._records.get(date)
        return copy.deepcopy(record) if record is not None else None

    def save(self, date: str, record: DateRecord) -> None:
        self._records[date] = copy.deepcopy(record)

    def list_keys(self) -> List[str]:
        return sorted(self._records)
