"""JSON file store: one pretty-printed file per calendar date."""
import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from reconciler.models import DateRecord
from storage.base import DateRecordStore, is_date_key

logger = logging.getLogger(__name__)


class JsonFileDateStore(DateRecordStore):
    """Store date records as <data_dir>/<YYYY-MM-DD>.json."""

    def __init__(self, data_dir: Union[str, Path] = 'data/events'):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding the date files (created on first save)
        """
        self.data_dir = Path(data_dir)
        logger.info(f"Initialized JsonFileDateStore in: {self.data_dir}")

    def load(self, date: str) -> Optional[DateRecord]:
        """
        Load a date file.

        Missing, unreadable or malformed files are treated as empty so a
        single corrupt file does not block the sync.
        """
        path = self._path_for(date)
        if not path.exists():
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return DateRecord.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable date file {path}: {e}")
            return None

    def save(self, date: str, record: DateRecord) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(date)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(record.to_dict(), f, indent=4, ensure_ascii=False)
            f.write('\n')

    def list_keys(self) -> List[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted(
            path.stem for path in self.data_dir.glob('*.json')
            if is_date_key(path.stem)
        )

    def _path_for(self, date: str) -> Path:
        return self.data_dir / f"{date}.json"
