"""
JSON-file record store.

Records live in {root}/.cognize/records.json, newest first. The store is the
only owner of records; retrieval code receives the corpus as a plain list.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from .types import KnowledgeRecord

logger = logging.getLogger(__name__)

STORE_VERSION = 1
STORE_FILENAME = "records.json"


class StoreError(Exception):
    """Raised when the record store cannot be written."""

    pass


class RecordStore:
    """
    Durable list of knowledge records backed by a JSON file.
    """

    def __init__(self, root: str = "."):
        """
        Args:
            root: Directory holding the .cognize metadata folder
        """
        self.root = Path(root)
        self.path = self.root / ".cognize" / STORE_FILENAME

    def _load_raw(self, strict: bool = False) -> List[Dict]:
        """
        Read the raw record list.

        Args:
            strict: Raise StoreError on an unreadable file instead of treating it as empty

        Raises:
            StoreError: If strict and the file cannot be read or parsed
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            if strict:
                raise StoreError(f"Refusing to overwrite unreadable record store {self.path}: {e}") from e
            logger.error(f"Failed to read record store {self.path}: {e}")
            return []

        # Stores exported from the web app are a bare list
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get("records"), list):
            return data["records"]

        if strict:
            raise StoreError(f"Refusing to overwrite record store with unrecognized format: {self.path}")
        logger.error(f"Unrecognized record store format in {self.path}")
        return []

    def _save_raw(self, raw_records: List[Dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".json.tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"version": STORE_VERSION, "records": raw_records}, f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.path)
        except OSError as e:
            raise StoreError(f"Failed to write record store {self.path}: {e}") from e

    def list_all(self) -> List[KnowledgeRecord]:
        """Return all valid records, newest first. Invalid entries are skipped."""
        records = []
        for index, raw in enumerate(self._load_raw()):
            try:
                records.append(KnowledgeRecord.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping invalid record #{index} in {self.path}: {e.error_count()} validation error(s)")
        return records

    def append(self, record: KnowledgeRecord) -> None:
        """
        Add a record in front of the existing ones.

        Raises:
            StoreError: If the existing file is unreadable or cannot be written
        """
        raw_records = self._load_raw(strict=True)
        raw_records.insert(0, record.model_dump(mode="json", by_alias=True))
        self._save_raw(raw_records)

    def get(self, record_id: str) -> Optional[KnowledgeRecord]:
        """Look up a record by id."""
        for record in self.list_all():
            if record.id == record_id:
                return record
        return None

    def clear(self) -> None:
        """Delete every record."""
        if self.path.exists():
            self._save_raw([])

    def __len__(self) -> int:
        return len(self.list_all())


def search_text(query: str, records: Sequence[KnowledgeRecord]) -> List[KnowledgeRecord]:
    """
    Case-insensitive substring search over text, conclusion and key judgments.

    Used when semantic search is unavailable.
    """
    needle = query.lower()
    return [
        record
        for record in records
        if needle in record.original_text.lower()
        or needle in record.analysis.conclusion.lower()
        or any(needle in judgment.lower() for judgment in record.analysis.key_judgments)
    ]
