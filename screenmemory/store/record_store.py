"""
Record Store - in-memory index of captured screenshots.

Records are kept most-recent-first and flushed to a JSON index file after
every mutation. Loading tolerates a missing or damaged index.

Usage:
    from screenmemory.store import RecordStore

    store = RecordStore(Path("~/.screenmemory/index.json").expanduser())
    store.load()
    store.insert(record)
    store.find("3f2a")
"""

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..errors import (
    DuplicateRecord,
    NotFound,
    PersistenceLoadFailure,
    PersistenceSaveFailure,
)

logger = logging.getLogger(__name__)

INDEX_VERSION = 1
UNKNOWN_APP = "Unknown"


def new_record_id() -> str:
    """Generate a collision-resistant record identity."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Record:
    """One indexed capture: image reference plus metadata and OCR text."""
    id: str
    timestamp: datetime
    image_path: Path
    text: str = ""
    app_name: str = UNKNOWN_APP
    window_title: str = ""
    url: Optional[str] = None

    @property
    def filename(self) -> str:
        return Path(self.image_path).name

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'image_path': str(self.image_path),
            'timestamp': self.timestamp.isoformat(),
            'text': self.text,
            'app_name': self.app_name,
            'window_title': self.window_title,
            'url': self.url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        """
        Build a record from its persisted form.

        Raises:
            KeyError, TypeError, ValueError: if the entry is malformed
        """
        record_id = data['id']
        if not isinstance(record_id, str) or not record_id:
            raise ValueError(f"invalid id: {record_id!r}")

        image_path = data['image_path']
        if not isinstance(image_path, str) or not image_path:
            raise ValueError(f"invalid image_path: {image_path!r}")

        fields = {}
        for name, default in (('text', ""), ('app_name', UNKNOWN_APP), ('window_title', ""), ('url', None)):
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"{name} must be a string, got {type(value).__name__}")
            fields[name] = value or default

        timestamp = datetime.fromisoformat(data['timestamp'])
        # Records are compared against naive local time
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone().replace(tzinfo=None)

        return cls(
            id=record_id,
            timestamp=timestamp,
            image_path=Path(image_path),
            **fields,
        )


class RecordStore:
    """
    Ordered collection of records, most recent first.

    Every insert and delete is followed by a save; a crash between the
    mutation and the save loses at most that mutation.
    """

    def __init__(self, index_path: Path):
        self.index_path = Path(index_path)
        self._records: List[Record] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(tuple(self._records))

    def all(self) -> Tuple[Record, ...]:
        """Read-only view of all records, most recent first."""
        return tuple(self._records)

    def insert(self, record: Record) -> None:
        """Prepend a record and persist the store."""
        if any(r.id == record.id for r in self._records):
            raise DuplicateRecord(record.id)
        self._records.insert(0, record)
        self.save()

    def _index_of(self, id_prefix: str) -> int:
        prefix = (id_prefix or "").strip().lower()
        # An empty prefix would select an arbitrary record
        if prefix:
            for i, record in enumerate(self._records):
                if record.id.lower().startswith(prefix):
                    return i
        raise NotFound(id_prefix)

    def find(self, id_prefix: str) -> Record:
        """Return the most recent record whose id starts with the prefix."""
        return self._records[self._index_of(id_prefix)]

    def delete(self, id_prefix: str) -> Record:
        """
        Remove the most recent record matching the prefix and its image.

        Image removal is best-effort; the index is saved afterwards.

        Returns:
            The removed record
        """
        record = self._records.pop(self._index_of(id_prefix))

        try:
            Path(record.image_path).unlink()
        except FileNotFoundError:
            logger.warning(f"Image already missing: {record.image_path}")
        except OSError as e:
            logger.warning(f"Failed to remove image {record.image_path}: {e}")

        self.save()
        logger.info(f"Deleted record {record.short_id}")
        return record

    def load(self) -> int:
        """
        Replace in-memory contents with the persisted index.

        A missing or unreadable index leaves the store empty. Malformed
        entries are skipped.

        Returns:
            Number of records loaded
        """
        self._records = []

        if not self.index_path.exists():
            logger.info(f"No index at {self.index_path}, starting empty")
            return 0

        try:
            entries = self._read_entries()
        except PersistenceLoadFailure as e:
            logger.warning(f"{e}; starting with an empty store")
            return 0

        seen = set()
        for position, entry in enumerate(entries):
            try:
                record = Record.from_dict(entry)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping corrupt index entry #{position}: {e}")
                continue
            if record.id in seen:
                logger.warning(f"Skipping duplicate index entry {record.id}")
                continue
            seen.add(record.id)
            self._records.append(record)

        logger.info(f"Loaded {len(self._records)} records from {self.index_path}")
        return len(self._records)

    def _read_entries(self) -> list:
        try:
            data = json.loads(self.index_path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceLoadFailure(f"Could not read index {self.index_path}: {e}") from e

        if isinstance(data, dict):
            entries = data.get('records')
        else:
            entries = data
        if not isinstance(entries, list):
            raise PersistenceLoadFailure(f"Index {self.index_path} has no record list")
        return entries

    def save(self) -> None:
        """
        Write the full sequence to the index file atomically.

        The data goes to a temporary file in the same directory which then
        replaces the index, so readers never see a partial file.
        """
        payload = {
            'version': INDEX_VERSION,
            'records': [record.to_dict() for record in self._records],
        }

        tmp_path = None
        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w',
                encoding='utf-8',
                dir=self.index_path.parent,
                prefix=f".{self.index_path.name}.",
                suffix='.tmp',
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.index_path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    logger.debug(f"Could not remove temp file {tmp_path}")
            raise PersistenceSaveFailure(f"Failed to save index {self.index_path}: {e}") from e

        logger.debug(f"Saved {len(self._records)} records to {self.index_path}")
