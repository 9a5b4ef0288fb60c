"""
Append-only event store with date/type lookup, statistics and binary persistence.

File layout (little-endian): int32 version, int32 event count, then fixed-size
records of date[16], title[4096], description[4096], source_url[256],
float64 sentiment and int32 impact score. Strings are UTF-8, null padded.
"""

import logging
import shutil
import struct
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from emers.events.news_scorer import NewsScorer
from emers.interfaces.event_interfaces import EventRecord, EventType
from emers.utils.errors import CorruptedDatabaseError, ErrorKind, InvalidParameterError, IOFailureError
from emers.utils.validation_utils import validate_event_fields

FORMAT_VERSION = 1
HEADER = struct.Struct("<ii")
RECORD = struct.Struct("<16s4096s4096s256sdi")

DATE_BYTES = 16
TITLE_BYTES = 4096
DESCRIPTION_BYTES = 4096
URL_BYTES = 256

PathLike = Union[str, Path]


def _encode(text: str, capacity: int) -> bytes:
    """UTF-8 encode, truncated on a character boundary so a terminating null still fits."""
    raw = (text or "").encode("utf-8")
    if len(raw) >= capacity:
        raw = raw[:capacity - 1].decode("utf-8", errors="ignore").encode("utf-8")
    return raw


def _decode(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


@dataclass
class EventStatistics:
    """Summary counts over the stored events."""
    total_events: int = 0
    events_last_month: int = 0
    events_last_year: int = 0
    oldest_date: Optional[str] = None
    newest_date: Optional[str] = None
    events_by_type: Dict[EventType, int] = field(default_factory=dict)


class EventDatabase:
    """
    Growable, append-only store of EventRecords.

    Features:
    - Amortised O(1) append with capacity doubling
    - Linear date-range and event-type scans
    - Statistics relative to a reference date
    - Versioned binary save/load and sibling ``.bak`` backup/restore
    """

    def __init__(self, initial_capacity: int = 10, scorer: Optional[NewsScorer] = None):
        if initial_capacity <= 0:
            raise InvalidParameterError("Initial capacity must be positive")
        self._events: List[EventRecord] = []
        self._capacity = initial_capacity
        self.scorer = scorer or NewsScorer()
        self.logger = logging.getLogger(__name__)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def events(self) -> tuple:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(tuple(self._events))

    def __eq__(self, other) -> bool:
        if not isinstance(other, EventDatabase):
            return NotImplemented
        return self._events == other._events

    def append(self, event: EventRecord) -> None:
        """
        Append one event.

        Raises:
            InvalidParameterError: If the event fields are out of range
        """
        is_valid, issues = validate_event_fields(event.date, event.title,
                                                 event.sentiment, event.impact_score)
        if not is_valid:
            raise InvalidParameterError("; ".join(issues))

        if len(self._events) >= self._capacity:
            self._capacity *= 2
            self.logger.debug(f"Event database capacity grown to {self._capacity}")
        self._events.append(event)

    def extend(self, events) -> int:
        count = 0
        for event in events:
            self.append(event)
            count += 1
        return count

    def clear(self) -> None:
        self._events.clear()

    def find_by_date_range(self, start_date: str, end_date: str) -> List[EventRecord]:
        """Events with ``start_date <= date <= end_date`` (ISO strings compare lexically)."""
        return [e for e in self._events if start_date <= e.date <= end_date]

    def find_by_type(self, event_type: EventType) -> List[EventRecord]:
        """Events classified as ``event_type``; stored annotations win over on-the-fly classification."""
        matches = []
        for e in self._events:
            current = e.event_type if e.event_type is not None else self.scorer.classify_record(e)
            if current == event_type:
                matches.append(e)
        return matches

    def stats(self, today: Optional[date] = None) -> EventStatistics:
        """
        Totals, recent-activity counts, date span and per-type counts.

        Args:
            today: Reference date for the last-month and last-year windows (default: today)
        """
        today = today or date.today()
        month_ago = (today - timedelta(days=30)).isoformat()
        year_ago = (today - timedelta(days=365)).isoformat()

        result = EventStatistics(total_events=len(self._events))
        for e in self._events:
            if e.date >= month_ago:
                result.events_last_month += 1
            if e.date >= year_ago:
                result.events_last_year += 1
            if result.oldest_date is None or e.date < result.oldest_date:
                result.oldest_date = e.date
            if result.newest_date is None or e.date > result.newest_date:
                result.newest_date = e.date
            event_type = e.event_type if e.event_type is not None else self.scorer.classify_record(e)
            result.events_by_type[event_type] = result.events_by_type.get(event_type, 0) + 1
        return result

    def save(self, path: PathLike) -> None:
        """
        Write the database to ``path``.

        Raises:
            IOFailureError: If the file cannot be written
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(HEADER.pack(FORMAT_VERSION, len(self._events)))
                for e in self._events:
                    f.write(RECORD.pack(
                        _encode(e.date, DATE_BYTES),
                        _encode(e.title, TITLE_BYTES),
                        _encode(e.description, DESCRIPTION_BYTES),
                        _encode(e.source_url, URL_BYTES),
                        float(e.sentiment),
                        int(e.impact_score),
                    ))
        except OSError as e:
            raise IOFailureError(f"Failed to write event database {path}: {e}",
                                 ErrorKind.FILE_WRITE_FAILED) from e
        self.logger.info(f"Saved {len(self._events)} events to {path}")

    def load(self, path: PathLike) -> int:
        """
        Replace the contents with the events stored at ``path``.

        A missing file leaves the database empty.

        Returns:
            Number of events loaded

        Raises:
            CorruptedDatabaseError: On version mismatch or truncated data; the database is left empty
            IOFailureError: If the file exists but cannot be read
        """
        path = Path(path)
        self._events.clear()
        if not path.exists():
            self.logger.info(f"No event database at {path}, starting empty")
            return 0

        try:
            data = path.read_bytes()
        except OSError as e:
            raise IOFailureError(f"Failed to read event database {path}: {e}",
                                 ErrorKind.FILE_READ_FAILED) from e

        if len(data) < HEADER.size:
            raise CorruptedDatabaseError(f"Event database {path} is truncated (no header)")

        version, count = HEADER.unpack_from(data, 0)
        if version != FORMAT_VERSION:
            raise CorruptedDatabaseError(
                f"Event database {path} has version {version}, expected {FORMAT_VERSION}")
        if count < 0 or len(data) < HEADER.size + count * RECORD.size:
            raise CorruptedDatabaseError(
                f"Event database {path} is truncated: header announces {count} events")

        events = []
        for i in range(count):
            date_raw, title, description, url, sentiment, impact = RECORD.unpack_from(
                data, HEADER.size + i * RECORD.size)
            events.append(EventRecord(
                date=_decode(date_raw),
                title=_decode(title),
                description=_decode(description),
                source_url=_decode(url),
                sentiment=sentiment,
                impact_score=impact,
            ))

        while self._capacity < count:
            self._capacity *= 2
        self._events.extend(events)
        self.logger.info(f"Loaded {count} events from {path}")
        return count

    @classmethod
    def from_file(cls, path: PathLike) -> "EventDatabase":
        db = cls()
        db.load(path)
        return db

    @staticmethod
    def backup_path(path: PathLike) -> Path:
        path = Path(path)
        return path.with_name(path.name + ".bak")

    def backup(self, path: PathLike) -> Path:
        """
        Copy the database file at ``path`` to ``<path>.bak``.

        Raises:
            IOFailureError: If the source is missing or the copy fails
        """
        path = Path(path)
        target = self.backup_path(path)
        try:
            shutil.copyfile(path, target)
        except OSError as e:
            raise IOFailureError(f"Failed to back up {path}: {e}", ErrorKind.FILE_WRITE_FAILED) from e
        self.logger.info(f"Created backup: {target}")
        return target

    def restore(self, path: PathLike) -> int:
        """
        Copy ``<path>.bak`` back over ``path`` and reload.

        Returns:
            Number of events loaded from the restored file
        """
        path = Path(path)
        source = self.backup_path(path)
        try:
            shutil.copyfile(source, path)
        except OSError as e:
            raise IOFailureError(f"Failed to restore {path} from {source}: {e}",
                                 ErrorKind.FILE_NOT_FOUND) from e
        self.logger.info(f"Restored {path} from backup")
        return self.load(path)
