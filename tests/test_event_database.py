"""
Unit tests for the event database.
"""

import unittest
import tempfile
import shutil
from datetime import date
from pathlib import Path

from emers.events.event_database import HEADER, RECORD, EventDatabase
from emers.interfaces.event_interfaces import EventRecord, EventType
from emers.utils.errors import CorruptedDatabaseError, InvalidParameterError, IOFailureError


def sample_events():
    return [
        EventRecord("2024-01-02", "Acme announces merger", "Deal with Globex", "https://a", 0.5, 70),
        EventRecord("2024-03-15", "Acme quarterly earnings beat", "Strong quarter", "https://b", 0.8, 80),
        EventRecord("2024-07-20", "Acme CEO resigned", "", "", -0.4, 40),
    ]


class TestEventDatabase(unittest.TestCase):
    """Test cases for EventDatabase class."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = Path(self.temp_dir) / "events.db"
        self.db = EventDatabase(initial_capacity=2)
        self.db.extend(sample_events())

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_append_grows_capacity(self):
        self.assertEqual(len(self.db), 3)
        self.assertEqual(self.db.capacity, 4)

    def test_append_rejects_invalid_events(self):
        with self.assertRaises(InvalidParameterError):
            self.db.append(EventRecord("2024-13-45", "Bad date"))
        with self.assertRaises(InvalidParameterError):
            self.db.append(EventRecord("2024-01-01", "Bad sentiment", sentiment=1.5))
        with self.assertRaises(InvalidParameterError):
            self.db.append(EventRecord("2024-01-01", "Bad impact", impact_score=101))
        self.assertEqual(len(self.db), 3)

    def test_find_by_date_range(self):
        found = self.db.find_by_date_range("2024-02-01", "2024-06-01")
        self.assertEqual(found, [sample_events()[1]])

    def test_find_by_date_range_is_inclusive(self):
        found = self.db.find_by_date_range("2024-01-02", "2024-07-20")
        self.assertEqual(len(found), 3)

    def test_find_by_type(self):
        self.assertEqual(self.db.find_by_type(EventType.MERGER_ACQUISITION), [sample_events()[0]])
        self.assertEqual(self.db.find_by_type(EventType.EARNINGS), [sample_events()[1]])
        self.assertEqual(self.db.find_by_type(EventType.LEADERSHIP), [sample_events()[2]])

    def test_stored_annotation_wins_over_classification(self):
        db = EventDatabase()
        db.append(EventRecord("2024-01-02", "Acme announces merger", event_type=EventType.REGULATORY))
        self.assertEqual(len(db.find_by_type(EventType.REGULATORY)), 1)
        self.assertEqual(db.find_by_type(EventType.MERGER_ACQUISITION), [])

    def test_stats(self):
        stats = self.db.stats(today=date(2024, 8, 1))

        self.assertEqual(stats.total_events, 3)
        self.assertEqual(stats.events_last_month, 1)
        self.assertEqual(stats.events_last_year, 3)
        self.assertEqual(stats.oldest_date, "2024-01-02")
        self.assertEqual(stats.newest_date, "2024-07-20")
        self.assertEqual(stats.events_by_type[EventType.EARNINGS], 1)

    def test_stats_on_empty_database(self):
        stats = EventDatabase().stats(today=date(2024, 8, 1))
        self.assertEqual(stats.total_events, 0)
        self.assertIsNone(stats.oldest_date)

    def test_save_load_round_trip(self):
        self.db.save(self.path)
        self.assertEqual(self.path.stat().st_size, HEADER.size + 3 * RECORD.size)

        loaded = EventDatabase.from_file(self.path)
        self.assertEqual(loaded, self.db)
        self.assertEqual(loaded.events[1].source_url, "https://b")

    def test_round_trip_truncates_long_text_on_character_boundary(self):
        db = EventDatabase()
        db.append(EventRecord("2024-01-02", "é" * 5000))
        db.save(self.path)

        title = EventDatabase.from_file(self.path).events[0].title
        self.assertEqual(title, "é" * 2047)

    def test_load_missing_file_starts_empty(self):
        self.assertEqual(self.db.load(Path(self.temp_dir) / "missing.db"), 0)
        self.assertEqual(len(self.db), 0)

    def test_load_version_mismatch(self):
        self.path.write_bytes(HEADER.pack(99, 0))

        with self.assertRaises(CorruptedDatabaseError):
            self.db.load(self.path)
        self.assertEqual(len(self.db), 0)

    def test_load_truncated_file(self):
        self.db.save(self.path)
        data = self.path.read_bytes()
        self.path.write_bytes(data[:HEADER.size + RECORD.size + 10])

        with self.assertRaises(CorruptedDatabaseError):
            self.db.load(self.path)
        self.assertEqual(len(self.db), 0)

    def test_load_file_without_header(self):
        self.path.write_bytes(b"\x01\x00")
        with self.assertRaises(CorruptedDatabaseError):
            self.db.load(self.path)

    def test_backup_and_restore(self):
        self.db.save(self.path)
        backup = self.db.backup(self.path)
        self.assertTrue(backup.exists())
        self.assertEqual(backup.name, "events.db.bak")

        self.db.append(EventRecord("2024-09-01", "Later event"))
        self.db.save(self.path)

        restored = self.db.restore(self.path)
        self.assertEqual(restored, 3)
        self.assertEqual(len(EventDatabase.from_file(self.path)), 3)

    def test_backup_of_missing_file_fails(self):
        with self.assertRaises(IOFailureError):
            self.db.backup(Path(self.temp_dir) / "missing.db")

    def test_restore_without_backup_fails(self):
        with self.assertRaises(IOFailureError):
            self.db.restore(self.path)

    def test_events_view_is_immutable(self):
        events = self.db.events
        self.assertIsInstance(events, tuple)
        self.assertEqual(len(events), 3)

    def test_invalid_capacity(self):
        with self.assertRaises(InvalidParameterError):
            EventDatabase(initial_capacity=0)


if __name__ == '__main__':
    unittest.main()
