from __future__ import annotations

import os
import sqlite3
import tempfile
import threading
import unittest
from datetime import timedelta
from pathlib import Path

from empath.errors import StorageInitError, StorageWriteError
from empath.store import EventStore
from empath.utils import parse_timestamp, utc_now

REPO = "/work/project"


class EventStoreTests(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.base = Path(self.tempdir.name)
        self.db_path = self.base / "state" / "empath" / "state.sqlite3"
        self.store = EventStore(self.db_path)
        self.store.initialize()

    def tearDown(self):
        self.tempdir.cleanup()

    def test_initialize_creates_state_dir_and_is_idempotent(self):
        self.assertTrue(self.db_path.exists())
        self.store.record(REPO, f"{REPO}/a.py", "2024-05-01T12:00:00Z")
        self.store.initialize()
        EventStore(self.db_path).initialize()
        self.assertEqual(len(self.store.events(REPO)), 1)

    def test_wal_journal_mode(self):
        with sqlite3.connect(self.db_path) as conn:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        self.assertEqual(mode.lower(), "wal")

    def test_duplicate_record_is_absorbed(self):
        self.assertTrue(self.store.record(REPO, f"{REPO}/a.py", "2024-05-01T12:00:00Z"))
        self.assertFalse(self.store.record(REPO, f"{REPO}/a.py", "2024-05-01T12:00:00Z"))
        # Same instant written with a different offset.
        self.assertFalse(self.store.record(REPO, f"{REPO}/a.py", "2024-05-01T14:00:00+02:00"))
        self.assertEqual(len(self.store.events(REPO)), 1)

    def test_timestamps_are_stored_as_fixed_width_utc(self):
        self.store.record(REPO, f"{REPO}/a.py", "2024-05-01T12:00:00+02:00")
        self.store.record(REPO, f"{REPO}/b.py", "2024-05-01T10:00:00.5Z")
        ats = sorted(event.at for event in self.store.events(REPO))
        self.assertEqual(ats, ["2024-05-01T10:00:00.000000Z", "2024-05-01T10:00:00.500000Z"])

    def test_record_defaults_to_current_time(self):
        before = utc_now()
        self.store.record(REPO, f"{REPO}/a.py")
        after = utc_now()
        (event,) = self.store.events(REPO)
        recorded = parse_timestamp(event.at)
        self.assertLessEqual(before, recorded)
        self.assertLessEqual(recorded, after)

    def test_record_accepts_datetimes(self):
        moment = utc_now() - timedelta(days=3)
        self.store.record(REPO, Path(REPO) / "a.py", moment)
        (event,) = self.store.events(REPO)
        self.assertEqual(event.path, f"{REPO}/a.py")
        self.assertEqual(parse_timestamp(event.at), moment)

    def test_forget_deletes_every_event_for_the_pair(self):
        for day in range(1, 4):
            self.store.record(REPO, f"{REPO}/a.py", f"2024-05-0{day}T12:00:00Z")
        self.store.record(REPO, f"{REPO}/b.py", "2024-05-01T12:00:00Z")
        self.store.record("/work/other", f"{REPO}/a.py", "2024-05-01T12:00:00Z")

        self.assertEqual(self.store.forget(REPO, f"{REPO}/a.py"), 3)
        self.assertEqual([event.path for event in self.store.events(REPO)], [f"{REPO}/b.py"])
        self.assertEqual(len(self.store.events("/work/other")), 1)

    def test_forget_unknown_path_is_a_noop(self):
        self.assertEqual(self.store.forget(REPO, f"{REPO}/never.py"), 0)
        self.store.record(REPO, f"{REPO}/a.py", "2024-05-01T12:00:00Z")
        self.store.forget(REPO, f"{REPO}/a.py")
        self.assertEqual(self.store.forget(REPO, f"{REPO}/a.py"), 0)

    def test_initialize_fails_when_state_dir_is_a_file(self):
        blocker = self.base / "blocker"
        blocker.write_text("", encoding="utf-8")
        with self.assertRaises(StorageInitError):
            EventStore(blocker / "state.sqlite3").initialize()

    @unittest.skipUnless(os.name == "posix", "surrogate-escaped file names are POSIX only")
    def test_non_utf8_paths(self):
        bad = os.fsdecode(b"/work/project/bad\xff.py")
        with self.assertRaises(StorageWriteError):
            self.store.record(REPO, bad, "2024-05-01T12:00:00Z")
        self.assertEqual(self.store.forget(REPO, bad), 0)
        self.assertEqual(self.store.events(REPO), [])

    def test_write_failure_is_reported(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DROP TABLE access_log")
        with self.assertRaises(StorageWriteError):
            self.store.record(REPO, f"{REPO}/a.py")
        with self.assertRaises(StorageWriteError):
            self.store.forget(REPO, f"{REPO}/a.py")


class LegacyMigrationTests(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tempdir.name) / "state.sqlite3"

    def tearDown(self):
        self.tempdir.cleanup()

    def _tables(self) -> set[str]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        return {row[0] for row in rows}

    def test_empath_table_is_migrated_and_dropped(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "CREATE TABLE empath (repo TEXT NOT NULL, path TEXT NOT NULL, time TEXT NOT NULL, UNIQUE (repo, path, time))"
            )
            conn.executemany(
                "INSERT INTO empath (repo, path, time) VALUES (?, ?, ?)",
                [
                    (REPO, f"{REPO}/a.py", "2024-01-01T00:00:00.123456789Z"),
                    (REPO, f"{REPO}/b.py", "2024-01-02T00:00:00Z"),
                    (REPO, f"{REPO}/c.py", "not a time"),
                ],
            )

        store = EventStore(self.db_path)
        store.initialize()

        events = {(event.path, event.at) for event in store.events(REPO)}
        self.assertEqual(
            events,
            {
                (f"{REPO}/a.py", "2024-01-01T00:00:00.123456Z"),
                (f"{REPO}/b.py", "2024-01-02T00:00:00.000000Z"),
            },
        )
        self.assertNotIn("empath", self._tables())
        with sqlite3.connect(self.db_path) as conn:
            kept = conn.execute("SELECT source, repo, path, at FROM legacy_unreadable").fetchall()
        self.assertEqual(kept, [("empath", REPO, f"{REPO}/c.py", "not a time")])

    def test_log_table_is_migrated(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("CREATE TABLE log (repo TEXT, path TEXT, at TEXT)")
            conn.execute(
                "INSERT INTO log (repo, path, at) VALUES (?, ?, ?)",
                (REPO, f"{REPO}/a.py", "2024-03-01T08:00:00+01:00"),
            )

        store = EventStore(self.db_path)
        store.initialize()

        (event,) = store.events(REPO)
        self.assertEqual(event.at, "2024-03-01T07:00:00.000000Z")
        self.assertNotIn("log", self._tables())

    def test_count_only_table_is_left_alone(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("CREATE TABLE paths (repo TEXT, path TEXT, count INTEGER)")

        store = EventStore(self.db_path)
        store.initialize()

        self.assertIn("paths", self._tables())
        self.assertEqual(store.events(REPO), [])

    def test_concurrent_first_runs_migrate_once(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("CREATE TABLE empath (repo TEXT, path TEXT, time TEXT)")
            conn.executemany(
                "INSERT INTO empath (repo, path, time) VALUES (?, ?, ?)",
                [(REPO, f"{REPO}/a.py", f"2024-01-0{day}T00:00:00Z") for day in range(1, 10)],
            )

        errors = []

        def first_run():
            try:
                EventStore(self.db_path).initialize()
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=first_run) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(EventStore(self.db_path).events(REPO)), 9)
        self.assertNotIn("empath", self._tables())


if __name__ == "__main__":
    unittest.main()
