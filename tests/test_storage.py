"""
Unit tests for snapshot storage.

Storage contract:
- Missing file -> None (first run, caller seeds)
- Corrupted file -> PersistenceError (never silently re-seeded)
- JSON schema: {"version": 1, "users": [...], ...}
"""

import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from mycampus.credentials import PasslibVerifier, PlainVerifier
from mycampus.errors import PersistenceError
from mycampus.storage import JsonFileStore, MemoryStore, open_dataset

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


class TestJsonFileStore(unittest.TestCase):
    def test_load_missing_file_returns_none(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            self.assertIsNone(JsonFileStore(Path(d) / "missing.json").load())

    def test_save_creates_directories_and_loads_back(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "nested" / "campus.json"
            store = JsonFileStore(p)
            store.save({"version": 1, "users": []})
            self.assertEqual(store.load(), {"version": 1, "users": []})
            # no temp files left behind
            self.assertEqual([x.name for x in p.parent.iterdir()], ["campus.json"])

    def test_corrupt_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "campus.json"
            p.write_text("{not json", encoding="utf-8")
            with self.assertRaises(PersistenceError):
                JsonFileStore(p).load()
            p.write_text("[1, 2, 3]", encoding="utf-8")
            with self.assertRaises(PersistenceError):
                JsonFileStore(p).load()

    def test_unwritable_location_raises(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            blocker = Path(d) / "file"
            blocker.write_text("x", encoding="utf-8")
            with self.assertRaises(PersistenceError):
                JsonFileStore(blocker / "campus.json").save({"version": 1})


class TestOpenDataset(unittest.TestCase):
    def test_first_run_seeds_and_saves(self) -> None:
        store = MemoryStore()
        ds = open_dataset(store, PlainVerifier(), NOW)

        self.assertEqual(store.saves, 1)
        self.assertEqual(sorted(u.role for u in ds.users.values()), ["admin", "faculty", "student"])
        faculty = ds.find_user_by_email("barun@uni.edu")
        self.assertTrue(all(c.faculty_id == faculty.id for c in ds.courses.values()))
        self.assertEqual(len(ds.enrollments), 1)
        self.assertEqual(len(ds.announcements), 1)
        (assignment,) = ds.assignments.values()
        self.assertGreater(assignment.due_at, NOW)

    def test_second_run_loads_without_seeding(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            store = JsonFileStore(Path(d) / "campus.json")
            first = open_dataset(store, PlainVerifier(), NOW)
            second = open_dataset(store, PlainVerifier(), NOW)
            self.assertEqual(list(first.users), list(second.users))

            data = json.loads((Path(d) / "campus.json").read_text(encoding="utf-8"))
            self.assertEqual(data["version"], 1)
            self.assertEqual(len(data["timetable"]), 3)

    def test_seed_passwords_are_hashed(self) -> None:
        verifier = PasslibVerifier()
        ds = open_dataset(MemoryStore(), verifier, NOW)
        alice = ds.find_user_by_email("alice@uni.edu")
        self.assertNotEqual(alice.password, "pass")
        self.assertTrue(verifier.verify("pass", alice.password))
        self.assertFalse(verifier.verify("pass", "pass"))


if __name__ == "__main__":
    unittest.main()
