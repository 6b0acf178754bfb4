import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from mycampus.export_ics import export_calendar_to_ics
from mycampus.views import AgendaEntry


class TestExportICS(unittest.TestCase):
    def test_export_creates_file_and_contains_calendar(self) -> None:
        entries = [
            AgendaEntry("ev_1", "Semester Starts", datetime(2026, 3, 2, tzinfo=timezone.utc), True, "academic"),
            AgendaEntry(
                "a_1", "CSE101 HW1, part 1 due", datetime(2026, 3, 9, 23, 59, tzinfo=timezone.utc), False, "assignment"
            ),
        ]

        with tempfile.TemporaryDirectory() as d:
            out = Path(d) / "out.ics"
            n = export_calendar_to_ics(entries, out)
            self.assertEqual(n, 2)
            text = out.read_text(encoding="utf-8")
            self.assertIn("BEGIN:VCALENDAR", text)
            self.assertIn("DTSTART;VALUE=DATE:20260302", text)
            self.assertIn("DTEND;VALUE=DATE:20260303", text)
            self.assertIn("DTSTART:20260309T235900Z", text)
            self.assertIn("SUMMARY:CSE101 HW1\\, part 1 due", text)


if __name__ == "__main__":
    unittest.main()
