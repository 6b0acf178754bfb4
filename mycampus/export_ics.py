"""
iCalendar (.ics) export.

We convert a user's agenda (institution calendar + upcoming assignment
deadlines) into a calendar file that can be imported into:
- Google Calendar
- Outlook
- Apple Calendar
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from mycampus.views import AgendaEntry


def _ics_escape(text: str) -> str:
    """
    Escape text for ICS fields (very small subset, sufficient for our use).
    """
    return (
        text.replace("\\", "\\\\").replace("\r\n", "\\n").replace("\n", "\\n").replace(";", "\\;").replace(",", "\\,")
    )


def _dt_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def export_calendar_to_ics(entries: list[AgendaEntry], out_path: str | Path) -> int:
    """
    Export agenda entries to an .ics file. Returns number of exported entries.

    All-day entries become DATE events; deadlines become a zero-length
    event at the due time.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    lines.append("BEGIN:VCALENDAR")
    lines.append("VERSION:2.0")
    lines.append("PRODID:-//MyCampus//EN")
    lines.append("CALSCALE:GREGORIAN")

    dtstamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    count = 0
    for entry in entries:
        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{_ics_escape(entry.uid)}@mycampus")
        lines.append(f"DTSTAMP:{dtstamp}")
        if entry.all_day:
            day = entry.start.date()
            lines.append(f"DTSTART;VALUE=DATE:{day.strftime('%Y%m%d')}")
            lines.append(f"DTEND;VALUE=DATE:{(day + timedelta(days=1)).strftime('%Y%m%d')}")
        else:
            lines.append(f"DTSTART:{_dt_utc(entry.start)}")
            lines.append(f"DTEND:{_dt_utc(entry.start)}")
        lines.append(f"SUMMARY:{_ics_escape(entry.title)}")
        lines.append(f"CATEGORIES:{_ics_escape(entry.kind.upper())}")
        lines.append("END:VEVENT")
        count += 1

    lines.append("END:VCALENDAR")

    # ICS standard uses CRLF
    out.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8")
    return count
