"""
Central data model definitions used across the project.

This module defines the canonical structure of every record so that:
- all modules share the same field names
- the persisted snapshot keeps a stable (camelCase) JSON layout
- records can be passed around freely, since they are immutable

Records refer to each other by id only, never by embedding.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, TypeVar


ROLES = ("student", "faculty", "admin")
STAFF_ROLES = ("faculty", "admin")
EVENT_TYPES = ("academic", "deadline", "exam", "holiday")
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

R = TypeVar("R", bound="Record")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 string (a trailing 'Z' is accepted) into an aware datetime.
    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Record:
    """
    Base for all stored records. Subclasses list their datetime fields in
    `timestamps` so (de)serialisation can convert them.
    """

    timestamps: ClassVar[tuple[str, ...]] = ()

    id: str

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in self.timestamps:
                value = format_timestamp(value)
            out[_camel(f.name)] = value
        return out

    @classmethod
    def from_dict(cls: type[R], data: dict[str, Any]) -> R:
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key not in data:
                raise KeyError(f"{cls.__name__} record without '{key}'")
            value = data[key]
            if f.name in cls.timestamps:
                value = parse_timestamp(value)
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class User(Record):
    name: str
    email: str
    password: str  # opaque credential, see mycampus.credentials
    role: str


@dataclass(frozen=True)
class Course(Record):
    code: str
    title: str
    faculty_id: str
    capacity: int
    credits: int


@dataclass(frozen=True)
class Enrollment(Record):
    course_id: str
    user_id: str


@dataclass(frozen=True)
class Assignment(Record):
    timestamps: ClassVar[tuple[str, ...]] = ("due_at",)

    course_id: str
    title: str
    due_at: datetime
    points: float
    instructions: str


@dataclass(frozen=True)
class Submission(Record):
    timestamps: ClassVar[tuple[str, ...]] = ("submitted_at",)

    assignment_id: str
    user_id: str
    file_name: str
    note: str
    submitted_at: datetime


@dataclass(frozen=True)
class Grade(Record):
    timestamps: ClassVar[tuple[str, ...]] = ("graded_at",)

    submission_id: str
    score: float
    feedback: str
    graded_at: datetime


@dataclass(frozen=True)
class Announcement(Record):
    timestamps: ClassVar[tuple[str, ...]] = ("created_at",)

    course_id: str
    title: str
    body: str
    created_at: datetime


@dataclass(frozen=True)
class CalendarEvent(Record):
    """
    Institution-wide calendar entry (not tied to a course).
    """

    timestamps: ClassVar[tuple[str, ...]] = ("date",)

    title: str
    date: datetime
    type: str


@dataclass(frozen=True)
class TimetableSlot(Record):
    """
    One recurring weekly class meeting. day: 0=Mon ... 6=Sun, times 'HH:MM'.
    """

    course_id: str
    day: int
    start: str
    end: str
    room: str


@dataclass(frozen=True)
class Message(Record):
    """
    One post in a course thread. Every message of a thread repeats the
    thread's title and course.
    """

    timestamps: ClassVar[tuple[str, ...]] = ("created_at",)

    thread_id: str
    course_id: str
    title: str
    body: str
    author_id: str
    created_at: datetime


# snapshot key -> record type, in snapshot order
COLLECTIONS: dict[str, type[Record]] = {
    "users": User,
    "courses": Course,
    "enrollments": Enrollment,
    "assignments": Assignment,
    "submissions": Submission,
    "grades": Grade,
    "announcements": Announcement,
    "calendarEvents": CalendarEvent,
    "timetable": TimetableSlot,
    "messages": Message,
}
