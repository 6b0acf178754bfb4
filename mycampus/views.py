"""
Derived read-only views.

All functions are stateless: they recompute from the dataset they are given
on every call. Records pointing at something that no longer exists are shown
as 'unknown' instead of failing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime

from mycampus import policy
from mycampus.dataset import Dataset
from mycampus.errors import InsufficientRole
from mycampus.model import (
    Announcement,
    Assignment,
    CalendarEvent,
    Course,
    Grade,
    Message,
    Submission,
    TimetableSlot,
    User,
)

UNKNOWN = "unknown"


def _fmt_number(x: float) -> str:
    return str(int(x)) if float(x).is_integer() else f"{x:g}"


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _matches(course: Course, query: str) -> bool:
    q = (query or "").strip().lower()
    return not q or q in f"{course.code} {course.title}".lower()


def _course_code(ds: Dataset, course_id: str) -> str:
    course = ds.courses.get(course_id)
    return course.code if course else UNKNOWN


def _user_name(ds: Dataset, user_id: str) -> str:
    user = ds.users.get(user_id)
    return user.name if user else UNKNOWN


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


def visible_courses(ds: Dataset, actor: User, query: str = "") -> list[Course]:
    """
    Courses the actor can see, optionally filtered by a code/title substring.
    """
    visible = policy.visible_course_ids(ds, actor)
    return [c for c in ds.courses.values() if c.id in visible and _matches(c, query)]


@dataclass
class CatalogEntry:
    course: Course
    faculty_name: str
    enrolled_count: int
    enrolled: bool  # the asking user holds a seat

    @property
    def remaining(self) -> int:
        return max(self.course.capacity - self.enrolled_count, 0)


def course_catalog(ds: Dataset, actor: User, query: str = "") -> list[CatalogEntry]:
    """
    Every course with its seat situation; what a student browses before enrolling.
    """
    out: list[CatalogEntry] = []
    for course in ds.courses.values():
        if not _matches(course, query):
            continue
        out.append(
            CatalogEntry(
                course=course,
                faculty_name=_user_name(ds, course.faculty_id),
                enrolled_count=len(ds.enrollments_for(course.id)),
                enrolled=ds.enrollment_for(course.id, actor.id) is not None,
            )
        )
    return out


# ---------------------------------------------------------------------------
# Overview feeds
# ---------------------------------------------------------------------------


def visible_assignments(ds: Dataset, actor: User) -> list[Assignment]:
    visible = policy.visible_course_ids(ds, actor)
    out = [a for a in ds.assignments.values() if a.course_id in visible]
    out.sort(key=lambda a: a.due_at)
    return out


def upcoming_assignments(ds: Dataset, actor: User, now: datetime, limit: int = 5) -> list[Assignment]:
    """
    Assignments of visible courses due strictly after `now`, soonest first.
    """
    return [a for a in visible_assignments(ds, actor) if a.due_at > now][:limit]


def latest_announcements(ds: Dataset, actor: User, limit: int = 5) -> list[Announcement]:
    visible = policy.visible_course_ids(ds, actor)
    out = [a for a in ds.announcements.values() if a.course_id in visible]
    out.sort(key=lambda a: a.created_at, reverse=True)
    return out[:limit]


@dataclass
class Overview:
    course_count: int
    upcoming: list[Assignment]
    announcements: list[Announcement]


def overview(ds: Dataset, actor: User, now: datetime, limit: int = 5) -> Overview:
    return Overview(
        course_count=len(policy.visible_course_ids(ds, actor)),
        upcoming=upcoming_assignments(ds, actor, now, limit),
        announcements=latest_announcements(ds, actor, limit),
    )


# ---------------------------------------------------------------------------
# Grades
# ---------------------------------------------------------------------------


@dataclass
class TranscriptRow:
    submission_id: str
    course_code: str
    assignment_title: str
    points: float
    score: float | None
    feedback: str

    @property
    def graded(self) -> bool:
        return self.score is not None

    @property
    def display(self) -> str:
        if self.score is None:
            return "ungraded"
        return f"{_fmt_number(self.score)}/{_fmt_number(self.points)}"


@dataclass
class Transcript:
    rows: list[TranscriptRow]
    earned: float
    possible: float

    @property
    def percentage(self) -> int:
        if not self.possible:
            return 0
        return round_half_up(100 * self.earned / self.possible)


def transcript(ds: Dataset, actor: User) -> Transcript:
    """
    One row per submission of the student. Only graded rows count towards the
    cumulative percentage: an ungraded submission adds neither score nor points.
    """
    if actor.role != "student":
        raise InsufficientRole("transcripts exist for students only")

    rows: list[TranscriptRow] = []
    earned = 0.0
    possible = 0.0
    subs = [s for s in ds.submissions.values() if s.user_id == actor.id]
    subs.sort(key=lambda s: s.submitted_at)
    for sub in subs:
        assignment: Assignment | None = ds.assignments.get(sub.assignment_id)
        grade = ds.grade_for(sub.id)
        row = TranscriptRow(
            submission_id=sub.id,
            course_code=_course_code(ds, assignment.course_id) if assignment else UNKNOWN,
            assignment_title=assignment.title if assignment else UNKNOWN,
            points=assignment.points if assignment else 0,
            score=grade.score if grade else None,
            feedback=grade.feedback if grade else "",
        )
        rows.append(row)
        if row.graded and assignment is not None:
            earned += row.score or 0
            possible += row.points
    return Transcript(rows=rows, earned=earned, possible=possible)


@dataclass
class SubmissionRow:
    submission: Submission
    author_name: str
    grade: Grade | None


def assignment_submissions(ds: Dataset, actor: User, assignment_id: str) -> list[SubmissionRow]:
    """
    Submissions of one assignment, for its course owner (or an admin) to grade.
    """
    policy.authorize(ds, actor, policy.SUBMISSION_READ, assignment_id).raise_for_deny()
    subs = [s for s in ds.submissions.values() if s.assignment_id == assignment_id]
    subs.sort(key=lambda s: s.submitted_at)
    return [SubmissionRow(s, _user_name(ds, s.user_id), ds.grade_for(s.id)) for s in subs]


# ---------------------------------------------------------------------------
# Timetable & calendar
# ---------------------------------------------------------------------------


@dataclass
class GridEntry:
    slot: TimetableSlot
    course_code: str
    course_title: str


def weekly_grid(ds: Dataset, actor: User) -> list[list[GridEntry]]:
    """
    Seven buckets, Mon (0) .. Sun (6), of the actor's class meetings.
    Overlapping slots are listed side by side, not flagged.
    """
    visible = policy.visible_course_ids(ds, actor)
    grid: list[list[GridEntry]] = [[] for _ in range(7)]
    for slot in ds.timetable.values():
        if slot.course_id not in visible or not 0 <= slot.day <= 6:
            continue
        course = ds.courses.get(slot.course_id)
        grid[slot.day].append(
            GridEntry(slot, course.code if course else UNKNOWN, course.title if course else UNKNOWN)
        )
    for bucket in grid:
        bucket.sort(key=lambda e: e.slot.start)
    return grid


def calendar_events(ds: Dataset) -> list[CalendarEvent]:
    return sorted(ds.calendar_events.values(), key=lambda ev: ev.date)


@dataclass
class AgendaEntry:
    uid: str
    title: str
    start: datetime
    all_day: bool
    kind: str


def agenda_entries(ds: Dataset, actor: User, now: datetime) -> list[AgendaEntry]:
    """
    Institution calendar plus the actor's upcoming deadlines, in date order.
    """
    out = [AgendaEntry(ev.id, ev.title, ev.date, True, ev.type) for ev in ds.calendar_events.values()]
    for a in visible_assignments(ds, actor):
        if a.due_at > now:
            title = f"{_course_code(ds, a.course_id)} {a.title} due"
            out.append(AgendaEntry(a.id, title, a.due_at, False, "assignment"))
    out.sort(key=lambda e: e.start)
    return out


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@dataclass
class Thread:
    thread_id: str
    course_id: str
    course_code: str
    title: str
    messages: list[Message] = field(default_factory=list)

    @property
    def last_activity(self) -> datetime:
        return self.messages[-1].created_at


def threads(ds: Dataset, actor: User) -> list[Thread]:
    """
    Messages of visible courses grouped by thread. A thread takes the title of
    its oldest message; messages run oldest first, threads most recent first.
    """
    visible = policy.visible_course_ids(ds, actor)
    msgs = sorted((m for m in ds.messages.values() if m.course_id in visible), key=lambda m: m.created_at)

    by_id: dict[str, Thread] = {}
    for m in msgs:
        thread = by_id.get(m.thread_id)
        if thread is None:
            thread = Thread(m.thread_id, m.course_id, _course_code(ds, m.course_id), m.title)
            by_id[m.thread_id] = thread
        thread.messages.append(m)

    return sorted(by_id.values(), key=lambda t: t.last_activity, reverse=True)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def user_directory(ds: Dataset, actor: User) -> list[User]:
    policy.authorize(ds, actor, policy.USER_MANAGE).raise_for_deny()
    return sorted(ds.users.values(), key=lambda u: (u.role, u.name.lower()))
