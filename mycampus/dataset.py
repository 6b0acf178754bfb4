"""
In-memory dataset and its integrity rules.

A Dataset holds every collection as an insertion-ordered mapping id -> record.
It answers the lookups the rest of the package needs and is the only place
that knows about cross-record integrity:

- enrollment capacity and (course, user) uniqueness
- at most one grade per submission
- unique user e-mail
- foreign keys must point at existing records when a record is added

Nothing here checks who is asking; that is mycampus.policy's job.
"""

from __future__ import annotations

import logging
from typing import Any

from mycampus.errors import (
    AlreadyGraded,
    CapacityExceeded,
    DanglingReference,
    DuplicateEnrollment,
    EmailTaken,
    PersistenceError,
)
from mycampus.model import (
    COLLECTIONS,
    Announcement,
    Assignment,
    CalendarEvent,
    Course,
    Enrollment,
    Grade,
    Message,
    Record,
    Submission,
    TimetableSlot,
    User,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class Dataset:
    def __init__(self) -> None:
        self.tables: dict[str, dict[str, Any]] = {name: {} for name in COLLECTIONS}

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @property
    def users(self) -> dict[str, User]:
        return self.tables["users"]

    @property
    def courses(self) -> dict[str, Course]:
        return self.tables["courses"]

    @property
    def enrollments(self) -> dict[str, Enrollment]:
        return self.tables["enrollments"]

    @property
    def assignments(self) -> dict[str, Assignment]:
        return self.tables["assignments"]

    @property
    def submissions(self) -> dict[str, Submission]:
        return self.tables["submissions"]

    @property
    def grades(self) -> dict[str, Grade]:
        return self.tables["grades"]

    @property
    def announcements(self) -> dict[str, Announcement]:
        return self.tables["announcements"]

    @property
    def calendar_events(self) -> dict[str, CalendarEvent]:
        return self.tables["calendarEvents"]

    @property
    def timetable(self) -> dict[str, TimetableSlot]:
        return self.tables["timetable"]

    @property
    def messages(self) -> dict[str, Message]:
        return self.tables["messages"]

    def clone(self) -> "Dataset":
        """
        Copy the collection mappings. Records are frozen, so sharing them is safe.
        """
        other = Dataset()
        other.tables = {name: dict(table) for name, table in self.tables.items()}
        return other

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, collection: str, record_id: str) -> Any:
        return self.tables[collection].get(record_id)

    def require(self, collection: str, record_id: str) -> Any:
        record = self.tables[collection].get(record_id)
        if record is None:
            raise DanglingReference(f"no {collection} record with id '{record_id}'")
        return record

    def find_user_by_email(self, email: str) -> User | None:
        key = normalize_email(email)
        for user in self.users.values():
            if normalize_email(user.email) == key:
                return user
        return None

    def enrollments_for(self, course_id: str) -> list[Enrollment]:
        return [e for e in self.enrollments.values() if e.course_id == course_id]

    def enrollment_for(self, course_id: str, user_id: str) -> Enrollment | None:
        for e in self.enrollments.values():
            if e.course_id == course_id and e.user_id == user_id:
                return e
        return None

    def grade_for(self, submission_id: str) -> Grade | None:
        for g in self.grades.values():
            if g.submission_id == submission_id:
                return g
        return None

    def thread_messages(self, thread_id: str) -> list[Message]:
        msgs = [m for m in self.messages.values() if m.thread_id == thread_id]
        msgs.sort(key=lambda m: m.created_at)
        return msgs

    def course_ids_for(self, user: User) -> set[str]:
        """
        Courses the user belongs to: enrolled (student), owned (faculty), all (admin).
        """
        if user.role == "student":
            return {e.course_id for e in self.enrollments.values() if e.user_id == user.id}
        if user.role == "faculty":
            return {c.id for c in self.courses.values() if c.faculty_id == user.id}
        if user.role == "admin":
            return set(self.courses)
        return set()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _insert(self, collection: str, record: Record) -> Any:
        table = self.tables[collection]
        if record.id in table:
            raise ValueError(f"duplicate id '{record.id}' in {collection}")
        table[record.id] = record
        return record

    def add_user(self, user: User) -> User:
        if self.find_user_by_email(user.email) is not None:
            raise EmailTaken(f"e-mail already in use: {user.email}")
        return self._insert("users", user)

    def replace_user(self, user: User) -> User:
        self.require("users", user.id)
        self.users[user.id] = user
        return user

    def add_course(self, course: Course) -> Course:
        self.require("users", course.faculty_id)
        return self._insert("courses", course)

    def add_enrollment(self, enrollment: Enrollment) -> Enrollment:
        course: Course = self.require("courses", enrollment.course_id)
        self.require("users", enrollment.user_id)
        if self.enrollment_for(enrollment.course_id, enrollment.user_id) is not None:
            raise DuplicateEnrollment(f"already enrolled in {course.code}")
        if len(self.enrollments_for(course.id)) >= course.capacity:
            raise CapacityExceeded(f"{course.code} is full ({course.capacity} seats)")
        return self._insert("enrollments", enrollment)

    def remove_enrollment(self, course_id: str, user_id: str) -> Enrollment:
        enrollment = self.enrollment_for(course_id, user_id)
        if enrollment is None:
            raise DanglingReference(f"no enrollment of user '{user_id}' in course '{course_id}'")
        del self.enrollments[enrollment.id]
        return enrollment

    def add_assignment(self, assignment: Assignment) -> Assignment:
        self.require("courses", assignment.course_id)
        return self._insert("assignments", assignment)

    def add_submission(self, submission: Submission) -> Submission:
        self.require("assignments", submission.assignment_id)
        self.require("users", submission.user_id)
        return self._insert("submissions", submission)

    def add_grade(self, grade: Grade) -> Grade:
        self.require("submissions", grade.submission_id)
        if self.grade_for(grade.submission_id) is not None:
            raise AlreadyGraded(f"submission '{grade.submission_id}' is already graded")
        return self._insert("grades", grade)

    def add_announcement(self, announcement: Announcement) -> Announcement:
        self.require("courses", announcement.course_id)
        return self._insert("announcements", announcement)

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        return self._insert("calendarEvents", event)

    def add_slot(self, slot: TimetableSlot) -> TimetableSlot:
        self.require("courses", slot.course_id)
        return self._insert("timetable", slot)

    def add_message(self, message: Message) -> Message:
        self.require("courses", message.course_id)
        self.require("users", message.author_id)
        return self._insert("messages", message)

    # ------------------------------------------------------------------
    # Snapshot conversion
    # ------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        snapshot: dict[str, Any] = {"version": SNAPSHOT_VERSION}
        for name, table in self.tables.items():
            snapshot[name] = [record.to_dict() for record in table.values()]
        return snapshot

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> "Dataset":
        """
        Build a dataset from a persisted document.

        Missing collections are treated as empty. Records are loaded as stored:
        dangling references in old data are tolerated, views render them as unknown.
        """
        version = snapshot.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise PersistenceError(f"unsupported snapshot version: {version!r}")

        ds = cls()
        for name, record_type in COLLECTIONS.items():
            raw = snapshot.get(name, [])
            if not isinstance(raw, list):
                raise PersistenceError(f"snapshot collection '{name}' is not a list")
            table = ds.tables[name]
            for item in raw:
                try:
                    record = record_type.from_dict(item)
                except (KeyError, TypeError, ValueError, AttributeError) as exc:
                    raise PersistenceError(f"bad record in '{name}': {exc}") from exc
                table[record.id] = record
        logger.debug("Loaded snapshot: %s", {n: len(t) for n, t in ds.tables.items()})
        return ds
