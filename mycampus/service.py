"""
Campus service: the operation surface.

Every mutating operation follows the same five steps:

1. check the actor's role      -> InsufficientRole
2. validate the input            -> InvalidInput(field)
3. ask the policy                -> InsufficientRole / NotOwner / NotEnrolled
4. apply the change to a copy    -> model errors (CapacityExceeded, ...)
5. save the copy, then swap it in as the live dataset -> PersistenceError

The role check comes before validation: a student asking to grade is
refused with InsufficientRole whatever the payload. Any failure in 1-5 leaves the live dataset untouched. Mutations are
serialised by a lock; readers grab the current dataset reference, which
always points at a complete snapshot (before or after a mutation, never
in between).

Actors may be passed as a User or a user id. They are always re-read from
the current dataset, so a role change takes effect immediately.
"""

from __future__ import annotations

import logging
import math
import re
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from mycampus import policy, views
from mycampus.config import Settings, get_settings
from mycampus.credentials import CredentialVerifier, PasslibVerifier
from mycampus.dataset import Dataset
from mycampus.errors import (
    DanglingReference,
    InsufficientRole,
    InvalidCredentials,
    InvalidInput,
    NotOwner,
    PersistenceError,
)
from mycampus.ids import new_id
from mycampus.model import (
    EVENT_TYPES,
    ROLES,
    STAFF_ROLES,
    Announcement,
    Assignment,
    CalendarEvent,
    Course,
    Enrollment,
    Grade,
    Message,
    Submission,
    TimetableSlot,
    User,
    parse_timestamp,
)
from mycampus.storage import JsonFileStore, Store, open_dataset

logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def _text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(field, f"'{field}' is required")
    return value.strip()


def _optional_text(field: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInput(field, f"'{field}' must be text")
    return value.strip()


def _positive_int(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInput(field, f"'{field}' must be a positive integer")
    return value


def _number(field: str, value: Any, *, positive: bool) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidInput(field, f"'{field}' must be a number")
    if positive and value <= 0:
        raise InvalidInput(field, f"'{field}' must be greater than 0")
    if not positive and value < 0:
        raise InvalidInput(field, f"'{field}' must not be negative")
    return value


def _timestamp(field: str, value: Any) -> datetime:
    if value is None or value == "":
        raise InvalidInput(field, f"'{field}' is required")
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(field, f"'{field}' is not a valid date/time") from exc


def _choice(field: str, value: Any, allowed: tuple[str, ...]) -> str:
    if value not in allowed:
        raise InvalidInput(field, f"'{field}' must be one of: {', '.join(allowed)}")
    return value


def _hhmm(field: str, value: Any) -> str:
    if not isinstance(value, str) or not _HHMM.match(value.strip()):
        raise InvalidInput(field, f"'{field}' must be a time like 09:30")
    return value.strip()


def _email(value: Any) -> str:
    email = _text("email", value)
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise InvalidInput("email", "not an e-mail address")
    return email


class CampusService:
    def __init__(
        self,
        store: Store | None = None,
        verifier: CredentialVerifier | None = None,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store if store is not None else JsonFileStore(self.settings.data_path)
        self.verifier = verifier or PasslibVerifier()
        self.clock = clock or _utcnow
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._data = open_dataset(self.store, self.verifier, self.clock())

    @property
    def dataset(self) -> Dataset:
        """
        Current snapshot. Treat it as read-only.
        """
        return self._data

    def subscribe(self, listener: Listener) -> None:
        """
        Register a callback invoked as listener(operation, record) after each commit.
        """
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[Dataset]:
        with self._lock:
            work = self._data.clone()
            yield work
            try:
                self.store.save(work.to_snapshot())
            except OSError as exc:
                raise PersistenceError(str(exc)) from exc
            self._data = work

    def _committed(self, operation: str, record: Any) -> Any:
        logger.info("%s: %s", operation, record.id)
        for listener in list(self._listeners):
            try:
                listener(operation, record)
            except Exception:
                # the change is already committed
                logger.exception("Listener %r failed after %s", listener, operation)
        return record

    def _resolve(self, ds: Dataset, actor: User | str) -> User:
        user_id = actor.id if isinstance(actor, User) else actor
        user = ds.get("users", user_id)
        if user is None:
            raise InvalidCredentials(f"unknown actor '{user_id}'")
        return user

    def _authorize(self, ds: Dataset, actor: User, operation: str, target: str | None = None) -> None:
        policy.authorize(ds, actor, operation, target, open_calendar=self.settings.open_calendar).raise_for_deny()

    def _require_role(self, actor: User | str, roles: tuple[str, ...]) -> None:
        me = self._resolve(self._data, actor)
        if me.role not in roles:
            logger.warning("Permission denied: user %s (%s) needs one of %s", me.id, me.role, ", ".join(roles))
            raise InsufficientRole(f"permission denied: {InsufficientRole.kind}")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def register_user(self, name: str, email: str, password: str, role: str = "student") -> User:
        """
        Self-service sign-up. The caller picks the role.
        """
        name = _text("name", name)
        email = _email(email)
        password = _text("password", password)
        role = _choice("role", role, ROLES)
        secret = self.verifier.hash(password)

        with self._transaction() as ds:
            user = ds.add_user(User(new_id("u"), name, email, secret, role))
        return self._committed("register_user", user)

    def login(self, email: str, password: str) -> User:
        """
        Return the user with this e-mail if the credential matches.
        """
        user = self._data.find_user_by_email(email or "")
        if user is None or not self.verifier.verify(password or "", user.password):
            logger.warning("Failed login for %r", email)
            raise InvalidCredentials("invalid credentials")
        return user

    def add_user(self, actor: User | str, name: str, email: str, password: str, role: str = "student") -> User:
        self._require_role(actor, ("admin",))
        name = _text("name", name)
        email = _email(email)
        password = _text("password", password)
        role = _choice("role", role, ROLES)
        secret = self.verifier.hash(password)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.USER_MANAGE)
            user = ds.add_user(User(new_id("u"), name, email, secret, role))
        return self._committed("add_user", user)

    def change_user_role(self, actor: User | str, user_id: str, role: str) -> User:
        self._require_role(actor, ("admin",))
        role = _choice("role", role, ROLES)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.USER_MANAGE)
            user: User = ds.require("users", user_id)
            user = ds.replace_user(replace(user, role=role))
        return self._committed("change_user_role", user)

    # ------------------------------------------------------------------
    # Courses & enrollment
    # ------------------------------------------------------------------

    def create_course(
        self,
        actor: User | str,
        code: str,
        title: str,
        capacity: int = 60,
        credits: int = 3,
        faculty_id: str | None = None,
    ) -> Course:
        """
        Create a course owned by the actor, or (admin only) by `faculty_id`.
        The owner must be an existing faculty or admin account.
        """
        self._require_role(actor, STAFF_ROLES)
        code = _text("code", code).upper()
        title = _text("title", title)
        capacity = _positive_int("capacity", capacity)
        credits = _positive_int("credits", credits)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.COURSE_CREATE)
            owner_id = faculty_id or me.id
            if owner_id != me.id:
                if me.role != "admin":
                    raise NotOwner("only an admin can create courses for someone else")
                owner: User = ds.require("users", owner_id)
                if owner.role not in STAFF_ROLES:
                    raise InvalidInput("faculty_id", "course owner must be faculty")
            course = ds.add_course(Course(new_id("c"), code, title, owner_id, capacity, credits))
        return self._committed("create_course", course)

    def enroll(self, actor: User | str, course_id: str, user_id: str | None = None) -> Enrollment:
        self._require_role(actor, ("student",))
        course_id = _text("course_id", course_id)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.ENROLLMENT_CHANGE, user_id or me.id)
            enrollment = ds.add_enrollment(Enrollment(new_id("enr"), course_id, me.id))
        return self._committed("enroll", enrollment)

    def drop(self, actor: User | str, course_id: str, user_id: str | None = None) -> Enrollment:
        self._require_role(actor, ("student",))
        course_id = _text("course_id", course_id)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.ENROLLMENT_CHANGE, user_id or me.id)
            enrollment = ds.remove_enrollment(course_id, me.id)
        return self._committed("drop", enrollment)

    def add_timetable_slot(
        self, actor: User | str, course_id: str, day: int, start: str, end: str, room: str = ""
    ) -> TimetableSlot:
        self._require_role(actor, STAFF_ROLES)
        course_id = _text("course_id", course_id)
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidInput("day", "'day' must be 0 (Mon) .. 6 (Sun)")
        start = _hhmm("start", start)
        end = _hhmm("end", end)
        if end <= start:
            raise InvalidInput("end", "'end' must be after 'start'")
        room = _optional_text("room", room)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.COURSE_MANAGE, course_id)
            slot = ds.add_slot(TimetableSlot(new_id("tt"), course_id, day, start, end, room))
        return self._committed("add_timetable_slot", slot)

    # ------------------------------------------------------------------
    # Coursework
    # ------------------------------------------------------------------

    def create_assignment(
        self,
        actor: User | str,
        course_id: str,
        title: str,
        due_at: datetime | str,
        points: float = 100,
        instructions: str = "",
    ) -> Assignment:
        self._require_role(actor, STAFF_ROLES)
        course_id = _text("course_id", course_id)
        title = _text("title", title)
        due = _timestamp("due_at", due_at)
        points = _number("points", points, positive=True)
        instructions = _optional_text("instructions", instructions)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.COURSE_MANAGE, course_id)
            assignment = ds.add_assignment(Assignment(new_id("a"), course_id, title, due, points, instructions))
        return self._committed("create_assignment", assignment)

    def submit_work(self, actor: User | str, assignment_id: str, file_name: str, note: str = "") -> Submission:
        """
        Record a submission. Resubmitting is allowed; each one is kept.
        """
        self._require_role(actor, ("student",))
        assignment_id = _text("assignment_id", assignment_id)
        file_name = _text("file_name", file_name)
        note = _optional_text("note", note)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.SUBMISSION_CREATE, assignment_id)
            submission = ds.add_submission(
                Submission(new_id("sub"), assignment_id, me.id, file_name, note, self.clock())
            )
        return self._committed("submit_work", submission)

    def grade_submission(self, actor: User | str, submission_id: str, score: float, feedback: str = "") -> Grade:
        """
        Publish the grade of a submission. Grades are final: a second attempt
        raises AlreadyGraded. Scores above the assignment's points are kept as given.
        """
        self._require_role(actor, STAFF_ROLES)
        submission_id = _text("submission_id", submission_id)
        score = _number("score", score, positive=False)
        feedback = _optional_text("feedback", feedback)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.GRADE_CREATE, submission_id)
            grade = ds.add_grade(Grade(new_id("g"), submission_id, score, feedback, self.clock()))
        return self._committed("grade_submission", grade)

    def post_announcement(self, actor: User | str, course_id: str, title: str, body: str) -> Announcement:
        self._require_role(actor, STAFF_ROLES)
        course_id = _text("course_id", course_id)
        title = _text("title", title)
        body = _text("body", body)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.COURSE_MANAGE, course_id)
            announcement = ds.add_announcement(Announcement(new_id("ann"), course_id, title, body, self.clock()))
        return self._committed("post_announcement", announcement)

    def add_calendar_event(
        self, actor: User | str, title: str, date: datetime | str, type: str = "academic"
    ) -> CalendarEvent:
        self._require_role(actor, ROLES if self.settings.open_calendar else STAFF_ROLES)
        title = _text("title", title)
        when = _timestamp("date", date)
        type = _choice("type", type, EVENT_TYPES)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.CALENDAR_CREATE)
            event = ds.add_event(CalendarEvent(new_id("ev"), title, when, type))
        return self._committed("add_calendar_event", event)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def post_message_thread(self, actor: User | str, course_id: str, title: str, body: str) -> Message:
        """
        Start a new thread in a course. Returns its first message.
        """
        self._require_role(actor, STAFF_ROLES)
        course_id = _text("course_id", course_id)
        title = _text("title", title)
        body = _text("body", body)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            self._authorize(ds, me, policy.MESSAGE_POST, course_id)
            message = ds.add_message(
                Message(new_id("msg"), new_id("th"), course_id, title, body, me.id, self.clock())
            )
        return self._committed("post_message_thread", message)

    def reply_to_thread(self, actor: User | str, thread_id: str, body: str) -> Message:
        self._require_role(actor, STAFF_ROLES)
        thread_id = _text("thread_id", thread_id)
        body = _text("body", body)

        with self._transaction() as ds:
            me = self._resolve(ds, actor)
            existing = ds.thread_messages(thread_id)
            if not existing:
                raise DanglingReference(f"no thread with id '{thread_id}'")
            first = existing[0]
            self._authorize(ds, me, policy.MESSAGE_POST, first.course_id)
            message = ds.add_message(
                Message(new_id("msg"), thread_id, first.course_id, first.title, body, me.id, self.clock())
            )
        return self._committed("reply_to_thread", message)

    # ------------------------------------------------------------------
    # Read side (delegates to mycampus.views on one snapshot)
    # ------------------------------------------------------------------

    def _reader(self, actor: User | str) -> tuple[Dataset, User]:
        ds = self._data
        return ds, self._resolve(ds, actor)

    def visible_courses(self, actor: User | str, query: str = "") -> list[Course]:
        ds, me = self._reader(actor)
        return views.visible_courses(ds, me, query)

    def course_catalog(self, actor: User | str, query: str = "") -> list[views.CatalogEntry]:
        ds, me = self._reader(actor)
        return views.course_catalog(ds, me, query)

    def overview(self, actor: User | str) -> views.Overview:
        ds, me = self._reader(actor)
        return views.overview(ds, me, self.clock(), limit=self.settings.feed_limit)

    def assignments(self, actor: User | str) -> list[Assignment]:
        ds, me = self._reader(actor)
        return views.visible_assignments(ds, me)

    def assignment_submissions(self, actor: User | str, assignment_id: str) -> list[views.SubmissionRow]:
        ds, me = self._reader(actor)
        return views.assignment_submissions(ds, me, assignment_id)

    def transcript(self, actor: User | str) -> views.Transcript:
        ds, me = self._reader(actor)
        return views.transcript(ds, me)

    def weekly_grid(self, actor: User | str) -> list[list[views.GridEntry]]:
        ds, me = self._reader(actor)
        return views.weekly_grid(ds, me)

    def threads(self, actor: User | str) -> list[views.Thread]:
        ds, me = self._reader(actor)
        return views.threads(ds, me)

    def calendar_events(self, actor: User | str) -> list[CalendarEvent]:
        ds, _ = self._reader(actor)
        return views.calendar_events(ds)

    def user_directory(self, actor: User | str) -> list[User]:
        ds, me = self._reader(actor)
        return views.user_directory(ds, me)

    def agenda(self, actor: User | str) -> list[views.AgendaEntry]:
        ds, me = self._reader(actor)
        return views.agenda_entries(ds, me, self.clock())
