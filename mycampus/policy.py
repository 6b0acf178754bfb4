"""
Authorization policy.

Given an actor, an operation and (optionally) the target record id, decide
whether the operation may run. Decisions are plain values:

    Decision(allowed=True,  scope=<visible course ids>)
    Decision(allowed=False, reason="InsufficientRole" | "NotOwner" | "NotEnrolled")

Role checks always come first, so a student asking to grade is refused
with InsufficientRole whatever the payload is. Only when the role may
perform the operation at all is the target looked up (an unknown target
raises DanglingReference).

Nothing here mutates the dataset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mycampus.dataset import Dataset
from mycampus.errors import DENY_ERRORS, InsufficientRole, NotEnrolled, NotOwner
from mycampus.model import STAFF_ROLES, Assignment, Course, Submission, User

logger = logging.getLogger(__name__)

COURSE_CREATE = "course.create"
COURSE_MANAGE = "course.manage"  # assignments, announcements, timetable slots
ENROLLMENT_CHANGE = "enrollment.change"
SUBMISSION_CREATE = "submission.create"
SUBMISSION_READ = "submission.read"
GRADE_CREATE = "grade.create"
USER_MANAGE = "user.manage"
CALENDAR_CREATE = "calendar.create"
MESSAGE_POST = "message.post"

OPERATIONS = (
    COURSE_CREATE,
    COURSE_MANAGE,
    ENROLLMENT_CHANGE,
    SUBMISSION_CREATE,
    SUBMISSION_READ,
    GRADE_CREATE,
    USER_MANAGE,
    CALENDAR_CREATE,
    MESSAGE_POST,
)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None
    scope: frozenset[str] = field(default_factory=frozenset)

    def raise_for_deny(self) -> None:
        if not self.allowed:
            raise DENY_ERRORS[self.reason or InsufficientRole.kind](f"permission denied: {self.reason}")


def _allow(scope: frozenset[str] = frozenset()) -> Decision:
    return Decision(True, None, scope)


def _deny(reason: str) -> Decision:
    return Decision(False, reason)


def visible_course_ids(ds: Dataset, actor: User) -> frozenset[str]:
    """
    student -> courses with an enrollment of theirs
    faculty -> courses they own
    admin   -> every course
    """
    return frozenset(ds.course_ids_for(actor))


def _owner_check(actor: User, course: Course) -> Decision:
    if actor.role == "admin" or course.faculty_id == actor.id:
        return _allow(frozenset({course.id}))
    return _deny(NotOwner.kind)


def _decide(
    ds: Dataset, actor: User, operation: str, target: str | None, open_calendar: bool
) -> Decision:
    role = actor.role

    if operation == USER_MANAGE:
        return _allow(frozenset(ds.courses)) if role == "admin" else _deny(InsufficientRole.kind)

    if operation == COURSE_CREATE:
        if role not in STAFF_ROLES:
            return _deny(InsufficientRole.kind)
        return _allow(visible_course_ids(ds, actor))

    if operation == CALENDAR_CREATE:
        if role in STAFF_ROLES or open_calendar:
            return _allow()
        return _deny(InsufficientRole.kind)

    if operation in (COURSE_MANAGE, MESSAGE_POST):
        if role not in STAFF_ROLES:
            return _deny(InsufficientRole.kind)
        return _owner_check(actor, ds.require("courses", target))

    if operation in (GRADE_CREATE, SUBMISSION_READ):
        if role not in STAFF_ROLES:
            return _deny(InsufficientRole.kind)
        if operation == GRADE_CREATE:
            submission: Submission = ds.require("submissions", target)
            assignment: Assignment = ds.require("assignments", submission.assignment_id)
        else:
            assignment = ds.require("assignments", target)
        return _owner_check(actor, ds.require("courses", assignment.course_id))

    if operation == ENROLLMENT_CHANGE:
        if role != "student":
            return _deny(InsufficientRole.kind)
        if target is not None and target != actor.id:
            return _deny(NotOwner.kind)
        return _allow(visible_course_ids(ds, actor))

    if operation == SUBMISSION_CREATE:
        if role != "student":
            return _deny(InsufficientRole.kind)
        assignment = ds.require("assignments", target)
        if ds.enrollment_for(assignment.course_id, actor.id) is None:
            return _deny(NotEnrolled.kind)
        return _allow(frozenset({assignment.course_id}))

    raise ValueError(f"unknown operation: {operation!r}")


def authorize(
    ds: Dataset,
    actor: User,
    operation: str,
    target: str | None = None,
    *,
    open_calendar: bool = False,
) -> Decision:
    """
    Decide whether `actor` may run `operation` on `target`.

    target is the id the operation acts on: a course id for course.manage and
    message.post, an assignment id for submission.create / submission.read,
    a submission id for grade.create, a user id for enrollment.change.
    """
    decision = _decide(ds, actor, operation, target, open_calendar)
    if not decision.allowed:
        logger.warning(
            "Permission denied: user %s (%s) %s on %s: %s", actor.id, actor.role, operation, target, decision.reason
        )
    return decision
