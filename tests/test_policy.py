"""
Unit tests for the authorization policy.

- visibility: student -> enrolled, faculty -> owned, admin -> all
- a student is refused staff operations with InsufficientRole, whatever the target
- faculty may only manage their own courses (NotOwner)
- submitting requires an enrollment (NotEnrolled)
"""

import unittest
from datetime import datetime, timezone

from mycampus import policy
from mycampus.dataset import Dataset
from mycampus.errors import DanglingReference, NotOwner
from mycampus.model import Assignment, Course, Enrollment, Submission, User

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)

STUDENT = User("u_s", "Alice", "alice@uni.edu", "pass", "student")
OTHER_STUDENT = User("u_s2", "Bob", "bob@uni.edu", "pass", "student")
FACULTY = User("u_f", "Dr. Barun", "barun@uni.edu", "pass", "faculty")
OTHER_FACULTY = User("u_f2", "Dr. Chen", "chen@uni.edu", "pass", "faculty")
ADMIN = User("u_ad", "Carol", "carol@uni.edu", "pass", "admin")


def _dataset() -> Dataset:
    ds = Dataset()
    for u in (STUDENT, OTHER_STUDENT, FACULTY, OTHER_FACULTY, ADMIN):
        ds.add_user(u)
    ds.add_course(Course("c1", "CSE101", "Intro", FACULTY.id, 60, 3))
    ds.add_course(Course("c2", "MAT110", "Calculus", FACULTY.id, 60, 4))
    ds.add_course(Course("c3", "PHY100", "Physics", OTHER_FACULTY.id, 60, 4))
    ds.add_enrollment(Enrollment("e1", "c1", STUDENT.id))
    ds.add_assignment(Assignment("a1", "c1", "HW1", NOW, 100, ""))
    ds.add_assignment(Assignment("a3", "c3", "Lab 1", NOW, 50, ""))
    ds.add_submission(Submission("s1", "a1", STUDENT.id, "hw1.pdf", "", NOW))
    return ds


class TestVisibility(unittest.TestCase):
    def test_scopes(self) -> None:
        ds = _dataset()
        self.assertEqual(policy.visible_course_ids(ds, STUDENT), {"c1"})
        self.assertEqual(policy.visible_course_ids(ds, OTHER_STUDENT), set())
        self.assertEqual(policy.visible_course_ids(ds, FACULTY), {"c1", "c2"})
        self.assertEqual(policy.visible_course_ids(ds, OTHER_FACULTY), {"c3"})
        self.assertEqual(policy.visible_course_ids(ds, ADMIN), {"c1", "c2", "c3"})


class TestDecisions(unittest.TestCase):
    def test_student_refused_staff_operations(self) -> None:
        ds = _dataset()
        cases = [
            (policy.COURSE_CREATE, None),
            (policy.COURSE_MANAGE, "c1"),
            (policy.COURSE_MANAGE, "does-not-exist"),
            (policy.GRADE_CREATE, "s1"),
            (policy.GRADE_CREATE, "does-not-exist"),
            (policy.USER_MANAGE, None),
            (policy.CALENDAR_CREATE, None),
        ]
        for operation, target in cases:
            with self.subTest(operation=operation, target=target):
                d = policy.authorize(ds, STUDENT, operation, target)
                self.assertFalse(d.allowed)
                self.assertEqual(d.reason, "InsufficientRole")

    def test_faculty_ownership(self) -> None:
        ds = _dataset()
        self.assertTrue(policy.authorize(ds, FACULTY, policy.COURSE_MANAGE, "c1").allowed)
        d = policy.authorize(ds, FACULTY, policy.COURSE_MANAGE, "c3")
        self.assertEqual(d.reason, "NotOwner")
        self.assertEqual(policy.authorize(ds, OTHER_FACULTY, policy.GRADE_CREATE, "s1").reason, "NotOwner")
        self.assertTrue(policy.authorize(ds, ADMIN, policy.GRADE_CREATE, "s1").allowed)
        self.assertTrue(policy.authorize(ds, ADMIN, policy.COURSE_MANAGE, "c3").allowed)

    def test_enrollment_change_is_student_only_and_self_only(self) -> None:
        ds = _dataset()
        self.assertTrue(policy.authorize(ds, STUDENT, policy.ENROLLMENT_CHANGE, STUDENT.id).allowed)
        self.assertEqual(policy.authorize(ds, STUDENT, policy.ENROLLMENT_CHANGE, OTHER_STUDENT.id).reason, "NotOwner")
        self.assertEqual(policy.authorize(ds, ADMIN, policy.ENROLLMENT_CHANGE, ADMIN.id).reason, "InsufficientRole")

    def test_submission_requires_enrollment(self) -> None:
        ds = _dataset()
        self.assertTrue(policy.authorize(ds, STUDENT, policy.SUBMISSION_CREATE, "a1").allowed)
        self.assertEqual(policy.authorize(ds, STUDENT, policy.SUBMISSION_CREATE, "a3").reason, "NotEnrolled")
        self.assertEqual(policy.authorize(ds, FACULTY, policy.SUBMISSION_CREATE, "a1").reason, "InsufficientRole")

    def test_message_posting_is_staff_only(self) -> None:
        ds = _dataset()
        for target in ("c1", "does-not-exist"):
            with self.subTest(target=target):
                self.assertEqual(policy.authorize(ds, STUDENT, policy.MESSAGE_POST, target).reason, "InsufficientRole")
        self.assertTrue(policy.authorize(ds, FACULTY, policy.MESSAGE_POST, "c1").allowed)
        self.assertEqual(policy.authorize(ds, OTHER_FACULTY, policy.MESSAGE_POST, "c1").reason, "NotOwner")
        self.assertTrue(policy.authorize(ds, ADMIN, policy.MESSAGE_POST, "c2").allowed)

    def test_calendar_can_be_opened_to_everyone(self) -> None:
        ds = _dataset()
        self.assertTrue(policy.authorize(ds, FACULTY, policy.CALENDAR_CREATE).allowed)
        self.assertTrue(policy.authorize(ds, STUDENT, policy.CALENDAR_CREATE, open_calendar=True).allowed)

    def test_unknown_target_for_permitted_role(self) -> None:
        with self.assertRaises(DanglingReference):
            policy.authorize(_dataset(), FACULTY, policy.COURSE_MANAGE, "ghost")

    def test_raise_for_deny(self) -> None:
        d = policy.authorize(_dataset(), FACULTY, policy.COURSE_MANAGE, "c3")
        with self.assertRaises(NotOwner):
            d.raise_for_deny()
        policy.authorize(_dataset(), ADMIN, policy.USER_MANAGE).raise_for_deny()

    def test_denial_is_logged(self) -> None:
        with self.assertLogs("mycampus.policy", level="WARNING") as logs:
            policy.authorize(_dataset(), STUDENT, policy.USER_MANAGE)
        self.assertIn("user.manage", logs.output[0])


if __name__ == "__main__":
    unittest.main()
