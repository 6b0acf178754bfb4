"""
Demo data written on first run.

Three users (one per role, password 'pass'), two courses owned by the
faculty user, one enrollment, one assignment due next week, a welcome
announcement, two calendar dates and a small weekly timetable.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from mycampus.credentials import CredentialVerifier
from mycampus.dataset import Dataset
from mycampus.ids import new_id
from mycampus.model import (
    Announcement,
    Assignment,
    CalendarEvent,
    Course,
    Enrollment,
    TimetableSlot,
    User,
)

DEMO_PASSWORD = "pass"


def _end_of_day(now: datetime, days: int) -> datetime:
    return (now + timedelta(days=days)).replace(hour=23, minute=59, second=59, microsecond=0)


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def build_seed_dataset(verifier: CredentialVerifier, now: datetime) -> Dataset:
    ds = Dataset()
    secret = verifier.hash(DEMO_PASSWORD)

    alice = ds.add_user(User(new_id("u"), "Alice Ahmed", "alice@uni.edu", secret, "student"))
    barun = ds.add_user(User(new_id("u"), "Dr. Barun", "barun@uni.edu", secret, "faculty"))
    ds.add_user(User(new_id("u"), "Carol Admin", "carol@uni.edu", secret, "admin"))

    cse = ds.add_course(Course(new_id("c"), "CSE101", "Intro to Programming", barun.id, 60, 3))
    mat = ds.add_course(Course(new_id("c"), "MAT110", "Calculus I", barun.id, 80, 4))

    ds.add_enrollment(Enrollment(new_id("enr"), cse.id, alice.id))

    ds.add_assignment(
        Assignment(
            new_id("a"),
            cse.id,
            "HW1: Variables & Loops",
            _end_of_day(now, 7),
            100,
            "Solve the attached problems.",
        )
    )
    ds.add_announcement(Announcement(new_id("ann"), cse.id, "Welcome!", "First lecture slides posted.", now))

    ds.add_event(CalendarEvent(new_id("ev"), "Semester Starts", _start_of_day(now), "academic"))
    ds.add_event(CalendarEvent(new_id("ev"), "Add/Drop Deadline", _end_of_day(now, 10), "deadline"))

    ds.add_slot(TimetableSlot(new_id("tt"), cse.id, 0, "09:00", "10:20", "A-201"))
    ds.add_slot(TimetableSlot(new_id("tt"), cse.id, 2, "09:00", "10:20", "A-201"))
    ds.add_slot(TimetableSlot(new_id("tt"), mat.id, 1, "11:00", "12:20", "B-105"))

    return ds
