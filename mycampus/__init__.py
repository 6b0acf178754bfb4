"""
MyCampus – role-based academic record manager.

Courses, enrollments, assignments, grades, announcements, calendar,
timetable and course message threads behind a three-role permission model.
"""

from __future__ import annotations

from mycampus.errors import CampusError
from mycampus.service import CampusService

__all__ = ["CampusError", "CampusService"]
