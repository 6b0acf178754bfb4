"""
Shared helpers for the test-suite: an in-memory service with a fixed clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from mycampus.config import Settings
from mycampus.credentials import PlainVerifier
from mycampus.service import CampusService
from mycampus.storage import MemoryStore

# a Monday
START = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_service(store: MemoryStore | None = None, **settings: object) -> tuple[CampusService, FakeClock]:
    clock = FakeClock()
    service = CampusService(
        store=store if store is not None else MemoryStore(),
        verifier=PlainVerifier(),
        clock=clock,
        settings=Settings(**settings),
    )
    return service, clock


def seeded_users(service: CampusService) -> tuple:
    """
    (student, faculty, admin) of the demo data.
    """
    ds = service.dataset
    return (
        ds.find_user_by_email("alice@uni.edu"),
        ds.find_user_by_email("barun@uni.edu"),
        ds.find_user_by_email("carol@uni.edu"),
    )


def course_by_code(service: CampusService, code: str):
    for c in service.dataset.courses.values():
        if c.code == code:
            return c
    raise LookupError(code)
