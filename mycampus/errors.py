"""
Error taxonomy.

Every failure of a campus operation raises a subclass of CampusError.
Each class carries a stable `kind` string so callers (CLI, tests, a future
web layer) can tell failure modes apart without parsing messages.
None of them is fatal: the live dataset is never left half-updated.
"""

from __future__ import annotations


class CampusError(Exception):
    kind = "CampusError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind


class InvalidInput(CampusError):
    """
    A required field is missing or out of range. `field` names it.
    """

    kind = "InvalidInput"

    def __init__(self, field: str, message: str = "") -> None:
        super().__init__(message or f"invalid value for '{field}'")
        self.field = field


class InvalidCredentials(CampusError):
    kind = "InvalidCredentials"


class EmailTaken(CampusError):
    kind = "EmailTaken"


class InsufficientRole(CampusError):
    kind = "InsufficientRole"


class NotOwner(CampusError):
    kind = "NotOwner"


class NotEnrolled(CampusError):
    kind = "NotEnrolled"


class CapacityExceeded(CampusError):
    kind = "CapacityExceeded"


class DuplicateEnrollment(CampusError):
    kind = "DuplicateEnrollment"


class AlreadyGraded(CampusError):
    kind = "AlreadyGraded"


class DanglingReference(CampusError):
    kind = "DanglingReference"


class PersistenceError(CampusError):
    kind = "PersistenceError"


# reason tag -> exception class, used to turn policy denials into errors
DENY_ERRORS: dict[str, type[CampusError]] = {
    InsufficientRole.kind: InsufficientRole,
    NotOwner.kind: NotOwner,
    NotEnrolled.kind: NotEnrolled,
}
