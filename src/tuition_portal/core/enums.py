from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for access control."""

    ADMIN = "admin"
    MODERATOR = "moderator"
    STUDENT = "student"

    @property
    def is_staff(self) -> bool:
        return self in {Role.ADMIN, Role.MODERATOR}


class AttendanceMark(str, Enum):
    """Per-student entry on an attendance sheet."""

    PRESENT = "Present"
    ABSENT = "Absent"


class SheetStatus(str, Enum):
    DRAFT = "Draft"
    COMPLETED = "Completed"
    UPDATED = "Updated"


class PaymentStatus(str, Enum):
    """Payment request workflow state.

    Stored and returned in the capitalized form. The admin "all requests"
    page speaks the lowercase vocabulary; ``parse`` accepts both.
    """

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: str) -> "PaymentStatus":
        v = (value or "").strip().lower()
        for status in cls:
            if status.value.lower() == v:
                return status
        raise ValueError(f"Unknown payment status: {value!r}")

    @property
    def verb(self) -> str:
        return self.value.lower()
