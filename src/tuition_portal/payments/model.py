from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..attendance.model import AttendanceSummary
from ..classes.model import ClassInfo
from ..common.datetime_utils import iso
from ..core.enums import PaymentStatus
from ..students.model import Student


@dataclass(frozen=True)
class AdminAction:
    """Who decided a payment request, when, and with what note."""

    action_by: Optional[int]
    action_date: Optional[datetime]
    action_note: Optional[str] = None
    actor_name: Optional[str] = None
    actor_email: Optional[str] = None

    def to_dict(self) -> dict:
        actor = None
        if self.action_by is not None:
            actor = {"id": self.action_by, "fullName": self.actor_name, "email": self.actor_email}
        return {
            "actionBy": actor,
            "actionDate": iso(self.action_date),
            "actionNote": self.action_note,
        }


@dataclass(frozen=True)
class NewPayment:
    student_id: int
    class_id: int
    year: int
    month: int
    amount: float
    receipt_url: str
    receipt_public_id: str
    additional_note: Optional[str]
    attendance: AttendanceSummary


@dataclass(frozen=True)
class Payment:
    """A monthly fee payment request with its populated references."""

    payment_id: int
    student_id: int
    class_id: int
    year: int
    month: int
    amount: float
    receipt_url: str
    receipt_public_id: str
    status: PaymentStatus
    attendance: AttendanceSummary = field(default_factory=AttendanceSummary)
    additional_note: Optional[str] = None
    admin_action: Optional[AdminAction] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    student: Optional[Student] = None
    class_info: Optional[ClassInfo] = None

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.payment_id,
            "student": self.student.public_dict() if self.student else {"id": self.student_id},
            "class": self.class_info.summary() if self.class_info else {"id": self.class_id},
            "year": self.year,
            "month": self.month,
            "amount": self.amount,
            "receiptUrl": self.receipt_url,
            "receiptPublicId": self.receipt_public_id,
            "additionalNote": self.additional_note,
            "status": self.status.value,
            "attendanceData": self.attendance.to_dict(),
            "adminAction": self.admin_action.to_dict() if self.admin_action else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


@dataclass(frozen=True)
class PaymentFilter:
    status: Optional[PaymentStatus] = None
    class_id: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None


@dataclass(frozen=True)
class PaymentPage:
    items: list[Payment]
    page: int
    limit: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.limit) if self.limit else 0

    def pagination(self) -> dict:
        return {
            "currentPage": self.page,
            "totalPages": self.total_pages,
            "totalCount": self.total_count,
            "hasNext": self.page * self.limit < self.total_count,
            "hasPrev": self.page > 1,
        }
