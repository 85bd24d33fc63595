from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from ..attendance.aggregator import AttendanceAggregator
from ..attendance.model import AttendanceSummary
from ..classes.model import ClassInfo
from ..classes.repository import ClassRepository
from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_PAGE_LIMIT, PAYMENT_THRESHOLD_DAYS
from ..core.enums import PaymentStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..students.model import Student
from ..students.repository import StudentRepository
from ..users.tokens import CurrentUser
from .model import AdminAction, NewPayment, Payment, PaymentFilter, PaymentPage
from .repository import PaymentRepository
from .status import MonthStatus, derive_month_status, derive_year_status

logger = logging.getLogger(__name__)

DECISIONS = (PaymentStatus.APPROVED, PaymentStatus.REJECTED)


@dataclass(frozen=True)
class ClassMonthOverview:
    class_info: ClassInfo
    year: int
    month: int
    pending: list[Payment]
    students: list[tuple[Student, MonthStatus]]


class PaymentService:
    """Monthly fee requests: students submit receipts, staff decide on them."""

    def __init__(
        self,
        payments: PaymentRepository,
        students: StudentRepository,
        classes: ClassRepository,
        aggregator: AttendanceAggregator,
        *,
        threshold_days: int = PAYMENT_THRESHOLD_DAYS,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        clock: Callable[[], datetime] = now_local,
    ):
        self._payments = payments
        self._students = students
        self._classes = classes
        self._aggregator = aggregator
        self._threshold = int(threshold_days)
        self._page_limit = int(page_limit)
        self._clock = clock

    # -------- lookups --------
    def _student_for(self, actor: CurrentUser) -> Student:
        student = self._students.get_by_user_id(actor.id)
        if not student:
            raise NotFoundError("Student profile not found")
        return student

    def _class(self, class_id: int) -> ClassInfo:
        class_info = self._classes.get_by_id(int(class_id))
        if not class_info:
            raise NotFoundError("Class not found")
        return class_info

    def _payment(self, payment_id: int) -> Payment:
        payment = self._payments.get(int(payment_id))
        if not payment:
            raise NotFoundError("Payment request not found")
        return payment

    def _today(self) -> date:
        return self._clock().date()

    # -------- student side --------
    def student_year_status(self, *, actor: CurrentUser, class_id: int, year: int) -> tuple[ClassInfo, list[MonthStatus], bool]:
        """Derived status for every month of ``year`` for the calling student."""
        student = self._student_for(actor)
        class_info = self._class(class_id)
        is_free = student.has_free_membership(class_info.class_id) or class_info.is_free_class

        payments = self._payments.list_for_student_year(
            student_id=student.student_id, class_id=class_info.class_id, year=int(year)
        )
        attendance = self._aggregator.calculate_year(student.student_id, class_info.class_id, int(year))
        months = derive_year_status(
            year=int(year),
            attendance_by_month=attendance,
            payments=payments,
            is_free_class=is_free,
            monthly_fee=class_info.monthly_fee,
            today=self._today(),
            threshold=self._threshold,
        )
        return class_info, months, is_free

    def submit(
        self,
        *,
        actor: CurrentUser,
        class_id: int,
        year: int,
        month: int,
        amount: float,
        receipt_url: str,
        receipt_public_id: str,
        additional_note: Optional[str] = None,
    ) -> Payment:
        student = self._student_for(actor)
        class_info = self._class(class_id)

        attendance = self._aggregator.calculate_attendance(student.student_id, class_info.class_id, int(year), int(month))
        payment_id = self._payments.insert(
            NewPayment(
                student_id=student.student_id,
                class_id=class_info.class_id,
                year=int(year),
                month=int(month),
                amount=float(amount),
                receipt_url=receipt_url.strip(),
                receipt_public_id=receipt_public_id.strip(),
                additional_note=(additional_note or "").strip() or None,
                attendance=attendance,
            )
        )
        logger.info(
            "Payment %s submitted by student %s for class %s %04d-%02d",
            payment_id, student.student_id, class_info.class_id, int(year), int(month),
        )
        return self._payment(payment_id)

    def update(
        self,
        *,
        actor: CurrentUser,
        payment_id: int,
        receipt_url: str,
        receipt_public_id: str,
        additional_note: Optional[str] = None,
    ) -> Payment:
        student = self._student_for(actor)
        payment = self._payments.get_owned(int(payment_id), student.student_id)
        if not payment:
            raise NotFoundError("Payment request not found")
        if not payment.is_pending:
            raise ValidationError("Cannot update payment request that has been processed")

        self._payments.update_receipt(
            payment_id=payment.payment_id,
            receipt_url=receipt_url.strip(),
            receipt_public_id=receipt_public_id.strip(),
            additional_note=(additional_note or "").strip() or None,
        )
        logger.info("Payment %s receipt replaced by student %s", payment.payment_id, student.student_id)
        return self._payment(payment.payment_id)

    def my_requests(self, *, actor: CurrentUser) -> Sequence[Payment]:
        student = self._student_for(actor)
        return self._payments.list_for_student(student.student_id)

    # -------- staff side --------
    def admin_month_view(self, *, class_id: int, year: int, month: int) -> ClassMonthOverview:
        """Pending requests of the month plus the derived status of every enrolled student."""
        class_info = self._class(class_id)
        requests = self._payments.list_for_class_month(class_id=class_info.class_id, year=int(year), month=int(month))
        by_student = {}
        for p in requests:
            by_student.setdefault(p.student_id, p)

        total, present = self._aggregator.calculate_class_month(class_info.class_id, int(year), int(month))
        today = self._today()

        students = []
        for student in self._classes.list_enrolled_students(class_info.class_id):
            status = derive_month_status(
                year=int(year),
                month=int(month),
                attendance=AttendanceSummary(present_days=present.get(student.student_id, 0), total_class_days=total),
                is_free_class=student.has_free_membership(class_info.class_id) or class_info.is_free_class,
                monthly_fee=class_info.monthly_fee,
                payment=by_student.get(student.student_id),
                today=today,
                threshold=self._threshold,
            )
            students.append((student, status))

        return ClassMonthOverview(
            class_info=class_info,
            year=int(year),
            month=int(month),
            pending=[p for p in requests if p.is_pending],
            students=students,
        )

    def process(self, *, actor: CurrentUser, payment_id: int, action: PaymentStatus, action_note: Optional[str] = None) -> Payment:
        if action not in DECISIONS:
            raise ValidationError("Action is required and must be Approved or Rejected")
        payment = self._payment(payment_id)

        self._payments.set_status(
            payment_id=payment.payment_id,
            status=action,
            action=AdminAction(action_by=actor.id, action_date=self._clock(), action_note=action_note or ""),
        )
        logger.info("Payment %s %s by user %s (was %s)", payment.payment_id, action.verb, actor.id, payment.status.verb)
        return self._payment(payment.payment_id)

    def bulk_process(
        self,
        *,
        actor: CurrentUser,
        payment_ids: Sequence[int],
        action: PaymentStatus,
        action_note: Optional[str] = None,
    ) -> int:
        if action not in DECISIONS:
            raise ValidationError("Action is required and must be Approved or Rejected")
        ids = sorted({int(p) for p in payment_ids})
        if not ids:
            raise ValidationError("Payment IDs array is required")

        modified = self._payments.bulk_set_status(
            payment_ids=ids,
            status=action,
            action=AdminAction(action_by=actor.id, action_date=self._clock(), action_note=action_note or ""),
        )
        logger.info("Bulk %s of %s payment(s) by user %s: %s modified", action.verb, len(ids), actor.id, modified)
        return modified

    def update_status(
        self,
        *,
        actor: CurrentUser,
        payment_id: int,
        status: PaymentStatus,
        admin_note: Optional[str] = None,
    ) -> Payment:
        payment = self._payment(payment_id)
        self._payments.set_status(
            payment_id=payment.payment_id,
            status=status,
            action=AdminAction(
                action_by=actor.id,
                action_date=self._clock(),
                action_note=admin_note or f"Payment {status.verb} by admin",
            ),
        )
        logger.info("Payment %s set to %s by user %s", payment.payment_id, status.value, actor.id)
        return self._payment(payment.payment_id)

    def delete(self, *, payment_id: int) -> None:
        if not self._payments.delete(int(payment_id)):
            raise NotFoundError("Payment request not found")
        logger.info("Payment %s deleted", payment_id)

    def search(
        self,
        *,
        status: Optional[PaymentStatus] = None,
        class_id: Optional[int] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> PaymentPage:
        page = max(int(page), 1)
        limit = int(limit) if limit else self._page_limit
        if limit < 1:
            raise ValidationError("Limit must be a positive number")

        items, total = self._payments.search(
            PaymentFilter(status=status, class_id=class_id, month=month, year=year),
            offset=(page - 1) * limit,
            limit=limit,
        )
        return PaymentPage(items=items, page=page, limit=limit, total_count=total)
