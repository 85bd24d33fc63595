"""Monthly fee liability derived from attendance and submitted payments.

Nothing here is stored: the status of a month without a payment request is
recomputed on every read. Functions are pure; "today" is passed in.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional

from ..attendance.model import AttendanceSummary
from ..core.constants import PAYMENT_THRESHOLD_DAYS
from .model import Payment


@dataclass(frozen=True)
class MonthStatus:
    year: int
    month: int
    attendance: AttendanceSummary
    is_free_class: bool
    monthly_fee: float
    payment: Optional[Payment]
    requires_payment: bool
    is_overdue: bool

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "attendance": self.attendance.to_dict(),
            "isFreeClass": self.is_free_class,
            "monthlyFee": self.monthly_fee,
            "payment": self.payment.to_dict() if self.payment else None,
            "requiresPayment": self.requires_payment,
            "isOverdue": self.is_overdue,
        }


def requires_payment(present_days: int, *, is_free_class: bool, threshold: int = PAYMENT_THRESHOLD_DAYS) -> bool:
    return int(present_days) >= int(threshold) and not is_free_class


def is_overdue(*, requires: bool, has_payment: bool, year: int, month: int, today: date) -> bool:
    """Only months strictly before the current calendar month can be overdue."""
    return requires and not has_payment and (int(year), int(month)) < (today.year, today.month)


def derive_month_status(
    *,
    year: int,
    month: int,
    attendance: AttendanceSummary,
    is_free_class: bool,
    monthly_fee: float,
    payment: Optional[Payment],
    today: date,
    threshold: int = PAYMENT_THRESHOLD_DAYS,
) -> MonthStatus:
    requires = requires_payment(attendance.present_days, is_free_class=is_free_class, threshold=threshold)
    return MonthStatus(
        year=int(year),
        month=int(month),
        attendance=attendance,
        is_free_class=bool(is_free_class),
        monthly_fee=monthly_fee,
        payment=payment,
        requires_payment=requires,
        is_overdue=is_overdue(
            requires=requires,
            has_payment=payment is not None,
            year=year,
            month=month,
            today=today,
        ),
    )


def derive_year_status(
    *,
    year: int,
    attendance_by_month: Mapping[int, AttendanceSummary],
    payments: Iterable[Payment],
    is_free_class: bool,
    monthly_fee: float,
    today: date,
    threshold: int = PAYMENT_THRESHOLD_DAYS,
) -> list[MonthStatus]:
    """Statuses for months 1..12; a missing month in ``attendance_by_month`` counts as no sessions."""
    by_month = {p.month: p for p in payments if p.year == int(year)}
    return [
        derive_month_status(
            year=year,
            month=month,
            attendance=attendance_by_month.get(month, AttendanceSummary()),
            is_free_class=is_free_class,
            monthly_fee=monthly_fee,
            payment=by_month.get(month),
            today=today,
            threshold=threshold,
        )
        for month in range(1, 13)
    ]
