from datetime import date

import pytest

from tuition_portal.attendance.model import AttendanceSummary
from tuition_portal.core.enums import PaymentStatus
from tuition_portal.payments.model import Payment
from tuition_portal.payments.status import derive_month_status, derive_year_status

APRIL_15 = date(2025, 4, 15)


def _payment(month: int, year: int = 2025) -> Payment:
    return Payment(
        payment_id=month,
        student_id=1,
        class_id=1,
        year=year,
        month=month,
        amount=2000.0,
        receipt_url="https://files.example/r.png",
        receipt_public_id="r",
        status=PaymentStatus.PENDING,
    )


def _month(month, present, *, free=False, payment=None, today=APRIL_15, year=2025):
    return derive_month_status(
        year=year,
        month=month,
        attendance=AttendanceSummary(present, max(present, 3)),
        is_free_class=free,
        monthly_fee=2000.0,
        payment=payment,
        today=today,
    )


@pytest.mark.parametrize("present", [0, 1])
@pytest.mark.parametrize("free", [True, False])
def test_below_threshold_never_requires_payment(present, free):
    status = _month(3, present, free=free)
    assert status.requires_payment is False
    assert status.is_overdue is False


@pytest.mark.parametrize("present", [0, 2, 5])
def test_free_class_never_requires_payment(present):
    assert _month(3, present, free=True).requires_payment is False


@pytest.mark.parametrize("month", [4, 5, 12])
def test_current_and_future_months_are_never_overdue(month):
    assert _month(month, 5).is_overdue is False


def test_earlier_year_is_overdue_even_for_later_month_number():
    assert _month(11, 3, year=2024).is_overdue is True


def test_payment_clears_overdue():
    status = _month(3, 2, payment=_payment(3))
    assert status.requires_payment is True
    assert status.is_overdue is False


def test_march_scenario_with_two_of_three_sessions():
    status = derive_month_status(
        year=2025,
        month=3,
        attendance=AttendanceSummary(present_days=2, total_class_days=3),
        is_free_class=False,
        monthly_fee=2000.0,
        payment=None,
        today=APRIL_15,
    )

    assert status.to_dict() == {
        "month": 3,
        "year": 2025,
        "attendance": {"presentDays": 2, "totalClassDays": 3},
        "isFreeClass": False,
        "monthlyFee": 2000.0,
        "payment": None,
        "requiresPayment": True,
        "isOverdue": True,
    }
    assert _month(3, 2, today=date(2025, 3, 31)).is_overdue is False


def test_year_status_has_twelve_months_and_matches_payments():
    attendance = {1: AttendanceSummary(3, 4), 2: AttendanceSummary(2, 4)}

    months = derive_year_status(
        year=2025,
        attendance_by_month=attendance,
        payments=[_payment(2)],
        is_free_class=False,
        monthly_fee=2000.0,
        today=APRIL_15,
    )

    assert [m.month for m in months] == list(range(1, 13))
    assert months[0].is_overdue is True
    assert months[1].payment is not None and months[1].is_overdue is False
    assert months[2].attendance == AttendanceSummary(0, 0)
    assert not any(m.requires_payment for m in months[2:])


def test_threshold_is_configurable():
    status = derive_month_status(
        year=2025,
        month=3,
        attendance=AttendanceSummary(2, 3),
        is_free_class=False,
        monthly_fee=2000.0,
        payment=None,
        today=APRIL_15,
        threshold=3,
    )
    assert status.requires_payment is False
