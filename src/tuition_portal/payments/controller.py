from __future__ import annotations

from typing import Optional

from flask import Flask, request

from ..common.guards import build_guards, current_user
from ..common.http import ok
from ..common.validators import (
    float_min,
    int_between,
    int_min,
    max_length,
    non_empty_list,
    one_of,
    require_int,
    required,
    validate,
)
from ..core.constants import MAX_NOTE_LENGTH, MAX_PAYMENT_YEAR, MIN_PAYMENT_YEAR
from ..core.enums import PaymentStatus
from ..core.exceptions import ValidationError
from ..container import Container

_DECISIONS = [PaymentStatus.APPROVED.value, PaymentStatus.REJECTED.value]
_LEGACY_STATUSES = [s.verb for s in PaymentStatus]

SUBMIT_RULES = [
    required("classId", "Class ID is required"),
    int_between("year", "Year is required and must be a valid number", MIN_PAYMENT_YEAR, MAX_PAYMENT_YEAR),
    int_between("month", "Month is required and must be between 1-12", 1, 12),
    float_min("amount", "Amount is required and must be a positive number", 0),
    required("receiptUrl", "Receipt URL is required"),
    required("receiptPublicId", "Receipt public ID is required"),
    max_length("additionalNote", "Additional note cannot exceed 500 characters", MAX_NOTE_LENGTH),
]

UPDATE_RULES = [
    required("receiptUrl", "Receipt URL is required"),
    required("receiptPublicId", "Receipt public ID is required"),
    max_length("additionalNote", "Additional note cannot exceed 500 characters", MAX_NOTE_LENGTH),
]

PROCESS_RULES = [
    one_of("action", "Action is required and must be Approved or Rejected", _DECISIONS),
    max_length("actionNote", "Action note cannot exceed 500 characters", MAX_NOTE_LENGTH),
]

BULK_PROCESS_RULES = [
    non_empty_list("paymentIds", "Payment IDs array is required"),
    *PROCESS_RULES,
]

STATUS_UPDATE_RULES = [
    one_of("status", "Status is required and must be approved, rejected, or pending", _LEGACY_STATUSES),
    max_length("adminNote", "Admin note cannot exceed 500 characters", MAX_NOTE_LENGTH),
]

SEARCH_RULES = [
    int_min("page", "Page must be a positive number", 1, optional=True),
    int_min("limit", "Limit must be a positive number", 1, optional=True),
    int_between("month", "Month must be between 1-12", 1, 12, optional=True),
    int_between("year", "Invalid year", MIN_PAYMENT_YEAR, MAX_PAYMENT_YEAR, optional=True),
]

YEAR_PATH_RULES = [
    int_between("year", "Invalid year", MIN_PAYMENT_YEAR, MAX_PAYMENT_YEAR),
]

MONTH_PATH_RULES = [
    *YEAR_PATH_RULES,
    int_between("month", "Month must be between 1-12", 1, 12),
]


def _query_int(name: str) -> Optional[int]:
    value = request.args.get(name)
    if value in (None, ""):
        return None
    return require_int(value, name)


def _query_status() -> Optional[PaymentStatus]:
    value = request.args.get("status")
    if not value:
        return None
    try:
        return PaymentStatus.parse(value)
    except ValueError:
        raise ValidationError(
            "Validation errors",
            [{"field": "status", "message": "Status must be one of Pending, Approved or Rejected"}],
        )


def register(app: Flask, container: Container) -> None:
    guards = build_guards(container.token_service)
    service = container.payment_service

    # -------- student --------
    @app.route("/api/payments/student/<class_id>/<year>", methods=["GET"], endpoint="payments_student_status")
    @guards.login_required
    def student_status(class_id: str, year: str):
        validate({"year": year}, YEAR_PATH_RULES)
        class_info, months, is_free = service.student_year_status(
            actor=current_user(),
            class_id=require_int(class_id, "classId"),
            year=require_int(year, "year"),
        )
        return ok(
            classData=class_info.summary(),
            monthlyStatus=[m.to_dict() for m in months],
            isFreeClass=is_free,
        )

    @app.route("/api/payments/my-requests", methods=["GET"], endpoint="payments_my_requests")
    @guards.login_required
    def my_requests():
        payments = service.my_requests(actor=current_user())
        return ok(paymentRequests=[p.to_dict() for p in payments])

    @app.route("/api/payments/submit", methods=["POST"], endpoint="payments_submit")
    @guards.login_required
    def submit():
        body = request.get_json(silent=True) or {}
        validate(body, SUBMIT_RULES)
        payment = service.submit(
            actor=current_user(),
            class_id=require_int(body["classId"], "classId"),
            year=require_int(body["year"], "year"),
            month=require_int(body["month"], "month"),
            amount=float(body["amount"]),
            receipt_url=str(body["receiptUrl"]),
            receipt_public_id=str(body["receiptPublicId"]),
            additional_note=body.get("additionalNote"),
        )
        return ok("Payment request submitted successfully", 201, payment=payment.to_dict())

    @app.route("/api/payments/<payment_id>", methods=["PUT"], endpoint="payments_update")
    @guards.login_required
    def update(payment_id: str):
        body = request.get_json(silent=True) or {}
        validate(body, UPDATE_RULES)
        payment = service.update(
            actor=current_user(),
            payment_id=require_int(payment_id, "paymentId"),
            receipt_url=str(body["receiptUrl"]),
            receipt_public_id=str(body["receiptPublicId"]),
            additional_note=body.get("additionalNote"),
        )
        return ok("Payment request updated successfully", payment=payment.to_dict())

    # -------- staff --------
    @app.route("/api/payments/admin/<class_id>/<year>/<month>", methods=["GET"], endpoint="payments_admin_month")
    @guards.staff_required
    def admin_month(class_id: str, year: str, month: str):
        validate({"year": year, "month": month}, MONTH_PATH_RULES)
        overview = service.admin_month_view(
            class_id=require_int(class_id, "classId"),
            year=require_int(year, "year"),
            month=require_int(month, "month"),
        )
        return ok(
            classData=overview.class_info.summary(),
            paymentRequests=[p.to_dict() for p in overview.pending],
            allStudentsStatus=[
                {
                    "student": student.public_dict(),
                    "attendance": status.attendance.to_dict(),
                    "payment": status.payment.to_dict() if status.payment else None,
                    "isFreeClass": status.is_free_class,
                    "requiresPayment": status.requires_payment,
                    "isOverdue": status.is_overdue,
                }
                for student, status in overview.students
            ],
            year=overview.year,
            month=overview.month,
        )

    @app.route("/api/payments/admin/<payment_id>/process", methods=["PUT"], endpoint="payments_admin_process")
    @guards.staff_required
    def process(payment_id: str):
        body = request.get_json(silent=True) or {}
        validate(body, PROCESS_RULES)
        action = PaymentStatus(body["action"])
        payment = service.process(
            actor=current_user(),
            payment_id=require_int(payment_id, "paymentId"),
            action=action,
            action_note=body.get("actionNote"),
        )
        return ok(f"Payment request {action.verb} successfully", payment=payment.to_dict())

    @app.route("/api/payments/admin/bulk-process", methods=["PUT"], endpoint="payments_admin_bulk_process")
    @guards.staff_required
    def bulk_process():
        body = request.get_json(silent=True) or {}
        validate(body, BULK_PROCESS_RULES)
        action = PaymentStatus(body["action"])
        modified = service.bulk_process(
            actor=current_user(),
            payment_ids=[require_int(p, "paymentIds") for p in body["paymentIds"]],
            action=action,
            action_note=body.get("actionNote"),
        )
        return ok(f"{modified} payment requests {action.verb} successfully", modifiedCount=modified)

    @app.route("/api/admin/all-payment-requests", methods=["GET"], endpoint="payments_admin_all")
    @guards.staff_required
    def all_requests():
        validate(request.args, SEARCH_RULES)
        result = service.search(
            status=_query_status(),
            class_id=_query_int("classId"),
            month=_query_int("month"),
            year=_query_int("year"),
            page=_query_int("page") or 1,
            limit=_query_int("limit"),
        )
        return ok(paymentRequests=[p.to_dict() for p in result.items], pagination=result.pagination())

    @app.route("/api/admin/payment-requests/<payment_id>/status", methods=["PUT"], endpoint="payments_admin_status")
    @guards.staff_required
    def update_status(payment_id: str):
        body = request.get_json(silent=True) or {}
        validate(body, STATUS_UPDATE_RULES)
        status = PaymentStatus.parse(body["status"])
        payment = service.update_status(
            actor=current_user(),
            payment_id=require_int(payment_id, "paymentId"),
            status=status,
            admin_note=body.get("adminNote"),
        )
        return ok(f"Payment request {status.verb} successfully", payment=payment.to_dict())

    @app.route("/api/admin/payment-requests/<payment_id>", methods=["DELETE"], endpoint="payments_admin_delete")
    @guards.staff_required
    def delete(payment_id: str):
        service.delete(payment_id=require_int(payment_id, "paymentId"))
        return ok("Payment request deleted successfully")
