from __future__ import annotations

from typing import Any, Optional

from flask import Flask, request

from ..common.guards import build_guards, current_user
from ..common.http import ok
from ..common.validators import (
    int_between,
    int_min,
    is_bool,
    is_list,
    is_object,
    max_length,
    require_int,
    required,
    validate,
)
from ..core.constants import MAX_NOTE_LENGTH, MAX_PAYMENT_YEAR, MIN_PAYMENT_YEAR
from ..core.enums import AttendanceMark
from ..core.exceptions import ValidationError
from ..container import Container
from .model import MonitorPermissions

_CREATE_RULES = [
    required("classId", "Class ID is required"),
    int_min("expectedPresentCount", "Expected present count must be a non-negative number", 0),
    is_object("monitorPermissions", "monitorPermissions must be an object"),
    is_bool("monitorPermissions.allMonitors", "allMonitors must be a boolean"),
    is_bool("monitorPermissions.adminOnly", "adminOnly must be a boolean"),
    is_list("monitorPermissions.selectedMonitors", "selectedMonitors must be an array", optional=True),
    max_length("notes", "Notes cannot exceed 500 characters", MAX_NOTE_LENGTH),
]

_ADMIN_UPDATE_RULES = [
    int_min("expectedPresentCount", "Expected present count must be a non-negative number", 0, optional=True),
    is_object("monitorPermissions", "monitorPermissions must be an object"),
    is_bool("monitorPermissions.allMonitors", "allMonitors must be a boolean"),
    is_bool("monitorPermissions.adminOnly", "adminOnly must be a boolean"),
    is_list("monitorPermissions.selectedMonitors", "selectedMonitors must be an array", optional=True),
    is_list("studentAttendance", "Student attendance must be an array", optional=True),
    max_length("notes", "Notes cannot exceed 500 characters", MAX_NOTE_LENGTH),
]

_MONITOR_UPDATE_RULES = [
    is_list("studentAttendance", "Student attendance must be an array"),
]

_PERIOD_QUERY_RULES = [
    int_between("month", "Month must be between 1 and 12", 1, 12, optional=True),
    int_between("year", "Invalid year", MIN_PAYMENT_YEAR, MAX_PAYMENT_YEAR, optional=True),
]

_ANALYTICS_QUERY_RULES = [
    int_between("year", "Invalid year", MIN_PAYMENT_YEAR, MAX_PAYMENT_YEAR, optional=True),
]


def _parse_permissions(raw: Optional[dict]) -> MonitorPermissions:
    raw = raw or {}
    return MonitorPermissions(
        all_monitors=bool(raw.get("allMonitors", False)),
        admin_only=bool(raw.get("adminOnly", False)),
        selected_monitors=frozenset(
            require_int(m, "monitorPermissions.selectedMonitors") for m in raw.get("selectedMonitors") or []
        ),
    )


def _parse_marks(items: list[Any]) -> dict[int, AttendanceMark]:
    marks: dict[int, AttendanceMark] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each attendance item must be an object")
        student_id = require_int(item.get("studentId"), "studentAttendance.studentId")
        try:
            marks[student_id] = AttendanceMark(item.get("status"))
        except ValueError:
            raise ValidationError(
                "Invalid attendance status",
                [{"field": "studentAttendance.status", "message": "Status must be Present or Absent"}],
            )
    return marks


def _optional_int(value: Optional[str], field_name: str) -> Optional[int]:
    if value in (None, ""):
        return None
    return require_int(value, field_name)


def register(app: Flask, container: Container) -> None:
    guards = build_guards(container.token_service)
    service = container.attendance_service

    @app.route("/api/attendance", methods=["POST"], endpoint="attendance_create")
    @guards.staff_required
    def create_sheet():
        body = request.get_json(silent=True) or {}
        validate(body, _CREATE_RULES)
        sheet = service.create_sheet(
            actor=current_user(),
            class_id=require_int(body["classId"], "classId"),
            expected_present_count=require_int(body["expectedPresentCount"], "expectedPresentCount"),
            permissions=_parse_permissions(body.get("monitorPermissions")),
            notes=body.get("notes"),
        )
        return ok("Attendance sheet created successfully", 201, data=sheet.to_dict())

    @app.route("/api/attendance/analytics", methods=["GET"], endpoint="attendance_analytics")
    @guards.staff_required
    def analytics():
        validate(request.args, _ANALYTICS_QUERY_RULES)
        result = service.analytics(year=_optional_int(request.args.get("year"), "year"))
        return ok(data=result.to_dict())

    @app.route("/api/attendance/student-stats/<student_id>/<class_id>", methods=["GET"], endpoint="attendance_student_stats")
    @guards.login_required
    def student_stats(student_id: str, class_id: str):
        validate(request.args, _PERIOD_QUERY_RULES)
        stats = service.student_stats(
            student_id=require_int(student_id, "studentId"),
            class_id=require_int(class_id, "classId"),
            year=_optional_int(request.args.get("year"), "year"),
            month=_optional_int(request.args.get("month"), "month"),
        )
        return ok(data=stats.to_dict())

    @app.route("/api/attendance/class/<class_id>", methods=["GET"], endpoint="attendance_list_for_class")
    @guards.login_required
    def list_for_class(class_id: str):
        validate(request.args, _PERIOD_QUERY_RULES)
        sheets = service.list_for_class(
            actor=current_user(),
            class_id=require_int(class_id, "classId"),
            year=_optional_int(request.args.get("year"), "year"),
            month=_optional_int(request.args.get("month"), "month"),
        )
        return ok(data=sheets)

    @app.route("/api/attendance/<sheet_id>", methods=["GET"], endpoint="attendance_get")
    @guards.login_required
    def get_sheet(sheet_id: str):
        data = service.get_sheet(actor=current_user(), sheet_id=require_int(sheet_id, "sheetId"))
        return ok(data=data)

    @app.route("/api/attendance/<sheet_id>", methods=["PUT"], endpoint="attendance_admin_update")
    @guards.staff_required
    def admin_update(sheet_id: str):
        body = request.get_json(silent=True) or {}
        validate(body, _ADMIN_UPDATE_RULES)

        kwargs: dict[str, Any] = {}
        if body.get("expectedPresentCount") is not None:
            kwargs["expected_present_count"] = require_int(body["expectedPresentCount"], "expectedPresentCount")
        if body.get("monitorPermissions") is not None:
            kwargs["permissions"] = _parse_permissions(body["monitorPermissions"])
        if body.get("studentAttendance"):
            kwargs["marks"] = _parse_marks(body["studentAttendance"])
        if "notes" in body:
            kwargs["notes"] = body.get("notes")

        sheet = service.admin_update(actor=current_user(), sheet_id=require_int(sheet_id, "sheetId"), **kwargs)
        return ok("Attendance sheet updated successfully", data=sheet.to_dict())

    @app.route("/api/attendance/<sheet_id>/monitor-update", methods=["PUT"], endpoint="attendance_monitor_update")
    @guards.login_required
    def monitor_update(sheet_id: str):
        body = request.get_json(silent=True) or {}
        validate(body, _MONITOR_UPDATE_RULES)
        sheet = service.monitor_update(
            actor=current_user(),
            sheet_id=require_int(sheet_id, "sheetId"),
            marks=_parse_marks(body["studentAttendance"]),
        )
        return ok("Attendance updated successfully by monitor", data=sheet.to_dict())

    @app.route("/api/attendance/<sheet_id>", methods=["DELETE"], endpoint="attendance_delete")
    @guards.staff_required
    def delete_sheet(sheet_id: str):
        service.delete_sheet(sheet_id=require_int(sheet_id, "sheetId"))
        return ok("Attendance sheet deleted successfully")
