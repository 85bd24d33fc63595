from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from ..classes.repository import ClassRepository
from ..common.datetime_utils import day_bounds, month_bounds, now_local
from ..core.enums import AttendanceMark, SheetStatus
from ..core.exceptions import AuthorizationError, NotFoundError, SheetAlreadyExistsError, ValidationError
from ..students.repository import StudentRepository
from ..users.tokens import CurrentUser
from .aggregator import AttendanceAggregator
from .model import AttendanceAnalytics, AttendanceSheet, MonitorPermissions, MonitorUpdate, StudentAttendanceStats
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

_UNSET = object()


class AttendanceService:
    """Attendance sheets: staff create and correct them, class monitors fill them in."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        classes: ClassRepository,
        students: StudentRepository,
        aggregator: AttendanceAggregator,
    ):
        self._attendance = attendance
        self._classes = classes
        self._students = students
        self._aggregator = aggregator

    def _require_class_monitors(self, class_id: int, permissions: MonitorPermissions) -> None:
        if permissions.admin_only:
            return
        monitors = self._classes.list_monitor_ids(class_id)
        if permissions.all_monitors and not monitors:
            raise ValidationError(
                'This class has no monitors. Please add monitors first or select "Admin Only" permission.'
            )
        if not permissions.all_monitors and not permissions.selected_monitors:
            raise ValidationError('Please select at least one monitor or choose "Give permission to all monitors"')
        if not permissions.selected_monitors <= monitors:
            raise ValidationError("Some selected monitors are not monitors of this class")

    def _get_sheet(self, sheet_id: int) -> AttendanceSheet:
        sheet = self._attendance.get_sheet(int(sheet_id))
        if not sheet:
            raise NotFoundError("Attendance sheet not found")
        return sheet

    def _own_student_id(self, actor: CurrentUser, class_id: int) -> Optional[int]:
        """None when the caller may see every entry, else the caller's student id."""
        if actor.role.is_staff:
            return None
        student = self._students.get_by_user_id(actor.id)
        if not student:
            raise NotFoundError("Student profile not found")
        if student.student_id in self._classes.list_monitor_ids(class_id):
            return None
        return student.student_id

    def create_sheet(
        self,
        *,
        actor: CurrentUser,
        class_id: int,
        expected_present_count: int,
        permissions: MonitorPermissions,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceSheet:
        now = now or now_local()
        class_info = self._classes.get_by_id(int(class_id))
        if not class_info:
            raise NotFoundError("Class not found")

        day_start, day_end = day_bounds(now.date())
        if self._attendance.find_sheet_between(class_id=class_info.class_id, start=day_start, end=day_end):
            raise SheetAlreadyExistsError()

        self._require_class_monitors(class_info.class_id, permissions)

        students = self._classes.list_enrolled_students(class_info.class_id)
        sheet_id = self._attendance.create_sheet(
            class_id=class_info.class_id,
            session_date=day_start,
            created_by=actor.id,
            expected_present_count=int(expected_present_count),
            permissions=permissions,
            notes=(notes or "").strip() or None,
            student_ids=[s.student_id for s in students],
        )
        logger.info("Attendance sheet %s created for class %s by user %s", sheet_id, class_info.class_id, actor.id)
        return self._get_sheet(sheet_id)

    def get_sheet(self, *, actor: CurrentUser, sheet_id: int) -> dict:
        sheet = self._get_sheet(sheet_id)
        return sheet.to_dict(own_student_id=self._own_student_id(actor, sheet.class_id))

    def list_for_class(
        self,
        *,
        actor: CurrentUser,
        class_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[dict]:
        if not self._classes.get_by_id(int(class_id)):
            raise NotFoundError("Class not found")

        start = end = None
        if year and month:
            start, end = month_bounds(int(year), int(month))

        own = self._own_student_id(actor, int(class_id))
        sheets = self._attendance.list_sheets(class_id=int(class_id), start=start, end=end)
        return [s.to_dict(own_student_id=own) for s in sheets]

    def admin_update(
        self,
        *,
        actor: CurrentUser,
        sheet_id: int,
        expected_present_count: Optional[int] = None,
        permissions: Optional[MonitorPermissions] = None,
        marks: Optional[dict[int, AttendanceMark]] = None,
        notes: object = _UNSET,
        now: Optional[datetime] = None,
    ) -> AttendanceSheet:
        now = now or now_local()
        sheet = self._get_sheet(sheet_id)

        if expected_present_count is not None:
            sheet = replace(sheet, expected_present_count=int(expected_present_count))
        if permissions is not None:
            if permissions.all_monitors and not permissions.admin_only:
                if not self._classes.get_by_id(sheet.class_id):
                    raise NotFoundError("Class not found")
                if not self._classes.list_monitor_ids(sheet.class_id):
                    raise ValidationError(
                        'This class has no monitors. Please add monitors first or select "Admin Only" permission.'
                    )
            sheet = replace(sheet, permissions=permissions)
        if marks:
            sheet = sheet.with_marks(marks, marked_by=actor.id, marked_at=now)
        if notes is not _UNSET:
            sheet = replace(sheet, notes=(str(notes or "").strip() or None))

        sheet = replace(sheet, status=SheetStatus.COMPLETED)
        if not self._attendance.save_sheet(sheet):
            raise NotFoundError("Attendance sheet not found")
        logger.info("Attendance sheet %s updated by user %s", sheet.sheet_id, actor.id)
        return self._get_sheet(sheet.sheet_id)

    def monitor_update(
        self,
        *,
        actor: CurrentUser,
        sheet_id: int,
        marks: dict[int, AttendanceMark],
        now: Optional[datetime] = None,
    ) -> AttendanceSheet:
        now = now or now_local()
        monitor = self._students.get_by_user_id(actor.id)
        if not monitor:
            raise NotFoundError("Monitor profile not found")

        sheet = self._get_sheet(sheet_id)
        if monitor.student_id not in self._classes.list_monitor_ids(sheet.class_id):
            raise AuthorizationError("You are not a monitor of this class")

        lock = sheet.monitor_update
        if lock.is_locked:
            if lock.updated_by == monitor.student_id:
                raise AuthorizationError(
                    "You have already updated this attendance sheet. Each monitor can only update once."
                )
            raise AuthorizationError("Another monitor has already updated this attendance sheet")

        if not sheet.permissions.allows(monitor.student_id):
            if sheet.permissions.admin_only:
                raise AuthorizationError("Only administrators may update this attendance sheet")
            raise AuthorizationError("You do not have permission to update this attendance sheet")

        known = {e.student_id for e in sheet.entries}
        applied = {sid: mark for sid, mark in marks.items() if sid in known}
        present = sum(1 for mark in applied.values() if mark == AttendanceMark.PRESENT)
        if present != sheet.expected_present_count:
            raise ValidationError(
                f"Present count ({present}) does not match admin's expected count "
                f"({sheet.expected_present_count}). Please check carefully and correct the attendance sheet."
            )

        sheet = sheet.with_marks(applied, marked_by=actor.id, marked_at=now)
        sheet = replace(
            sheet,
            status=SheetStatus.UPDATED,
            monitor_update=MonitorUpdate(
                updated_by=monitor.student_id,
                updated_at=now,
                present_count=present,
                is_locked=True,
            ),
        )
        self._attendance.save_sheet(sheet)
        logger.info("Attendance sheet %s filled in by monitor %s", sheet.sheet_id, monitor.student_id)
        return self._get_sheet(sheet.sheet_id)

    def delete_sheet(self, *, sheet_id: int) -> None:
        if not self._attendance.delete_sheet(int(sheet_id)):
            raise NotFoundError("Attendance sheet not found")
        logger.info("Attendance sheet %s deleted", sheet_id)

    def student_stats(
        self,
        *,
        student_id: int,
        class_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> StudentAttendanceStats:
        now = now or now_local()
        if not self._students.get_by_id(int(student_id)):
            raise NotFoundError("Student not found")
        if not self._classes.get_by_id(int(class_id)):
            raise NotFoundError("Class not found")
        return self._aggregator.student_stats(
            int(student_id),
            int(class_id),
            int(year or now.year),
            int(month or now.month),
        )

    def analytics(self, *, year: Optional[int] = None, now: Optional[datetime] = None) -> AttendanceAnalytics:
        now = now or now_local()
        return self._aggregator.analytics(int(year or now.year))
