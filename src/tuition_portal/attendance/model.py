from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import iso
from ..core.enums import AttendanceMark, SheetStatus


@dataclass(frozen=True)
class AttendanceEntry:
    """One student's mark on a sheet."""

    student_id: int
    status: AttendanceMark = AttendanceMark.ABSENT
    marked_by: Optional[int] = None
    marked_at: Optional[datetime] = None
    student_name: Optional[str] = None
    student_code: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "student": {"id": self.student_id, "fullName": self.student_name, "studentId": self.student_code},
            "status": self.status.value,
            "markedBy": self.marked_by,
            "markedAt": iso(self.marked_at),
        }


@dataclass(frozen=True)
class MonitorPermissions:
    all_monitors: bool = False
    admin_only: bool = False
    selected_monitors: frozenset[int] = field(default_factory=frozenset)

    def allows(self, student_id: int) -> bool:
        if self.admin_only:
            return False
        if self.all_monitors:
            return True
        return int(student_id) in self.selected_monitors

    def to_dict(self) -> dict:
        return {
            "allMonitors": self.all_monitors,
            "adminOnly": self.admin_only,
            "selectedMonitors": sorted(self.selected_monitors),
        }


@dataclass(frozen=True)
class MonitorUpdate:
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None
    present_count: Optional[int] = None
    is_locked: bool = False


@dataclass(frozen=True)
class AttendanceSheet:
    """Attendance for one class session."""

    sheet_id: int
    class_id: int
    session_date: datetime
    created_by: int
    expected_present_count: int
    permissions: MonitorPermissions
    entries: tuple[AttendanceEntry, ...]
    status: SheetStatus = SheetStatus.DRAFT
    notes: Optional[str] = None
    monitor_update: MonitorUpdate = field(default_factory=MonitorUpdate)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def entry_for(self, student_id: int) -> Optional[AttendanceEntry]:
        for e in self.entries:
            if e.student_id == int(student_id):
                return e
        return None

    @property
    def present_count(self) -> int:
        return sum(1 for e in self.entries if e.status == AttendanceMark.PRESENT)

    def with_marks(self, marks: dict[int, AttendanceMark], *, marked_by: int, marked_at: datetime) -> "AttendanceSheet":
        """Apply marks to existing entries; unknown student ids are ignored."""
        entries = tuple(
            replace(e, status=marks[e.student_id], marked_by=marked_by, marked_at=marked_at) if e.student_id in marks else e
            for e in self.entries
        )
        return replace(self, entries=entries)

    def to_dict(self, *, own_student_id: Optional[int] = None) -> dict:
        """Serialize; with ``own_student_id`` only that student's entry is shown."""
        entries = self.entries
        if own_student_id is not None:
            entries = tuple(e for e in entries if e.student_id == int(own_student_id))

        out = {
            "id": self.sheet_id,
            "classId": self.class_id,
            "date": iso(self.session_date),
            "createdBy": self.created_by,
            "status": self.status.value,
            "notes": self.notes,
            "studentAttendance": [e.to_dict() for e in entries],
            "actualPresentCount": self.present_count,
            "totalStudents": len(self.entries),
            "monitorUpdate": {
                "updatedBy": self.monitor_update.updated_by,
                "updatedAt": iso(self.monitor_update.updated_at),
                "markedPresentCount": self.monitor_update.present_count,
                "isLocked": self.monitor_update.is_locked,
            },
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if own_student_id is None:
            out["expectedPresentCount"] = self.expected_present_count
            out["monitorPermissions"] = self.permissions.to_dict()
        return out


@dataclass(frozen=True)
class SheetMark:
    """A sheet of the class in a period and the student's mark on it (None if no entry)."""

    sheet_id: int
    session_date: datetime
    status: Optional[AttendanceMark]


@dataclass(frozen=True)
class AttendanceSummary:
    present_days: int = 0
    total_class_days: int = 0

    def to_dict(self) -> dict:
        return {"presentDays": self.present_days, "totalClassDays": self.total_class_days}


@dataclass(frozen=True)
class StudentAttendanceStats:
    class_id: int
    year: int
    month: int
    total_sheets: int
    present_count: int
    absent_count: int

    @property
    def attendance_percentage(self) -> int:
        if not self.total_sheets:
            return 0
        return int(self.present_count * 100 / self.total_sheets + 0.5)

    def to_dict(self) -> dict:
        return {
            "totalSheets": self.total_sheets,
            "presentCount": self.present_count,
            "absentCount": self.absent_count,
            "attendancePercentage": self.attendance_percentage,
            "month": self.month,
            "year": self.year,
            "classId": self.class_id,
        }


@dataclass(frozen=True)
class SheetTally:
    """Entry counts of one sheet, for dashboard analytics."""

    sheet_id: int
    class_id: int
    class_name: str
    session_date: datetime
    total_students: int
    present_count: int

    @property
    def percentage(self) -> float:
        if not self.total_students:
            return 0.0
        return self.present_count * 100 / self.total_students


@dataclass(frozen=True)
class MonthlyAttendance:
    month: int
    total_sheets: int
    total_students: int
    total_present: int

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "totalSheets": self.total_sheets,
            "totalStudents": self.total_students,
            "totalPresent": self.total_present,
        }


@dataclass(frozen=True)
class ClassAttendance:
    class_id: int
    class_name: str
    total_sheets: int
    total_students: int
    total_present: int
    average_attendance: float

    def to_dict(self) -> dict:
        return {
            "classId": self.class_id,
            "className": self.class_name,
            "totalSheets": self.total_sheets,
            "totalStudents": self.total_students,
            "totalPresent": self.total_present,
            "averageAttendance": self.average_attendance,
        }


@dataclass(frozen=True)
class AttendanceAnalytics:
    year: int
    monthly: tuple[MonthlyAttendance, ...]
    by_class: tuple[ClassAttendance, ...]

    def to_dict(self) -> dict:
        return {
            "monthlyData": [m.to_dict() for m in self.monthly],
            "classWiseData": [c.to_dict() for c in self.by_class],
            "year": self.year,
        }
