"""Attendance counts that drive monthly fee liability."""
from __future__ import annotations

import logging

import mysql.connector

from ..common.datetime_utils import month_bounds
from ..core.enums import AttendanceMark
from ..core.exceptions import DataUnavailableError
from .model import (
    AttendanceAnalytics,
    AttendanceSummary,
    ClassAttendance,
    MonthlyAttendance,
    StudentAttendanceStats,
)
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceAggregator:
    def __init__(self, attendance: AttendanceRepository):
        self._attendance = attendance

    def calculate_attendance(self, student_id: int, class_id: int, year: int, month: int) -> AttendanceSummary:
        """Count the class sessions held in the month and those the student attended.

        A sheet without an entry for the student counts as held but not attended.
        Storage failures raise ``DataUnavailableError`` instead of reporting zeroes.
        """
        start, end = month_bounds(year, month)
        try:
            marks = self._attendance.list_student_marks(
                class_id=int(class_id), student_id=int(student_id), start=start, end=end
            )
        except mysql.connector.Error as e:
            logger.error(
                "Attendance lookup failed (student=%s class=%s %04d-%02d): %s",
                student_id, class_id, int(year), int(month), e,
            )
            raise DataUnavailableError("Attendance data is temporarily unavailable") from e

        present = sum(1 for m in marks if m.status == AttendanceMark.PRESENT)
        return AttendanceSummary(present_days=present, total_class_days=len(marks))

    def calculate_year(self, student_id: int, class_id: int, year: int) -> dict[int, AttendanceSummary]:
        """Monthly summaries for months 1..12, from a single read."""
        start, _ = month_bounds(year, 1)
        _, end = month_bounds(year, 12)
        try:
            marks = self._attendance.list_student_marks(
                class_id=int(class_id), student_id=int(student_id), start=start, end=end
            )
        except mysql.connector.Error as e:
            logger.error("Attendance lookup failed (student=%s class=%s %04d): %s", student_id, class_id, int(year), e)
            raise DataUnavailableError("Attendance data is temporarily unavailable") from e

        totals = {m: 0 for m in range(1, 13)}
        present = {m: 0 for m in range(1, 13)}
        for mark in marks:
            month = mark.session_date.month
            totals[month] += 1
            if mark.status == AttendanceMark.PRESENT:
                present[month] += 1

        return {m: AttendanceSummary(present_days=present[m], total_class_days=totals[m]) for m in range(1, 13)}

    def calculate_class_month(self, class_id: int, year: int, month: int) -> tuple[int, dict[int, int]]:
        """Sessions held in the month and present days keyed by student id."""
        start, end = month_bounds(year, month)
        try:
            return self._attendance.count_present_by_student(class_id=int(class_id), start=start, end=end)
        except mysql.connector.Error as e:
            logger.error("Class attendance lookup failed (class=%s %04d-%02d): %s", class_id, int(year), int(month), e)
            raise DataUnavailableError("Attendance data is temporarily unavailable") from e

    def student_stats(self, student_id: int, class_id: int, year: int, month: int) -> StudentAttendanceStats:
        """Counts over the sheets that actually list the student."""
        start, end = month_bounds(year, month)
        try:
            marks = self._attendance.list_student_marks(
                class_id=int(class_id), student_id=int(student_id), start=start, end=end
            )
        except mysql.connector.Error as e:
            logger.error("Attendance stats lookup failed (student=%s class=%s): %s", student_id, class_id, e)
            raise DataUnavailableError("Attendance data is temporarily unavailable") from e

        listed = [m for m in marks if m.status is not None]
        present = sum(1 for m in listed if m.status == AttendanceMark.PRESENT)
        return StudentAttendanceStats(
            class_id=int(class_id),
            year=int(year),
            month=int(month),
            total_sheets=len(listed),
            present_count=present,
            absent_count=len(listed) - present,
        )

    def analytics(self, year: int) -> AttendanceAnalytics:
        """Dashboard totals for a year, per month and per class.

        Months and classes without sheets are left out. Classes are ordered by
        their average per-sheet attendance percentage, highest first.
        """
        start, _ = month_bounds(year, 1)
        _, end = month_bounds(year, 12)
        try:
            tallies = self._attendance.list_sheet_tallies(start=start, end=end)
        except mysql.connector.Error as e:
            logger.error("Attendance analytics lookup failed (%04d): %s", int(year), e)
            raise DataUnavailableError("Attendance data is temporarily unavailable") from e

        months: dict[int, list[int]] = {}
        classes: dict[int, dict] = {}
        for t in tallies:
            m = months.setdefault(t.session_date.month, [0, 0, 0])
            m[0] += 1
            m[1] += t.total_students
            m[2] += t.present_count

            c = classes.setdefault(t.class_id, {"name": t.class_name, "sheets": 0, "students": 0, "present": 0, "pct": 0.0})
            c["sheets"] += 1
            c["students"] += t.total_students
            c["present"] += t.present_count
            c["pct"] += t.percentage

        monthly = tuple(
            MonthlyAttendance(month=month, total_sheets=s, total_students=n, total_present=p)
            for month, (s, n, p) in sorted(months.items())
        )
        by_class = sorted(
            (
                ClassAttendance(
                    class_id=class_id,
                    class_name=c["name"],
                    total_sheets=c["sheets"],
                    total_students=c["students"],
                    total_present=c["present"],
                    average_attendance=round(c["pct"] / c["sheets"], 2),
                )
                for class_id, c in classes.items()
            ),
            key=lambda c: (-c.average_attendance, c.class_id),
        )
        return AttendanceAnalytics(year=int(year), monthly=monthly, by_class=tuple(by_class))
