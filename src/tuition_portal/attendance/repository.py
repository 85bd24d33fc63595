from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import AttendanceSheet, MonitorPermissions, SheetMark, SheetTally


class AttendanceRepository(Protocol):
    # Aggregation reads
    def list_student_marks(
        self,
        *,
        class_id: int,
        student_id: int,
        start: datetime,
        end: datetime,
    ) -> Sequence[SheetMark]:
        """Every sheet of the class in [start, end] with the student's mark, oldest first."""

        raise NotImplementedError

    def count_present_by_student(
        self,
        *,
        class_id: int,
        start: datetime,
        end: datetime,
    ) -> tuple[int, dict[int, int]]:
        """Return (number of sheets, present count per student id) for the period."""

        raise NotImplementedError

    def list_sheet_tallies(self, *, start: datetime, end: datetime) -> Sequence[SheetTally]:
        """Entry and present counts of every sheet in [start, end], oldest first."""

        raise NotImplementedError

    # Sheets
    def get_sheet(self, sheet_id: int) -> Optional[AttendanceSheet]:
        raise NotImplementedError

    def find_sheet_between(self, *, class_id: int, start: datetime, end: datetime) -> Optional[int]:
        raise NotImplementedError

    def list_sheets(
        self,
        *,
        class_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Sequence[AttendanceSheet]:
        """Newest first."""

        raise NotImplementedError

    def create_sheet(
        self,
        *,
        class_id: int,
        session_date: datetime,
        created_by: int,
        expected_present_count: int,
        permissions: MonitorPermissions,
        notes: Optional[str],
        student_ids: Sequence[int],
    ) -> int:
        raise NotImplementedError

    def save_sheet(self, sheet: AttendanceSheet) -> bool:
        """Persist header fields, monitor selection and entry marks."""

        raise NotImplementedError

    def delete_sheet(self, sheet_id: int) -> bool:
        raise NotImplementedError
