from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

import mysql.connector
import pytest

from tuition_portal.attendance.aggregator import AttendanceAggregator
from tuition_portal.attendance.model import (
    AttendanceEntry,
    AttendanceSheet,
    MonitorPermissions,
    SheetMark,
    SheetTally,
)
from tuition_portal.classes.model import ClassInfo
from tuition_portal.core.enums import AttendanceMark, PaymentStatus
from tuition_portal.core.exceptions import PaymentAlreadyExistsError
from tuition_portal.payments.model import AdminAction, NewPayment, Payment, PaymentFilter
from tuition_portal.students.model import Student


def make_student(student_id: int, *, user_id: Optional[int] = None, free=()) -> Student:
    return Student(
        student_id=student_id,
        user_id=user_id,
        student_code=f"ST{student_id:04d}",
        first_name=f"First{student_id}",
        last_name=f"Last{student_id}",
        surname=f"Surname{student_id}",
        email=f"student{student_id}@tuition.local",
        contact_number="0770000000",
        free_class_ids=frozenset(free),
    )


def make_class(class_id: int = 1, *, fee: float = 2000.0, free: bool = False) -> ClassInfo:
    return ClassInfo(
        class_id=class_id,
        class_type="Normal",
        grade="Grade 10",
        category="English",
        monthly_fee=fee,
        is_free_class=free,
    )


class FakeStudents:
    def __init__(self, *students: Student):
        self._by_id = {s.student_id: s for s in students}

    def add(self, student: Student) -> None:
        self._by_id[student.student_id] = student

    def get_by_id(self, student_id):
        return self._by_id.get(int(student_id))

    def get_by_user_id(self, user_id):
        for s in self._by_id.values():
            if s.user_id == int(user_id):
                return s
        return None


class FakeClasses:
    def __init__(self, *classes: ClassInfo):
        self._by_id = {c.class_id: c for c in classes}
        self.enrolled: dict[int, list[Student]] = {}
        self.monitors: dict[int, set[int]] = {}

    def get_by_id(self, class_id):
        return self._by_id.get(int(class_id))

    def list_enrolled_students(self, class_id):
        return list(self.enrolled.get(int(class_id), []))

    def list_monitor_ids(self, class_id):
        return set(self.monitors.get(int(class_id), set()))


class FakeAttendanceRepo:
    def __init__(self):
        self.sheets: dict[int, AttendanceSheet] = {}
        self._next_id = 1
        self.fail = False
        self.saved: list[AttendanceSheet] = []
        self.class_names: dict[int, str] = {}

    def _check(self):
        if self.fail:
            raise mysql.connector.Error("connection lost")

    def add_sheet(self, class_id: int, when: datetime, marks: dict[int, AttendanceMark], **kwargs) -> AttendanceSheet:
        sheet = AttendanceSheet(
            sheet_id=self._next_id,
            class_id=class_id,
            session_date=when,
            created_by=kwargs.pop("created_by", 1),
            expected_present_count=kwargs.pop("expected_present_count", 0),
            permissions=kwargs.pop("permissions", MonitorPermissions(all_monitors=True)),
            entries=tuple(AttendanceEntry(student_id=sid, status=mark) for sid, mark in marks.items()),
            **kwargs,
        )
        self.sheets[sheet.sheet_id] = sheet
        self._next_id += 1
        return sheet

    def _in_range(self, class_id, start, end):
        return sorted(
            (s for s in self.sheets.values() if s.class_id == int(class_id) and start <= s.session_date <= end),
            key=lambda s: s.session_date,
        )

    def list_student_marks(self, *, class_id, student_id, start, end):
        self._check()
        out = []
        for sheet in self._in_range(class_id, start, end):
            entry = sheet.entry_for(student_id)
            out.append(SheetMark(sheet.sheet_id, sheet.session_date, entry.status if entry else None))
        return out

    def count_present_by_student(self, *, class_id, start, end):
        self._check()
        sheets = self._in_range(class_id, start, end)
        present: dict[int, int] = {}
        for sheet in sheets:
            for e in sheet.entries:
                if e.status == AttendanceMark.PRESENT:
                    present[e.student_id] = present.get(e.student_id, 0) + 1
        return len(sheets), present

    def list_sheet_tallies(self, *, start, end):
        self._check()
        sheets = sorted(
            (s for s in self.sheets.values() if start <= s.session_date <= end),
            key=lambda s: s.session_date,
        )
        return [
            SheetTally(
                sheet_id=s.sheet_id,
                class_id=s.class_id,
                class_name=self.class_names.get(s.class_id, f"Class {s.class_id}"),
                session_date=s.session_date,
                total_students=len(s.entries),
                present_count=s.present_count,
            )
            for s in sheets
        ]

    def get_sheet(self, sheet_id):
        self._check()
        return self.sheets.get(int(sheet_id))

    def find_sheet_between(self, *, class_id, start, end):
        sheets = self._in_range(class_id, start, end)
        return sheets[0].sheet_id if sheets else None

    def list_sheets(self, *, class_id, start=None, end=None):
        sheets = [s for s in self.sheets.values() if s.class_id == int(class_id)]
        if start is not None and end is not None:
            sheets = [s for s in sheets if start <= s.session_date <= end]
        return sorted(sheets, key=lambda s: s.session_date, reverse=True)

    def create_sheet(self, *, class_id, session_date, created_by, expected_present_count, permissions, notes, student_ids):
        sheet = self.add_sheet(
            class_id,
            session_date,
            {sid: AttendanceMark.ABSENT for sid in student_ids},
            created_by=created_by,
            expected_present_count=expected_present_count,
            permissions=permissions,
            notes=notes,
        )
        return sheet.sheet_id

    def save_sheet(self, sheet):
        if sheet.sheet_id not in self.sheets:
            return False
        self.sheets[sheet.sheet_id] = sheet
        self.saved.append(sheet)
        return True

    def delete_sheet(self, sheet_id):
        return self.sheets.pop(int(sheet_id), None) is not None


class FakePayments:
    def __init__(self, students: FakeStudents, classes: FakeClasses):
        self._students = students
        self._classes = classes
        self.rows: dict[int, Payment] = {}
        self._next_id = 1
        self._tick = 0

    def _populate(self, p: Payment) -> Payment:
        return replace(p, student=self._students.get_by_id(p.student_id), class_info=self._classes.get_by_id(p.class_id))

    def insert(self, payment: NewPayment) -> int:
        for p in self.rows.values():
            if (p.student_id, p.class_id, p.year, p.month) == (
                payment.student_id, payment.class_id, payment.year, payment.month
            ):
                raise PaymentAlreadyExistsError()
        self._tick += 1
        pid = self._next_id
        self._next_id += 1
        self.rows[pid] = Payment(
            payment_id=pid,
            student_id=payment.student_id,
            class_id=payment.class_id,
            year=payment.year,
            month=payment.month,
            amount=payment.amount,
            receipt_url=payment.receipt_url,
            receipt_public_id=payment.receipt_public_id,
            additional_note=payment.additional_note,
            status=PaymentStatus.PENDING,
            attendance=payment.attendance,
            created_at=datetime(2025, 1, 1, 9, 0, self._tick % 60),
        )
        return pid

    def get(self, payment_id):
        p = self.rows.get(int(payment_id))
        return self._populate(p) if p else None

    def get_owned(self, payment_id, student_id):
        p = self.get(payment_id)
        return p if p and p.student_id == int(student_id) else None

    def _newest_first(self, items):
        return [self._populate(p) for p in sorted(items, key=lambda p: p.payment_id, reverse=True)]

    def list_for_student_year(self, *, student_id, class_id, year):
        items = [p for p in self.rows.values() if (p.student_id, p.class_id, p.year) == (student_id, class_id, year)]
        return [self._populate(p) for p in sorted(items, key=lambda p: p.month)]

    def list_for_class_month(self, *, class_id, year, month):
        return self._newest_first(p for p in self.rows.values() if (p.class_id, p.year, p.month) == (class_id, year, month))

    def list_for_student(self, student_id):
        return self._newest_first(p for p in self.rows.values() if p.student_id == int(student_id))

    def search(self, criteria: PaymentFilter, *, offset, limit):
        items = [
            p
            for p in self.rows.values()
            if (criteria.status is None or p.status == criteria.status)
            and (criteria.class_id is None or p.class_id == criteria.class_id)
            and (criteria.month is None or p.month == criteria.month)
            and (criteria.year is None or p.year == criteria.year)
        ]
        ordered = self._newest_first(items)
        return ordered[offset : offset + limit], len(items)

    def update_receipt(self, *, payment_id, receipt_url, receipt_public_id, additional_note):
        p = self.rows.get(int(payment_id))
        if not p:
            return False
        self.rows[p.payment_id] = replace(
            p, receipt_url=receipt_url, receipt_public_id=receipt_public_id, additional_note=additional_note
        )
        return True

    def set_status(self, *, payment_id, status, action: AdminAction):
        return self.bulk_set_status(payment_ids=[payment_id], status=status, action=action) > 0

    def bulk_set_status(self, *, payment_ids, status, action: AdminAction):
        modified = 0
        for pid in payment_ids:
            p = self.rows.get(int(pid))
            if p:
                self.rows[p.payment_id] = replace(p, status=status, admin_action=action)
                modified += 1
        return modified

    def delete(self, payment_id):
        return self.rows.pop(int(payment_id), None) is not None


@pytest.fixture
def fixed_now():
    return datetime(2025, 4, 15, 10, 0, 0)


@pytest.fixture
def students():
    return FakeStudents(make_student(1, user_id=101), make_student(2, user_id=102), make_student(3, user_id=103))


@pytest.fixture
def classes(students):
    repo = FakeClasses(make_class(1, fee=2000.0), make_class(2, fee=0.0, free=True))
    repo.enrolled[1] = [students.get_by_id(1), students.get_by_id(2), students.get_by_id(3)]
    repo.monitors[1] = {2}
    return repo


@pytest.fixture
def attendance_repo():
    return FakeAttendanceRepo()


@pytest.fixture
def aggregator(attendance_repo):
    return AttendanceAggregator(attendance_repo)


@pytest.fixture
def payments_repo(students, classes):
    return FakePayments(students, classes)


class FakeCursor:
    def __init__(self, error: Optional[Exception] = None, lastrowid: int = 1):
        self._error = error
        self.lastrowid = lastrowid
        self.rowcount = 0
        self.statements: list[str] = []
        self.closed = False

    def execute(self, sql, params=None):
        self.statements.append(" ".join(sql.split()))
        if self._error is not None:
            raise self._error
        self.rowcount = 1

    def executemany(self, sql, rows):
        self.statements.append(" ".join(sql.split()))
        self.rowcount = len(rows)

    def fetchone(self):
        return None

    def fetchall(self):
        return []

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, cursor: FakeCursor):
        self._cursor = cursor
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, dictionary=True):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class FakeConnectionFactory:
    """Hands out one connection per call, all sharing the given cursor."""

    def __init__(self, cursor: FakeCursor):
        self.cursor = cursor
        self.connections: list[FakeConnection] = []

    def connect(self, *, with_database: bool = True):
        conn = FakeConnection(self.cursor)
        self.connections.append(conn)
        return conn


@pytest.fixture
def make_conn_factory():
    def _make(error: Optional[Exception] = None, *, lastrowid: int = 1) -> FakeConnectionFactory:
        return FakeConnectionFactory(FakeCursor(error, lastrowid=lastrowid))

    return _make
