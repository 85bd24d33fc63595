from datetime import datetime

import pytest
from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from tuition_portal.attendance.model import MonitorPermissions
from tuition_portal.attendance.mysql_attendance_repository import MySQLAttendanceRepository
from tuition_portal.core.exceptions import ConflictError, SheetAlreadyExistsError


def _create(repo: MySQLAttendanceRepository) -> int:
    return repo.create_sheet(
        class_id=1,
        session_date=datetime(2025, 4, 15),
        created_by=900,
        expected_present_count=2,
        permissions=MonitorPermissions(selected_monitors=frozenset({2})),
        notes=None,
        student_ids=[1, 2, 3],
    )


def test_create_sheet_inserts_header_monitors_and_entries(make_conn_factory):
    factory = make_conn_factory(lastrowid=8)

    assert _create(MySQLAttendanceRepository(factory)) == 8
    statements = factory.cursor.statements
    assert statements[0].startswith("INSERT INTO attendance_sheets(")
    assert statements[1].startswith("INSERT INTO attendance_sheet_monitors")
    assert statements[2].startswith("INSERT INTO attendance_entries")
    assert factory.connections[0].committed


def test_same_day_sheet_race_is_a_conflict(make_conn_factory):
    dup = IntegrityError(msg="Duplicate entry for key 'uq_sheet_class_day'", errno=errorcode.ER_DUP_ENTRY)
    factory = make_conn_factory(dup)

    with pytest.raises(SheetAlreadyExistsError) as exc:
        _create(MySQLAttendanceRepository(factory))

    assert isinstance(exc.value, ConflictError)
    assert "already exists for today" in str(exc.value)
    assert factory.connections[0].rolled_back


def test_other_integrity_errors_are_not_conflicts(make_conn_factory):
    fk = IntegrityError(msg="Cannot add or update a child row", errno=errorcode.ER_NO_REFERENCED_ROW_2)

    with pytest.raises(IntegrityError):
        _create(MySQLAttendanceRepository(make_conn_factory(fk)))
