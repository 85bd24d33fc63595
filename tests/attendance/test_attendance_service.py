from __future__ import annotations

from datetime import datetime

import pytest

from tuition_portal.attendance.model import MonitorPermissions, MonitorUpdate
from tuition_portal.attendance.service import AttendanceService
from tuition_portal.core.enums import AttendanceMark, Role, SheetStatus
from tuition_portal.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from tuition_portal.users.tokens import CurrentUser

ADMIN = CurrentUser(id=900, role=Role.ADMIN)
MONITOR = CurrentUser(id=102, role=Role.STUDENT)  # student 2 monitors class 1
PLAIN_STUDENT = CurrentUser(id=101, role=Role.STUDENT)

P = AttendanceMark.PRESENT
A = AttendanceMark.ABSENT


@pytest.fixture
def service(attendance_repo, classes, students, aggregator):
    return AttendanceService(attendance_repo, classes, students, aggregator)


def _create(service, fixed_now, *, expected=1, permissions=None):
    return service.create_sheet(
        actor=ADMIN,
        class_id=1,
        expected_present_count=expected,
        permissions=permissions or MonitorPermissions(all_monitors=True),
        notes="  Week 1 ",
        now=fixed_now,
    )


def test_create_sheet_marks_every_enrolled_student_absent(service, fixed_now):
    sheet = _create(service, fixed_now)

    assert sheet.status == SheetStatus.DRAFT
    assert sheet.session_date == datetime(2025, 4, 15)
    assert sheet.notes == "Week 1"
    assert {e.student_id: e.status for e in sheet.entries} == {1: A, 2: A, 3: A}


def test_only_one_sheet_per_class_per_day(service, fixed_now):
    _create(service, fixed_now)
    with pytest.raises(ConflictError):
        _create(service, fixed_now)


def test_create_checks_class_and_monitor_selection(service, classes, fixed_now):
    with pytest.raises(NotFoundError):
        service.create_sheet(
            actor=ADMIN, class_id=42, expected_present_count=0, permissions=MonitorPermissions(), now=fixed_now
        )
    with pytest.raises(ValidationError, match="at least one monitor"):
        _create(service, fixed_now, permissions=MonitorPermissions())
    with pytest.raises(ValidationError, match="not monitors of this class"):
        _create(service, fixed_now, permissions=MonitorPermissions(selected_monitors=frozenset({3})))

    classes.monitors[1] = set()
    with pytest.raises(ValidationError, match="no monitors"):
        _create(service, fixed_now)
    assert _create(service, fixed_now, permissions=MonitorPermissions(admin_only=True)).permissions.admin_only


def test_monitor_update_locks_sheet(service, fixed_now):
    sheet = _create(service, fixed_now, expected=2)

    updated = service.monitor_update(actor=MONITOR, sheet_id=sheet.sheet_id, marks={1: P, 2: P, 3: A}, now=fixed_now)

    assert updated.status == SheetStatus.UPDATED
    assert updated.monitor_update == MonitorUpdate(updated_by=2, updated_at=fixed_now, present_count=2, is_locked=True)
    assert updated.present_count == 2

    with pytest.raises(AuthorizationError, match="already updated this attendance sheet"):
        service.monitor_update(actor=MONITOR, sheet_id=sheet.sheet_id, marks={1: P, 2: P}, now=fixed_now)


def test_sheet_locked_by_another_monitor(service, classes, fixed_now):
    classes.monitors[1] = {2, 3}
    sheet = _create(service, fixed_now, expected=1)
    service.monitor_update(actor=MONITOR, sheet_id=sheet.sheet_id, marks={1: P}, now=fixed_now)

    with pytest.raises(AuthorizationError, match="Another monitor"):
        service.monitor_update(
            actor=CurrentUser(id=103, role=Role.STUDENT), sheet_id=sheet.sheet_id, marks={3: P}, now=fixed_now
        )


def test_monitor_update_rejects_count_mismatch(service, attendance_repo, fixed_now):
    sheet = _create(service, fixed_now, expected=2)

    with pytest.raises(ValidationError, match=r"Present count \(1\) does not match admin's expected count \(2\)"):
        service.monitor_update(actor=MONITOR, sheet_id=sheet.sheet_id, marks={1: P}, now=fixed_now)

    assert attendance_repo.saved == []


def test_monitor_update_requires_monitor_and_permission(service, classes, fixed_now):
    classes.monitors[1] = {2, 3}
    sheet = _create(service, fixed_now, permissions=MonitorPermissions(selected_monitors=frozenset({2})))

    with pytest.raises(AuthorizationError, match="not a monitor"):
        service.monitor_update(actor=PLAIN_STUDENT, sheet_id=sheet.sheet_id, marks={1: P}, now=fixed_now)
    with pytest.raises(AuthorizationError, match="do not have permission"):
        service.monitor_update(
            actor=CurrentUser(id=103, role=Role.STUDENT), sheet_id=sheet.sheet_id, marks={1: P}, now=fixed_now
        )


def test_admin_only_sheet_refuses_monitors(service, attendance_repo, fixed_now):
    sheet = _create(service, fixed_now, permissions=MonitorPermissions(admin_only=True))

    with pytest.raises(AuthorizationError, match="Only administrators"):
        service.monitor_update(actor=MONITOR, sheet_id=sheet.sheet_id, marks={1: P}, now=fixed_now)


def test_admin_update_completes_sheet(service, fixed_now):
    sheet = _create(service, fixed_now)

    updated = service.admin_update(
        actor=ADMIN,
        sheet_id=sheet.sheet_id,
        expected_present_count=2,
        marks={1: P, 3: P, 77: P},
        notes="",
        now=fixed_now,
    )

    assert updated.status == SheetStatus.COMPLETED
    assert updated.expected_present_count == 2
    assert updated.notes is None
    assert {e.student_id for e in updated.entries if e.status == P} == {1, 3}


def test_students_see_only_their_own_entry_unless_monitor(service, fixed_now):
    sheet = _create(service, fixed_now)

    own = service.get_sheet(actor=PLAIN_STUDENT, sheet_id=sheet.sheet_id)
    full = service.get_sheet(actor=MONITOR, sheet_id=sheet.sheet_id)

    assert [e["student"]["id"] for e in own["studentAttendance"]] == [1]
    assert "expectedPresentCount" not in own
    assert len(full["studentAttendance"]) == 3
    assert full["monitorPermissions"]["allMonitors"] is True


def test_list_for_class_filters_by_month(service, attendance_repo):
    attendance_repo.add_sheet(1, datetime(2025, 3, 3, 8), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 4, 7, 8), {1: P})

    sheets = service.list_for_class(actor=ADMIN, class_id=1, year=2025, month=4)

    assert [s["date"] for s in sheets] == ["2025-04-07T08:00:00"]


def test_delete_sheet(service, fixed_now):
    sheet = _create(service, fixed_now)
    service.delete_sheet(sheet_id=sheet.sheet_id)
    with pytest.raises(NotFoundError):
        service.delete_sheet(sheet_id=sheet.sheet_id)


def test_student_stats_defaults_to_current_month(service, attendance_repo, fixed_now):
    attendance_repo.add_sheet(1, datetime(2025, 4, 1, 8), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 4, 8, 8), {1: A})

    stats = service.student_stats(student_id=1, class_id=1, now=fixed_now)

    assert stats.to_dict()["attendancePercentage"] == 50
    assert (stats.year, stats.month) == (2025, 4)


def test_analytics_defaults_to_the_current_year(service, attendance_repo, fixed_now):
    attendance_repo.add_sheet(1, datetime(2025, 2, 3, 8), {1: P})
    attendance_repo.add_sheet(1, datetime(2024, 2, 3, 8), {1: P})

    current = service.analytics(now=fixed_now)
    last_year = service.analytics(year=2024, now=fixed_now)

    assert current.year == 2025 and [m.month for m in current.monthly] == [2]
    assert last_year.year == 2024 and last_year.monthly[0].total_present == 1
