from datetime import datetime

import pytest

from tuition_portal.attendance.model import AttendanceSummary
from tuition_portal.core.enums import AttendanceMark
from tuition_portal.core.exceptions import DataUnavailableError

P = AttendanceMark.PRESENT
A = AttendanceMark.ABSENT


def test_month_without_sheets_is_zero(aggregator):
    assert aggregator.calculate_attendance(1, 1, 2025, 3) == AttendanceSummary(0, 0)


def test_counts_present_sheets_and_total_sessions(attendance_repo, aggregator):
    attendance_repo.add_sheet(1, datetime(2025, 3, 3, 8), {1: P, 2: A})
    attendance_repo.add_sheet(1, datetime(2025, 3, 10, 8), {1: A, 2: P})
    attendance_repo.add_sheet(1, datetime(2025, 3, 17, 8), {1: P, 2: P})

    assert aggregator.calculate_attendance(1, 1, 2025, 3) == AttendanceSummary(present_days=2, total_class_days=3)


def test_sheet_without_entry_counts_toward_total_only(attendance_repo, aggregator):
    attendance_repo.add_sheet(1, datetime(2025, 3, 3, 8), {2: P})
    attendance_repo.add_sheet(1, datetime(2025, 3, 4, 8), {1: P})

    assert aggregator.calculate_attendance(1, 1, 2025, 3) == AttendanceSummary(present_days=1, total_class_days=2)


def test_month_bounds_include_last_day_and_exclude_neighbours(attendance_repo, aggregator):
    attendance_repo.add_sheet(1, datetime(2025, 2, 28, 23, 0), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 3, 1, 0, 0), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 3, 31, 23, 59, 59), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 4, 1, 0, 0), {1: P})

    assert aggregator.calculate_attendance(1, 1, 2025, 3) == AttendanceSummary(present_days=2, total_class_days=2)


def test_other_classes_are_ignored(attendance_repo, aggregator):
    attendance_repo.add_sheet(2, datetime(2025, 3, 3, 8), {1: P})

    assert aggregator.calculate_attendance(1, 1, 2025, 3) == AttendanceSummary(0, 0)


def test_storage_failure_is_reported_not_zeroed(attendance_repo, aggregator):
    attendance_repo.add_sheet(1, datetime(2025, 3, 3, 8), {1: P})
    attendance_repo.fail = True

    with pytest.raises(DataUnavailableError):
        aggregator.calculate_attendance(1, 1, 2025, 3)
    with pytest.raises(DataUnavailableError):
        aggregator.calculate_year(1, 1, 2025)


def test_year_matches_month_by_month(attendance_repo, aggregator):
    attendance_repo.add_sheet(1, datetime(2025, 1, 6, 8), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 1, 13, 8), {1: A})
    attendance_repo.add_sheet(1, datetime(2025, 6, 2, 8), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 12, 31, 18), {2: P})

    year = aggregator.calculate_year(1, 1, 2025)

    assert sorted(year) == list(range(1, 13))
    for month in range(1, 13):
        assert year[month] == aggregator.calculate_attendance(1, 1, 2025, month)
    assert year[1] == AttendanceSummary(1, 2)
    assert year[12] == AttendanceSummary(0, 1)


def test_class_month_counts_per_student(attendance_repo, aggregator):
    attendance_repo.add_sheet(1, datetime(2025, 3, 3, 8), {1: P, 2: P})
    attendance_repo.add_sheet(1, datetime(2025, 3, 10, 8), {1: P, 2: A})

    total, present = aggregator.calculate_class_month(1, 2025, 3)

    assert total == 2
    assert present == {1: 2, 2: 1}


def test_student_stats_only_counts_sheets_listing_the_student(attendance_repo, aggregator):
    attendance_repo.add_sheet(1, datetime(2025, 3, 3, 8), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 3, 10, 8), {1: A})
    attendance_repo.add_sheet(1, datetime(2025, 3, 17, 8), {1: P})
    attendance_repo.add_sheet(1, datetime(2025, 3, 24, 8), {2: P})

    stats = aggregator.student_stats(1, 1, 2025, 3)

    assert (stats.total_sheets, stats.present_count, stats.absent_count) == (3, 2, 1)
    assert stats.attendance_percentage == 67


def test_analytics_groups_by_month_and_ranks_classes(attendance_repo, aggregator):
    attendance_repo.class_names = {1: "Grade 10 - English", 2: "Grade 11 - Maths"}
    attendance_repo.add_sheet(1, datetime(2025, 3, 3, 8), {1: P, 2: A})
    attendance_repo.add_sheet(1, datetime(2025, 3, 10, 8), {1: P, 2: P})
    attendance_repo.add_sheet(2, datetime(2025, 4, 1, 8), {3: P})
    attendance_repo.add_sheet(2, datetime(2025, 4, 2, 8), {})
    attendance_repo.add_sheet(1, datetime(2024, 12, 31, 8), {1: P})

    result = aggregator.analytics(2025).to_dict()

    assert result["year"] == 2025
    assert result["monthlyData"] == [
        {"month": 3, "totalSheets": 2, "totalStudents": 4, "totalPresent": 3},
        {"month": 4, "totalSheets": 2, "totalStudents": 1, "totalPresent": 1},
    ]
    assert [(c["classId"], c["className"], c["averageAttendance"]) for c in result["classWiseData"]] == [
        (1, "Grade 10 - English", 75.0),
        (2, "Grade 11 - Maths", 50.0),
    ]
    assert result["classWiseData"][0]["totalPresent"] == 3


def test_analytics_for_a_year_without_sheets_is_empty(aggregator):
    result = aggregator.analytics(2030)

    assert result.monthly == () and result.by_class == ()


def test_analytics_storage_failure_is_reported(attendance_repo, aggregator):
    attendance_repo.fail = True

    with pytest.raises(DataUnavailableError):
        aggregator.analytics(2025)
