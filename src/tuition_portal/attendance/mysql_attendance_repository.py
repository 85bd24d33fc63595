from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..core.enums import AttendanceMark, SheetStatus
from ..core.exceptions import SheetAlreadyExistsError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key
from .model import AttendanceEntry, AttendanceSheet, MonitorPermissions, MonitorUpdate, SheetMark, SheetTally
from .repository import AttendanceRepository

_SHEET_COLUMNS = """
    sheet_id, class_id, session_date, created_by, expected_present_count,
    all_monitors, admin_only, status, notes,
    monitor_updated_by, monitor_updated_at, monitor_present_count, monitor_locked,
    created_at, updated_at
"""


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Aggregation --------
    def list_student_marks(self, *, class_id: int, student_id: int, start: datetime, end: datetime) -> Sequence[SheetMark]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.sheet_id, a.session_date, e.status
                FROM attendance_sheets a
                LEFT JOIN attendance_entries e
                       ON e.sheet_id = a.sheet_id AND e.student_id = %s
                WHERE a.class_id = %s AND a.session_date BETWEEN %s AND %s
                ORDER BY a.session_date
                """,
                (int(student_id), int(class_id), start, end),
            )
            return [
                SheetMark(
                    sheet_id=int(r["sheet_id"]),
                    session_date=r["session_date"],
                    status=AttendanceMark(r["status"]) if r.get("status") else None,
                )
                for r in fetchall(cur)
            ]

    def count_present_by_student(self, *, class_id: int, start: datetime, end: datetime) -> tuple[int, dict[int, int]]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS total
                FROM attendance_sheets
                WHERE class_id = %s AND session_date BETWEEN %s AND %s
                """,
                (int(class_id), start, end),
            )
            total = int((fetchone(cur) or {}).get("total") or 0)

            cur.execute(
                """
                SELECT e.student_id, COUNT(*) AS present_days
                FROM attendance_sheets a
                JOIN attendance_entries e ON e.sheet_id = a.sheet_id
                WHERE a.class_id = %s AND a.session_date BETWEEN %s AND %s
                  AND e.status = %s
                GROUP BY e.student_id
                """,
                (int(class_id), start, end, AttendanceMark.PRESENT.value),
            )
            present = {int(r["student_id"]): int(r["present_days"]) for r in fetchall(cur)}
            return total, present

    def list_sheet_tallies(self, *, start: datetime, end: datetime) -> Sequence[SheetTally]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.sheet_id, a.class_id, a.session_date, c.grade, c.category,
                       COUNT(e.student_id) AS total_students,
                       COALESCE(SUM(e.status = %s), 0) AS present_count
                FROM attendance_sheets a
                JOIN classes c ON c.class_id = a.class_id
                LEFT JOIN attendance_entries e ON e.sheet_id = a.sheet_id
                WHERE a.session_date BETWEEN %s AND %s
                GROUP BY a.sheet_id, a.class_id, a.session_date, c.grade, c.category
                ORDER BY a.session_date
                """,
                (AttendanceMark.PRESENT.value, start, end),
            )
            return [
                SheetTally(
                    sheet_id=int(r["sheet_id"]),
                    class_id=int(r["class_id"]),
                    class_name=f"{r['grade']} - {r['category']}",
                    session_date=r["session_date"],
                    total_students=int(r["total_students"] or 0),
                    present_count=int(r["present_count"] or 0),
                )
                for r in fetchall(cur)
            ]

    # -------- Sheets --------
    def _load(self, cur, where: str, params: tuple) -> list[AttendanceSheet]:
        cur.execute(
            f"SELECT {_SHEET_COLUMNS} FROM attendance_sheets WHERE {where} ORDER BY session_date DESC",
            params,
        )
        headers = fetchall(cur)
        if not headers:
            return []

        ids = [int(h["sheet_id"]) for h in headers]
        placeholders = in_clause(ids)

        cur.execute(
            f"SELECT sheet_id, student_id FROM attendance_sheet_monitors WHERE sheet_id IN ({placeholders})",
            tuple(ids),
        )
        monitors: dict[int, set[int]] = {}
        for r in fetchall(cur):
            monitors.setdefault(int(r["sheet_id"]), set()).add(int(r["student_id"]))

        cur.execute(
            f"""
            SELECT e.sheet_id, e.student_id, e.status, e.marked_by, e.marked_at,
                   s.first_name, s.last_name, s.student_code
            FROM attendance_entries e
            JOIN students s ON s.student_id = e.student_id
            WHERE e.sheet_id IN ({placeholders})
            ORDER BY s.first_name, s.last_name
            """,
            tuple(ids),
        )
        entries: dict[int, list[AttendanceEntry]] = {}
        for r in fetchall(cur):
            entries.setdefault(int(r["sheet_id"]), []).append(
                AttendanceEntry(
                    student_id=int(r["student_id"]),
                    status=AttendanceMark(r["status"]),
                    marked_by=r.get("marked_by"),
                    marked_at=r.get("marked_at"),
                    student_name=f"{r['first_name']} {r['last_name']}",
                    student_code=r["student_code"],
                )
            )

        out: list[AttendanceSheet] = []
        for h in headers:
            sid = int(h["sheet_id"])
            out.append(
                AttendanceSheet(
                    sheet_id=sid,
                    class_id=int(h["class_id"]),
                    session_date=h["session_date"],
                    created_by=int(h["created_by"]),
                    expected_present_count=int(h["expected_present_count"]),
                    permissions=MonitorPermissions(
                        all_monitors=bool(h["all_monitors"]),
                        admin_only=bool(h["admin_only"]),
                        selected_monitors=frozenset(monitors.get(sid, set())),
                    ),
                    entries=tuple(entries.get(sid, [])),
                    status=SheetStatus(h["status"]),
                    notes=h.get("notes"),
                    monitor_update=MonitorUpdate(
                        updated_by=h.get("monitor_updated_by"),
                        updated_at=h.get("monitor_updated_at"),
                        present_count=h.get("monitor_present_count"),
                        is_locked=bool(h.get("monitor_locked")),
                    ),
                    created_at=h.get("created_at"),
                    updated_at=h.get("updated_at"),
                )
            )
        return out

    def get_sheet(self, sheet_id: int) -> Optional[AttendanceSheet]:
        with db_cursor(self._conn_factory) as (_, cur):
            sheets = self._load(cur, "sheet_id=%s", (int(sheet_id),))
            return sheets[0] if sheets else None

    def find_sheet_between(self, *, class_id: int, start: datetime, end: datetime) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT sheet_id FROM attendance_sheets
                WHERE class_id=%s AND session_date BETWEEN %s AND %s
                LIMIT 1
                """,
                (int(class_id), start, end),
            )
            r = fetchone(cur)
            return int(r["sheet_id"]) if r else None

    def list_sheets(
        self,
        *,
        class_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Sequence[AttendanceSheet]:
        clauses = ["class_id=%s"]
        params: list[object] = [int(class_id)]
        if start is not None and end is not None:
            clauses.append("session_date BETWEEN %s AND %s")
            params.extend([start, end])

        with db_cursor(self._conn_factory) as (_, cur):
            return self._load(cur, " AND ".join(clauses), tuple(params))

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
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_sheets(
                        class_id, session_date, created_by, expected_present_count,
                        all_monitors, admin_only, status, notes
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(class_id),
                        session_date,
                        int(created_by),
                        int(expected_present_count),
                        int(permissions.all_monitors),
                        int(permissions.admin_only),
                        SheetStatus.DRAFT.value,
                        notes,
                    ),
                )
                sheet_id = int(cur.lastrowid)

                if permissions.selected_monitors:
                    cur.executemany(
                        "INSERT INTO attendance_sheet_monitors(sheet_id, student_id) VALUES(%s,%s)",
                        [(sheet_id, int(m)) for m in sorted(permissions.selected_monitors)],
                    )
                if student_ids:
                    cur.executemany(
                        "INSERT INTO attendance_entries(sheet_id, student_id, status) VALUES(%s,%s,%s)",
                        [(sheet_id, int(s), AttendanceMark.ABSENT.value) for s in student_ids],
                    )
                return sheet_id
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise SheetAlreadyExistsError() from e
            raise

    def save_sheet(self, sheet: AttendanceSheet) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            mu = sheet.monitor_update
            cur.execute(
                """
                UPDATE attendance_sheets
                SET expected_present_count=%s, all_monitors=%s, admin_only=%s, status=%s, notes=%s,
                    monitor_updated_by=%s, monitor_updated_at=%s, monitor_present_count=%s, monitor_locked=%s
                WHERE sheet_id=%s
                """,
                (
                    int(sheet.expected_present_count),
                    int(sheet.permissions.all_monitors),
                    int(sheet.permissions.admin_only),
                    sheet.status.value,
                    sheet.notes,
                    mu.updated_by,
                    mu.updated_at,
                    mu.present_count,
                    int(mu.is_locked),
                    int(sheet.sheet_id),
                ),
            )
            if cur.rowcount == 0:
                cur.execute("SELECT 1 FROM attendance_sheets WHERE sheet_id=%s", (int(sheet.sheet_id),))
                if not fetchone(cur):
                    return False

            cur.execute("DELETE FROM attendance_sheet_monitors WHERE sheet_id=%s", (int(sheet.sheet_id),))
            if sheet.permissions.selected_monitors:
                cur.executemany(
                    "INSERT INTO attendance_sheet_monitors(sheet_id, student_id) VALUES(%s,%s)",
                    [(int(sheet.sheet_id), int(m)) for m in sorted(sheet.permissions.selected_monitors)],
                )

            if not sheet.entries:
                return True
            cur.executemany(
                """
                UPDATE attendance_entries
                SET status=%s, marked_by=%s, marked_at=%s
                WHERE sheet_id=%s AND student_id=%s
                """,
                [
                    (e.status.value, e.marked_by, e.marked_at, int(sheet.sheet_id), int(e.student_id))
                    for e in sheet.entries
                ],
            )
            return True

    def delete_sheet(self, sheet_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_sheets WHERE sheet_id=%s", (int(sheet_id),))
            return cur.rowcount > 0
