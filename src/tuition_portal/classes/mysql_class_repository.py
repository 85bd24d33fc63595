from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..students.model import Student
from ..students.mysql_student_repository import STUDENT_COLUMNS, group_free_classes, row_to_student
from .model import ClassInfo
from .repository import ClassRepository


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, class_id: int) -> Optional[ClassInfo]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id, class_type, grade, category, monthly_fee, is_free_class, is_active
                FROM classes
                WHERE class_id=%s
                """,
                (int(class_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return ClassInfo(
                class_id=int(r["class_id"]),
                class_type=r["class_type"],
                grade=r["grade"],
                category=r["category"],
                monthly_fee=float(r["monthly_fee"]),
                is_free_class=bool(r["is_free_class"]),
                is_active=bool(r["is_active"]),
            )

    def list_enrolled_students(self, class_id: int) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {STUDENT_COLUMNS}
                FROM class_enrollments e
                JOIN students s ON s.student_id = e.student_id
                WHERE e.class_id=%s
                ORDER BY s.first_name, s.last_name
                """,
                (int(class_id),),
            )
            rows = fetchall(cur)
            if not rows:
                return []
            free = group_free_classes(cur, [int(r["student_id"]) for r in rows])
            return [row_to_student(r, free.get(int(r["student_id"]), frozenset())) for r in rows]

    def list_monitor_ids(self, class_id: int) -> set[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT student_id FROM class_monitors WHERE class_id=%s", (int(class_id),))
            return {int(r["student_id"]) for r in fetchall(cur)}
