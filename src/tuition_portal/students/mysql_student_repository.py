from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import Student
from .repository import StudentRepository

STUDENT_COLUMNS = (
    "s.student_id, s.user_id, s.student_code, s.first_name, s.last_name, s.surname, "
    "s.email, s.contact_number, s.payment_status"
)


def row_to_student(r: dict, free_class_ids: frozenset[int]) -> Student:
    return Student(
        student_id=int(r["student_id"]),
        user_id=int(r["user_id"]) if r.get("user_id") is not None else None,
        student_code=r["student_code"],
        first_name=r["first_name"],
        last_name=r["last_name"],
        surname=r["surname"],
        email=r["email"],
        contact_number=r["contact_number"],
        payment_status=r.get("payment_status") or "admissioned",
        free_class_ids=free_class_ids,
    )


def group_free_classes(cur, student_ids: Sequence[int]) -> dict[int, frozenset[int]]:
    cur.execute(
        f"SELECT student_id, class_id FROM student_free_classes WHERE student_id IN ({in_clause(student_ids)})",
        tuple(student_ids),
    )
    out: dict[int, set[int]] = {}
    for r in fetchall(cur):
        out.setdefault(int(r["student_id"]), set()).add(int(r["class_id"]))
    return {k: frozenset(v) for k, v in out.items()}


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_where(self, column: str, value: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {STUDENT_COLUMNS} FROM students s WHERE s.{column}=%s", (int(value),))
            r = fetchone(cur)
            if not r:
                return None
            free = group_free_classes(cur, [int(r["student_id"])])
            return row_to_student(r, free.get(int(r["student_id"]), frozenset()))

    def get_by_id(self, student_id: int) -> Optional[Student]:
        return self._get_where("student_id", student_id)

    def get_by_user_id(self, user_id: int) -> Optional[Student]:
        return self._get_where("user_id", user_id)
