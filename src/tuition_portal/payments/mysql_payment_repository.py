from __future__ import annotations

from typing import Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..attendance.model import AttendanceSummary
from ..classes.model import ClassInfo
from ..core.enums import PaymentStatus
from ..core.exceptions import PaymentAlreadyExistsError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key
from ..students.mysql_student_repository import STUDENT_COLUMNS, row_to_student
from .model import AdminAction, NewPayment, Payment, PaymentFilter
from .repository import PaymentRepository

# Payment row joined with the student, class and deciding user for display.
_SELECT = f"""
    SELECT p.payment_id, p.student_id, p.class_id, p.year, p.month, p.amount,
           p.receipt_url, p.receipt_public_id, p.additional_note, p.status,
           p.attendance_present_days, p.attendance_total_days,
           p.action_by, p.action_date, p.action_note, p.created_at, p.updated_at,
           {STUDENT_COLUMNS},
           c.class_type, c.grade, c.category, c.monthly_fee, c.is_free_class, c.is_active,
           u.full_name AS actor_name, u.email AS actor_email
    FROM payments p
    JOIN students s ON s.student_id = p.student_id
    JOIN classes c ON c.class_id = p.class_id
    LEFT JOIN users u ON u.user_id = p.action_by
"""


def _row_to_payment(r: dict) -> Payment:
    action = None
    if r.get("action_date") is not None or r.get("action_by") is not None:
        action = AdminAction(
            action_by=int(r["action_by"]) if r.get("action_by") is not None else None,
            action_date=r.get("action_date"),
            action_note=r.get("action_note"),
            actor_name=r.get("actor_name"),
            actor_email=r.get("actor_email"),
        )
    return Payment(
        payment_id=int(r["payment_id"]),
        student_id=int(r["student_id"]),
        class_id=int(r["class_id"]),
        year=int(r["year"]),
        month=int(r["month"]),
        amount=float(r["amount"]),
        receipt_url=r["receipt_url"],
        receipt_public_id=r["receipt_public_id"],
        additional_note=r.get("additional_note"),
        status=PaymentStatus(r["status"]),
        attendance=AttendanceSummary(
            present_days=int(r.get("attendance_present_days") or 0),
            total_class_days=int(r.get("attendance_total_days") or 0),
        ),
        admin_action=action,
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        student=row_to_student(r, frozenset()),
        class_info=ClassInfo(
            class_id=int(r["class_id"]),
            class_type=r["class_type"],
            grade=r["grade"],
            category=r["category"],
            monthly_fee=float(r["monthly_fee"]),
            is_free_class=bool(r["is_free_class"]),
            is_active=bool(r["is_active"]),
        ),
    )


class MySQLPaymentRepository(PaymentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _select(self, where: str, params: tuple, *, suffix: str = "") -> list[Payment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE {where} {suffix}", params)
            return [_row_to_payment(r) for r in fetchall(cur)]

    def insert(self, payment: NewPayment) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO payments(
                        student_id, class_id, year, month, amount,
                        receipt_url, receipt_public_id, additional_note, status,
                        attendance_present_days, attendance_total_days
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(payment.student_id),
                        int(payment.class_id),
                        int(payment.year),
                        int(payment.month),
                        float(payment.amount),
                        payment.receipt_url,
                        payment.receipt_public_id,
                        payment.additional_note,
                        PaymentStatus.PENDING.value,
                        int(payment.attendance.present_days),
                        int(payment.attendance.total_class_days),
                    ),
                )
                return int(cur.lastrowid)
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise PaymentAlreadyExistsError() from e
            raise

    def get(self, payment_id: int) -> Optional[Payment]:
        rows = self._select("p.payment_id=%s", (int(payment_id),))
        return rows[0] if rows else None

    def get_owned(self, payment_id: int, student_id: int) -> Optional[Payment]:
        rows = self._select("p.payment_id=%s AND p.student_id=%s", (int(payment_id), int(student_id)))
        return rows[0] if rows else None

    def list_for_student_year(self, *, student_id: int, class_id: int, year: int) -> Sequence[Payment]:
        return self._select(
            "p.student_id=%s AND p.class_id=%s AND p.year=%s",
            (int(student_id), int(class_id), int(year)),
            suffix="ORDER BY p.month",
        )

    def list_for_class_month(self, *, class_id: int, year: int, month: int) -> Sequence[Payment]:
        return self._select(
            "p.class_id=%s AND p.year=%s AND p.month=%s",
            (int(class_id), int(year), int(month)),
            suffix="ORDER BY p.created_at DESC, p.payment_id DESC",
        )

    def list_for_student(self, student_id: int) -> Sequence[Payment]:
        return self._select(
            "p.student_id=%s",
            (int(student_id),),
            suffix="ORDER BY p.created_at DESC, p.payment_id DESC",
        )

    def search(self, criteria: PaymentFilter, *, offset: int, limit: int) -> tuple[list[Payment], int]:
        clauses = ["1=1"]
        params: list[object] = []
        if criteria.status is not None:
            clauses.append("p.status=%s")
            params.append(criteria.status.value)
        if criteria.class_id is not None:
            clauses.append("p.class_id=%s")
            params.append(int(criteria.class_id))
        if criteria.month is not None:
            clauses.append("p.month=%s")
            params.append(int(criteria.month))
        if criteria.year is not None:
            clauses.append("p.year=%s")
            params.append(int(criteria.year))
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM payments p WHERE {where}", tuple(params))
            total = int((fetchone(cur) or {}).get("total") or 0)

            cur.execute(
                f"{_SELECT} WHERE {where} ORDER BY p.created_at DESC, p.payment_id DESC LIMIT %s OFFSET %s",
                tuple(params) + (int(limit), int(offset)),
            )
            return [_row_to_payment(r) for r in fetchall(cur)], total

    def update_receipt(
        self,
        *,
        payment_id: int,
        receipt_url: str,
        receipt_public_id: str,
        additional_note: Optional[str],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE payments
                SET receipt_url=%s, receipt_public_id=%s, additional_note=%s
                WHERE payment_id=%s
                """,
                (receipt_url, receipt_public_id, additional_note, int(payment_id)),
            )
            return cur.rowcount > 0

    def set_status(self, *, payment_id: int, status: PaymentStatus, action: AdminAction) -> bool:
        return self.bulk_set_status(payment_ids=[payment_id], status=status, action=action) > 0

    def bulk_set_status(self, *, payment_ids: Sequence[int], status: PaymentStatus, action: AdminAction) -> int:
        ids = [int(p) for p in payment_ids]
        if not ids:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE payments
                SET status=%s, action_by=%s, action_date=%s, action_note=%s
                WHERE payment_id IN ({in_clause(ids)})
                """,
                (status.value, action.action_by, action.action_date, action.action_note, *ids),
            )
            return int(cur.rowcount)

    def delete(self, payment_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM payments WHERE payment_id=%s", (int(payment_id),))
            return cur.rowcount > 0
