from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.aggregator import AttendanceAggregator
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .classes.mysql_class_repository import MySQLClassRepository
from .core.constants import DEFAULT_PAGE_LIMIT, DEFAULT_TOKEN_MAX_AGE_SECONDS, PAYMENT_THRESHOLD_DAYS
from .database.connection import DBConfig, DatabaseConnection
from .payments.mysql_payment_repository import MySQLPaymentRepository
from .payments.service import PaymentService
from .students.mysql_student_repository import MySQLStudentRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AuthService
from .users.tokens import TokenService


@dataclass(frozen=True)
class Container:
    token_service: TokenService
    auth_service: AuthService
    attendance_service: AttendanceService
    payment_service: PaymentService
    conn: Optional[DatabaseConnection] = None


def build_container(
    *,
    db_config: dict,
    secret_key: str,
    token_max_age: int = DEFAULT_TOKEN_MAX_AGE_SECONDS,
    threshold_days: int = PAYMENT_THRESHOLD_DAYS,
    page_limit: int = DEFAULT_PAGE_LIMIT,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    users_repo = MySQLUserRepository(conn)
    students_repo = MySQLStudentRepository(conn)
    classes_repo = MySQLClassRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    payments_repo = MySQLPaymentRepository(conn)

    token_service = TokenService(secret_key, max_age_seconds=token_max_age)
    aggregator = AttendanceAggregator(attendance_repo)

    return Container(
        conn=conn,
        token_service=token_service,
        auth_service=AuthService(users_repo, token_service),
        attendance_service=AttendanceService(attendance_repo, classes_repo, students_repo, aggregator),
        payment_service=PaymentService(
            payments_repo,
            students_repo,
            classes_repo,
            aggregator,
            threshold_days=threshold_days,
            page_limit=page_limit,
        ),
    )
