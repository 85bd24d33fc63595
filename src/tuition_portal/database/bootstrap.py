from __future__ import annotations

import logging
import re
from contextlib import closing
from pathlib import Path
from typing import Iterable

from werkzeug.security import generate_password_hash

from .connection import DatabaseConnection, DBConfig

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"
SEED_PATH = Path(__file__).resolve().parent / "seed.sql"

DEMO_USERS = (
    # full_name, email, password, role
    ("Portal Admin", "admin@tuition.local", "admin123", "admin"),
    ("Class Moderator", "moderator@tuition.local", "moderator123", "moderator"),
    ("Nimal Perera", "nimal@tuition.local", "student123", "student"),
    ("Kasun Silva", "kasun@tuition.local", "student123", "student"),
)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema/seed files (handles ';' inside quotes, skips -- comments).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False
    in_comment = False
    prev = ""

    for ch in sql:
        if in_comment:
            if ch == "\n":
                in_comment = False
                buf.append(ch)
            prev = ch
            continue

        if escape:
            buf.append(ch)
            escape = False
            prev = ch
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            prev = ch
            continue

        if ch == "-" and prev == "-" and not in_single and not in_double:
            buf.pop()
            in_comment = True
            prev = ""
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            prev = ch
            if stmt:
                yield stmt
            continue

        buf.append(ch)
        prev = ch

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _exec_sql(cur, sql: str) -> None:
    for stmt in _iter_sql_statements(sql):
        cur.execute(stmt)


def ensure_database_exists(db: DatabaseConnection) -> None:
    name = db.config.database
    with closing(db.connect(with_database=False)) as conn:
        cur = conn.cursor()
        cur.execute(f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;")
        conn.commit()


def _apply_file(db: DatabaseConnection, path: Path) -> None:
    sql = _strip_create_db_and_use(Path(path).read_text(encoding="utf-8"))
    with closing(db.connect()) as conn:
        cur = conn.cursor()
        _exec_sql(cur, sql)
        conn.commit()


def apply_schema(db_config: dict, *, schema_path: str | Path = SCHEMA_PATH) -> None:
    db = DatabaseConnection(DBConfig.from_dict(db_config))
    ensure_database_exists(db)
    _apply_file(db, Path(schema_path))
    logger.info("Schema applied to %s", db.config.database)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path = SEED_PATH) -> None:
    db = DatabaseConnection(DBConfig.from_dict(db_config))
    _apply_file(db, Path(seed_path))
    logger.info("Seed data applied to %s", db.config.database)


def ensure_demo_users(db_config: dict) -> None:
    """Create or refresh the demo accounts and link the student ones to profiles."""
    db = DatabaseConnection(DBConfig.from_dict(db_config))
    with closing(db.connect()) as conn:
        cur = conn.cursor(dictionary=True)

        for full_name, email, password, role in DEMO_USERS:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
            existing = cur.fetchone()
            if existing:
                cur.execute(
                    "UPDATE users SET full_name=%s, password_hash=%s, role=%s, is_active=1 WHERE email=%s",
                    (full_name, password_hash, role, email),
                )
            else:
                cur.execute(
                    "INSERT INTO users (full_name, email, password_hash, role) VALUES (%s, %s, %s, %s)",
                    (full_name, email, password_hash, role),
                )

        # Student profiles from seed.sql are keyed by e-mail until a login exists.
        cur.execute(
            """
            UPDATE students s
            JOIN users u ON u.email = s.email AND u.role = 'student'
            SET s.user_id = u.user_id
            WHERE s.user_id IS NULL
            """
        )
        conn.commit()


def list_tables(db_config: dict) -> list[str]:
    db = DatabaseConnection(DBConfig.from_dict(db_config))
    with closing(db.connect()) as conn:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
