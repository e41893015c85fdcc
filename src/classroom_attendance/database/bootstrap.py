from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

import mysql.connector

from ..common.scan_codes import generate_scan_code
from .connection import DBConfig

logger = logging.getLogger(__name__)

DEMO_ENROLMENTS = {
    "sam@school.test": "G10AMATH",
    "sara@school.test": "G10AMATH",
    "leo@school.test": "G11BPHYS",
}


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_line_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema/seed files (handles ';' inside quotes).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _connect(target: DBConfig, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _run_sql_file(db_config: dict, path: str | Path) -> int:
    target = DBConfig.from_dict(db_config)
    sql = _strip_line_comments(_strip_create_db_and_use(Path(path).read_text(encoding="utf-8")))

    conn = _connect(target)
    try:
        cur = conn.cursor()
        count = 0
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
            count += 1
        conn.commit()
        return count
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    count = _run_sql_file(db_config, schema_path)
    logger.info("Applied %s schema statements from %s", count, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    count = _run_sql_file(db_config, seed_path)
    logger.info("Applied %s seed statements from %s", count, seed_path)


def ensure_demo_profiles(db_config: dict) -> int:
    """Create missing student profiles (with scan codes) and demo enrolments.

    Returns the number of profiles created.
    """

    target = DBConfig.from_dict(db_config)
    conn = _connect(target)
    created = 0
    try:
        cur = conn.cursor(dictionary=True)
        cur.execute(
            """
            SELECT u.user_id, u.email
            FROM users u
            LEFT JOIN student_profiles sp ON sp.user_id = u.user_id
            WHERE u.role = 'Student' AND sp.student_profile_id IS NULL
            ORDER BY u.user_id
            """
        )
        missing = cur.fetchall()

        for row in missing:
            student_code = f"STU{int(row['user_id']):06d}"
            class_id = None
            class_code = DEMO_ENROLMENTS.get(row["email"])
            if class_code:
                cur.execute("SELECT class_id FROM classes WHERE code=%s", (class_code,))
                found = cur.fetchone()
                class_id = int(found["class_id"]) if found else None

            cur.execute(
                """
                INSERT INTO student_profiles(user_id, student_code, scan_code, current_class_id)
                VALUES(%s,%s,%s,%s)
                """,
                (int(row["user_id"]), student_code, generate_scan_code(student_code), class_id),
            )
            profile_id = int(cur.lastrowid)
            if class_id is not None:
                cur.execute(
                    "INSERT IGNORE INTO class_students(class_id, student_profile_id) VALUES(%s,%s)",
                    (class_id, profile_id),
                )
            created += 1
            logger.info("Created student profile %s for %s", student_code, row["email"])

        conn.commit()
        return created
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    target = DBConfig.from_dict(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
