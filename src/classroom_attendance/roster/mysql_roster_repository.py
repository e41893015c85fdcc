from __future__ import annotations

from typing import Iterable, Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import ClassInfo, StudentProfile
from .repository import RosterRepository

_PROFILE_COLUMNS = """
    sp.student_profile_id, sp.user_id, sp.student_code, sp.scan_code, sp.current_class_id,
    CONCAT(u.first_name, ' ', u.last_name) AS full_name
"""


def _to_profile(r: dict) -> StudentProfile:
    return StudentProfile(
        student_profile_id=int(r["student_profile_id"]),
        user_id=int(r["user_id"]),
        student_code=r["student_code"],
        scan_code=r["scan_code"],
        full_name=r.get("full_name") or "",
        current_class_id=r.get("current_class_id"),
    )


class MySQLRosterRepository(RosterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_class(self, class_id: int) -> Optional[ClassInfo]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT class_id, name, code, subject, teacher_id FROM classes WHERE class_id=%s",
                (int(class_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return ClassInfo(
                class_id=int(r["class_id"]),
                name=r["name"],
                code=r["code"],
                subject=r["subject"],
                teacher_id=int(r["teacher_id"]),
            )

    def is_enrolled(self, *, class_id: int, student_profile_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS hit FROM class_students WHERE class_id=%s AND student_profile_id=%s",
                (int(class_id), int(student_profile_id)),
            )
            return fetchone(cur) is not None

    def enrolled_among(self, *, class_id: int, student_profile_ids: Iterable[int]) -> set[int]:
        ids = sorted({int(i) for i in student_profile_ids})
        if not ids:
            return set()

        placeholders = ",".join(["%s"] * len(ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT student_profile_id
                FROM class_students
                WHERE class_id=%s AND student_profile_id IN ({placeholders})
                """,
                (int(class_id), *ids),
            )
            return {int(r["student_profile_id"]) for r in fetchall(cur)}

    def get_profile_by_scan_code(self, scan_code: str) -> Optional[StudentProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_PROFILE_COLUMNS}
                FROM student_profiles sp
                JOIN users u ON u.user_id = sp.user_id
                WHERE sp.scan_code=%s
                """,
                (scan_code,),
            )
            r = fetchone(cur)
            return _to_profile(r) if r else None

    def get_profile_by_user_id(self, user_id: int) -> Optional[StudentProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_PROFILE_COLUMNS}
                FROM student_profiles sp
                JOIN users u ON u.user_id = sp.user_id
                WHERE sp.user_id=%s
                """,
                (int(user_id),),
            )
            r = fetchone(cur)
            return _to_profile(r) if r else None
