from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import AttendanceType, SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceSession, SessionFilter, SessionRow
from .repository import SessionRepository

SESSION_FIELDS = (
    "session_id",
    "class_id",
    "teacher_id",
    "subject_id",
    "session_date",
    "start_time",
    "end_time",
    "status",
    "attendance_type",
)
SESSION_COLUMNS = ", ".join(f"s.{f}" for f in SESSION_FIELDS)


def prefixed_session_columns(prefix: str) -> str:
    """Session columns aliased as ``<prefix><field>``, for joins that also select record columns."""

    return ", ".join(f"s.{f} AS {prefix}{f}" for f in SESSION_FIELDS)


def row_to_session(r: dict, prefix: str = "") -> AttendanceSession:
    return AttendanceSession(
        session_id=int(r[f"{prefix}session_id"]),
        class_id=int(r[f"{prefix}class_id"]),
        teacher_id=int(r[f"{prefix}teacher_id"]),
        subject_id=r.get(f"{prefix}subject_id"),
        session_date=r[f"{prefix}session_date"],
        start_time=r[f"{prefix}start_time"],
        end_time=r.get(f"{prefix}end_time"),
        status=SessionStatus(r[f"{prefix}status"]),
        attendance_type=AttendanceType(r[f"{prefix}attendance_type"]),
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {SESSION_COLUMNS} FROM attendance_sessions s WHERE s.session_id=%s",
                (int(session_id),),
            )
            r = fetchone(cur)
            return row_to_session(r) if r else None

    def get_row(self, session_id: int) -> Optional[SessionRow]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {SESSION_COLUMNS}, c.name AS class_name, c.subject AS class_subject
                FROM attendance_sessions s
                LEFT JOIN classes c ON c.class_id = s.class_id
                WHERE s.session_id=%s
                """,
                (int(session_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return SessionRow(session=row_to_session(r), class_name=r.get("class_name"), class_subject=r.get("class_subject"))

    def create_active(
        self,
        *,
        class_id: int,
        teacher_id: int,
        attendance_type: AttendanceType,
        session_date: date,
        start_time: datetime,
    ) -> int:
        # uq_one_active_session_per_class rejects a second Active row for the class.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(class_id, teacher_id, session_date, start_time, status, attendance_type)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(class_id),
                    int(teacher_id),
                    session_date,
                    start_time,
                    SessionStatus.ACTIVE.value,
                    attendance_type.value,
                ),
            )
            return int(cur.lastrowid)

    def close(
        self,
        *,
        session_id: int,
        status: SessionStatus,
        end_time: datetime,
        require_active: bool = True,
    ) -> bool:
        sql = "UPDATE attendance_sessions SET status=%s, end_time=%s WHERE session_id=%s"
        params: list[object] = [status.value, end_time, int(session_id)]
        if require_active:
            sql += " AND status=%s"
            params.append(SessionStatus.ACTIVE.value)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return cur.rowcount > 0

    def list_rows(self, filters: SessionFilter) -> Sequence[SessionRow]:
        clauses: list[str] = []
        params: list[object] = []

        if filters.class_id is not None:
            clauses.append("s.class_id=%s")
            params.append(int(filters.class_id))
        if filters.teacher_id is not None:
            clauses.append("s.teacher_id=%s")
            params.append(int(filters.teacher_id))
        if filters.status is not None:
            clauses.append("s.status=%s")
            params.append(filters.status.value)
        if filters.attendance_type is not None:
            clauses.append("s.attendance_type=%s")
            params.append(filters.attendance_type.value)
        if filters.session_date is not None:
            clauses.append("s.session_date=%s")
            params.append(filters.session_date)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {SESSION_COLUMNS}, c.name AS class_name, c.subject AS class_subject
                FROM attendance_sessions s
                LEFT JOIN classes c ON c.class_id = s.class_id
                {where}
                ORDER BY s.start_time DESC, s.session_id DESC
                """,
                tuple(params),
            )
            return [
                SessionRow(session=row_to_session(r), class_name=r.get("class_name"), class_subject=r.get("class_subject"))
                for r in fetchall(cur)
            ]
