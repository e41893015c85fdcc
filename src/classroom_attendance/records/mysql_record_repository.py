from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import AttendanceType, RecordStatus, SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..sessions.mysql_session_repository import prefixed_session_columns, row_to_session
from .model import AttendanceRecord, SessionRecordRow, StudentRecordRow, SwipeEntry
from .repository import RecordRepository

RECORD_COLUMNS = "r.record_id, r.session_id, r.student_profile_id, r.status, r.marked_at"
# Session and record share column names; a dictionary cursor keeps only the last one.
JOINED_SESSION_PREFIX = "session_"


def row_to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        session_id=int(r["session_id"]),
        student_profile_id=int(r["student_profile_id"]),
        status=RecordStatus(r["status"]),
        marked_at=r["marked_at"],
    )


class MySQLRecordRepository(RecordRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {RECORD_COLUMNS} FROM attendance_records r WHERE r.record_id=%s", (int(record_id),))
            r = fetchone(cur)
            return row_to_record(r) if r else None

    def get_for_session_and_student(self, *, session_id: int, student_profile_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {RECORD_COLUMNS}
                FROM attendance_records r
                WHERE r.session_id=%s AND r.student_profile_id=%s
                """,
                (int(session_id), int(student_profile_id)),
            )
            r = fetchone(cur)
            return row_to_record(r) if r else None

    def create(
        self,
        *,
        session_id: int,
        student_profile_id: int,
        status: RecordStatus,
        marked_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(session_id, student_profile_id, status, marked_at)
                VALUES(%s,%s,%s,%s)
                """,
                (int(session_id), int(student_profile_id), status.value, marked_at),
            )
            return int(cur.lastrowid)

    def update_status(self, *, record_id: int, status: RecordStatus, marked_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_records SET status=%s, marked_at=%s WHERE record_id=%s",
                (status.value, marked_at, int(record_id)),
            )
            # rowcount is 0 when the values did not change; the row still exists.
            if cur.rowcount > 0:
                return True
            cur.execute("SELECT 1 AS hit FROM attendance_records WHERE record_id=%s", (int(record_id),))
            return fetchone(cur) is not None

    def create_swipe_batch(
        self,
        *,
        class_id: int,
        teacher_id: int,
        subject_id: Optional[int],
        captured_at: datetime,
        entries: Sequence[SwipeEntry],
    ) -> tuple[int, list[AttendanceRecord]]:
        # One connection, one transaction: db_cursor rolls the session back if any record fails.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(
                    class_id, teacher_id, subject_id, session_date, start_time, end_time, status, attendance_type
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(class_id),
                    int(teacher_id),
                    subject_id,
                    captured_at.date(),
                    captured_at,
                    captured_at,
                    SessionStatus.COMPLETED.value,
                    AttendanceType.SWIPE.value,
                ),
            )
            session_id = int(cur.lastrowid)

            cur.executemany(
                """
                INSERT INTO attendance_records(session_id, student_profile_id, status, marked_at)
                VALUES(%s,%s,%s,%s)
                """,
                [(session_id, int(e.student_profile_id), e.status.value, captured_at) for e in entries],
            )

            cur.execute(
                f"SELECT {RECORD_COLUMNS} FROM attendance_records r WHERE r.session_id=%s ORDER BY r.record_id",
                (session_id,),
            )
            return session_id, [row_to_record(r) for r in fetchall(cur)]

    def list_for_session(self, session_id: int) -> Sequence[SessionRecordRow]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {RECORD_COLUMNS},
                       sp.student_code,
                       CONCAT(u.first_name, ' ', u.last_name) AS student_name
                FROM attendance_records r
                LEFT JOIN student_profiles sp ON sp.student_profile_id = r.student_profile_id
                LEFT JOIN users u ON u.user_id = sp.user_id
                WHERE r.session_id=%s
                ORDER BY r.marked_at ASC, r.record_id ASC
                """,
                (int(session_id),),
            )
            return [
                SessionRecordRow(record=row_to_record(r), student_code=r.get("student_code"), student_name=r.get("student_name"))
                for r in fetchall(cur)
            ]

    def list_for_student(self, student_profile_id: int) -> Sequence[StudentRecordRow]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {RECORD_COLUMNS}, {prefixed_session_columns(JOINED_SESSION_PREFIX)}, c.name AS class_name
                FROM attendance_records r
                JOIN attendance_sessions s ON s.session_id = r.session_id
                LEFT JOIN classes c ON c.class_id = s.class_id
                WHERE r.student_profile_id=%s
                ORDER BY s.start_time DESC, r.record_id DESC
                """,
                (int(student_profile_id),),
            )
            return [
                StudentRecordRow(
                    record=row_to_record(r),
                    session=row_to_session(r, JOINED_SESSION_PREFIX),
                    class_name=r.get("class_name"),
                )
                for r in fetchall(cur)
            ]
