from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import RecordStatus
from .model import AttendanceRecord, SessionRecordRow, StudentRecordRow, SwipeEntry


class RecordRepository(Protocol):
    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_session_and_student(self, *, session_id: int, student_profile_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create(
        self,
        *,
        session_id: int,
        student_profile_id: int,
        status: RecordStatus,
        marked_at: datetime,
    ) -> int:
        """Insert a record; raise UniqueViolation if the pair already has one."""

        raise NotImplementedError

    def update_status(self, *, record_id: int, status: RecordStatus, marked_at: datetime) -> bool:
        raise NotImplementedError

    def create_swipe_batch(
        self,
        *,
        class_id: int,
        teacher_id: int,
        subject_id: Optional[int],
        captured_at: datetime,
        entries: Sequence[SwipeEntry],
    ) -> tuple[int, list[AttendanceRecord]]:
        """Create a Completed Swipe session and its records atomically.

        Either the session and every record persist, or nothing does
        (UniqueViolation on a duplicate student).
        """

        raise NotImplementedError

    def list_for_session(self, session_id: int) -> Sequence[SessionRecordRow]:
        raise NotImplementedError

    def list_for_student(self, student_profile_id: int) -> Sequence[StudentRecordRow]:
        raise NotImplementedError
