from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceType, SessionStatus
from .model import AttendanceSession, SessionFilter, SessionRow


class SessionRepository(Protocol):
    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def get_row(self, session_id: int) -> Optional[SessionRow]:
        raise NotImplementedError

    def create_active(
        self,
        *,
        class_id: int,
        teacher_id: int,
        attendance_type: AttendanceType,
        session_date: date,
        start_time: datetime,
    ) -> int:
        """Insert an Active session.

        Must raise UniqueViolation when the class already has an Active
        session, even if another request inserted it concurrently.
        """

        raise NotImplementedError

    def close(
        self,
        *,
        session_id: int,
        status: SessionStatus,
        end_time: datetime,
        require_active: bool = True,
    ) -> bool:
        """Move a session to a terminal status.

        With require_active the update only applies while the session is
        still Active; returns False when nothing was updated.
        """

        raise NotImplementedError

    def list_rows(self, filters: SessionFilter) -> Sequence[SessionRow]:
        """Sessions matching every set filter, newest start_time first."""

        raise NotImplementedError
