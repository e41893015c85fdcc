from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceType, SessionStatus


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: a window during which attendance is captured for one class."""

    session_id: int
    class_id: int
    teacher_id: int
    session_date: date
    start_time: datetime
    end_time: Optional[datetime]
    status: SessionStatus
    attendance_type: AttendanceType
    subject_id: Optional[int] = None


@dataclass(frozen=True)
class SessionRow:
    """Read-model: session plus the labels of its class."""

    session: AttendanceSession
    class_name: Optional[str] = None
    class_subject: Optional[str] = None


@dataclass(frozen=True)
class SessionFilter:
    class_id: Optional[int] = None
    teacher_id: Optional[int] = None
    status: Optional[SessionStatus] = None
    attendance_type: Optional[AttendanceType] = None
    session_date: Optional[date] = None
