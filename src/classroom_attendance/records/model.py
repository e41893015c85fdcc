from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import RecordStatus
from ..sessions.model import AttendanceSession


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: the attendance outcome of one student in one session."""

    record_id: int
    session_id: int
    student_profile_id: int
    status: RecordStatus
    marked_at: datetime


@dataclass(frozen=True)
class SessionRecordRow:
    """Read-model for a session roll call: record plus student identity."""

    record: AttendanceRecord
    student_code: Optional[str] = None
    student_name: Optional[str] = None


@dataclass(frozen=True)
class StudentRecordRow:
    """Read-model for a student's history: record plus its session."""

    record: AttendanceRecord
    session: Optional[AttendanceSession] = None
    class_name: Optional[str] = None


@dataclass(frozen=True)
class SwipeEntry:
    student_profile_id: int
    status: RecordStatus = RecordStatus.PRESENT


@dataclass(frozen=True)
class SwipeResult:
    session: AttendanceSession
    records: list[AttendanceRecord]
