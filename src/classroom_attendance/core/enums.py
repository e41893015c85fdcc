from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles used for authorization."""

    ADMIN = "Admin"
    TEACHER = "Teacher"
    STUDENT = "Student"


class SessionStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.ACTIVE


class AttendanceType(str, Enum):
    """How a session collects attendance."""

    QR = "QR"
    SWIPE = "Swipe"


class RecordStatus(str, Enum):
    """Attendance outcome stored for one student in one session."""

    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    EXCUSED = "Excused"
