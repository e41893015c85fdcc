from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ClassInfo:
    """A class as seen by the attendance engine (owner + labels)."""

    class_id: int
    name: str
    code: str
    subject: str
    teacher_id: int


@dataclass(frozen=True)
class StudentProfile:
    student_profile_id: int
    user_id: int
    student_code: str
    scan_code: str
    full_name: str
    current_class_id: Optional[int] = None
