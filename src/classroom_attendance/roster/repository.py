from __future__ import annotations

from typing import Iterable, Optional, Protocol

from .model import ClassInfo, StudentProfile


class RosterRepository(Protocol):
    """Read-only view of classes, enrolments and student profiles.

    The roster is maintained by the management application; the attendance
    engine only looks things up through this interface.
    """

    def get_class(self, class_id: int) -> Optional[ClassInfo]:
        raise NotImplementedError

    def is_enrolled(self, *, class_id: int, student_profile_id: int) -> bool:
        raise NotImplementedError

    def enrolled_among(self, *, class_id: int, student_profile_ids: Iterable[int]) -> set[int]:
        """Return the subset of the given ids enrolled in the class."""

        raise NotImplementedError

    def get_profile_by_scan_code(self, scan_code: str) -> Optional[StudentProfile]:
        raise NotImplementedError

    def get_profile_by_user_id(self, user_id: int) -> Optional[StudentProfile]:
        raise NotImplementedError
