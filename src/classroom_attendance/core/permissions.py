from __future__ import annotations

from enum import Enum
from typing import Mapping

from .enums import Role
from .exceptions import AuthorizationError


class Capability(str, Enum):
    START_SESSION = "start_session"
    CLOSE_SESSION = "close_session"
    LIST_OWN_ACTIVE_SESSIONS = "list_own_active_sessions"
    VIEW_SESSIONS = "view_sessions"
    VIEW_ALL_SESSIONS = "view_all_sessions"
    CAPTURE_ATTENDANCE = "capture_attendance"
    VIEW_SESSION_RECORDS = "view_session_records"
    VIEW_STUDENT_RECORDS = "view_student_records"
    VIEW_ANY_STUDENT_RECORDS = "view_any_student_records"
    CORRECT_RECORDS = "correct_records"
    CORRECT_ANY_RECORD = "correct_any_record"


ROLE_CAPABILITIES: Mapping[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(
        {
            Capability.VIEW_SESSIONS,
            Capability.VIEW_ALL_SESSIONS,
            Capability.VIEW_SESSION_RECORDS,
            Capability.VIEW_STUDENT_RECORDS,
            Capability.VIEW_ANY_STUDENT_RECORDS,
            Capability.CORRECT_RECORDS,
            Capability.CORRECT_ANY_RECORD,
        }
    ),
    Role.TEACHER: frozenset(
        {
            Capability.START_SESSION,
            Capability.CLOSE_SESSION,
            Capability.LIST_OWN_ACTIVE_SESSIONS,
            Capability.VIEW_SESSIONS,
            Capability.CAPTURE_ATTENDANCE,
            Capability.VIEW_SESSION_RECORDS,
            Capability.VIEW_STUDENT_RECORDS,
            Capability.VIEW_ANY_STUDENT_RECORDS,
            Capability.CORRECT_RECORDS,
        }
    ),
    Role.STUDENT: frozenset({Capability.VIEW_STUDENT_RECORDS}),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def require(principal, capability: Capability) -> None:
    """Raise AuthorizationError unless the principal's role grants capability."""

    if not has_capability(principal.role, capability):
        raise AuthorizationError(f"User role {principal.role.value} is not authorized to perform this action")
