from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from ..common.datetime_utils import now_local, parse_iso_date
from ..common.validators import optional_positive_int, require_enum, require_positive_int
from ..core.constants import SESSION_FILTER_KEYS
from ..core.enums import AttendanceType, SessionStatus
from ..core.exceptions import AuthorizationError, ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..core.permissions import Capability, has_capability, require
from ..database.errors import UniqueViolation
from ..identity.model import Principal
from ..roster.repository import RosterRepository
from .model import AttendanceSession, SessionFilter, SessionRow
from .repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionService:
    """Use cases: open, end and cancel attendance sessions, and look them up."""

    def __init__(
        self,
        sessions: SessionRepository,
        roster: RosterRepository,
        *,
        allow_cancel_terminal: bool = False,
    ):
        self._sessions = sessions
        self._roster = roster
        self._allow_cancel_terminal = bool(allow_cancel_terminal)

    def start(
        self,
        principal: Principal,
        *,
        class_id: Any,
        attendance_type: Any,
        now: Optional[datetime] = None,
    ) -> AttendanceSession:
        require(principal, Capability.START_SESSION)
        if class_id in (None, "") or attendance_type in (None, ""):
            raise ValidationError("Please provide classId and attendanceType")

        class_id = require_positive_int(class_id, "classId")
        attendance_type = require_enum(attendance_type, AttendanceType, "attendanceType")
        now = now or now_local()

        cls = self._roster.get_class(class_id)
        if not cls:
            raise NotFoundError(f"Class {class_id} not found")
        if cls.teacher_id != principal.user_id:
            raise AuthorizationError("You are not authorized to start a session for this class")

        try:
            session_id = self._sessions.create_active(
                class_id=class_id,
                teacher_id=principal.user_id,
                attendance_type=attendance_type,
                session_date=now.date(),
                start_time=now,
            )
        except UniqueViolation:
            logger.warning("Rejected start for class %s: an active session already exists", class_id)
            raise ConflictError("An active session for this class already exists")

        logger.info("Session %s started for class %s by teacher %s", session_id, class_id, principal.user_id)
        return AttendanceSession(
            session_id=session_id,
            class_id=class_id,
            teacher_id=principal.user_id,
            session_date=now.date(),
            start_time=now,
            end_time=None,
            status=SessionStatus.ACTIVE,
            attendance_type=attendance_type,
        )

    def end(self, principal: Principal, session_id: Any, *, now: Optional[datetime] = None) -> AttendanceSession:
        require(principal, Capability.CLOSE_SESSION)
        session = self._get_owned(principal, session_id, action="end")
        return self._close(session, SessionStatus.COMPLETED, require_active=True, now=now)

    def cancel(self, principal: Principal, session_id: Any, *, now: Optional[datetime] = None) -> AttendanceSession:
        require(principal, Capability.CLOSE_SESSION)
        session = self._get_owned(principal, session_id, action="cancel")
        return self._close(session, SessionStatus.CANCELLED, require_active=not self._allow_cancel_terminal, now=now)

    def list_active(self, principal: Principal) -> Sequence[SessionRow]:
        require(principal, Capability.LIST_OWN_ACTIVE_SESSIONS)
        return self._sessions.list_rows(SessionFilter(teacher_id=principal.user_id, status=SessionStatus.ACTIVE))

    def list_sessions(self, principal: Principal, filters: Optional[Mapping[str, Any]] = None) -> Sequence[SessionRow]:
        require(principal, Capability.VIEW_SESSIONS)
        parsed = self._parse_filters(filters or {})
        if not has_capability(principal.role, Capability.VIEW_ALL_SESSIONS):
            parsed = replace(parsed, teacher_id=principal.user_id)
        return self._sessions.list_rows(parsed)

    def get(self, principal: Principal, session_id: Any) -> SessionRow:
        require(principal, Capability.VIEW_SESSIONS)
        session_id = require_positive_int(session_id, "sessionId")

        row = self._sessions.get_row(session_id)
        if not row:
            raise NotFoundError("Session not found")
        if not has_capability(principal.role, Capability.VIEW_ALL_SESSIONS) and row.session.teacher_id != principal.user_id:
            raise AuthorizationError("Not authorized to view this session")
        return row

    def _get_owned(self, principal: Principal, session_id: Any, *, action: str) -> AttendanceSession:
        session_id = require_positive_int(session_id, "sessionId")
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError("Session not found")
        if session.teacher_id != principal.user_id:
            raise AuthorizationError(f"Not authorized to {action} this session")
        return session

    def _close(
        self,
        session: AttendanceSession,
        status: SessionStatus,
        *,
        require_active: bool,
        now: Optional[datetime],
    ) -> AttendanceSession:
        if require_active and session.status.is_terminal:
            raise InvalidStateError(f"Session is already {session.status.value}")

        now = now or now_local()
        updated = self._sessions.close(
            session_id=session.session_id,
            status=status,
            end_time=now,
            require_active=require_active,
        )
        if not updated:
            # Another request closed it between our read and the update.
            current = self._sessions.get_by_id(session.session_id)
            current_status = current.status.value if current else "gone"
            raise InvalidStateError(f"Session is already {current_status}")

        logger.info("Session %s %s by teacher %s", session.session_id, status.value.lower(), session.teacher_id)
        return replace(session, status=status, end_time=now)

    @staticmethod
    def _parse_filters(raw: Mapping[str, Any]) -> SessionFilter:
        unknown = sorted(set(raw) - set(SESSION_FILTER_KEYS))
        if unknown:
            raise ValidationError(f"Unsupported session filter: {', '.join(unknown)}")

        def _value(key: str):
            v = raw.get(key)
            return None if v is None or str(v).strip() == "" else v

        session_date = None
        if _value("session_date") is not None:
            try:
                session_date = parse_iso_date(str(raw["session_date"]).strip())
            except ValueError:
                raise ValidationError("session_date must be YYYY-MM-DD")

        status = _value("status")
        attendance_type = _value("attendance_type")
        return SessionFilter(
            class_id=optional_positive_int(_value("class_id"), "class_id"),
            teacher_id=optional_positive_int(_value("teacher_id"), "teacher_id"),
            status=require_enum(status, SessionStatus, "status") if status is not None else None,
            attendance_type=(
                require_enum(attendance_type, AttendanceType, "attendance_type") if attendance_type is not None else None
            ),
            session_date=session_date,
        )
