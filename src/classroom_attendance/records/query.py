from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from ..common.datetime_utils import parse_iso_datetime
from ..common.validators import require_enum, require_positive_int
from ..core.constants import RECORD_UPDATE_FIELDS
from ..core.enums import RecordStatus
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..core.permissions import Capability, has_capability, require
from ..identity.model import Principal
from ..identity.service import IdentityService
from ..sessions.repository import SessionRepository
from .model import AttendanceRecord, SessionRecordRow, StudentRecordRow
from .repository import RecordRepository

logger = logging.getLogger(__name__)


class AttendanceQueryService:
    def __init__(self, sessions: SessionRepository, records: RecordRepository, identity: IdentityService):
        self._sessions = sessions
        self._records = records
        self._identity = identity

    def records_for_session(self, principal: Principal, session_id: Any) -> Sequence[SessionRecordRow]:
        require(principal, Capability.VIEW_SESSION_RECORDS)
        session_id = require_positive_int(session_id, "sessionId")
        if not self._sessions.get_by_id(session_id):
            raise NotFoundError("Session not found")
        return self._records.list_for_session(session_id)

    def records_for_student(self, principal: Principal, student_profile_id: Any) -> Sequence[StudentRecordRow]:
        """Attendance history of one student.

        Students may only read their own history; staff roles read any.
        """

        require(principal, Capability.VIEW_STUDENT_RECORDS)
        student_profile_id = require_positive_int(student_profile_id, "studentProfileId")

        if not has_capability(principal.role, Capability.VIEW_ANY_STUDENT_RECORDS):
            if self._identity.own_profile_id(principal) != student_profile_id:
                logger.warning("User %s denied access to records of student %s", principal.user_id, student_profile_id)
                raise AuthorizationError("Not authorized to view these records")

        return self._records.list_for_student(student_profile_id)

    def update_record(self, principal: Principal, record_id: Any, fields: Optional[Mapping[str, Any]]) -> AttendanceRecord:
        require(principal, Capability.CORRECT_RECORDS)
        record_id = require_positive_int(record_id, "recordId")
        status, marked_at = self._parse_update(fields or {})

        record = self._records.get_by_id(record_id)
        if not record:
            raise NotFoundError("Record not found")

        if not has_capability(principal.role, Capability.CORRECT_ANY_RECORD):
            session = self._sessions.get_by_id(record.session_id)
            if not session or session.teacher_id != principal.user_id:
                raise AuthorizationError("Not authorized to update this record")

        status = status or record.status
        marked_at = marked_at or record.marked_at
        if not self._records.update_status(record_id=record_id, status=status, marked_at=marked_at):
            raise NotFoundError("Record not found")

        logger.info("Record %s corrected to %s by %s %s", record_id, status.value, principal.role.value, principal.user_id)
        return AttendanceRecord(
            record_id=record.record_id,
            session_id=record.session_id,
            student_profile_id=record.student_profile_id,
            status=status,
            marked_at=marked_at,
        )

    @staticmethod
    def _parse_update(fields: Mapping[str, Any]) -> tuple[Optional[RecordStatus], Optional[datetime]]:
        unknown = sorted(set(fields) - set(RECORD_UPDATE_FIELDS))
        if unknown:
            raise ValidationError(f"Only status and marked_at can be updated (got: {', '.join(unknown)})")
        if not any(fields.get(k) not in (None, "") for k in RECORD_UPDATE_FIELDS):
            raise ValidationError("Please provide status or marked_at")

        status = None
        if fields.get("status") not in (None, ""):
            status = require_enum(fields["status"], RecordStatus, "status")

        marked_at = None
        raw_marked_at = fields.get("marked_at")
        if isinstance(raw_marked_at, datetime):
            marked_at = raw_marked_at
        elif raw_marked_at not in (None, ""):
            try:
                marked_at = parse_iso_datetime(str(raw_marked_at))
            except ValueError:
                raise ValidationError("marked_at must be an ISO 8601 datetime")
        return status, marked_at
