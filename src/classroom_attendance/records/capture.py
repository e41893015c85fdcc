from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Optional

from ..common.datetime_utils import now_local
from ..common.scan_codes import normalize_scan_code
from ..common.validators import optional_positive_int, require_enum, require_positive_int
from ..core.enums import AttendanceType, RecordStatus, SessionStatus
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..core.permissions import Capability, require
from ..database.errors import MissingReference, UniqueViolation
from ..identity.model import Principal
from ..roster.repository import RosterRepository
from ..sessions.model import AttendanceSession
from ..sessions.repository import SessionRepository
from .model import AttendanceRecord, SwipeEntry, SwipeResult
from .repository import RecordRepository

logger = logging.getLogger(__name__)


class AttendanceCaptureService:
    """Capture protocols that write attendance records.

    QR and manual marking attach to the caller's Active session and check
    enrolment per student. Swipe creates its own already-Completed session
    and trusts the submitted list unless ``swipe_require_enrollment`` is set.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        records: RecordRepository,
        roster: RosterRepository,
        *,
        swipe_require_enrollment: bool = False,
    ):
        self._sessions = sessions
        self._records = records
        self._roster = roster
        self._swipe_require_enrollment = bool(swipe_require_enrollment)

    def mark_qr(
        self,
        principal: Principal,
        *,
        session_id: Any,
        scan_code: Any,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        require(principal, Capability.CAPTURE_ATTENDANCE)
        code = normalize_scan_code(scan_code if isinstance(scan_code, str) else None)
        if session_id in (None, "") or not code:
            raise ValidationError("Please provide sessionId and qrCode")

        session = self._live_session(principal, session_id)

        profile = self._roster.get_profile_by_scan_code(code)
        if not profile:
            raise NotFoundError("Invalid QR code. Student not found.")
        self._require_enrolled(session, profile.student_profile_id, label=profile.student_code)

        existing = self._records.get_for_session_and_student(
            session_id=session.session_id, student_profile_id=profile.student_profile_id
        )
        if existing:
            raise ConflictError("Student has already been marked for this session")

        now = now or now_local()
        try:
            record_id = self._records.create(
                session_id=session.session_id,
                student_profile_id=profile.student_profile_id,
                status=RecordStatus.PRESENT,
                marked_at=now,
            )
        except UniqueViolation:
            raise ConflictError("Student has already been marked for this session")

        logger.info("QR scan marked student %s present in session %s", profile.student_code, session.session_id)
        return AttendanceRecord(
            record_id=record_id,
            session_id=session.session_id,
            student_profile_id=profile.student_profile_id,
            status=RecordStatus.PRESENT,
            marked_at=now,
        )

    def mark_manual(
        self,
        principal: Principal,
        *,
        session_id: Any,
        student_profile_id: Any,
        status: Any,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        require(principal, Capability.CAPTURE_ATTENDANCE)
        if session_id in (None, "") or student_profile_id in (None, "") or status in (None, ""):
            raise ValidationError("Please provide sessionId, studentProfileId and status")
        student_profile_id = require_positive_int(student_profile_id, "studentProfileId")
        status = require_enum(status, RecordStatus, "status")

        session = self._live_session(principal, session_id)
        self._require_enrolled(session, student_profile_id)

        now = now or now_local()
        existing = self._records.get_for_session_and_student(
            session_id=session.session_id, student_profile_id=student_profile_id
        )
        if existing:
            return self._remark(existing, status, now)

        try:
            record_id = self._records.create(
                session_id=session.session_id,
                student_profile_id=student_profile_id,
                status=status,
                marked_at=now,
            )
        except UniqueViolation:
            # A concurrent mark won the insert; apply ours on top of it.
            existing = self._records.get_for_session_and_student(
                session_id=session.session_id, student_profile_id=student_profile_id
            )
            if not existing:
                raise ConflictError("Attendance record changed concurrently, please retry")
            return self._remark(existing, status, now)

        logger.info("Manually marked student %s %s in session %s", student_profile_id, status.value, session.session_id)
        return AttendanceRecord(
            record_id=record_id,
            session_id=session.session_id,
            student_profile_id=student_profile_id,
            status=status,
            marked_at=now,
        )

    def mark_swipe(
        self,
        principal: Principal,
        *,
        class_id: Any,
        subject_id: Any = None,
        entries: Optional[Iterable[Any]],
        now: Optional[datetime] = None,
    ) -> SwipeResult:
        require(principal, Capability.CAPTURE_ATTENDANCE)
        entries = list(entries or [])
        if not entries:
            raise ValidationError("No attendance records provided")
        if class_id in (None, ""):
            raise ValidationError("Please provide classId")

        class_id = require_positive_int(class_id, "classId")
        subject_id = optional_positive_int(subject_id, "subjectId")
        batch = [self._parse_swipe_entry(e, index) for index, e in enumerate(entries)]

        seen: set[int] = set()
        for entry in batch:
            if entry.student_profile_id in seen:
                raise ConflictError(f"Student {entry.student_profile_id} appears more than once in this batch")
            seen.add(entry.student_profile_id)

        cls = self._roster.get_class(class_id)
        if not cls:
            raise NotFoundError(f"Class {class_id} not found")
        if cls.teacher_id != principal.user_id:
            raise AuthorizationError("You are not authorized to take attendance for this class")

        if self._swipe_require_enrollment:
            enrolled = self._roster.enrolled_among(class_id=class_id, student_profile_ids=seen)
            outsiders = sorted(seen - enrolled)
            if outsiders:
                raise InvalidStateError(f"Students not in this class: {', '.join(str(i) for i in outsiders)}")

        now = now or now_local()
        try:
            session_id, records = self._records.create_swipe_batch(
                class_id=class_id,
                teacher_id=principal.user_id,
                subject_id=subject_id,
                captured_at=now,
                entries=batch,
            )
        except UniqueViolation:
            raise ConflictError("Duplicate student in attendance batch, nothing was saved")
        except MissingReference as e:
            if e.constraint == "fk_sessions_subject":
                raise NotFoundError(f"Subject {subject_id} not found")
            raise NotFoundError("Student not found in attendance batch, nothing was saved")

        logger.info("Swipe batch of %s records saved as session %s for class %s", len(records), session_id, class_id)
        session = AttendanceSession(
            session_id=session_id,
            class_id=class_id,
            teacher_id=principal.user_id,
            subject_id=subject_id,
            session_date=now.date(),
            start_time=now,
            end_time=now,
            status=SessionStatus.COMPLETED,
            attendance_type=AttendanceType.SWIPE,
        )
        return SwipeResult(session=session, records=records)

    def _live_session(self, principal: Principal, session_id: Any) -> AttendanceSession:
        session_id = require_positive_int(session_id, "sessionId")
        session = self._sessions.get_by_id(session_id)
        if not session or session.status is not SessionStatus.ACTIVE:
            raise InvalidStateError("Session is not active or does not exist")
        if session.teacher_id != principal.user_id:
            raise AuthorizationError("Not authorized for this session")
        return session

    def _require_enrolled(self, session: AttendanceSession, student_profile_id: int, *, label: Any = None) -> None:
        if not self._roster.is_enrolled(class_id=session.class_id, student_profile_id=student_profile_id):
            logger.warning("Student %s is not enrolled in class %s", student_profile_id, session.class_id)
            raise InvalidStateError(f"Student {label or student_profile_id} is not in this class.")

    def _remark(self, existing: AttendanceRecord, status: RecordStatus, now: datetime) -> AttendanceRecord:
        if not self._records.update_status(record_id=existing.record_id, status=status, marked_at=now):
            raise NotFoundError("Record not found")
        logger.info(
            "Re-marked student %s %s in session %s", existing.student_profile_id, status.value, existing.session_id
        )
        return replace(existing, status=status, marked_at=now)

    @staticmethod
    def _parse_swipe_entry(raw: Any, index: int) -> SwipeEntry:
        if isinstance(raw, SwipeEntry):
            return raw
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Record #{index + 1} must be an object with studentProfileId and status")

        student_profile_id = raw.get("studentProfileId", raw.get("student_profile_id"))
        if student_profile_id in (None, ""):
            raise ValidationError(f"Record #{index + 1} is missing studentProfileId")

        status = raw.get("status")
        return SwipeEntry(
            student_profile_id=require_positive_int(student_profile_id, f"records[{index}].studentProfileId"),
            status=(
                RecordStatus.PRESENT
                if status in (None, "")
                else require_enum(status, RecordStatus, f"records[{index}].status")
            ),
        )
