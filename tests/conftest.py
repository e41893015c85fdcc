from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

import pytest

from classroom_attendance.container import Container, wire
from classroom_attendance.core.enums import AttendanceType, RecordStatus, Role, SessionStatus
from classroom_attendance.database.errors import MissingReference, UniqueViolation
from classroom_attendance.identity.model import Principal
from classroom_attendance.records.model import (
    AttendanceRecord,
    SessionRecordRow,
    StudentRecordRow,
    SwipeEntry,
)
from classroom_attendance.roster.model import ClassInfo, StudentProfile
from classroom_attendance.sessions.model import AttendanceSession, SessionFilter, SessionRow

ADMIN_ID = 1
TEACHER_ID = 2
OTHER_TEACHER_ID = 3
SAM_USER_ID = 10
SARA_USER_ID = 11
LEO_USER_ID = 12

MATH_CLASS_ID = 100
PHYS_CLASS_ID = 200

SAM_PROFILE_ID = 1000
SARA_PROFILE_ID = 1001
LEO_PROFILE_ID = 1002

SAM_CODE = "ATTENDANCE_APP_STUDENT:STU000010_0123456789abcdef"
SARA_CODE = "ATTENDANCE_APP_STUDENT:STU000011_fedcba9876543210"
LEO_CODE = "ATTENDANCE_APP_STUDENT:STU000012_00ff00ff00ff00ff"


@dataclass
class InMemoryRoster:
    classes: dict[int, ClassInfo]
    enrolments: dict[int, set[int]]
    profiles: list[StudentProfile]

    def get_class(self, class_id: int) -> Optional[ClassInfo]:
        return self.classes.get(class_id)

    def is_enrolled(self, *, class_id: int, student_profile_id: int) -> bool:
        return student_profile_id in self.enrolments.get(class_id, set())

    def enrolled_among(self, *, class_id: int, student_profile_ids: Iterable[int]) -> set[int]:
        return set(student_profile_ids) & self.enrolments.get(class_id, set())

    def get_profile_by_scan_code(self, scan_code: str) -> Optional[StudentProfile]:
        return next((p for p in self.profiles if p.scan_code == scan_code), None)

    def get_profile_by_user_id(self, user_id: int) -> Optional[StudentProfile]:
        return next((p for p in self.profiles if p.user_id == user_id), None)


@dataclass
class InMemoryAttendanceStore:
    """Sessions and records in one store, with the same unique and student keys as MySQL.

    A single re-entrant lock stands in for the database: each method is one atomic
    statement, so check-then-write races in the services still show up.
    """

    roster: InMemoryRoster
    sessions: dict[int, AttendanceSession] = field(default_factory=dict)
    records: dict[int, AttendanceRecord] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock)
    _next_session_id: int = 1
    _next_record_id: int = 1

    # -- sessions --------------------------------------------------------

    def _row(self, s: AttendanceSession) -> SessionRow:
        cls = self.roster.get_class(s.class_id)
        return SessionRow(session=s, class_name=cls.name if cls else None, class_subject=cls.subject if cls else None)

    def get_row(self, session_id: int) -> Optional[SessionRow]:
        s = self.sessions.get(session_id)
        return self._row(s) if s else None

    def create_active(
        self,
        *,
        class_id: int,
        teacher_id: int,
        attendance_type: AttendanceType,
        session_date: date,
        start_time: datetime,
    ) -> int:
        with self._lock:
            if any(s.class_id == class_id and s.status is SessionStatus.ACTIVE for s in self.sessions.values()):
                raise UniqueViolation("uq_one_active_session_per_class")
            session_id = self._next_session_id
            self._next_session_id += 1
            self.sessions[session_id] = AttendanceSession(
                session_id=session_id,
                class_id=class_id,
                teacher_id=teacher_id,
                session_date=session_date,
                start_time=start_time,
                end_time=None,
                status=SessionStatus.ACTIVE,
                attendance_type=attendance_type,
            )
            return session_id

    def close(self, *, session_id: int, status: SessionStatus, end_time: datetime, require_active: bool = True) -> bool:
        with self._lock:
            s = self.sessions.get(session_id)
            if not s or (require_active and s.status is not SessionStatus.ACTIVE):
                return False
            self.sessions[session_id] = replace(s, status=status, end_time=end_time)
            return True

    def list_rows(self, filters: SessionFilter) -> Sequence[SessionRow]:
        items = [
            s
            for s in self.sessions.values()
            if (filters.class_id is None or s.class_id == filters.class_id)
            and (filters.teacher_id is None or s.teacher_id == filters.teacher_id)
            and (filters.status is None or s.status is filters.status)
            and (filters.attendance_type is None or s.attendance_type is filters.attendance_type)
            and (filters.session_date is None or s.session_date == filters.session_date)
        ]
        items.sort(key=lambda s: (s.start_time, s.session_id), reverse=True)
        return [self._row(s) for s in items]

    # -- records ---------------------------------------------------------

    def get_for_session_and_student(self, *, session_id: int, student_profile_id: int) -> Optional[AttendanceRecord]:
        with self._lock:
            return next(
                (
                    r
                    for r in self.records.values()
                    if r.session_id == session_id and r.student_profile_id == student_profile_id
                ),
                None,
            )

    def _insert_record(self, *, session_id: int, student_profile_id: int, status: RecordStatus, marked_at: datetime) -> int:
        if not any(p.student_profile_id == student_profile_id for p in self.roster.profiles):
            raise MissingReference("fk_records_student")
        if self.get_for_session_and_student(session_id=session_id, student_profile_id=student_profile_id):
            raise UniqueViolation("uq_record_session_student")
        record_id = self._next_record_id
        self._next_record_id += 1
        self.records[record_id] = AttendanceRecord(
            record_id=record_id,
            session_id=session_id,
            student_profile_id=student_profile_id,
            status=status,
            marked_at=marked_at,
        )
        return record_id

    def create(self, *, session_id: int, student_profile_id: int, status: RecordStatus, marked_at: datetime) -> int:
        with self._lock:
            return self._insert_record(
                session_id=session_id, student_profile_id=student_profile_id, status=status, marked_at=marked_at
            )

    def update_status(self, *, record_id: int, status: RecordStatus, marked_at: datetime) -> bool:
        with self._lock:
            r = self.records.get(record_id)
            if not r:
                return False
            self.records[record_id] = replace(r, status=status, marked_at=marked_at)
            return True

    def create_swipe_batch(
        self,
        *,
        class_id: int,
        teacher_id: int,
        subject_id: Optional[int],
        captured_at: datetime,
        entries: Sequence[SwipeEntry],
    ) -> tuple[int, list[AttendanceRecord]]:
        with self._lock:
            sessions_before = dict(self.sessions)
            records_before = dict(self.records)
            try:
                session_id = self._next_session_id
                self._next_session_id += 1
                self.sessions[session_id] = AttendanceSession(
                    session_id=session_id,
                    class_id=class_id,
                    teacher_id=teacher_id,
                    subject_id=subject_id,
                    session_date=captured_at.date(),
                    start_time=captured_at,
                    end_time=captured_at,
                    status=SessionStatus.COMPLETED,
                    attendance_type=AttendanceType.SWIPE,
                )
                ids = [
                    self._insert_record(
                        session_id=session_id,
                        student_profile_id=e.student_profile_id,
                        status=e.status,
                        marked_at=captured_at,
                    )
                    for e in entries
                ]
            except (UniqueViolation, MissingReference):
                self.sessions = sessions_before
                self.records = records_before
                raise
            return session_id, [self.records[i] for i in ids]

    def list_for_session(self, session_id: int) -> Sequence[SessionRecordRow]:
        rows = []
        for r in sorted(self.records.values(), key=lambda r: (r.marked_at, r.record_id)):
            if r.session_id != session_id:
                continue
            p = next((p for p in self.roster.profiles if p.student_profile_id == r.student_profile_id), None)
            rows.append(
                SessionRecordRow(record=r, student_code=p.student_code if p else None, student_name=p.full_name if p else None)
            )
        return rows

    def list_for_student(self, student_profile_id: int) -> Sequence[StudentRecordRow]:
        rows = []
        for r in self.records.values():
            if r.student_profile_id != student_profile_id:
                continue
            s = self.sessions.get(r.session_id)
            cls = self.roster.get_class(s.class_id) if s else None
            rows.append(StudentRecordRow(record=r, session=s, class_name=cls.name if cls else None))
        rows.sort(key=lambda row: (row.session.start_time if row.session else datetime.min, row.record.record_id), reverse=True)
        return rows


class SessionView:
    """SessionRepository facade over the shared store."""

    def __init__(self, store: InMemoryAttendanceStore):
        self._store = store

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        return self._store.sessions.get(session_id)

    def __getattr__(self, name):
        return getattr(self._store, name)


class RecordView:
    """RecordRepository facade over the shared store."""

    def __init__(self, store: InMemoryAttendanceStore):
        self._store = store

    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        return self._store.records.get(record_id)

    def __getattr__(self, name):
        return getattr(self._store, name)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 9, 2, 8, 0, 0)


@pytest.fixture
def roster() -> InMemoryRoster:
    return InMemoryRoster(
        classes={
            MATH_CLASS_ID: ClassInfo(MATH_CLASS_ID, "Grade 10 A", "G10AMATH", "Mathematics", TEACHER_ID),
            PHYS_CLASS_ID: ClassInfo(PHYS_CLASS_ID, "Grade 11 B", "G11BPHYS", "Physics", OTHER_TEACHER_ID),
        },
        enrolments={
            MATH_CLASS_ID: {SAM_PROFILE_ID, SARA_PROFILE_ID},
            PHYS_CLASS_ID: {LEO_PROFILE_ID},
        },
        profiles=[
            StudentProfile(SAM_PROFILE_ID, SAM_USER_ID, "STU000010", SAM_CODE, "Sam Student", MATH_CLASS_ID),
            StudentProfile(SARA_PROFILE_ID, SARA_USER_ID, "STU000011", SARA_CODE, "Sara Student", MATH_CLASS_ID),
            StudentProfile(LEO_PROFILE_ID, LEO_USER_ID, "STU000012", LEO_CODE, "Leo Student", PHYS_CLASS_ID),
        ],
    )


@pytest.fixture
def store(roster) -> InMemoryAttendanceStore:
    return InMemoryAttendanceStore(roster=roster)


@pytest.fixture
def sessions_repo(store) -> SessionView:
    return SessionView(store)


@pytest.fixture
def records_repo(store) -> RecordView:
    return RecordView(store)


@pytest.fixture
def container(roster, sessions_repo, records_repo) -> Container:
    return wire(roster_repo=roster, sessions_repo=sessions_repo, records_repo=records_repo)


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id=ADMIN_ID, role=Role.ADMIN)


@pytest.fixture
def teacher() -> Principal:
    return Principal(user_id=TEACHER_ID, role=Role.TEACHER)


@pytest.fixture
def other_teacher() -> Principal:
    return Principal(user_id=OTHER_TEACHER_ID, role=Role.TEACHER)


@pytest.fixture
def sam() -> Principal:
    return Principal(user_id=SAM_USER_ID, role=Role.STUDENT)


@pytest.fixture
def sara() -> Principal:
    return Principal(user_id=SARA_USER_ID, role=Role.STUDENT)
