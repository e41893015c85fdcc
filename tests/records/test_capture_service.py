from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from classroom_attendance.core.enums import AttendanceType, RecordStatus, SessionStatus
from classroom_attendance.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from classroom_attendance.database.errors import MissingReference, UniqueViolation
from classroom_attendance.records.capture import AttendanceCaptureService

from conftest import (
    LEO_CODE,
    LEO_PROFILE_ID,
    MATH_CLASS_ID,
    PHYS_CLASS_ID,
    SAM_CODE,
    SAM_PROFILE_ID,
    SARA_PROFILE_ID,
    TEACHER_ID,
)


@pytest.fixture
def capture(container) -> AttendanceCaptureService:
    return container.capture_service


@pytest.fixture
def live_session(container, teacher, fixed_now):
    return container.session_service.start(teacher, class_id=MATH_CLASS_ID, attendance_type="QR", now=fixed_now)


def _records(store):
    return list(store.records.values())


# -- QR ------------------------------------------------------------------


def test_qr_marks_enrolled_student_present(capture, live_session, teacher, fixed_now):
    record = capture.mark_qr(teacher, session_id=live_session.session_id, scan_code=SAM_CODE, now=fixed_now)

    assert record.status is RecordStatus.PRESENT
    assert record.student_profile_id == SAM_PROFILE_ID
    assert record.session_id == live_session.session_id
    assert record.marked_at == fixed_now


def test_qr_twice_conflicts_and_keeps_one_record(capture, live_session, teacher, store):
    capture.mark_qr(teacher, session_id=live_session.session_id, scan_code=SAM_CODE)
    with pytest.raises(ConflictError, match="already been marked"):
        capture.mark_qr(teacher, session_id=live_session.session_id, scan_code=f"  {SAM_CODE} ")

    assert len(_records(store)) == 1


def test_qr_requires_session_and_code(capture, live_session, teacher):
    with pytest.raises(ValidationError):
        capture.mark_qr(teacher, session_id=live_session.session_id, scan_code="   ")
    with pytest.raises(ValidationError):
        capture.mark_qr(teacher, session_id=None, scan_code=SAM_CODE)


def test_qr_unknown_code_is_not_found(capture, live_session, teacher):
    with pytest.raises(NotFoundError, match="Invalid QR code"):
        capture.mark_qr(teacher, session_id=live_session.session_id, scan_code="ATTENDANCE_APP_STUDENT:nobody")


def test_qr_student_from_another_class_is_rejected(capture, live_session, teacher, store):
    with pytest.raises(InvalidStateError, match="STU000012 is not in this class"):
        capture.mark_qr(teacher, session_id=live_session.session_id, scan_code=LEO_CODE)
    assert _records(store) == []


def test_qr_on_ended_session_is_invalid_state(capture, container, live_session, teacher):
    container.session_service.end(teacher, live_session.session_id)
    with pytest.raises(InvalidStateError, match="not active"):
        capture.mark_qr(teacher, session_id=live_session.session_id, scan_code=SAM_CODE)


def test_qr_on_missing_session_is_invalid_state(capture, teacher):
    with pytest.raises(InvalidStateError):
        capture.mark_qr(teacher, session_id=12345, scan_code=SAM_CODE)


def test_qr_by_non_owner_is_forbidden(capture, live_session, other_teacher):
    with pytest.raises(AuthorizationError):
        capture.mark_qr(other_teacher, session_id=live_session.session_id, scan_code=SAM_CODE)


@pytest.mark.parametrize("who", ["admin", "sam"])
def test_capture_is_teacher_only(capture, live_session, request, who):
    with pytest.raises(AuthorizationError):
        capture.mark_qr(request.getfixturevalue(who), session_id=live_session.session_id, scan_code=SAM_CODE)


def test_concurrent_qr_scans_create_one_record(capture, live_session, teacher, store):
    barrier = threading.Barrier(6)
    results: list[str] = []
    lock = threading.Lock()

    def scan():
        barrier.wait()
        try:
            capture.mark_qr(teacher, session_id=live_session.session_id, scan_code=SAM_CODE)
            outcome = "ok"
        except ConflictError:
            outcome = "conflict"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=scan) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert len(_records(store)) == 1


# -- manual --------------------------------------------------------------


def test_manual_creates_then_updates_in_place(capture, live_session, teacher, store, fixed_now):
    first = capture.mark_manual(
        teacher, session_id=live_session.session_id, student_profile_id=SARA_PROFILE_ID, status="Absent", now=fixed_now
    )
    later = fixed_now + timedelta(minutes=10)
    second = capture.mark_manual(
        teacher, session_id=live_session.session_id, student_profile_id=SARA_PROFILE_ID, status="Late", now=later
    )

    assert second.record_id == first.record_id
    assert second.status is RecordStatus.LATE
    assert second.marked_at == later
    assert [r.status for r in _records(store)] == [RecordStatus.LATE]


def test_manual_overrides_a_qr_record(capture, live_session, teacher, store):
    capture.mark_qr(teacher, session_id=live_session.session_id, scan_code=SAM_CODE)
    capture.mark_manual(teacher, session_id=live_session.session_id, student_profile_id=SAM_PROFILE_ID, status="Excused")

    assert [r.status for r in _records(store)] == [RecordStatus.EXCUSED]


def test_manual_validates_input(capture, live_session, teacher):
    with pytest.raises(ValidationError):
        capture.mark_manual(teacher, session_id=live_session.session_id, student_profile_id=None, status="Present")
    with pytest.raises(ValidationError):
        capture.mark_manual(teacher, session_id=live_session.session_id, student_profile_id=SAM_PROFILE_ID, status="Sick")
    with pytest.raises(ValidationError):
        capture.mark_manual(teacher, session_id=live_session.session_id, student_profile_id="x", status="Present")


def test_manual_rejects_student_outside_class(capture, live_session, teacher):
    with pytest.raises(InvalidStateError):
        capture.mark_manual(teacher, session_id=live_session.session_id, student_profile_id=LEO_PROFILE_ID, status="Present")


def test_concurrent_manual_marks_keep_one_record(capture, live_session, teacher, store):
    barrier = threading.Barrier(6)
    errors: list[Exception] = []

    def mark(status):
        barrier.wait()
        try:
            capture.mark_manual(
                teacher, session_id=live_session.session_id, student_profile_id=SAM_PROFILE_ID, status=status
            )
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    statuses = ["Present", "Late", "Absent", "Present", "Late", "Excused"]
    threads = [threading.Thread(target=mark, args=(s,)) for s in statuses]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(_records(store)) == 1


def test_manual_recovers_when_insert_loses_race(capture, live_session, teacher, store, monkeypatch, fixed_now):
    original_create = store.create

    def racing_create(**kwargs):
        # Another request inserts the same pair first.
        original_create(**{**kwargs, "status": RecordStatus.PRESENT})
        return original_create(**kwargs)

    monkeypatch.setattr(store, "create", racing_create)

    record = capture.mark_manual(
        teacher, session_id=live_session.session_id, student_profile_id=SAM_PROFILE_ID, status="Late", now=fixed_now
    )
    assert record.status is RecordStatus.LATE
    assert [r.status for r in _records(store)] == [RecordStatus.LATE]


# -- swipe ---------------------------------------------------------------


def test_swipe_creates_completed_session_with_records(capture, teacher, store, fixed_now):
    result = capture.mark_swipe(
        teacher,
        class_id=MATH_CLASS_ID,
        subject_id=7,
        entries=[
            {"studentProfileId": SAM_PROFILE_ID, "status": "Present"},
            {"studentProfileId": SARA_PROFILE_ID, "status": "Absent"},
        ],
        now=fixed_now,
    )

    s = result.session
    assert s.status is SessionStatus.COMPLETED
    assert s.attendance_type is AttendanceType.SWIPE
    assert s.start_time == s.end_time == fixed_now
    assert s.subject_id == 7
    assert s.teacher_id == TEACHER_ID
    assert {(r.student_profile_id, r.status) for r in result.records} == {
        (SAM_PROFILE_ID, RecordStatus.PRESENT),
        (SARA_PROFILE_ID, RecordStatus.ABSENT),
    }
    assert store.sessions[s.session_id].status is SessionStatus.COMPLETED


def test_swipe_status_defaults_to_present(capture, teacher):
    result = capture.mark_swipe(teacher, class_id=MATH_CLASS_ID, entries=[{"student_profile_id": SAM_PROFILE_ID}])
    assert [r.status for r in result.records] == [RecordStatus.PRESENT]


@pytest.mark.parametrize("entries", [[], None])
def test_swipe_with_no_records_is_invalid_input(capture, teacher, store, entries):
    with pytest.raises(ValidationError, match="No attendance records provided"):
        capture.mark_swipe(teacher, class_id=MATH_CLASS_ID, entries=entries)
    assert store.sessions == {}


def test_swipe_duplicate_student_conflicts_and_persists_nothing(capture, teacher, store):
    with pytest.raises(ConflictError):
        capture.mark_swipe(
            teacher,
            class_id=MATH_CLASS_ID,
            entries=[
                {"studentProfileId": SAM_PROFILE_ID, "status": "Present"},
                {"studentProfileId": SARA_PROFILE_ID, "status": "Present"},
                {"studentProfileId": SAM_PROFILE_ID, "status": "Absent"},
            ],
        )

    assert store.sessions == {}
    assert store.records == {}


def test_swipe_store_rejection_is_conflict(capture, teacher, store, monkeypatch):
    def reject(**kwargs):
        raise UniqueViolation("uq_record_session_student")

    monkeypatch.setattr(store, "create_swipe_batch", reject)
    with pytest.raises(ConflictError, match="nothing was saved"):
        capture.mark_swipe(teacher, class_id=MATH_CLASS_ID, entries=[{"studentProfileId": SAM_PROFILE_ID}])


def test_swipe_unknown_student_is_not_found_and_saves_nothing(capture, teacher, store):
    with pytest.raises(NotFoundError, match="Student not found"):
        capture.mark_swipe(
            teacher,
            class_id=MATH_CLASS_ID,
            entries=[{"studentProfileId": SAM_PROFILE_ID}, {"studentProfileId": 9999}],
        )

    assert store.sessions == {}
    assert store.records == {}


def test_swipe_unknown_subject_is_not_found(capture, teacher, store, monkeypatch):
    def reject(**kwargs):
        raise MissingReference("fk_sessions_subject")

    monkeypatch.setattr(store, "create_swipe_batch", reject)
    with pytest.raises(NotFoundError, match="Subject 77 not found"):
        capture.mark_swipe(
            teacher, class_id=MATH_CLASS_ID, subject_id=77, entries=[{"studentProfileId": SAM_PROFILE_ID}]
        )


def test_swipe_unknown_class_is_not_found(capture, teacher):
    with pytest.raises(NotFoundError):
        capture.mark_swipe(teacher, class_id=999, entries=[{"studentProfileId": SAM_PROFILE_ID}])


def test_swipe_for_someone_elses_class_is_forbidden(capture, teacher, store):
    with pytest.raises(AuthorizationError):
        capture.mark_swipe(teacher, class_id=PHYS_CLASS_ID, entries=[{"studentProfileId": LEO_PROFILE_ID}])
    assert store.sessions == {}


@pytest.mark.parametrize(
    "entry",
    ["1000", {"status": "Present"}, {"studentProfileId": -4}, {"studentProfileId": SAM_PROFILE_ID, "status": "Gone"}],
)
def test_swipe_rejects_malformed_entries(capture, teacher, entry):
    with pytest.raises(ValidationError):
        capture.mark_swipe(teacher, class_id=MATH_CLASS_ID, entries=[entry])


def test_swipe_trusts_the_submitted_list_by_default(capture, teacher):
    result = capture.mark_swipe(teacher, class_id=MATH_CLASS_ID, entries=[{"studentProfileId": LEO_PROFILE_ID}])
    assert [r.student_profile_id for r in result.records] == [LEO_PROFILE_ID]


def test_swipe_enrolment_check_when_enabled(sessions_repo, records_repo, roster, teacher, store):
    strict = AttendanceCaptureService(sessions_repo, records_repo, roster, swipe_require_enrollment=True)

    with pytest.raises(InvalidStateError, match=str(LEO_PROFILE_ID)):
        strict.mark_swipe(
            teacher,
            class_id=MATH_CLASS_ID,
            entries=[{"studentProfileId": SAM_PROFILE_ID}, {"studentProfileId": LEO_PROFILE_ID}],
        )
    assert store.records == {}

    ok = strict.mark_swipe(teacher, class_id=MATH_CLASS_ID, entries=[{"studentProfileId": SAM_PROFILE_ID}])
    assert len(ok.records) == 1


def test_worked_example(container, teacher, store, fixed_now):
    sessions = container.session_service
    capture = container.capture_service

    s1 = sessions.start(teacher, class_id=MATH_CLASS_ID, attendance_type="QR", now=fixed_now)
    assert s1.status is SessionStatus.ACTIVE

    r1 = capture.mark_qr(teacher, session_id=s1.session_id, scan_code=SAM_CODE)
    assert (r1.session_id, r1.student_profile_id, r1.status) == (s1.session_id, SAM_PROFILE_ID, RecordStatus.PRESENT)

    with pytest.raises(ConflictError):
        capture.mark_qr(teacher, session_id=s1.session_id, scan_code=SAM_CODE)

    assert sessions.end(teacher, s1.session_id).status is SessionStatus.COMPLETED
    with pytest.raises(InvalidStateError, match="Completed"):
        sessions.end(teacher, s1.session_id)
