from __future__ import annotations

from flask import Flask

from ..common.datetime_utils import iso_or_none
from ..common.http import api_endpoint, json_body, ok, ok_list
from ..container import Container
from ..sessions.controller import session_to_json
from .model import AttendanceRecord, SessionRecordRow, StudentRecordRow

# camelCase request keys accepted by the correction endpoint.
_UPDATE_KEYS = {"status": "status", "markedAt": "marked_at", "marked_at": "marked_at"}


def record_to_json(r: AttendanceRecord) -> dict:
    return {
        "recordId": r.record_id,
        "sessionId": r.session_id,
        "studentProfileId": r.student_profile_id,
        "status": r.status.value,
        "markedAt": iso_or_none(r.marked_at),
    }


def session_record_to_json(row: SessionRecordRow) -> dict:
    data = record_to_json(row.record)
    data["student"] = {
        "studentProfileId": row.record.student_profile_id,
        "studentCode": row.student_code,
        "name": row.student_name,
    }
    return data


def student_record_to_json(row: StudentRecordRow) -> dict:
    data = record_to_json(row.record)
    if row.session is not None:
        session = session_to_json(row.session)
        session["className"] = row.class_name
        data["session"] = session
    return data


def register(app: Flask, container: Container) -> None:
    api = api_endpoint(container)
    capture = container.capture_service
    query = container.query_service

    @app.route("/api/attendance/records/qr", methods=["POST"], endpoint="mark_qr")
    @api
    def mark_qr(principal):
        body = json_body()
        record = capture.mark_qr(principal, session_id=body.get("sessionId"), scan_code=body.get("qrCode"))
        return ok(record_to_json(record), 201)

    @app.route("/api/attendance/records/manual", methods=["POST"], endpoint="mark_manual")
    @api
    def mark_manual(principal):
        body = json_body()
        record = capture.mark_manual(
            principal,
            session_id=body.get("sessionId"),
            student_profile_id=body.get("studentProfileId"),
            status=body.get("status"),
        )
        return ok(record_to_json(record), 201)

    @app.route("/api/attendance/records/swipe", methods=["POST"], endpoint="mark_swipe")
    @api
    def mark_swipe(principal):
        body = json_body()
        result = capture.mark_swipe(
            principal,
            class_id=body.get("classId"),
            subject_id=body.get("subjectId"),
            entries=body.get("records"),
        )
        return ok(
            {
                "session": session_to_json(result.session),
                "createdRecords": [record_to_json(r) for r in result.records],
            },
            201,
        )

    @app.route("/api/attendance/records/session/<session_id>", methods=["GET"], endpoint="records_by_session")
    @api
    def records_by_session(principal, session_id):
        return ok_list([session_record_to_json(r) for r in query.records_for_session(principal, session_id)])

    @app.route("/api/attendance/records/student/<student_profile_id>", methods=["GET"], endpoint="records_by_student")
    @api
    def records_by_student(principal, student_profile_id):
        return ok_list([student_record_to_json(r) for r in query.records_for_student(principal, student_profile_id)])

    @app.route("/api/attendance/records/<record_id>", methods=["PUT"], endpoint="update_record")
    @api
    def update_record(principal, record_id):
        fields = {_UPDATE_KEYS.get(k, k): v for k, v in json_body().items()}
        return ok(record_to_json(query.update_record(principal, record_id, fields)))
