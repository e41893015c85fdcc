from __future__ import annotations

from typing import Optional

from flask import Flask, request

from ..common.datetime_utils import iso_or_none
from ..common.http import api_endpoint, json_body, ok, ok_list
from ..container import Container
from .model import AttendanceSession, SessionRow


def session_to_json(s: AttendanceSession, row: Optional[SessionRow] = None) -> dict:
    data = {
        "sessionId": s.session_id,
        "classId": s.class_id,
        "teacherId": s.teacher_id,
        "subjectId": s.subject_id,
        "sessionDate": iso_or_none(s.session_date),
        "startTime": iso_or_none(s.start_time),
        "endTime": iso_or_none(s.end_time),
        "status": s.status.value,
        "attendanceType": s.attendance_type.value,
    }
    if row is not None:
        data["class"] = {"classId": s.class_id, "name": row.class_name, "subject": row.class_subject}
    return data


def session_row_to_json(row: SessionRow) -> dict:
    return session_to_json(row.session, row)


def register(app: Flask, container: Container) -> None:
    api = api_endpoint(container)
    service = container.session_service

    @app.route("/api/attendance/sessions/start", methods=["POST"], endpoint="start_session")
    @api
    def start_session(principal):
        body = json_body()
        s = service.start(principal, class_id=body.get("classId"), attendance_type=body.get("attendanceType"))
        return ok(session_to_json(s), 201)

    @app.route("/api/attendance/sessions/<session_id>/end", methods=["PUT"], endpoint="end_session")
    @api
    def end_session(principal, session_id):
        return ok(session_to_json(service.end(principal, session_id)))

    @app.route("/api/attendance/sessions/<session_id>/cancel", methods=["PUT"], endpoint="cancel_session")
    @api
    def cancel_session(principal, session_id):
        return ok(session_to_json(service.cancel(principal, session_id)))

    @app.route("/api/attendance/sessions/active", methods=["GET"], endpoint="active_sessions")
    @api
    def active_sessions(principal):
        return ok_list([session_row_to_json(r) for r in service.list_active(principal)])

    @app.route("/api/attendance/sessions", methods=["GET"], endpoint="list_sessions")
    @api
    def list_sessions(principal):
        rows = service.list_sessions(principal, request.args.to_dict())
        return ok_list([session_row_to_json(r) for r in rows])

    @app.route("/api/attendance/sessions/<session_id>", methods=["GET"], endpoint="get_session")
    @api
    def get_session(principal, session_id):
        return ok(session_row_to_json(service.get(principal, session_id)))
