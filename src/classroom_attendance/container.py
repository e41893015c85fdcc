from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .database.connection import DBConfig, DatabaseConnection
from .identity.service import IdentityService
from .records.capture import AttendanceCaptureService
from .records.mysql_record_repository import MySQLRecordRepository
from .records.query import AttendanceQueryService
from .records.repository import RecordRepository
from .roster.mysql_roster_repository import MySQLRosterRepository
from .roster.repository import RosterRepository
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.repository import SessionRepository
from .sessions.service import SessionService


@dataclass(frozen=True)
class Container:
    roster_repo: RosterRepository
    sessions_repo: SessionRepository
    records_repo: RecordRepository

    identity_service: IdentityService
    session_service: SessionService
    capture_service: AttendanceCaptureService
    query_service: AttendanceQueryService

    conn: Optional[DatabaseConnection] = None


def wire(
    *,
    roster_repo: RosterRepository,
    sessions_repo: SessionRepository,
    records_repo: RecordRepository,
    conn: Optional[DatabaseConnection] = None,
    swipe_require_enrollment: bool = False,
    allow_cancel_terminal: bool = False,
) -> Container:
    """Build the services on top of any repository implementations."""

    identity_service = IdentityService(roster_repo)
    return Container(
        roster_repo=roster_repo,
        sessions_repo=sessions_repo,
        records_repo=records_repo,
        identity_service=identity_service,
        session_service=SessionService(sessions_repo, roster_repo, allow_cancel_terminal=allow_cancel_terminal),
        capture_service=AttendanceCaptureService(
            sessions_repo,
            records_repo,
            roster_repo,
            swipe_require_enrollment=swipe_require_enrollment,
        ),
        query_service=AttendanceQueryService(sessions_repo, records_repo, identity_service),
        conn=conn,
    )


def build_container(
    *,
    db_config: dict,
    swipe_require_enrollment: bool = False,
    allow_cancel_terminal: bool = False,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    return wire(
        roster_repo=MySQLRosterRepository(conn),
        sessions_repo=MySQLSessionRepository(conn),
        records_repo=MySQLRecordRepository(conn),
        conn=conn,
        swipe_require_enrollment=swipe_require_enrollment,
        allow_cancel_terminal=allow_cancel_terminal,
    )
