"""Example: drive the service layer directly (no Flask).

Controllers are thin; the attendance rules live in the services.
"""

import importlib

from config import get_settings_module

from classroom_attendance.container import build_container
from classroom_attendance.identity.model import Principal
from classroom_attendance.core.enums import Role


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)

    teacher = Principal(user_id=2, role=Role.TEACHER)
    for row in container.session_service.list_sessions(teacher, {"status": "Active"}):
        print(row.session.session_id, row.class_name, row.session.start_time)


if __name__ == "__main__":
    main()
