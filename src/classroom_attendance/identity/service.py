from __future__ import annotations

from typing import Any, Mapping

from ..core.enums import Role
from ..core.exceptions import AuthenticationError, NotFoundError
from ..roster.repository import RosterRepository
from .model import Principal


class IdentityService:
    """Resolve callers to principals.

    Credentials are issued elsewhere: the login application signs a Flask
    session (shared SECRET_KEY) carrying ``user_id`` and ``role``.
    """

    def __init__(self, roster: RosterRepository):
        self._roster = roster

    def resolve(self, session_data: Mapping[str, Any]) -> Principal:
        raw_user_id = session_data.get("user_id")
        if raw_user_id is None:
            raise AuthenticationError("Not authorized, no session")

        try:
            user_id = int(raw_user_id)
            role = Role(session_data.get("role"))
        except (TypeError, ValueError):
            raise AuthenticationError("Not authorized, session is invalid")

        return Principal(user_id=user_id, role=role)

    def own_profile_id(self, principal: Principal) -> int:
        """Student profile id of a Student principal."""

        profile = self._roster.get_profile_by_user_id(principal.user_id)
        if not profile:
            raise NotFoundError("Student profile not found")
        return profile.student_profile_id
