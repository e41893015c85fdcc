from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import Role


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of an operation."""

    user_id: int
    role: Role
