from __future__ import annotations

import secrets

from ..core.constants import SCAN_CODE_PREFIX, SCAN_CODE_RANDOM_BYTES


def generate_scan_code(student_code: str) -> str:
    """Build the string a student's QR badge encodes.

    The random suffix keeps codes unguessable from the student code alone.
    """
    return f"{SCAN_CODE_PREFIX}:{student_code}_{secrets.token_hex(SCAN_CODE_RANDOM_BYTES)}"


def normalize_scan_code(value: str | None) -> str:
    return (value or "").strip()
