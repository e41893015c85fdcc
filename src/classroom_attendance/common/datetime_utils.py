from __future__ import annotations

from datetime import date, datetime


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_iso_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.strip())


def now_local() -> datetime:
    """Current local time, truncated to whole seconds (DATETIME columns).

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now().replace(microsecond=0)


def iso_or_none(value) -> str | None:
    return value.isoformat() if value is not None else None
