from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from .connection import DatabaseConnection
from .errors import MissingReference, UniqueViolation

_DUP_KEY_RE = re.compile(r"for key '([^']+)'")
_FK_NAME_RE = re.compile(r"CONSTRAINT `([^`]+)`")


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Yield (conn, cursor); commit on success, roll back on any exception.

    Duplicate-key integrity errors are re-raised as UniqueViolation and failed
    foreign key checks as MissingReference, both after the rollback.
    """

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except IntegrityError as e:
        conn.rollback()
        if e.errno == errorcode.ER_DUP_ENTRY:
            raise UniqueViolation(duplicate_key_name(e.msg)) from e
        if e.errno == errorcode.ER_NO_REFERENCED_ROW_2:
            raise MissingReference(foreign_key_name(e.msg)) from e
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def duplicate_key_name(message: Optional[str]) -> str:
    """Extract the index name from a MySQL 'Duplicate entry' message."""

    match = _DUP_KEY_RE.search(message or "")
    if not match:
        return ""
    # MySQL 8 reports 'table.key'.
    return match.group(1).split(".")[-1]


def foreign_key_name(message: Optional[str]) -> str:
    """Extract the constraint name from a MySQL 'Cannot add or update a child row' message."""

    match = _FK_NAME_RE.search(message or "")
    return match.group(1) if match else ""


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
