"""
Database Helper Utilities

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Dialect-specific INSERT ... ON CONFLICT DO UPDATE statements
- Naive UTC timestamps matching the DateTime columns
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current UTC time without tzinfo (columns are naive UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'postgresql'
    except Exception:
        return False


def upsert_statement(
    db: Session,
    model,
    rows: List[dict],
    conflict_columns: Iterable[str],
    exclude_from_update: Iterable[str] = ("id", "created_at")
):
    """
    Build a batched INSERT ... ON CONFLICT (...) DO UPDATE for the session's dialect.

    Every inserted column not listed in exclude_from_update is overwritten on
    conflict, so the last write for a key wins.

    Example:
        stmt = upsert_statement(db, BokunBookingCache, rows, ["bokun_booking_id"])
        db.execute(stmt)
    """
    insert = postgresql.insert if is_postgres(db) else sqlite.insert
    conflict_columns = list(conflict_columns)
    skip = set(conflict_columns) | set(exclude_from_update)

    stmt = insert(model).values(rows)
    update_columns = {
        column: stmt.excluded[column]
        for column in rows[0].keys()
        if column not in skip
    }
    return stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_=update_columns
    )
