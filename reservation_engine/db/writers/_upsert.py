"""
Generic upsert helper with IS DISTINCT FROM optimization.

Shared by the availability and resource writers. Works on PostgreSQL and
SQLite, which both support ``INSERT ... ON CONFLICT DO UPDATE ... WHERE``.
"""

from typing import Any, Callable

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def dialect_insert(conn: Connection) -> Callable[..., Any]:
    """
    Return the dialect-specific ``insert`` construct that supports ON CONFLICT.

    Raises:
        NotImplementedError: for dialects without ON CONFLICT support
    """
    name = conn.dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert is not supported on dialect {name!r}")


def upsert_with_distinct_check(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: list[str],
    distinct_columns: list[str],
    update_columns: list[str] | None = None,
) -> int:
    """
    Perform upsert with IS DISTINCT FROM optimization.

    Only updates rows where at least one of ``distinct_columns`` actually
    changed, so repeating an identical upsert leaves ``updated_at`` untouched.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., Availability, Resource)
        rows: List of row dicts to upsert
        conflict_columns: Columns of the primary key / unique constraint
        distinct_columns: Columns compared to decide whether to update
        update_columns: Columns to update on conflict (default: distinct_columns + updated_at)

    Returns:
        int: number of rows inserted or updated (0 when nothing changed)

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=Availability,
        ...         rows=[{"resource_id": "venue-1", "date": day, "status": "booked", ...}],
        ...         conflict_columns=["resource_id", "date"],
        ...         distinct_columns=["status", "resale_discount", "reservation_id", "notes"],
        ...     )
    """
    if not rows:
        return 0

    if update_columns is None:
        update_columns = [*distinct_columns, "updated_at"]

    insert = dialect_insert(conn)
    stmt = insert(table).values(rows)

    set_dict = {col: getattr(stmt.excluded, col) for col in update_columns}

    distinct_check = or_(
        *[
            getattr(table, col).is_distinct_from(getattr(stmt.excluded, col))
            for col in distinct_columns
        ]
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_=set_dict,
        where=distinct_check,
    )

    result = conn.execute(stmt)
    return result.rowcount
