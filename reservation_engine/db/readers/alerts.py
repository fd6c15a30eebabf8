from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from reservation_engine.models.alerts import SideEffectFailure


def list_side_effect_failures(
    conn: Connection,
    reservation_id: Optional[str] = None,
    limit: int = 100,
    resource_ids: Optional[Iterable[str]] = None,
) -> list[dict[str, Any]]:
    """
    List terminally failed side effects, newest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (Optional[str]): Restrict to one reservation.
        limit (int): Maximum rows returned.
        resource_ids (Optional[Iterable[str]]): Restrict to these resources.

    Returns:
        list[dict[str, Any]]: Failure rows.
    """
    stmt = select(SideEffectFailure)
    if reservation_id is not None:
        stmt = stmt.where(SideEffectFailure.reservation_id == reservation_id)
    if resource_ids is not None:
        stmt = stmt.where(SideEffectFailure.resource_id.in_(list(resource_ids)))
    stmt = stmt.order_by(SideEffectFailure.id.desc()).limit(limit)
    return [dict(row) for row in conn.execute(stmt).mappings()]
