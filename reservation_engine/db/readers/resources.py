from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from reservation_engine.models.resources import Resource


def get_resource(conn: Connection, resource_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch a resource by ID.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        resource_id (str): Resource ID.

    Returns:
        Optional[dict[str, Any]]: Resource row or None if not found.
    """
    row = conn.execute(select(Resource).where(Resource.id == resource_id)).mappings().fetchone()
    return dict(row) if row else None


def list_owned_resources(conn: Connection, owner_id: str) -> list[dict[str, Any]]:
    """
    List all resources owned by a requester, ordered by ID.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        owner_id (str): Owner ID.

    Returns:
        list[dict[str, Any]]: Resource rows.
    """
    result = conn.execute(
        select(Resource).where(Resource.owner_id == owner_id).order_by(Resource.id)
    )
    return [dict(row) for row in result.mappings()]
