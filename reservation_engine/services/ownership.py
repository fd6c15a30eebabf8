"""
Resource ownership checks.

Owners may mutate reservations only on resources they own. The check runs on
the connection of the atomic unit, before any write.
"""

from typing import Any

import structlog
from sqlalchemy.engine import Connection

from reservation_engine.db.readers.resources import get_resource
from reservation_engine.errors import NotFound, NotOwner

logger = structlog.get_logger(__name__)


def require_owner(conn: Connection, resource_id: str, requester_id: str) -> dict[str, Any]:
    """
    Ensure ``requester_id`` owns ``resource_id``.

    Args:
        conn: Database connection
        resource_id: Resource being mutated
        requester_id: Caller identity

    Returns:
        dict: The resource row

    Raises:
        NotFound: resource does not exist
        NotOwner: resource belongs to someone else
    """
    resource = get_resource(conn, resource_id)
    if resource is None:
        raise NotFound(f"Resource {resource_id} not found", resource_id=resource_id)
    if resource["owner_id"] != requester_id:
        logger.warning("ownership_denied", resource_id=resource_id, requester_id=requester_id)
        raise NotOwner(
            f"Requester {requester_id} does not own resource {resource_id}",
            resource_id=resource_id,
        )
    return resource

