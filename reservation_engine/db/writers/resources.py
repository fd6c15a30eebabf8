from typing import Any

import structlog
from sqlalchemy.engine import Connection

from reservation_engine.db.writers._upsert import upsert_with_distinct_check
from reservation_engine.errors import InvalidRequest
from reservation_engine.models.enums import ResourceType
from reservation_engine.models.resources import Resource
from reservation_engine.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def upsert_resources(conn: Connection, data: list[dict[str, Any]]) -> None:
    """
    Upsert resources, updating only rows whose type, owner or name changed.

    Resources are owned by the catalogue side of the product; this writer is
    how they are mirrored here for ownership checks and owner calendars.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        data (list[dict[str, Any]]): Rows with id, resource_type, owner_id and optional name.

    Raises:
        InvalidRequest: unknown resource_type.
    """
    now = utc_now()
    rows: list[dict[str, Any]] = []

    for item in data:
        resource_id = item.get("id")
        if not resource_id or not item.get("owner_id"):
            logger.warning("resource_skipped_missing_fields", resource_id=resource_id)
            continue
        try:
            resource_type = ResourceType(item.get("resource_type")).value
        except ValueError as e:
            raise InvalidRequest(f"Unknown resource_type for {resource_id}") from e

        rows.append(
            {
                "id": resource_id,
                "resource_type": resource_type,
                "owner_id": item["owner_id"],
                "name": item.get("name"),
                "created_at": now,
                "updated_at": now,
            }
        )

    upsert_with_distinct_check(
        conn=conn,
        table=Resource,
        rows=rows,
        conflict_columns=["id"],
        distinct_columns=["resource_type", "owner_id", "name"],
    )

    logger.info("resources_upserted", count=len(rows))
