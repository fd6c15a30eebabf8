"""
Owner-facing counters and listings, derived on every read from the
reservation store.
"""

from typing import Any, Optional

from sqlalchemy.engine import Engine

from reservation_engine.db.readers.reservations import (
    count_by_status,
    count_deposit_paid,
    list_reservations,
)
from reservation_engine.db.readers.resources import list_owned_resources
from reservation_engine.errors import NotOwner
from reservation_engine.models.enums import OCCUPYING_STATUSES, ReservationStatus


def owner_dashboard(engine: Engine, owner_id: str) -> dict[str, Any]:
    """
    Badge counts for an owner across all of their resources.

    Returns:
        dict: resource_count, pending_count, accepted_count (accepted and
        confirmed), paid_count and the raw per-status counts
    """
    with engine.connect() as conn:
        resource_ids = [r["id"] for r in list_owned_resources(conn, owner_id)]
        by_status = count_by_status(conn, resource_ids)
        paid = count_deposit_paid(conn, resource_ids)

    return {
        "owner_id": owner_id,
        "resource_count": len(resource_ids),
        "pending_count": by_status.get(ReservationStatus.PENDING.value, 0),
        "accepted_count": sum(by_status.get(s, 0) for s in OCCUPYING_STATUSES),
        "paid_count": paid,
        "by_status": by_status,
    }


def list_owner_reservations(
    engine: Engine,
    owner_id: str,
    status: Optional[list[str]] = None,
    resource_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    Reservations on an owner's resources, newest first.

    Raises:
        NotOwner: ``resource_id`` is not one of the owner's resources
    """
    with engine.connect() as conn:
        resource_ids = [r["id"] for r in list_owned_resources(conn, owner_id)]
        if resource_id is not None:
            if resource_id not in resource_ids:
                raise NotOwner(
                    f"Requester {owner_id} does not own resource {resource_id}",
                    resource_id=resource_id,
                )
            resource_ids = [resource_id]
        return list_reservations(conn, resource_ids, status=status)
