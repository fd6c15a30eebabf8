"""
Reservation store writes.

Status changes go through ``update_reservation_status``, a conditional update
keyed on the status the caller validated against, and always append a row to
the status history in the same transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection

from reservation_engine.errors import Conflict, InvalidRequest
from reservation_engine.models.enums import ReservationOrigin, ReservationStatus, ResourceType
from reservation_engine.models.reservations import Reservation, ReservationStatusHistory
from reservation_engine.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

# Fields an update may touch without a status transition
EDITABLE_FIELDS = frozenset(
    {
        "date",
        "total_price",
        "deposit_paid",
        "guest_count_men",
        "guest_count_women",
        "notes",
        "refund_status",
    }
)


def insert_reservation(
    conn: Connection, data: dict[str, Any], actor_id: str | None = None
) -> dict[str, Any]:
    """
    Insert one reservation row and its creation history entry.

    This is the ingest point for the booking-creation flow (customer requests
    arrive ``pending``) and for owner-registered external reservations.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        data (dict): Reservation fields; ``id`` is generated when absent.
        actor_id (str | None): Who created the row, for the history entry.

    Returns:
        dict[str, Any]: The row as inserted.

    Raises:
        InvalidRequest: negative price, unknown status/type/origin.
    """
    now = utc_now()
    total_price = Decimal(str(data.get("total_price") or 0))
    if total_price < 0:
        raise InvalidRequest("total_price must be non-negative", total_price=str(total_price))

    try:
        status = ReservationStatus(data.get("status", ReservationStatus.PENDING)).value
        resource_type = ResourceType(data["resource_type"]).value
        origin = ReservationOrigin(data.get("origin", ReservationOrigin.CUSTOMER)).value
    except (KeyError, ValueError) as e:
        raise InvalidRequest(f"Invalid reservation data: {e}") from e

    row = {
        "id": data.get("id") or str(uuid.uuid4()),
        "resource_id": data["resource_id"],
        "resource_type": resource_type,
        "customer_id": data["customer_id"],
        "date": data["date"],
        "status": status,
        "total_price": total_price,
        "deposit_paid": bool(data.get("deposit_paid", False)),
        "guest_count_men": data.get("guest_count_men"),
        "guest_count_women": data.get("guest_count_women"),
        "notes": data.get("notes"),
        "origin": origin,
        "refund_status": None,
        "created_at": now,
        "updated_at": now,
    }

    conn.execute(insert(Reservation).values(row))
    append_status_history(conn, row["id"], None, status, actor_id, note="created", at=now)

    logger.info(
        "reservation_inserted",
        reservation_id=row["id"],
        resource_id=row["resource_id"],
        date=row["date"].isoformat(),
        status=status,
        origin=origin,
    )
    return row


def update_reservation_status(
    conn: Connection,
    reservation_id: str,
    from_status: str,
    to_status: str,
    actor_id: str | None,
    note: str | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Move a reservation from ``from_status`` to ``to_status``.

    The UPDATE only matches while the row still has ``from_status``; a miss
    means another writer got there first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.
        from_status (str): Status the caller validated against.
        to_status (str): New status.
        actor_id (str | None): Requester performing the change.
        note (str | None): Free text stored with the history entry.
        extra (dict | None): Additional columns to write (e.g. refund_status).

    Raises:
        Conflict: if the reservation is no longer in ``from_status``.
    """
    now = utc_now()
    values: dict[str, Any] = {"status": to_status, "updated_at": now}
    if extra:
        values.update(extra)

    result = conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id, Reservation.status == from_status)
        .values(**values)
    )
    if result.rowcount != 1:
        raise Conflict(
            f"Reservation {reservation_id} changed concurrently; expected status {from_status}",
            reservation_id=reservation_id,
        )

    append_status_history(conn, reservation_id, from_status, to_status, actor_id, note, at=now)


def update_reservation_fields(
    conn: Connection, reservation_id: str, fields: dict[str, Any]
) -> None:
    """
    Update non-status fields of a reservation.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.
        fields (dict): Columns to update; must be a subset of EDITABLE_FIELDS.

    Raises:
        InvalidRequest: if a field is not editable or the price is negative.
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise InvalidRequest(f"Fields not editable: {sorted(unknown)}")
    if "total_price" in fields:
        fields = {**fields, "total_price": Decimal(str(fields["total_price"]))}
        if fields["total_price"] < 0:
            raise InvalidRequest("total_price must be non-negative")

    conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .values(**fields, updated_at=utc_now())
    )


def delete_reservation(conn: Connection, reservation_id: str) -> None:
    """
    Permanently delete a reservation and its status history.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.
    """
    conn.execute(
        delete(ReservationStatusHistory).where(
            ReservationStatusHistory.reservation_id == reservation_id
        )
    )
    conn.execute(delete(Reservation).where(Reservation.id == reservation_id))


def append_status_history(
    conn: Connection,
    reservation_id: str,
    from_status: str | None,
    to_status: str,
    actor_id: str | None,
    note: str | None = None,
    at: datetime | None = None,
) -> None:
    """Append one entry to the reservation's status history."""
    conn.execute(
        insert(ReservationStatusHistory).values(
            reservation_id=reservation_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            note=note,
            changed_at=at or utc_now(),
        )
    )
