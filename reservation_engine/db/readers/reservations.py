from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from reservation_engine.models.enums import OCCUPYING_STATUSES
from reservation_engine.models.reservations import Reservation, ReservationStatusHistory


def get_reservation(conn: Connection, reservation_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch a single reservation.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.

    Returns:
        Optional[dict[str, Any]]: Reservation row or None if not found.
    """
    row = (
        conn.execute(select(Reservation).where(Reservation.id == reservation_id))
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def find_occupant(
    conn: Connection, resource_id: str, day: date, exclude_id: Optional[str] = None
) -> Optional[dict[str, Any]]:
    """
    Find the accepted/confirmed reservation occupying a resource on a date.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        resource_id (str): Resource ID.
        day (date): Calendar date.
        exclude_id (Optional[str]): Reservation to ignore (the one being changed).

    Returns:
        Optional[dict[str, Any]]: The occupying reservation, or None.
    """
    stmt = (
        select(Reservation)
        .where(Reservation.resource_id == resource_id)
        .where(Reservation.date == day)
        .where(Reservation.status.in_(OCCUPYING_STATUSES))
    )
    if exclude_id is not None:
        stmt = stmt.where(Reservation.id != exclude_id)

    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def list_reservations(
    conn: Connection,
    resource_ids: Iterable[str],
    status: Optional[Iterable[str]] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[dict[str, Any]]:
    """
    List reservations for a set of resources, newest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        resource_ids (Iterable[str]): Resources to include.
        status (Optional[Iterable[str]]): Only these statuses.
        start (Optional[date]): Only dates on or after start.
        end (Optional[date]): Only dates on or before end.

    Returns:
        list[dict[str, Any]]: Matching reservation rows.
    """
    resource_ids = list(resource_ids)
    if not resource_ids:
        return []

    stmt = select(Reservation).where(Reservation.resource_id.in_(resource_ids))
    if status is not None:
        stmt = stmt.where(Reservation.status.in_(list(status)))
    if start is not None:
        stmt = stmt.where(Reservation.date >= start)
    if end is not None:
        stmt = stmt.where(Reservation.date <= end)
    stmt = stmt.order_by(Reservation.created_at.desc(), Reservation.id)

    return [dict(row) for row in conn.execute(stmt).mappings()]


def count_by_status(conn: Connection, resource_ids: Iterable[str]) -> dict[str, int]:
    """
    Count reservations per status for a set of resources.

    Returns:
        dict[str, int]: status -> count (statuses with no rows are omitted)
    """
    resource_ids = list(resource_ids)
    if not resource_ids:
        return {}

    result = conn.execute(
        select(Reservation.status, func.count())
        .where(Reservation.resource_id.in_(resource_ids))
        .group_by(Reservation.status)
    )
    return {status: count for status, count in result}


def count_deposit_paid(conn: Connection, resource_ids: Iterable[str]) -> int:
    """Count reservations whose deposit has been marked as paid."""
    resource_ids = list(resource_ids)
    if not resource_ids:
        return 0

    return conn.execute(
        select(func.count())
        .select_from(Reservation)
        .where(Reservation.resource_id.in_(resource_ids))
        .where(Reservation.deposit_paid.is_(True))
    ).scalar_one()


def get_status_history(conn: Connection, reservation_id: str) -> list[dict[str, Any]]:
    """
    Get the status history of a reservation, oldest first.

    Returns:
        list[dict[str, Any]]: History entries.
    """
    result = conn.execute(
        select(ReservationStatusHistory)
        .where(ReservationStatusHistory.reservation_id == reservation_id)
        .order_by(ReservationStatusHistory.id)
    )
    return [dict(row) for row in result.mappings()]
