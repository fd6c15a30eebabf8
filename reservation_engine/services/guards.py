"""
Checks shared by every operation that writes inside an atomic unit.

A reservation's lock key is its (resource_id, date). The key is looked up
outside the lock, then the reservation is re-read under the lock and the key
compared, so a concurrent reschedule turns into ``Busy`` instead of a write
under the wrong lock.
"""

from typing import Any, Optional

from sqlalchemy.engine import Connection, Engine

from reservation_engine.db.locks import LockKey
from reservation_engine.db.readers.availability import get_availability
from reservation_engine.db.readers.reservations import find_occupant, get_reservation
from reservation_engine.errors import Busy, Conflict, NotFound
from reservation_engine.models.enums import AvailabilityStatus


def locate_reservation(engine: Engine, reservation_id: str) -> LockKey:
    """
    Return the lock key of a reservation.

    Raises:
        NotFound: unknown reservation
    """
    with engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found", reservation_id=reservation_id)
    return reservation["resource_id"], reservation["date"]


def load_locked_reservation(conn: Connection, reservation_id: str, key: LockKey) -> dict[str, Any]:
    """
    Re-read a reservation inside the atomic unit holding ``key``.

    Raises:
        NotFound: deleted since the key lookup
        Busy: moved to another date since the key lookup
    """
    reservation = get_reservation(conn, reservation_id)
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found", reservation_id=reservation_id)
    if (reservation["resource_id"], reservation["date"]) != key:
        raise Busy(f"Reservation {reservation_id} moved; retry", reservation_id=reservation_id)
    return reservation


def holds_day(record: dict[str, Any], reservation_id: Optional[str]) -> bool:
    """True when ``record`` is booked by ``reservation_id``."""
    return (
        reservation_id is not None
        and record["status"] == AvailabilityStatus.BOOKED.value
        and record["reservation_id"] == reservation_id
    )


def ensure_day_free(conn: Connection, key: LockKey, reservation_id: Optional[str] = None) -> None:
    """
    Raise Conflict unless the day can be taken by ``reservation_id``.

    The day is free when no other accepted/confirmed reservation occupies it
    and its availability record is not booked by someone else.
    """
    resource_id, day = key
    occupant = find_occupant(conn, resource_id, day, exclude_id=reservation_id)
    if occupant is not None:
        raise Conflict(
            f"Reservation {occupant['id']} already occupies {resource_id} on {day.isoformat()}",
            resource_id=resource_id,
            date=day.isoformat(),
            occupant_id=occupant["id"],
        )

    record = get_availability(conn, resource_id, day)
    if record["status"] == AvailabilityStatus.BOOKED.value and not holds_day(
        record, reservation_id
    ):
        raise Conflict(
            f"{resource_id} is already booked on {day.isoformat()}",
            resource_id=resource_id,
            date=day.isoformat(),
            holder_id=record["reservation_id"],
        )
