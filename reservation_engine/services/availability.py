"""
Owner actions on the availability calendar that do not go through a
reservation transition: manual relisting and reconciliation.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from reservation_engine.config import LOCK_TIMEOUT_SECONDS
from reservation_engine.db.locks import KeyLockRegistry, atomic_unit
from reservation_engine.db.readers.availability import get_availability
from reservation_engine.db.readers.reservations import find_occupant, get_reservation
from reservation_engine.db.writers.availability import clear_availability, upsert_availability
from reservation_engine.errors import Conflict, InvalidRequest
from reservation_engine.models.enums import HOLDING_STATUSES, AvailabilityStatus
from reservation_engine.services.outcome import MutationOutcome
from reservation_engine.services.ownership import require_owner

logger = structlog.get_logger(__name__)

MANUAL_STATUSES = (AvailabilityStatus.AVAILABLE.value, AvailabilityStatus.RESALE.value)


def _valid_holder(conn: Connection, record: dict[str, Any]) -> Optional[dict[str, Any]]:
    if record["status"] != AvailabilityStatus.BOOKED.value or not record["reservation_id"]:
        return None
    holder = get_reservation(conn, record["reservation_id"])
    if (
        holder is None
        or holder["status"] not in HOLDING_STATUSES
        or (holder["resource_id"], holder["date"]) != (record["resource_id"], record["date"])
    ):
        return None
    return holder


class AvailabilityService:
    """Manual calendar edits and owner-initiated reconciliation."""

    def __init__(
        self,
        engine: Engine,
        locks: Optional[KeyLockRegistry] = None,
        lock_timeout: float = LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self.engine = engine
        self.locks = locks
        self.lock_timeout = lock_timeout

    def set_day(
        self,
        resource_id: str,
        day: date,
        status: str,
        requester_id: str,
        discount: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> MutationOutcome:
        """
        Set a free day to ``available`` or ``resale``.

        Booked days belong to reservations and are never set by hand.

        Raises:
            InvalidRequest: status is not available or resale
            InvalidDiscount: resale discount outside 5-50
            Conflict: a reservation occupies or holds the day
        """
        if status not in MANUAL_STATUSES:
            raise InvalidRequest(
                "Only available or resale can be set directly; "
                "register an external reservation to block a day",
                status=status,
            )

        key = (resource_id, day)
        with atomic_unit(self.engine, [key], self.locks, self.lock_timeout) as conn:
            require_owner(conn, resource_id, requester_id)
            occupant = find_occupant(conn, resource_id, day)
            if occupant is not None:
                raise Conflict(
                    f"Reservation {occupant['id']} occupies {resource_id} on {day.isoformat()}",
                    resource_id=resource_id,
                    date=day.isoformat(),
                    occupant_id=occupant["id"],
                )
            record = get_availability(conn, resource_id, day)
            if record["status"] == AvailabilityStatus.BOOKED.value:
                raise Conflict(
                    f"{resource_id} is booked on {day.isoformat()}; reconcile it first",
                    resource_id=resource_id,
                    date=day.isoformat(),
                    holder_id=record["reservation_id"],
                )

            upsert_availability(conn, resource_id, day, status, discount=discount, notes=notes)
            availability = get_availability(conn, resource_id, day)

        logger.info(
            "availability_set_manually",
            resource_id=resource_id,
            date=day.isoformat(),
            status=status,
            discount=discount,
            requester_id=requester_id,
        )
        return MutationOutcome(reservation=None, availability=availability)

    def reconcile_day(self, resource_id: str, day: date, requester_id: str) -> MutationOutcome:
        """
        Rewrite a day's availability record from the reservation store.

        - an accepted/confirmed reservation exists: booked for it
        - the record is booked for a reservation that may hold it: unchanged
        - otherwise a booked record is cleared; resale and available stay
        """
        key = (resource_id, day)
        with atomic_unit(self.engine, [key], self.locks, self.lock_timeout) as conn:
            require_owner(conn, resource_id, requester_id)
            before = get_availability(conn, resource_id, day)
            occupant = find_occupant(conn, resource_id, day)

            if occupant is not None:
                upsert_availability(
                    conn,
                    resource_id,
                    day,
                    AvailabilityStatus.BOOKED,
                    notes="reconciled",
                    reservation_id=occupant["id"],
                )
            elif (
                before["status"] == AvailabilityStatus.BOOKED.value
                and _valid_holder(conn, before) is None
            ):
                clear_availability(conn, resource_id, day)

            after = get_availability(conn, resource_id, day)
            reservation = (
                get_reservation(conn, after["reservation_id"]) if after["reservation_id"] else None
            )

        logger.warning(
            "availability_reconciled",
            resource_id=resource_id,
            date=day.isoformat(),
            before_status=before["status"],
            before_holder=before["reservation_id"],
            after_status=after["status"],
            after_holder=after["reservation_id"],
            requester_id=requester_id,
        )
        return MutationOutcome(reservation=reservation, availability=after)
