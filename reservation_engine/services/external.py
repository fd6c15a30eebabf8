"""
Owner-registered reservations (phone bookings, walk-ins).

These skip the customer request flow: they are inserted directly as
``accepted`` (venues) or ``confirmed`` (services) and book their date in the
same atomic unit. The customer has no account, so the contact details the
owner typed are kept on the first line of ``notes``:

    Customer: Sara Ali | Phone: +966500000000
    Wants the garden entrance open.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from reservation_engine.config import LOCK_TIMEOUT_SECONDS
from reservation_engine.db.locks import KeyLockRegistry, atomic_unit
from reservation_engine.db.readers.availability import get_availability
from reservation_engine.db.readers.reservations import get_reservation
from reservation_engine.db.writers.availability import clear_availability, upsert_availability
from reservation_engine.db.writers.reservations import (
    delete_reservation,
    insert_reservation,
    update_reservation_fields,
)
from reservation_engine.errors import InvalidRequest
from reservation_engine.models.enums import (
    OCCUPYING_STATUSES,
    AvailabilityStatus,
    ReservationOrigin,
    ReservationStatus,
    ResourceType,
)
from reservation_engine.services.guards import (
    ensure_day_free,
    holds_day,
    load_locked_reservation,
    locate_reservation,
)
from reservation_engine.services.outcome import MutationOutcome
from reservation_engine.services.ownership import require_owner
from reservation_engine.services.state_machine import status_for

logger = structlog.get_logger(__name__)

CONTACT_LINE = re.compile(r"^Customer: (?P<name>.*?) \| Phone: (?P<phone>.*)$")
EMPTY_CONTACT = "-"
CONTACT_DELIMITER = " | Phone: "


class ContactNotes(NamedTuple):
    name: Optional[str]
    phone: Optional[str]
    notes: Optional[str]


def encode_contact_notes(
    name: Optional[str], phone: Optional[str], notes: Optional[str] = None
) -> Optional[str]:
    """Fold customer contact details into a notes string."""
    lines = []
    if name or phone:
        name_part = name or EMPTY_CONTACT
        lines.append(f"Customer: {name_part}{CONTACT_DELIMITER}{phone or EMPTY_CONTACT}")
    if notes:
        lines.append(notes)
    return "\n".join(lines) or None


def decode_contact_notes(notes: Optional[str]) -> ContactNotes:
    """Split notes written by ``encode_contact_notes`` back into their parts."""
    if not notes:
        return ContactNotes(None, None, None)

    first, _, rest = notes.partition("\n")
    match = CONTACT_LINE.match(first)
    if match is None:
        return ContactNotes(None, None, notes)

    name = match["name"].strip()
    phone = match["phone"].strip()
    return ContactNotes(
        name=None if name == EMPTY_CONTACT else name,
        phone=None if phone == EMPTY_CONTACT else phone,
        notes=rest or None,
    )


def check_contact_field(field: str, value: Optional[str]) -> None:
    """
    Reject contact values that would not survive the notes encoding.

    The contact line is a single line split on ``CONTACT_DELIMITER``, so
    neither a line break nor the delimiter itself may appear in a value.

    Raises:
        InvalidRequest: value contains a line break or the delimiter
    """
    if value is None:
        return
    if "\n" in value or "\r" in value:
        raise InvalidRequest(f"{field} must be a single line", field=field)
    delimiter = CONTACT_DELIMITER.strip()
    if delimiter in value:
        raise InvalidRequest(f"{field} must not contain '{delimiter}'", field=field)


def external_customer_id(owner_id: str) -> str:
    """Synthetic customer identity for reservations an owner registered."""
    return f"external:{owner_id}"


def _check_guest_counts(resource_type: str, men: Optional[int], women: Optional[int]) -> None:
    if resource_type == ResourceType.SERVICE.value and (men is not None or women is not None):
        raise InvalidRequest("Guest counts apply to venue reservations only")
    for count in (men, women):
        if count is not None and count < 0:
            raise InvalidRequest("Guest counts must be non-negative")


class ExternalReservationAdapter:
    """
    Create, edit and delete owner-registered reservations.

    Example:
        >>> adapter = ExternalReservationAdapter(engine)
        >>> outcome = adapter.create(
        ...     "owner-1", "venue-1", date(2025, 7, 10), Decimal("3000"),
        ...     customer_name="Sara Ali", customer_phone="+966500000000",
        ... )
        >>> outcome.availability["status"]
        'booked'
    """

    def __init__(
        self,
        engine: Engine,
        locks: Optional[KeyLockRegistry] = None,
        lock_timeout: float = LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self.engine = engine
        self.locks = locks
        self.lock_timeout = lock_timeout

    def create(
        self,
        requester_id: str,
        resource_id: str,
        day: date,
        total_price: Decimal,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
        guest_count_men: Optional[int] = None,
        guest_count_women: Optional[int] = None,
        deposit_paid: bool = False,
    ) -> MutationOutcome:
        """
        Register an already-confirmed reservation and book its date.

        Raises:
            NotFound, NotOwner: resource checks
            Conflict: the date is already taken
            InvalidRequest: negative price or guest counts on a service
        """
        key = (resource_id, day)
        with atomic_unit(self.engine, [key], self.locks, self.lock_timeout) as conn:
            resource = require_owner(conn, resource_id, requester_id)
            resource_type = resource["resource_type"]
            _check_guest_counts(resource_type, guest_count_men, guest_count_women)
            check_contact_field("customer_name", customer_name)
            check_contact_field("customer_phone", customer_phone)
            ensure_day_free(conn, key)

            row = insert_reservation(
                conn,
                {
                    "resource_id": resource_id,
                    "resource_type": resource_type,
                    "customer_id": external_customer_id(requester_id),
                    "date": day,
                    "status": status_for(resource_type, ReservationStatus.ACCEPTED.value),
                    "total_price": total_price,
                    "deposit_paid": deposit_paid,
                    "guest_count_men": guest_count_men,
                    "guest_count_women": guest_count_women,
                    "notes": encode_contact_notes(customer_name, customer_phone, notes),
                    "origin": ReservationOrigin.EXTERNAL.value,
                },
                actor_id=requester_id,
            )
            upsert_availability(
                conn,
                resource_id,
                day,
                AvailabilityStatus.BOOKED,
                notes="external reservation",
                reservation_id=row["id"],
            )
            reservation = get_reservation(conn, row["id"])
            availability = get_availability(conn, resource_id, day)

        logger.info(
            "external_reservation_created",
            reservation_id=row["id"],
            resource_id=resource_id,
            date=day.isoformat(),
            requester_id=requester_id,
        )
        return MutationOutcome(reservation=reservation, availability=availability)

    def edit(
        self,
        reservation_id: str,
        requester_id: str,
        day: Optional[date] = None,
        total_price: Optional[Decimal] = None,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
        guest_count_men: Optional[int] = None,
        guest_count_women: Optional[int] = None,
        deposit_paid: Optional[bool] = None,
    ) -> MutationOutcome:
        """
        Edit an external reservation without a status transition.

        A date change re-checks exclusivity on the new date and moves the
        booking: both dates are locked, the old record is cleared and the
        new one booked in the same atomic unit.

        Raises:
            InvalidRequest: reservation did not originate externally
            Conflict: new date already taken
        """
        old_key = locate_reservation(self.engine, reservation_id)
        new_key = (old_key[0], day or old_key[1])

        with atomic_unit(self.engine, [old_key, new_key], self.locks, self.lock_timeout) as conn:
            reservation = load_locked_reservation(conn, reservation_id, old_key)
            self._require_external(conn, reservation, requester_id)
            _check_guest_counts(reservation["resource_type"], guest_count_men, guest_count_women)
            check_contact_field("customer_name", customer_name)
            check_contact_field("customer_phone", customer_phone)

            fields = self._changed_fields(
                reservation,
                total_price=total_price,
                customer_name=customer_name,
                customer_phone=customer_phone,
                notes=notes,
                guest_count_men=guest_count_men,
                guest_count_women=guest_count_women,
                deposit_paid=deposit_paid,
            )

            moved = new_key != old_key
            holds_old = holds_day(get_availability(conn, *old_key), reservation_id)
            rebook = moved and (holds_old or reservation["status"] in OCCUPYING_STATUSES)
            if moved:
                if rebook:
                    ensure_day_free(conn, new_key, reservation_id)
                fields["date"] = new_key[1]

            if fields:
                update_reservation_fields(conn, reservation_id, fields)
            if moved and holds_old:
                clear_availability(conn, *old_key)
            if rebook:
                upsert_availability(
                    conn,
                    *new_key,
                    AvailabilityStatus.BOOKED,
                    notes="external reservation",
                    reservation_id=reservation_id,
                )

            updated = get_reservation(conn, reservation_id)
            availability = get_availability(conn, *new_key)
            released = get_availability(conn, *old_key) if moved else None

        logger.info(
            "external_reservation_edited",
            reservation_id=reservation_id,
            fields=sorted(fields),
            from_date=old_key[1].isoformat(),
            to_date=new_key[1].isoformat(),
            requester_id=requester_id,
        )
        return MutationOutcome(
            reservation=updated, availability=availability, released_availability=released
        )

    def delete(self, reservation_id: str, requester_id: str) -> MutationOutcome:
        """
        Delete an external reservation and free its date.

        The availability record is cleared only when this reservation holds
        it; a resale listing or someone else's booking is left alone.
        """
        key = locate_reservation(self.engine, reservation_id)
        with atomic_unit(self.engine, [key], self.locks, self.lock_timeout) as conn:
            reservation = load_locked_reservation(conn, reservation_id, key)
            self._require_external(conn, reservation, requester_id)

            holds = holds_day(get_availability(conn, *key), reservation_id)
            if holds:
                clear_availability(conn, *key)
            delete_reservation(conn, reservation_id)
            availability = get_availability(conn, *key)

        logger.info(
            "external_reservation_deleted",
            reservation_id=reservation_id,
            resource_id=key[0],
            date=key[1].isoformat(),
            released=holds,
            requester_id=requester_id,
        )
        return MutationOutcome(reservation=None, availability=availability)

    @staticmethod
    def _require_external(
        conn: Connection, reservation: dict[str, Any], requester_id: str
    ) -> None:
        require_owner(conn, reservation["resource_id"], requester_id)
        if reservation["origin"] != ReservationOrigin.EXTERNAL.value:
            raise InvalidRequest(
                f"Reservation {reservation['id']} was requested by a customer; "
                "only externally registered reservations can be edited or deleted",
                reservation_id=reservation["id"],
            )

    @staticmethod
    def _changed_fields(reservation: dict[str, Any], **changes: Any) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for column in ("total_price", "guest_count_men", "guest_count_women", "deposit_paid"):
            if changes[column] is not None:
                fields[column] = changes[column]

        contact = (changes["customer_name"], changes["customer_phone"], changes["notes"])
        if any(part is not None for part in contact):
            current = decode_contact_notes(reservation["notes"])
            fields["notes"] = encode_contact_notes(
                current.name if changes["customer_name"] is None else changes["customer_name"],
                current.phone if changes["customer_phone"] is None else changes["customer_phone"],
                current.notes if changes["notes"] is None else changes["notes"],
            )
        return fields
