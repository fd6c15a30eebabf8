"""
Reservation status state machine.

Transition table (actor: resource owner):

    pending   -> accepted/confirmed  book the date
    pending   -> rejected            refund, notify, release the date if held
    accepted  -> completed           services only
    accepted  -> cancelled           refund, notify, release the date (or relist it as resale)
    accepted  -> pending             release the date (revert for review)
    cancelled -> pending             hold the date again, unless someone else has it

Venues say ``accepted`` and services say ``confirmed`` for the same state;
the table is written against ``accepted`` and the stored value follows the
resource type.

Each transition reads the current status, validates the edge and writes the
reservation, its history entry and its availability record inside one
``atomic_unit`` scoped to (resource_id, date). Side effects are dispatched
only after the commit and can never undo it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from reservation_engine.config import LOCK_TIMEOUT_SECONDS
from reservation_engine.db.locks import KeyLockRegistry, atomic_unit
from reservation_engine.db.readers.availability import get_availability
from reservation_engine.db.readers.reservations import get_reservation
from reservation_engine.db.writers.availability import (
    clear_availability,
    upsert_availability,
    validate_discount,
)
from reservation_engine.db.writers.reservations import (
    update_reservation_fields,
    update_reservation_status,
)
from reservation_engine.errors import (
    InvalidRequest,
    InvalidTransition,
    NotFound,
    ReservationEngineError,
)
from reservation_engine.metrics import transition_duration, transitions_total
from reservation_engine.models.enums import (
    AvailabilityStatus,
    RefundStatus,
    ReservationOrigin,
    ReservationStatus,
    ResourceType,
    SideEffectKind,
)
from reservation_engine.services.guards import (
    ensure_day_free,
    holds_day,
    load_locked_reservation,
    locate_reservation,
)
from reservation_engine.services.outcome import MutationOutcome
from reservation_engine.services.ownership import require_owner
from reservation_engine.services.side_effects import SideEffect, SideEffectDispatcher

logger = structlog.get_logger(__name__)

PENDING = ReservationStatus.PENDING.value
ACCEPTED = ReservationStatus.ACCEPTED.value
CONFIRMED = ReservationStatus.CONFIRMED.value
REJECTED = ReservationStatus.REJECTED.value
CANCELLED = ReservationStatus.CANCELLED.value
COMPLETED = ReservationStatus.COMPLETED.value


class AvailabilityEffect(str, Enum):
    NONE = "none"
    BOOK = "book"
    RELEASE = "release"
    REINSTATE = "reinstate"


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    availability: AvailabilityEffect
    refund: bool = False
    notify: Optional[str] = None
    resource_types: frozenset[str] = frozenset(t.value for t in ResourceType)


TRANSITIONS: dict[tuple[str, str], Edge] = {
    (PENDING, ACCEPTED): Edge(
        PENDING, ACCEPTED, AvailabilityEffect.BOOK, notify="reservation_accepted"
    ),
    (PENDING, REJECTED): Edge(
        PENDING, REJECTED, AvailabilityEffect.RELEASE, refund=True, notify="reservation_rejected"
    ),
    (ACCEPTED, COMPLETED): Edge(
        ACCEPTED,
        COMPLETED,
        AvailabilityEffect.NONE,
        resource_types=frozenset({ResourceType.SERVICE.value}),
    ),
    (ACCEPTED, CANCELLED): Edge(
        ACCEPTED, CANCELLED, AvailabilityEffect.RELEASE, refund=True, notify="reservation_cancelled"
    ),
    (ACCEPTED, PENDING): Edge(ACCEPTED, PENDING, AvailabilityEffect.RELEASE),
    (CANCELLED, PENDING): Edge(CANCELLED, PENDING, AvailabilityEffect.REINSTATE),
}


def canonical_status(status: str) -> str:
    """
    Map a status to the value the transition table is written against.

    Raises:
        InvalidTransition: unknown status
    """
    try:
        value = ReservationStatus(status).value
    except ValueError as e:
        raise InvalidTransition(f"Unknown reservation status {status!r}") from e
    return ACCEPTED if value == CONFIRMED else value


def status_for(resource_type: str, canonical: str) -> str:
    """Return the stored spelling of a canonical status for a resource type."""
    if canonical == ACCEPTED and resource_type == ResourceType.SERVICE.value:
        return CONFIRMED
    return canonical


def _status_label(status: str) -> str:
    # Metric label for a requested status; free text must not mint new series
    try:
        return canonical_status(status)
    except InvalidTransition:
        return "invalid"


def resolve_edge(resource_type: str, current: str, target: str) -> Edge:
    """
    Find the edge from ``current`` to ``target`` for a resource type.

    Raises:
        InvalidTransition: when no such edge exists
    """
    source = canonical_status(current)
    destination = canonical_status(target)
    edge = TRANSITIONS.get((source, destination))
    if edge is None or resource_type not in edge.resource_types:
        raise InvalidTransition(
            f"Cannot move a {resource_type} reservation from {current} to {target}",
            from_status=current,
            to_status=target,
        )
    return edge


class ReservationStateMachine:
    """
    Validates and applies reservation status transitions.

    Example:
        >>> machine = ReservationStateMachine(engine, SideEffectDispatcher(engine))
        >>> outcome = machine.transition(reservation_id, "accepted", requester_id="owner-1")
        >>> outcome.reservation["status"], outcome.availability["status"]
        ('accepted', 'booked')
    """

    def __init__(
        self,
        engine: Engine,
        dispatcher: SideEffectDispatcher,
        locks: Optional[KeyLockRegistry] = None,
        lock_timeout: float = LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self.engine = engine
        self.dispatcher = dispatcher
        self.locks = locks
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        reservation_id: str,
        to_status: str,
        requester_id: str,
        resale_discount: Optional[int] = None,
        note: Optional[str] = None,
    ) -> MutationOutcome:
        """
        Move a reservation to ``to_status``.

        Args:
            reservation_id: Reservation to change
            to_status: Target status (``accepted`` and ``confirmed`` are interchangeable)
            requester_id: Caller; must own the reservation's resource
            resale_discount: Only for cancellation: relist the date at this discount
            note: Stored in the status history

        Returns:
            MutationOutcome: post-transition reservation and availability, plus
            side-effect warnings

        Raises:
            NotFound, NotOwner, InvalidTransition, Conflict, InvalidDiscount,
            InvalidRequest, Busy
        """
        if resale_discount is not None:
            validate_discount(resale_discount)
            if canonical_status(to_status) != CANCELLED:
                raise InvalidRequest("A resale discount only applies to cancellation")
        return self._apply(reservation_id, to_status, requester_id, resale_discount, note)

    def resell(
        self,
        reservation_id: str,
        discount_percent: int,
        requester_id: str,
        notes: Optional[str] = None,
    ) -> MutationOutcome:
        """
        Cancel an accepted reservation and relist its date at a discount.

        The cancellation and the ``resale`` write share one atomic unit, so
        the date goes straight from ``booked`` to ``resale``.

        Raises:
            InvalidDiscount: discount outside 5-50
            InvalidTransition: reservation is not accepted/confirmed
        """
        validate_discount(discount_percent)
        return self._apply(reservation_id, CANCELLED, requester_id, discount_percent, notes)

    def _apply(
        self,
        reservation_id: str,
        to_status: str,
        requester_id: str,
        resale_discount: Optional[int],
        note: Optional[str],
    ) -> MutationOutcome:
        key = locate_reservation(self.engine, reservation_id)
        resource_type = "unknown"
        from_status = "unknown"
        started = time.monotonic()

        try:
            with atomic_unit(self.engine, [key], self.locks, self.lock_timeout) as conn:
                reservation = load_locked_reservation(conn, reservation_id, key)
                require_owner(conn, reservation["resource_id"], requester_id)
                resource_type = reservation["resource_type"]
                from_status = reservation["status"]

                edge = resolve_edge(resource_type, from_status, to_status)
                target = status_for(resource_type, edge.target)
                self._check(conn, reservation, edge)

                extra = None
                if edge.refund:
                    extra = {"refund_status": RefundStatus.REQUESTED.value}
                update_reservation_status(
                    conn, reservation_id, from_status, target, requester_id, note, extra
                )
                self._sync_availability(conn, reservation, edge, resale_discount, note)

                updated = get_reservation(conn, reservation_id)
                if updated is None:
                    raise NotFound(f"Reservation {reservation_id} not found")
                availability = get_availability(conn, *key)
        except ReservationEngineError as e:
            transitions_total.labels(
                resource_type=resource_type,
                from_status=from_status,
                to_status=_status_label(to_status),
                outcome=e.code,
            ).inc()
            logger.info(
                "reservation_transition_refused",
                reservation_id=reservation_id,
                from_status=from_status,
                to_status=to_status,
                requester_id=requester_id,
                error=e.code,
                detail=e.message,
            )
            raise

        transition_duration.labels(resource_type=resource_type).observe(time.monotonic() - started)
        transitions_total.labels(
            resource_type=resource_type,
            from_status=from_status,
            to_status=target,
            outcome="committed",
        ).inc()
        logger.info(
            "reservation_transitioned",
            reservation_id=reservation_id,
            resource_id=key[0],
            date=key[1].isoformat(),
            from_status=from_status,
            to_status=target,
            requester_id=requester_id,
            availability=availability["status"],
            resale_discount=resale_discount,
        )

        warnings = self.dispatcher.dispatch(self._side_effects(updated, edge, resale_discount))
        return MutationOutcome(reservation=updated, availability=availability, warnings=warnings)

    # ------------------------------------------------------------------
    # Edits that are not status transitions
    # ------------------------------------------------------------------

    def reschedule(self, reservation_id: str, new_date: date, requester_id: str) -> MutationOutcome:
        """
        Move a pending reservation to another date.

        A pending reservation that holds its date (after a reinstatement)
        takes the hold along; the new date must then be free.

        Raises:
            InvalidTransition: reservation is not pending
            Conflict: the held date cannot move because the new date is taken
        """
        old_key = locate_reservation(self.engine, reservation_id)
        new_key = (old_key[0], new_date)

        with atomic_unit(self.engine, [old_key, new_key], self.locks, self.lock_timeout) as conn:
            reservation = load_locked_reservation(conn, reservation_id, old_key)
            require_owner(conn, reservation["resource_id"], requester_id)
            if reservation["status"] != PENDING:
                raise InvalidTransition(
                    f"Only pending reservations can be rescheduled (status {reservation['status']})"
                )

            if new_date != old_key[1]:
                old_record = get_availability(conn, *old_key)
                holds_date = holds_day(old_record, reservation_id)
                if holds_date:
                    ensure_day_free(conn, new_key, reservation_id)

                update_reservation_fields(conn, reservation_id, {"date": new_date})
                if holds_date:
                    clear_availability(conn, *old_key)
                    upsert_availability(
                        conn,
                        *new_key,
                        AvailabilityStatus.BOOKED,
                        notes="held for review",
                        reservation_id=reservation_id,
                    )

            updated = get_reservation(conn, reservation_id)
            availability = get_availability(conn, *new_key)
            released = get_availability(conn, *old_key)

        logger.info(
            "reservation_rescheduled",
            reservation_id=reservation_id,
            from_date=old_key[1].isoformat(),
            to_date=new_date.isoformat(),
            requester_id=requester_id,
        )
        return MutationOutcome(
            reservation=updated, availability=availability, released_availability=released
        )

    def update_details(
        self,
        reservation_id: str,
        requester_id: str,
        deposit_paid: Optional[bool] = None,
        notes: Optional[str] = None,
    ) -> MutationOutcome:
        """
        Toggle the deposit flag and/or replace owner notes.

        Neither is a state-machine input: no status change, no availability write.
        """
        fields: dict[str, Any] = {}
        if deposit_paid is not None:
            fields["deposit_paid"] = deposit_paid
        if notes is not None:
            fields["notes"] = notes

        key = locate_reservation(self.engine, reservation_id)
        with atomic_unit(self.engine, [key], self.locks, self.lock_timeout) as conn:
            reservation = load_locked_reservation(conn, reservation_id, key)
            require_owner(conn, reservation["resource_id"], requester_id)
            if fields:
                update_reservation_fields(conn, reservation_id, fields)
            updated = get_reservation(conn, reservation_id)
            availability = get_availability(conn, *key)

        logger.info(
            "reservation_details_updated",
            reservation_id=reservation_id,
            fields=sorted(fields),
            requester_id=requester_id,
        )
        return MutationOutcome(reservation=updated, availability=availability)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check(self, conn: Connection, reservation: dict[str, Any], edge: Edge) -> None:
        key = (reservation["resource_id"], reservation["date"])
        if edge.availability == AvailabilityEffect.BOOK:
            if Decimal(reservation["total_price"]) < 0:
                raise InvalidRequest("Cannot accept a reservation with a negative price")
            ensure_day_free(conn, key, reservation["id"])
        elif edge.availability == AvailabilityEffect.REINSTATE:
            ensure_day_free(conn, key, reservation["id"])

    def _sync_availability(
        self,
        conn: Connection,
        reservation: dict[str, Any],
        edge: Edge,
        resale_discount: Optional[int],
        note: Optional[str],
    ) -> None:
        reservation_id = reservation["id"]
        key = (reservation["resource_id"], reservation["date"])

        if edge.availability == AvailabilityEffect.BOOK:
            upsert_availability(
                conn, *key, AvailabilityStatus.BOOKED, notes="booked", reservation_id=reservation_id
            )
        elif edge.availability == AvailabilityEffect.REINSTATE:
            upsert_availability(
                conn,
                *key,
                AvailabilityStatus.BOOKED,
                notes="held for review",
                reservation_id=reservation_id,
            )
        elif edge.availability == AvailabilityEffect.RELEASE:
            if resale_discount is not None:
                upsert_availability(
                    conn,
                    *key,
                    AvailabilityStatus.RESALE,
                    discount=resale_discount,
                    notes=note or f"relisted at {resale_discount}% discount after cancellation",
                )
            elif holds_day(get_availability(conn, *key), reservation_id):
                clear_availability(conn, *key)

    @staticmethod
    def _has_customer(reservation: dict[str, Any]) -> bool:
        # Owner-registered reservations carry a synthetic customer id nobody can receive messages on
        return reservation["origin"] == ReservationOrigin.CUSTOMER.value

    def _side_effects(
        self, reservation: dict[str, Any], edge: Edge, resale_discount: Optional[int]
    ) -> list[SideEffect]:
        effects: list[SideEffect] = []
        if edge.refund:
            effects.append(
                SideEffect(
                    kind=SideEffectKind.REFUND,
                    reservation_id=reservation["id"],
                    resource_type=reservation["resource_type"],
                    customer_id=reservation["customer_id"],
                    resource_id=reservation["resource_id"],
                )
            )
        if edge.notify and self._has_customer(reservation):
            effects.append(
                SideEffect(
                    kind=SideEffectKind.NOTIFY,
                    reservation_id=reservation["id"],
                    resource_type=reservation["resource_type"],
                    customer_id=reservation["customer_id"],
                    resource_id=reservation["resource_id"],
                    template=edge.notify,
                    payload={
                        "reservation_id": reservation["id"],
                        "resource_id": reservation["resource_id"],
                        "date": reservation["date"].isoformat(),
                        "status": reservation["status"],
                        "relisted": resale_discount is not None,
                    },
                )
            )
        return effects
