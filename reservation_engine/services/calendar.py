"""
Read-only calendar projection over the availability and reservation stores.

A day is reported as ``needs-reconciliation`` when the two stores disagree:

- a ``booked`` record whose holder is missing, inactive or on another date,
- an accepted/confirmed reservation whose date is not booked for it.

Nothing here writes. Repairs go through ``reconcile_day``.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from reservation_engine.db.readers.availability import get_availability_for_resources
from reservation_engine.db.readers.reservations import list_reservations
from reservation_engine.db.readers.resources import get_resource, list_owned_resources
from reservation_engine.db.writers.availability import availability_row
from reservation_engine.errors import NotFound
from reservation_engine.metrics import reconciliation_days
from reservation_engine.models.enums import (
    HOLDING_STATUSES,
    OCCUPYING_STATUSES,
    TERMINAL_NEGATIVE_STATUSES,
    AvailabilityStatus,
    ReservationOrigin,
    ReservationStatus,
)
from reservation_engine.services.external import decode_contact_notes
from reservation_engine.utils.datetime import iter_days, month_bounds

logger = structlog.get_logger(__name__)

NEEDS_RECONCILIATION = "needs-reconciliation"


@dataclass
class CalendarDay:
    date: date
    resource_id: str
    status: str
    availability_status: str
    resale_discount: Optional[int] = None
    reservation: Optional[dict[str, Any]] = None
    pending_requests: int = 0
    inactive_reservations: int = 0
    issues: list[str] = field(default_factory=list)


def find_issues(record: dict[str, Any], reservations: Iterable[dict[str, Any]]) -> list[str]:
    """
    Compare one availability record with the reservations on the same day.

    Args:
        record: Availability record (synthetic ``available`` when absent)
        reservations: Reservations for the same resource and date

    Returns:
        list[str]: Human-readable inconsistencies; empty when the stores agree
    """
    reservations = list(reservations)
    by_id = {r["id"]: r for r in reservations}
    occupants = [r for r in reservations if r["status"] in OCCUPYING_STATUSES]
    issues = []

    if record["status"] == AvailabilityStatus.BOOKED.value:
        holder = by_id.get(record["reservation_id"]) if record["reservation_id"] else None
        if holder is None:
            issues.append("booked without an active reservation")
        elif holder["status"] not in HOLDING_STATUSES:
            issues.append(f"booked for reservation {holder['id']} which is {holder['status']}")

    for occupant in occupants:
        if not (
            record["status"] == AvailabilityStatus.BOOKED.value
            and record["reservation_id"] == occupant["id"]
        ):
            issues.append(
                f"reservation {occupant['id']} is {occupant['status']} "
                f"but the date is {record['status']}"
            )

    if len(occupants) > 1:
        issues.append(f"{len(occupants)} reservations occupy the same date")

    return issues


def render_reservation(reservation: dict[str, Any]) -> dict[str, Any]:
    """Details the calendar needs to draw a reservation."""
    contact = decode_contact_notes(reservation["notes"])
    external = reservation["origin"] == ReservationOrigin.EXTERNAL.value
    return {
        "id": reservation["id"],
        "status": reservation["status"],
        "origin": reservation["origin"],
        "customer_id": reservation["customer_id"],
        "customer_name": contact.name if external else None,
        "customer_phone": contact.phone if external else None,
        "total_price": reservation["total_price"],
        "guest_count_men": reservation["guest_count_men"],
        "guest_count_women": reservation["guest_count_women"],
        "deposit_paid": reservation["deposit_paid"],
        "notes": contact.notes if external else reservation["notes"],
    }


def _displayed(record: dict[str, Any], reservations: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    for reservation in reservations:
        if reservation["status"] in OCCUPYING_STATUSES:
            return reservation
    for reservation in reservations:
        if reservation["id"] == record["reservation_id"]:
            return reservation
    for reservation in reservations:
        if reservation["status"] == ReservationStatus.COMPLETED.value:
            return reservation
    return None


def project_day(
    resource_id: str, day: date, record: dict[str, Any], reservations: list[dict[str, Any]]
) -> CalendarDay:
    """Build the calendar entry for one resource and date."""
    issues = find_issues(record, reservations)
    shown = _displayed(record, reservations)
    return CalendarDay(
        date=day,
        resource_id=resource_id,
        status=NEEDS_RECONCILIATION if issues else record["status"],
        availability_status=record["status"],
        resale_discount=record["resale_discount"],
        reservation=render_reservation(shown) if shown else None,
        pending_requests=sum(
            1
            for r in reservations
            if r["status"] == ReservationStatus.PENDING.value and r is not shown
        ),
        inactive_reservations=sum(
            1 for r in reservations if r["status"] in TERMINAL_NEGATIVE_STATUSES
        ),
        issues=issues,
    )


class CalendarProjector:
    """
    Per-day calendar views for one resource or every resource of an owner.

    Example:
        >>> projector = CalendarProjector(engine)
        >>> days = projector.resource_month("venue-1", 2025, 6)
        >>> days[0].date, days[0].status
        (datetime.date(2025, 6, 1), 'booked')
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def resource_month(self, resource_id: str, year: int, month: int) -> list[CalendarDay]:
        """
        One entry per day of the month for one resource.

        Raises:
            NotFound: unknown resource
            ValueError: invalid month
        """
        start, end = month_bounds(year, month)
        with self.engine.connect() as conn:
            if get_resource(conn, resource_id) is None:
                raise NotFound(f"Resource {resource_id} not found", resource_id=resource_id)
            days = self._project(conn, [resource_id], start, end)

        self._report(days, resource_ids=[resource_id], year=year, month=month)
        return days

    def owner_month(self, owner_id: str, year: int, month: int) -> list[CalendarDay]:
        """
        Combined calendar of every resource the owner has, ordered by date
        then resource.
        """
        start, end = month_bounds(year, month)
        with self.engine.connect() as conn:
            resource_ids = [r["id"] for r in list_owned_resources(conn, owner_id)]
            days = self._project(conn, resource_ids, start, end)

        self._report(days, resource_ids=resource_ids, year=year, month=month, owner_id=owner_id)
        return days

    def _project(
        self, conn: Connection, resource_ids: list[str], start: date, end: date
    ) -> list[CalendarDay]:
        records = get_availability_for_resources(conn, resource_ids, start, end)
        grouped: dict[tuple[str, date], list[dict[str, Any]]] = defaultdict(list)
        for reservation in list_reservations(conn, resource_ids, start=start, end=end):
            grouped[(reservation["resource_id"], reservation["date"])].append(reservation)

        days = []
        for day in iter_days(start, end):
            for resource_id in resource_ids:
                record = availability_row(records.get((resource_id, day)), resource_id, day)
                days.append(project_day(resource_id, day, record, grouped[(resource_id, day)]))
        return days

    @staticmethod
    def _report(days: list[CalendarDay], resource_ids: list[str], **context: Any) -> None:
        flagged = [d for d in days if d.status == NEEDS_RECONCILIATION]
        per_resource = Counter(d.resource_id for d in flagged)
        for resource_id in resource_ids:
            reconciliation_days.labels(resource_id=resource_id).set(per_resource[resource_id])
        if flagged:
            logger.warning(
                "calendar_needs_reconciliation",
                days=[f"{d.resource_id}:{d.date.isoformat()}" for d in flagged],
                resource_ids=resource_ids,
                **context,
            )
