"""
Availability store writes: the (resource_id, date) -> status map.

Absence of a row means ``available``; writing ``available`` deletes the row,
so readers never have to distinguish the two. Callers are expected to hold
the key inside ``atomic_unit`` and to have resolved conflicts already.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from sqlalchemy import delete
from sqlalchemy.engine import Connection

from reservation_engine.db.writers._upsert import upsert_with_distinct_check
from reservation_engine.errors import InvalidDiscount, InvalidRequest
from reservation_engine.models.availability import Availability
from reservation_engine.models.enums import (
    RESALE_DISCOUNT_MAX,
    RESALE_DISCOUNT_MIN,
    AvailabilityStatus,
)
from reservation_engine.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def validate_discount(discount: int | None) -> int:
    """
    Validate a resale discount percentage.

    Raises:
        InvalidDiscount: if discount is missing, not an integer, or outside 5-50
    """
    if discount is None or isinstance(discount, bool) or not isinstance(discount, int):
        raise InvalidDiscount(
            f"Resale requires an integer discount between {RESALE_DISCOUNT_MIN} "
            f"and {RESALE_DISCOUNT_MAX}"
        )
    if not RESALE_DISCOUNT_MIN <= discount <= RESALE_DISCOUNT_MAX:
        raise InvalidDiscount(
            f"Resale discount {discount}% outside {RESALE_DISCOUNT_MIN}-{RESALE_DISCOUNT_MAX}%",
            discount=discount,
        )
    return discount


def upsert_availability(
    conn: Connection,
    resource_id: str,
    day: date,
    status: AvailabilityStatus | str,
    discount: int | None = None,
    notes: str | None = None,
    reservation_id: str | None = None,
) -> None:
    """
    Set the availability of one resource on one date (idempotent).

    Args:
        conn: Connection inside the caller's atomic unit
        resource_id: Resource ID
        day: Calendar date
        status: available, booked or resale
        discount: Required for resale, ignored otherwise
        notes: Human-readable reason
        reservation_id: Reservation holding a booked day

    Raises:
        InvalidDiscount: resale without a discount in [5, 50]
        InvalidRequest: unknown status
    """
    try:
        status = AvailabilityStatus(status)
    except ValueError as e:
        raise InvalidRequest(f"Unknown availability status {status!r}") from e

    if status == AvailabilityStatus.AVAILABLE:
        clear_availability(conn, resource_id, day)
        return

    if status == AvailabilityStatus.RESALE:
        discount = validate_discount(discount)
        reservation_id = None
    else:
        discount = None

    upsert_with_distinct_check(
        conn=conn,
        table=Availability,
        rows=[
            {
                "resource_id": resource_id,
                "date": day,
                "status": status.value,
                "resale_discount": discount,
                "reservation_id": reservation_id,
                "notes": notes,
                "updated_at": utc_now(),
            }
        ],
        conflict_columns=["resource_id", "date"],
        distinct_columns=["status", "resale_discount", "reservation_id", "notes"],
    )

    logger.debug(
        "availability_upserted",
        resource_id=resource_id,
        date=day.isoformat(),
        status=status.value,
        discount=discount,
        reservation_id=reservation_id,
    )


def clear_availability(conn: Connection, resource_id: str, day: date) -> None:
    """
    Reset a day to available by deleting its row.

    Equivalent to ``upsert_availability(..., status="available")``.
    """
    conn.execute(
        delete(Availability).where(
            Availability.resource_id == resource_id, Availability.date == day
        )
    )
    logger.debug("availability_cleared", resource_id=resource_id, date=day.isoformat())


def availability_row(record: dict[str, Any] | None, resource_id: str, day: date) -> dict[str, Any]:
    """Normalize an optional stored row into a full availability record."""
    if record:
        return record
    return {
        "resource_id": resource_id,
        "date": day,
        "status": AvailabilityStatus.AVAILABLE.value,
        "resale_discount": None,
        "reservation_id": None,
        "notes": None,
        "updated_at": None,
    }
