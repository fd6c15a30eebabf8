"""
Conversions from service results to response schemas, shared by the routers.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from reservation_engine.labels import availability_label, reservation_label
from reservation_engine.schemas.availability import AvailabilityOut, CalendarDayOut
from reservation_engine.schemas.reservations import MutationResponse, ReservationOut, WarningOut
from reservation_engine.services.calendar import CalendarDay
from reservation_engine.services.outcome import MutationOutcome


def reservation_out(row: dict[str, Any]) -> ReservationOut:
    return ReservationOut(
        **row, status_label=reservation_label(row["resource_type"], row["status"])
    )


def availability_out(record: Optional[dict[str, Any]]) -> Optional[AvailabilityOut]:
    if record is None:
        return None
    return AvailabilityOut(**record, status_label=availability_label(record["status"]))


def outcome_response(outcome: MutationOutcome) -> MutationResponse:
    """
    Serialize a mutation result.

    Side-effect warnings are carried in the body; the status code stays 2xx.
    """
    return MutationResponse(
        reservation=reservation_out(outcome.reservation) if outcome.reservation else None,
        availability=availability_out(outcome.availability),
        released_availability=availability_out(outcome.released_availability),
        warnings=[WarningOut(**w.to_dict()) for w in outcome.warnings],
    )


def calendar_day_out(day: CalendarDay) -> CalendarDayOut:
    return CalendarDayOut(**asdict(day), status_label=availability_label(day.status))
