from datetime import date
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.engine import Connection

from reservation_engine.db.writers.availability import availability_row
from reservation_engine.models.availability import Availability
from reservation_engine.utils.datetime import iter_days


def get_availability(conn: Connection, resource_id: str, day: date) -> dict[str, Any]:
    """
    Get the availability record for one resource and date.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        resource_id (str): Resource ID.
        day (date): Calendar date.

    Returns:
        dict[str, Any]: Stored record, or a synthetic ``available`` record when none exists.
    """
    row = (
        conn.execute(
            select(Availability).where(
                Availability.resource_id == resource_id, Availability.date == day
            )
        )
        .mappings()
        .fetchone()
    )
    return availability_row(dict(row) if row else None, resource_id, day)


def get_availability_range(
    conn: Connection, resource_id: str, start: date, end: date
) -> dict[date, dict[str, Any]]:
    """
    Get availability for every day from start to end (inclusive).

    Args:
        conn (Connection): SQLAlchemy DB connection.
        resource_id (str): Resource ID.
        start (date): First day.
        end (date): Last day.

    Returns:
        dict[date, dict[str, Any]]: One record per day, missing rows filled as available.
    """
    stored = get_availability_for_resources(conn, [resource_id], start, end)
    return {
        day: availability_row(stored.get((resource_id, day)), resource_id, day)
        for day in iter_days(start, end)
    }


def get_availability_for_resources(
    conn: Connection, resource_ids: Iterable[str], start: date, end: date
) -> dict[tuple[str, date], dict[str, Any]]:
    """
    Get stored (non-available) rows for several resources over a date range.

    Returns:
        dict: Rows keyed by (resource_id, date). Absent keys are available.
    """
    resource_ids = list(resource_ids)
    if not resource_ids:
        return {}

    result = conn.execute(
        select(Availability)
        .where(Availability.resource_id.in_(resource_ids))
        .where(Availability.date >= start, Availability.date <= end)
    )
    return {(row["resource_id"], row["date"]): dict(row) for row in result.mappings()}
