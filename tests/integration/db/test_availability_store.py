"""
Integration tests for the availability store.
"""

from __future__ import annotations

from datetime import date

import pytest

from reservation_engine.db.readers.availability import get_availability, get_availability_range
from reservation_engine.db.writers.availability import clear_availability, upsert_availability
from reservation_engine.errors import InvalidDiscount, InvalidRequest

VENUE_ID = "venue-1"
DAY = date(2025, 6, 1)


@pytest.mark.integration
def test_missing_record_reads_as_available(db_engine, resources):
    """Test that a day without a row is reported available."""
    with db_engine.connect() as conn:
        record = get_availability(conn, VENUE_ID, DAY)

    assert record["status"] == "available"
    assert record["reservation_id"] is None


@pytest.mark.integration
def test_identical_upsert_is_a_no_op(db_engine, resources):
    """Test that repeating the same write leaves updated_at untouched."""
    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, DAY, "booked", notes="booked", reservation_id="r1")
    with db_engine.connect() as conn:
        first = get_availability(conn, VENUE_ID, DAY)

    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, DAY, "booked", notes="booked", reservation_id="r1")
    with db_engine.connect() as conn:
        second = get_availability(conn, VENUE_ID, DAY)

    assert second == first


@pytest.mark.integration
def test_upsert_overwrites_status(db_engine, resources):
    """Test that a later write replaces the status, discount and holder."""
    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, DAY, "booked", reservation_id="r1")
        upsert_availability(conn, VENUE_ID, DAY, "resale", discount=20, notes="relisted")

    with db_engine.connect() as conn:
        record = get_availability(conn, VENUE_ID, DAY)

    assert record["status"] == "resale"
    assert record["resale_discount"] == 20
    assert record["reservation_id"] is None
    assert record["notes"] == "relisted"


@pytest.mark.integration
def test_writing_available_equals_clearing(db_engine, resources):
    """Test that setting available and clearing both remove the record."""
    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, DAY, "resale", discount=10)
        upsert_availability(conn, VENUE_ID, DAY, "available")
        upsert_availability(conn, VENUE_ID, date(2025, 6, 2), "booked", reservation_id="r2")
        clear_availability(conn, VENUE_ID, date(2025, 6, 2))

    with db_engine.connect() as conn:
        days = get_availability_range(conn, VENUE_ID, DAY, date(2025, 6, 2))

    assert [r["status"] for r in days.values()] == ["available", "available"]
    assert all(r["updated_at"] is None for r in days.values())


@pytest.mark.integration
@pytest.mark.parametrize("discount", [None, 4, 51, 12.5, True])
def test_resale_requires_valid_discount(db_engine, resources, discount):
    """Test that resale without an integer discount in 5-50 is refused."""
    with pytest.raises(InvalidDiscount):
        with db_engine.begin() as conn:
            upsert_availability(conn, VENUE_ID, DAY, "resale", discount=discount)

    with db_engine.connect() as conn:
        assert get_availability(conn, VENUE_ID, DAY)["status"] == "available"


@pytest.mark.integration
@pytest.mark.parametrize("discount", [5, 50])
def test_resale_discount_bounds_are_inclusive(db_engine, resources, discount):
    """Test that 5% and 50% are accepted."""
    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, DAY, "resale", discount=discount)

    with db_engine.connect() as conn:
        assert get_availability(conn, VENUE_ID, DAY)["resale_discount"] == discount


@pytest.mark.integration
def test_booked_ignores_discount(db_engine, resources):
    """Test that a discount is only stored for resale."""
    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, DAY, "booked", discount=30, reservation_id="r1")

    with db_engine.connect() as conn:
        assert get_availability(conn, VENUE_ID, DAY)["resale_discount"] is None


@pytest.mark.integration
def test_unknown_status_is_invalid_request(db_engine, resources):
    """Test that only available, booked and resale can be stored."""
    with pytest.raises(InvalidRequest):
        with db_engine.begin() as conn:
            upsert_availability(conn, VENUE_ID, DAY, "blocked")


@pytest.mark.integration
def test_range_fills_missing_days(db_engine, resources):
    """Test that a range read returns one record per day, in order."""
    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, date(2025, 6, 3), "booked", reservation_id="r1")

    with db_engine.connect() as conn:
        days = get_availability_range(conn, VENUE_ID, DAY, date(2025, 6, 5))

    assert list(days) == [date(2025, 6, d) for d in range(1, 6)]
    assert days[date(2025, 6, 3)]["status"] == "booked"
    assert days[date(2025, 6, 4)]["status"] == "available"
