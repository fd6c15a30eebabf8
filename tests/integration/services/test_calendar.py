"""
Integration tests for calendar projection, manual availability edits and
reconciliation.
"""

from __future__ import annotations

from datetime import date

import pytest
from prometheus_client import REGISTRY

from reservation_engine.db.writers.availability import clear_availability, upsert_availability
from reservation_engine.errors import Conflict, InvalidDiscount, InvalidRequest, NotFound, NotOwner
from reservation_engine.services.calendar import NEEDS_RECONCILIATION

OWNER_ID = "owner-1"
VENUE_ID = "venue-1"
SECOND_VENUE_ID = "venue-2"
DAY = date(2025, 6, 1)


def _day(days, resource_id, day):
    return next(d for d in days if d.resource_id == resource_id and d.date == day)


@pytest.mark.integration
def test_resource_month_has_one_entry_per_day(projector, machine, make_reservation):
    """Test that a month view covers every day and shows the booking."""
    r1 = make_reservation()
    make_reservation(customer_id="customer-2")
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)

    days = projector.resource_month(VENUE_ID, 2025, 6)

    assert len(days) == 30
    first = days[0]
    assert first.status == "booked"
    assert first.reservation["id"] == r1["id"]
    assert first.pending_requests == 1
    assert first.issues == []
    assert days[1].status == "available"


@pytest.mark.integration
def test_resource_month_unknown_resource(projector, resources):
    """Test that an unknown resource is NotFound."""
    with pytest.raises(NotFound):
        projector.resource_month("venue-404", 2025, 6)


@pytest.mark.integration
def test_owner_month_merges_resources(projector, make_reservation, machine, availability_service):
    """Test that the owner view lists all resources ordered by date then resource."""
    r1 = make_reservation(resource_id=SECOND_VENUE_ID)
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)
    availability_service.set_day(VENUE_ID, DAY, "resale", OWNER_ID, discount=10)

    days = projector.owner_month(OWNER_ID, 2025, 6)

    assert len(days) == 30 * 3
    assert [(d.resource_id, d.status) for d in days[:3]] == [
        ("service-1", "available"),
        (VENUE_ID, "resale"),
        (SECOND_VENUE_ID, "booked"),
    ]
    assert days[3].date == date(2025, 6, 2)


@pytest.mark.integration
def test_out_of_band_write_is_flagged(projector, db_engine, machine, make_reservation):
    """Test that an accepted reservation whose date was cleared directly needs reconciliation."""
    r1 = make_reservation()
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)
    with db_engine.begin() as conn:
        clear_availability(conn, VENUE_ID, DAY)

    first = projector.resource_month(VENUE_ID, 2025, 6)[0]

    assert first.status == NEEDS_RECONCILIATION
    assert first.availability_status == "available"
    assert first.issues


def _flagged_gauge(resource_id):
    return REGISTRY.get_sample_value(
        "reservation_calendar_reconciliation_days", {"resource_id": resource_id}
    )


@pytest.mark.integration
def test_reconciliation_gauge_is_kept_per_resource(
    projector, db_engine, machine, make_reservation
):
    """Test that projecting another resource does not overwrite a flagged resource's count."""
    r1 = make_reservation()
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)
    with db_engine.begin() as conn:
        clear_availability(conn, VENUE_ID, DAY)

    projector.resource_month(VENUE_ID, 2025, 6)
    projector.resource_month(SECOND_VENUE_ID, 2025, 6)

    assert _flagged_gauge(VENUE_ID) == 1.0
    assert _flagged_gauge(SECOND_VENUE_ID) == 0.0

    projector.owner_month(OWNER_ID, 2025, 6)

    assert _flagged_gauge(VENUE_ID) == 1.0


@pytest.mark.integration
def test_reconcile_books_for_occupant(availability_service, projector, db_engine, machine, make_reservation):
    """Test that reconciliation rebooks the date for its accepted reservation."""
    r1 = make_reservation()
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)
    with db_engine.begin() as conn:
        clear_availability(conn, VENUE_ID, DAY)

    outcome = availability_service.reconcile_day(VENUE_ID, DAY, OWNER_ID)

    assert outcome.availability["status"] == "booked"
    assert outcome.reservation["id"] == r1["id"]
    assert projector.resource_month(VENUE_ID, 2025, 6)[0].issues == []


@pytest.mark.integration
def test_reconcile_clears_stale_booking(availability_service, db_engine, resources):
    """Test that a booked record without a holder is cleared."""
    with db_engine.begin() as conn:
        upsert_availability(conn, VENUE_ID, DAY, "booked", reservation_id="gone")

    outcome = availability_service.reconcile_day(VENUE_ID, DAY, OWNER_ID)

    assert outcome.availability["status"] == "available"
    assert outcome.reservation is None


@pytest.mark.integration
def test_reconcile_keeps_held_pending_and_resale(
    availability_service, machine, make_reservation, snapshot
):
    """Test that legitimate holds and resale listings survive reconciliation."""
    r1 = make_reservation()
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)
    machine.transition(r1["id"], "cancelled", requester_id=OWNER_ID)
    machine.transition(r1["id"], "pending", requester_id=OWNER_ID)
    availability_service.set_day(VENUE_ID, date(2025, 6, 2), "resale", OWNER_ID, discount=40)

    held = availability_service.reconcile_day(VENUE_ID, DAY, OWNER_ID)
    resale = availability_service.reconcile_day(VENUE_ID, date(2025, 6, 2), OWNER_ID)

    assert held.availability["reservation_id"] == r1["id"]
    assert resale.availability["status"] == "resale"


@pytest.mark.integration
def test_set_day_refuses_booked_and_occupied(availability_service, machine, make_reservation):
    """Test that booked is never set by hand and occupied days are not relisted."""
    r1 = make_reservation()
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)

    with pytest.raises(InvalidRequest):
        availability_service.set_day(VENUE_ID, date(2025, 6, 5), "booked", OWNER_ID)
    with pytest.raises(Conflict):
        availability_service.set_day(VENUE_ID, DAY, "resale", OWNER_ID, discount=20)
    with pytest.raises(Conflict):
        availability_service.set_day(VENUE_ID, DAY, "available", OWNER_ID)


@pytest.mark.integration
def test_set_day_resale_and_back(availability_service, resources):
    """Test relisting a free day and withdrawing the listing."""
    listed = availability_service.set_day(VENUE_ID, DAY, "resale", OWNER_ID, discount=50)
    assert listed.availability["resale_discount"] == 50

    withdrawn = availability_service.set_day(VENUE_ID, DAY, "available", OWNER_ID)
    assert withdrawn.availability["status"] == "available"

    with pytest.raises(InvalidDiscount):
        availability_service.set_day(VENUE_ID, DAY, "resale", OWNER_ID, discount=60)
    with pytest.raises(NotOwner):
        availability_service.set_day(VENUE_ID, DAY, "resale", "owner-2", discount=20)
