"""
Integration tests for owner-registered (external) reservations.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from reservation_engine.db.readers.availability import get_availability
from reservation_engine.db.readers.reservations import get_reservation
from reservation_engine.errors import Conflict, InvalidRequest, NotOwner
from reservation_engine.services.external import decode_contact_notes

OWNER_ID = "owner-1"
VENUE_ID = "venue-1"
SERVICE_ID = "service-1"
JULY_TENTH = date(2025, 7, 10)


@pytest.fixture
def external(adapter, resources):
    outcome = adapter.create(
        OWNER_ID,
        VENUE_ID,
        JULY_TENTH,
        Decimal("3000"),
        customer_name="Sara Ali",
        customer_phone="+966500000000",
        notes="Garden entrance",
        guest_count_men=40,
        guest_count_women=60,
    )
    return outcome.reservation


@pytest.mark.integration
def test_create_books_the_date(external, snapshot):
    """Test that an external reservation is accepted and books its date at once."""
    status, record = snapshot(external["id"])

    assert status == "accepted"
    assert external["origin"] == "external"
    assert external["customer_id"] == "external:owner-1"
    assert (record["status"], record["reservation_id"]) == ("booked", external["id"])
    assert decode_contact_notes(external["notes"]).name == "Sara Ali"


@pytest.mark.integration
def test_create_for_service_is_confirmed(adapter, resources, snapshot):
    """Test that services use confirmed for external reservations."""
    outcome = adapter.create(OWNER_ID, SERVICE_ID, JULY_TENTH, Decimal("800"))

    assert outcome.reservation["status"] == "confirmed"
    assert outcome.availability["status"] == "booked"


@pytest.mark.integration
def test_create_on_taken_date_conflicts(adapter, machine, make_reservation):
    """Test that an external reservation cannot double-book an accepted date."""
    r1 = make_reservation(day=JULY_TENTH)
    machine.transition(r1["id"], "accepted", requester_id=OWNER_ID)

    with pytest.raises(Conflict):
        adapter.create(OWNER_ID, VENUE_ID, JULY_TENTH, Decimal("1000"))


@pytest.mark.integration
def test_create_over_resale_date_takes_it(adapter, db_engine, availability_service, resources):
    """Test that a relisted date can be sold again by phone."""
    availability_service.set_day(VENUE_ID, JULY_TENTH, "resale", OWNER_ID, discount=15)

    outcome = adapter.create(OWNER_ID, VENUE_ID, JULY_TENTH, Decimal("2500"))

    assert outcome.availability["status"] == "booked"
    assert outcome.availability["resale_discount"] is None


@pytest.mark.integration
@pytest.mark.parametrize(
    "kwargs",
    [
        {"resource_id": SERVICE_ID, "guest_count_men": 5},
        {"resource_id": VENUE_ID, "guest_count_women": -1},
        {"resource_id": VENUE_ID, "total_price": Decimal("-1")},
        {"resource_id": VENUE_ID, "customer_name": "Ali | Phone: x", "customer_phone": "+966500"},
        {"resource_id": VENUE_ID, "customer_name": "Sara\nAli", "customer_phone": "+966511"},
    ],
)
def test_create_validates_fields(adapter, db_engine, resources, kwargs):
    """Test that guest counts on services, negative values and broken contacts are refused."""
    params = {"total_price": Decimal("100"), **kwargs}
    resource_id = params.pop("resource_id")

    with pytest.raises(InvalidRequest):
        adapter.create(OWNER_ID, resource_id, JULY_TENTH, **params)

    with db_engine.connect() as conn:
        assert get_availability(conn, resource_id, JULY_TENTH)["status"] == "available"


@pytest.mark.integration
def test_create_requires_ownership(adapter, resources):
    """Test that owners can only register reservations on their own resources."""
    with pytest.raises(NotOwner):
        adapter.create("owner-2", VENUE_ID, JULY_TENTH, Decimal("100"))


@pytest.mark.integration
def test_delete_frees_the_date(adapter, db_engine, external):
    """Test that deleting an external reservation removes it and resets its date."""
    outcome = adapter.delete(external["id"], requester_id=OWNER_ID)

    assert outcome.reservation is None
    assert outcome.availability["status"] == "available"
    with db_engine.connect() as conn:
        assert get_reservation(conn, external["id"]) is None
        assert get_availability(conn, VENUE_ID, JULY_TENTH)["status"] == "available"


@pytest.mark.integration
def test_delete_cancelled_external_leaves_resale_listing(adapter, machine, external, snapshot):
    """Test that deleting a reservation does not clear a date it no longer holds."""
    machine.resell(external["id"], 30, requester_id=OWNER_ID)

    outcome = adapter.delete(external["id"], requester_id=OWNER_ID)

    assert outcome.availability["status"] == "resale"
    assert outcome.availability["resale_discount"] == 30


@pytest.mark.integration
def test_edit_moves_booking_to_new_date(adapter, db_engine, external):
    """Test that a date change books the new date and frees the old one together."""
    new_day = date(2025, 7, 12)

    outcome = adapter.edit(external["id"], OWNER_ID, day=new_day)

    assert outcome.reservation["date"] == new_day
    assert (outcome.availability["status"], outcome.availability["reservation_id"]) == (
        "booked",
        external["id"],
    )
    assert outcome.released_availability["status"] == "available"


@pytest.mark.integration
def test_edit_to_taken_date_conflicts(adapter, db_engine, external, snapshot):
    """Test that moving onto another booking is refused and nothing changes."""
    other = adapter.create(OWNER_ID, VENUE_ID, date(2025, 7, 12), Decimal("100")).reservation

    with pytest.raises(Conflict):
        adapter.edit(external["id"], OWNER_ID, day=date(2025, 7, 12))

    assert snapshot(external["id"])[1]["reservation_id"] == external["id"]
    assert snapshot(other["id"])[1]["reservation_id"] == other["id"]
    with db_engine.connect() as conn:
        assert get_reservation(conn, external["id"])["date"] == JULY_TENTH


@pytest.mark.integration
def test_edit_updates_contact_and_keeps_rest(adapter, external):
    """Test that editing one contact field keeps the others."""
    outcome = adapter.edit(
        external["id"], OWNER_ID, customer_phone="0551234567", deposit_paid=True
    )

    contact = decode_contact_notes(outcome.reservation["notes"])
    assert contact.name == "Sara Ali"
    assert contact.phone == "0551234567"
    assert contact.notes == "Garden entrance"
    assert outcome.reservation["deposit_paid"] is True
    assert outcome.released_availability is None


@pytest.mark.integration
def test_customer_reservation_cannot_be_edited_externally(adapter, make_reservation):
    """Test that customer requests are not editable or deletable through this path."""
    r1 = make_reservation()

    with pytest.raises(InvalidRequest):
        adapter.edit(r1["id"], OWNER_ID, total_price=Decimal("1"))
    with pytest.raises(InvalidRequest):
        adapter.delete(r1["id"], OWNER_ID)


@pytest.mark.integration
def test_edit_refuses_contact_that_breaks_the_notes(adapter, db_engine, external):
    """Test that an edit with a multi-line phone leaves the stored contact intact."""
    with pytest.raises(InvalidRequest):
        adapter.edit(external["id"], OWNER_ID, customer_phone="0551\n234567")

    with db_engine.connect() as conn:
        contact = decode_contact_notes(get_reservation(conn, external["id"])["notes"])
    assert (contact.name, contact.phone) == ("Sara Ali", "+966500000000")
