"""
Integration tests for the reservation, availability and calendar endpoints.
"""

from __future__ import annotations

import pytest

OWNER_ID = "owner-1"
VENUE_ID = "venue-1"


@pytest.mark.integration
def test_accept_then_resell_over_http(client, owner_headers, make_reservation):
    """Test the accept and resale flow and its response bodies."""
    r1 = make_reservation()

    accepted = client.post(
        f"/reservations/{r1['id']}/transitions",
        json={"to_status": "accepted"},
        headers=owner_headers,
    )
    assert accepted.status_code == 200
    body = accepted.json()
    assert body["reservation"]["status"] == "accepted"
    assert body["reservation"]["status_label"] == "Accepted"
    assert body["availability"]["status"] == "booked"
    assert body["warnings"] == []

    resold = client.post(
        f"/reservations/{r1['id']}/resale",
        json={"discount_percent": 20},
        headers=owner_headers,
    )
    assert resold.status_code == 200
    assert resold.json()["availability"]["status"] == "resale"
    assert resold.json()["availability"]["resale_discount"] == 20


@pytest.mark.integration
def test_errors_map_to_status_codes(client, owner_headers, make_reservation):
    """Test that engine errors answer with their status code and error body."""
    r1 = make_reservation(status="accepted")
    r2 = make_reservation(customer_id="customer-2")

    conflict = client.post(
        f"/reservations/{r2['id']}/transitions", json={"to_status": "accepted"}, headers=owner_headers
    )
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "conflict"
    assert conflict.json()["detail"]

    invalid = client.post(
        f"/reservations/{r1['id']}/transitions", json={"to_status": "completed"}, headers=owner_headers
    )
    assert (invalid.status_code, invalid.json()["error"]) == (409, "invalid_transition")

    discount = client.post(
        f"/reservations/{r1['id']}/resale", json={"discount_percent": 80}, headers=owner_headers
    )
    assert (discount.status_code, discount.json()["error"]) == (422, "invalid_discount")

    missing = client.post(
        "/reservations/nope/transitions", json={"to_status": "accepted"}, headers=owner_headers
    )
    assert (missing.status_code, missing.json()["error"]) == (404, "not_found")

    foreign = client.post(
        f"/reservations/{r2['id']}/transitions",
        json={"to_status": "rejected"},
        headers={"X-Requester-Id": "owner-2"},
    )
    assert (foreign.status_code, foreign.json()["error"]) == (403, "not_owner")


@pytest.mark.integration
def test_requester_header_is_required(client, make_reservation):
    """Test that calls without X-Requester-Id are refused."""
    r1 = make_reservation()

    response = client.post(f"/reservations/{r1['id']}/transitions", json={"to_status": "accepted"})

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_request"


@pytest.mark.integration
def test_side_effect_failure_is_a_warning(client, owner_headers, make_reservation, refund_client):
    """Test that a failing refund still answers 200 and reports a warning."""
    refund_client.request_refund.side_effect = ConnectionError("refund service down")
    r1 = make_reservation()

    response = client.post(
        f"/reservations/{r1['id']}/transitions",
        json={"to_status": "rejected"},
        headers=owner_headers,
    )

    assert response.status_code == 200
    assert response.json()["reservation"]["status"] == "rejected"
    warning = response.json()["warnings"][0]
    assert warning["error"] == "side_effect_failed"
    assert warning["kind"] == "refund"
    assert warning["reservation_id"] == r1["id"]


@pytest.mark.integration
def test_reservation_reads(client, owner_headers, make_reservation):
    """Test reading a reservation, its history and the owner listing."""
    r1 = make_reservation()
    client.post(
        f"/reservations/{r1['id']}/transitions", json={"to_status": "accepted"}, headers=owner_headers
    )

    single = client.get(f"/reservations/{r1['id']}", headers=owner_headers)
    history = client.get(f"/reservations/{r1['id']}/history", headers=owner_headers)
    listing = client.get(
        "/reservations", params={"owner_id": OWNER_ID, "status": "accepted"}, headers=owner_headers
    )
    other = client.get("/reservations", params={"owner_id": "owner-2"}, headers=owner_headers)

    assert single.json()["id"] == r1["id"]
    assert [h["to_status"] for h in history.json()] == ["pending", "accepted"]
    assert [r["id"] for r in listing.json()] == [r1["id"]]
    assert other.status_code == 403


@pytest.mark.integration
def test_external_reservation_lifecycle(client, owner_headers):
    """Test creating, moving and deleting an external reservation over HTTP."""
    created = client.post(
        "/external-reservations",
        json={
            "resource_id": VENUE_ID,
            "date": "2025-07-10",
            "total_price": "3000",
            "customer_name": "Sara Ali",
            "customer_phone": "+966500000000",
        },
        headers=owner_headers,
    )
    assert created.status_code == 201
    reservation_id = created.json()["reservation"]["id"]
    assert created.json()["availability"]["status"] == "booked"

    moved = client.patch(
        f"/external-reservations/{reservation_id}",
        json={"date": "2025-07-11"},
        headers=owner_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["availability"]["date"] == "2025-07-11"
    assert moved.json()["released_availability"]["status"] == "available"

    deleted = client.delete(f"/external-reservations/{reservation_id}", headers=owner_headers)
    assert deleted.status_code == 200
    assert deleted.json()["reservation"] is None
    assert deleted.json()["availability"]["status"] == "available"


@pytest.mark.integration
def test_availability_endpoints(client, owner_headers):
    """Test manual resale, range reads and range validation."""
    put = client.put(
        f"/resources/{VENUE_ID}/availability/2025-06-03",
        json={"status": "resale", "discount": 15},
        headers=owner_headers,
    )
    assert put.status_code == 200

    days = client.get(
        f"/resources/{VENUE_ID}/availability", params={"start": "2025-06-01", "end": "2025-06-05"}
    )
    assert [d["status"] for d in days.json()] == [
        "available",
        "available",
        "resale",
        "available",
        "available",
    ]

    backwards = client.get(
        f"/resources/{VENUE_ID}/availability", params={"start": "2025-06-05", "end": "2025-06-01"}
    )
    assert backwards.status_code == 422

    booked = client.put(
        f"/resources/{VENUE_ID}/availability/2025-06-04",
        json={"status": "booked"},
        headers=owner_headers,
    )
    assert (booked.status_code, booked.json()["error"]) == (422, "invalid_request")


@pytest.mark.integration
def test_calendar_and_dashboard_endpoints(client, owner_headers, make_reservation):
    """Test month calendars and the dashboard, including the owner check."""
    make_reservation()

    calendar = client.get(
        f"/resources/{VENUE_ID}/calendar", params={"year": 2025, "month": 6}, headers=owner_headers
    )
    assert calendar.status_code == 200
    assert len(calendar.json()) == 30
    assert calendar.json()[0]["pending_requests"] == 1

    owner_view = client.get(
        f"/owners/{OWNER_ID}/calendar", params={"year": 2025, "month": 2}, headers=owner_headers
    )
    assert len(owner_view.json()) == 28 * 3

    dashboard = client.get(f"/owners/{OWNER_ID}/dashboard", headers=owner_headers)
    assert dashboard.json()["pending_count"] == 1

    foreign = client.get("/owners/owner-2/dashboard", headers=owner_headers)
    assert foreign.status_code == 403


@pytest.mark.integration
def test_side_effect_alerts_endpoint(client, owner_headers, dispatcher, make_reservation, notification_client):
    """Test that terminal side-effect failures are listed only to the resource owner."""
    notification_client.notify.side_effect = RuntimeError("push gateway unavailable")
    r1 = make_reservation()
    client.post(
        f"/reservations/{r1['id']}/transitions", json={"to_status": "accepted"}, headers=owner_headers
    )
    dispatcher.shutdown(wait=True)

    alerts = client.get(
        "/alerts/side-effects", params={"reservation_id": r1["id"]}, headers=owner_headers
    )

    assert alerts.status_code == 200
    assert [(a["kind"], a["attempts"], a["resource_id"]) for a in alerts.json()] == [
        ("notify", 1, "venue-1")
    ]

    other_owner = client.get("/alerts/side-effects", headers={"X-Requester-Id": "owner-2"})
    assert other_owner.status_code == 200
    assert other_owner.json() == []

    anonymous = client.get("/alerts/side-effects")
    assert anonymous.status_code == 422
