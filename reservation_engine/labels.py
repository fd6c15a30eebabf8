"""
Human-readable labels for reservation and availability statuses.

Presentation only: nothing in the engine branches on these.
"""

from reservation_engine.models.enums import AvailabilityStatus, ReservationStatus, ResourceType

RESERVATION_LABELS = {
    ResourceType.VENUE.value: {
        ReservationStatus.PENDING.value: "Awaiting approval",
        ReservationStatus.ACCEPTED.value: "Accepted",
        ReservationStatus.REJECTED.value: "Rejected",
        ReservationStatus.CANCELLED.value: "Cancelled",
    },
    ResourceType.SERVICE.value: {
        ReservationStatus.PENDING.value: "Awaiting approval",
        ReservationStatus.CONFIRMED.value: "Confirmed",
        ReservationStatus.REJECTED.value: "Rejected",
        ReservationStatus.CANCELLED.value: "Cancelled",
        ReservationStatus.COMPLETED.value: "Completed",
    },
}

AVAILABILITY_LABELS = {
    AvailabilityStatus.AVAILABLE.value: "Available",
    AvailabilityStatus.BOOKED.value: "Booked",
    AvailabilityStatus.RESALE.value: "Resale",
    "needs-reconciliation": "Needs reconciliation",
}


def reservation_label(resource_type: str, status: str) -> str:
    """Label for a reservation status; unknown statuses fall back to the raw value."""
    return RESERVATION_LABELS.get(resource_type, {}).get(status, status)


def availability_label(status: str) -> str:
    return AVAILABILITY_LABELS.get(status, status)
