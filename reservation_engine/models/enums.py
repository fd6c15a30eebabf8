"""Status vocabularies shared by models, stores and services."""

from enum import Enum


class ResourceType(str, Enum):
    VENUE = "venue"
    SERVICE = "service"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    # Service resources use "confirmed" where venues use "accepted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ReservationOrigin(str, Enum):
    CUSTOMER = "customer"
    EXTERNAL = "external"


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    RESALE = "resale"


class RefundStatus(str, Enum):
    REQUESTED = "requested"
    REFUNDED = "refunded"
    MANUAL_REVIEW = "manual_review"


class SideEffectKind(str, Enum):
    REFUND = "refund"
    NOTIFY = "notify"


OCCUPYING_STATUSES = (ReservationStatus.ACCEPTED.value, ReservationStatus.CONFIRMED.value)
TERMINAL_NEGATIVE_STATUSES = (ReservationStatus.REJECTED.value, ReservationStatus.CANCELLED.value)

# Statuses allowed to hold a booked availability record. A completed booking
# keeps its date booked; a pending one may hold it after a reinstatement.
HOLDING_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.ACCEPTED.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.COMPLETED.value,
)

RESALE_DISCOUNT_MIN = 5
RESALE_DISCOUNT_MAX = 50
