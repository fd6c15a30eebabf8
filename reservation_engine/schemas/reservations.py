import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from reservation_engine.schemas.availability import AvailabilityOut


class TransitionPayload(BaseModel):
    """
    Schema for moving a reservation to another status.
    """

    to_status: str = Field(..., description="Target status (accepted/confirmed, rejected, ...)")
    resale_discount: Optional[int] = Field(
        None, description="Cancellation only: relist the date at this discount (5-50)"
    )
    note: Optional[str] = Field(None, description="Stored with the status history entry")


class ResalePayload(BaseModel):
    discount_percent: int = Field(..., description="Discount for the relisted date (5-50)")
    notes: Optional[str] = Field(None, description="Note shown on the relisted date")


class ReschedulePayload(BaseModel):
    date: dt.date = Field(..., description="New date for a pending reservation")


class ReservationUpdatePayload(BaseModel):
    """
    Schema for owner bookkeeping on any reservation. All fields are optional.
    """

    deposit_paid: Optional[bool] = Field(None, description="Deposit received")
    notes: Optional[str] = Field(None, description="Owner notes")


class ExternalReservationCreatePayload(BaseModel):
    """
    Schema for registering a reservation taken outside the customer flow.
    """

    resource_id: str = Field(..., description="Venue or service id")
    date: dt.date = Field(..., description="Reserved date")
    total_price: Decimal = Field(..., description="Agreed price")
    customer_name: Optional[str] = Field(None, description="Customer name as told to the owner")
    customer_phone: Optional[str] = Field(None, description="Customer phone number")
    notes: Optional[str] = Field(None, description="Free text")
    guest_count_men: Optional[int] = Field(None, description="Venues only")
    guest_count_women: Optional[int] = Field(None, description="Venues only")
    deposit_paid: bool = Field(False, description="Deposit already received")


class ExternalReservationUpdatePayload(BaseModel):
    """
    Schema for editing an external reservation. All fields are optional.
    """

    date: Optional[dt.date] = Field(None, description="Move to this date")
    total_price: Optional[Decimal] = Field(None, description="Agreed price")
    customer_name: Optional[str] = Field(None, description="Customer name")
    customer_phone: Optional[str] = Field(None, description="Customer phone number")
    notes: Optional[str] = Field(None, description="Free text")
    guest_count_men: Optional[int] = Field(None, description="Venues only")
    guest_count_women: Optional[int] = Field(None, description="Venues only")
    deposit_paid: Optional[bool] = Field(None, description="Deposit received")


class ReservationOut(BaseModel):
    id: str
    resource_id: str
    resource_type: str
    customer_id: str
    date: dt.date
    status: str
    status_label: str
    total_price: Decimal
    deposit_paid: bool
    guest_count_men: Optional[int] = None
    guest_count_women: Optional[int] = None
    notes: Optional[str] = None
    origin: str
    refund_status: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class StatusHistoryOut(BaseModel):
    from_status: Optional[str] = None
    to_status: str
    actor_id: Optional[str] = None
    note: Optional[str] = None
    changed_at: dt.datetime


class WarningOut(BaseModel):
    error: str
    detail: str
    kind: str
    reservation_id: str


class MutationResponse(BaseModel):
    """
    Every mutating endpoint answers with the post-write reservation and
    availability record plus non-fatal side-effect warnings.
    """

    reservation: Optional[ReservationOut] = None
    availability: AvailabilityOut
    released_availability: Optional[AvailabilityOut] = None
    warnings: list[WarningOut] = Field(default_factory=list)


class SideEffectFailureOut(BaseModel):
    id: int
    reservation_id: str
    resource_id: Optional[str] = None
    kind: str
    attempts: int
    error: Optional[str] = None
    created_at: dt.datetime

