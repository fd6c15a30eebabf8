import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class AvailabilityPayload(BaseModel):
    """
    Schema for setting a free day by hand.
    """

    status: str = Field(..., description="available or resale")
    discount: Optional[int] = Field(None, description="Resale discount (5-50)")
    notes: Optional[str] = Field(None, description="Reason shown on the calendar")


class AvailabilityOut(BaseModel):
    resource_id: str
    date: dt.date
    status: str
    status_label: str
    resale_discount: Optional[int] = None
    reservation_id: Optional[str] = None
    notes: Optional[str] = None
    updated_at: Optional[dt.datetime] = None


class CalendarReservationOut(BaseModel):
    id: str
    status: str
    origin: str
    customer_id: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    total_price: Decimal
    guest_count_men: Optional[int] = None
    guest_count_women: Optional[int] = None
    deposit_paid: bool
    notes: Optional[str] = None


class CalendarDayOut(BaseModel):
    date: dt.date
    resource_id: str
    status: str
    status_label: str
    availability_status: str
    resale_discount: Optional[int] = None
    reservation: Optional[CalendarReservationOut] = None
    pending_requests: int = 0
    inactive_reservations: int = 0
    issues: list[str] = Field(default_factory=list)


class DashboardOut(BaseModel):
    owner_id: str
    resource_count: int
    pending_count: int
    accepted_count: int
    paid_count: int
    by_status: dict[str, int]
