# models/reservations.py

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.sql import func

from reservation_engine.config import SCHEMA
from reservation_engine.models.base import Base, qualified

_OCCUPYING = "status IN ('accepted', 'confirmed')"


class Reservation(Base):
    """
    ORM model for a date-bound reservation of a venue or service.

    ``resource_type`` is copied from the resource at creation and drives the
    transition table (services have ``confirmed``/``completed``, venues do not).
    ``guest_count_men``/``guest_count_women`` are only used for venues.

    The partial unique index allows at most one accepted/confirmed reservation
    per resource and date, whatever the application layer does.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        Index(
            "uq_reservations_occupying_day",
            "resource_id",
            "date",
            unique=True,
            postgresql_where=text(_OCCUPYING),
            sqlite_where=text(_OCCUPYING),
        ),
        Index("ix_reservations_resource_day", "resource_id", "date"),
        {"schema": SCHEMA},
    )

    id = Column(String(36), primary_key=True)
    resource_id = Column(
        String(64),
        ForeignKey(f"{qualified('resources')}.id", ondelete="CASCADE"),
        nullable=False,
    )
    resource_type = Column(String(16), nullable=False)
    customer_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, server_default="pending")
    total_price = Column(Numeric(12, 2), nullable=False, server_default="0")
    deposit_paid = Column(Boolean, nullable=False, server_default=text("false"))
    guest_count_men = Column(Integer, nullable=True)
    guest_count_women = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    origin = Column(String(16), nullable=False, server_default="customer")
    refund_status = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ReservationStatusHistory(Base):
    """
    Append-only log of status changes, written in the same transaction as the
    status update it records.
    """

    __tablename__ = "reservation_status_history"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        String(36),
        ForeignKey(f"{qualified('reservations')}.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status = Column(String(16), nullable=True)  # NULL for the creation entry
    to_status = Column(String(16), nullable=False)
    actor_id = Column(String(64), nullable=True)
    note = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
