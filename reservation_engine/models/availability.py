from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from reservation_engine.config import SCHEMA
from reservation_engine.models.base import Base, qualified


class Availability(Base):
    """
    ORM model for the per-resource, per-date calendar status.

    A missing row means ``available``; the store deletes rows instead of
    writing explicit ``available`` rows. ``reservation_id`` names the
    reservation holding a ``booked`` day so readers can tell a legitimate
    booking from a stale one.
    """

    __tablename__ = "availability"
    __table_args__ = (
        CheckConstraint(
            "resale_discount IS NULL OR (resale_discount >= 5 AND resale_discount <= 50)",
            name="ck_availability_resale_discount",
        ),
        {"schema": SCHEMA},
    )

    resource_id = Column(
        String(64),
        ForeignKey(f"{qualified('resources')}.id", ondelete="CASCADE"),
        primary_key=True,
    )
    date = Column(Date, primary_key=True)
    status = Column(String(16), nullable=False)  # booked | resale
    resale_discount = Column(Integer, nullable=True)
    reservation_id = Column(String(36), nullable=True)
    notes = Column(Text, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
