"""SQLAlchemy model for bookable resources (venues and service offerings)."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from reservation_engine.config import SCHEMA
from reservation_engine.models.base import Base


class Resource(Base):
    """
    ORM model for a bookable resource.

    Backs the ownership check: a requester may mutate reservations on a
    resource only when they are its ``owner_id``.
    """

    __tablename__ = "resources"
    __table_args__ = {"schema": SCHEMA}

    id = Column(String(64), primary_key=True)
    resource_type = Column(String(16), nullable=False)  # venue | service
    owner_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
