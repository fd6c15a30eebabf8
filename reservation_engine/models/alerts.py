from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from reservation_engine.config import SCHEMA
from reservation_engine.models.base import Base


class SideEffectFailure(Base):
    """
    ORM model for side effects (refunds, notifications) that exhausted their
    retries. Rows are the operational alert trail; they are never deleted by
    the engine.
    """

    __tablename__ = "side_effect_failures"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(String(36), nullable=False, index=True)
    resource_id = Column(String(64), nullable=True, index=True)
    kind = Column(String(16), nullable=False)  # refund | notify
    attempts = Column(Integer, nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
