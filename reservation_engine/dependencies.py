"""
FastAPI dependency injection providers.

Routes receive the engine and the services through these providers so tests
can swap them with ``app.dependency_overrides``.

Example:
    >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
    >>> app.dependency_overrides[get_dispatcher] = lambda: dispatcher_with_mock_clients
"""

from __future__ import annotations

import threading
from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.engine import Engine

from reservation_engine.db.engine import engine
from reservation_engine.errors import InvalidRequest
from reservation_engine.services.availability import AvailabilityService
from reservation_engine.services.calendar import CalendarProjector
from reservation_engine.services.external import ExternalReservationAdapter
from reservation_engine.services.side_effects import SideEffectDispatcher
from reservation_engine.services.state_machine import ReservationStateMachine

_dispatcher: Optional[SideEffectDispatcher] = None
_dispatcher_lock = threading.Lock()


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the database engine.

    Yields:
        Engine: SQLAlchemy database engine
    """
    yield engine


def get_dispatcher() -> SideEffectDispatcher:
    """Process-wide side-effect dispatcher, created on first use."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = SideEffectDispatcher(engine)
        return _dispatcher


def shutdown_dispatcher() -> None:
    """Drain queued side effects; called on application shutdown."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.shutdown(wait=True)
            _dispatcher = None


def get_state_machine(
    db: Engine = Depends(get_db_engine),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
) -> ReservationStateMachine:
    return ReservationStateMachine(db, dispatcher)


def get_external_adapter(db: Engine = Depends(get_db_engine)) -> ExternalReservationAdapter:
    return ExternalReservationAdapter(db)


def get_availability_service(db: Engine = Depends(get_db_engine)) -> AvailabilityService:
    return AvailabilityService(db)


def get_calendar_projector(db: Engine = Depends(get_db_engine)) -> CalendarProjector:
    return CalendarProjector(db)


def get_requester_id(x_requester_id: Optional[str] = Header(None)) -> str:
    """
    Identity of the caller, from the ``X-Requester-Id`` header.

    Authentication happens upstream; this service only checks ownership.

    Raises:
        InvalidRequest: header missing or blank
    """
    if not x_requester_id or not x_requester_id.strip():
        raise InvalidRequest("X-Requester-Id header is required")
    return x_requester_id.strip()
