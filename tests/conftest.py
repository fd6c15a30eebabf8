"""
Shared fixtures.

``reservation_engine.config`` reads the environment at import time, so the
test environment is set here before anything from the package is imported.
Every test that touches the database gets its own SQLite file under
``tmp_path``; connections are real and separate, so concurrency tests
exercise the same locking as production code.
"""

from __future__ import annotations

import os
import tempfile

os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'reservation_engine_default.db')}",
)
os.environ["DB_SCHEMA"] = ""

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Callable, Generator  # noqa: E402
from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from reservation_engine.db.engine import build_engine  # noqa: E402
from reservation_engine.db.locks import KeyLockRegistry  # noqa: E402
from reservation_engine.db.readers.availability import get_availability  # noqa: E402
from reservation_engine.db.readers.reservations import get_reservation  # noqa: E402
from reservation_engine.db.writers.reservations import insert_reservation  # noqa: E402
from reservation_engine.db.writers.resources import upsert_resources  # noqa: E402
from reservation_engine.models.base import Base  # noqa: E402
from reservation_engine.network.notifications import NotificationClient  # noqa: E402
from reservation_engine.network.refunds import RefundClient  # noqa: E402
from reservation_engine.services.availability import AvailabilityService  # noqa: E402
from reservation_engine.services.calendar import CalendarProjector  # noqa: E402
from reservation_engine.services.external import ExternalReservationAdapter  # noqa: E402
from reservation_engine.services.side_effects import SideEffectDispatcher  # noqa: E402
from reservation_engine.services.state_machine import ReservationStateMachine  # noqa: E402

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"
VENUE_ID = "venue-1"
SECOND_VENUE_ID = "venue-2"
SERVICE_ID = "service-1"
FOREIGN_VENUE_ID = "venue-9"
JUNE_FIRST = date(2025, 6, 1)


@pytest.fixture
def db_engine(tmp_path: Any) -> Generator[Engine, None, None]:
    """Fresh SQLite database with every table created."""
    engine = build_engine(f"sqlite:///{tmp_path / 'reservations.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def resources(db_engine: Engine) -> None:
    """Two venues and a service for owner-1, one venue for owner-2."""
    with db_engine.begin() as conn:
        upsert_resources(
            conn,
            [
                {"id": VENUE_ID, "resource_type": "venue", "owner_id": OWNER_ID, "name": "Garden"},
                {"id": SECOND_VENUE_ID, "resource_type": "venue", "owner_id": OWNER_ID},
                {"id": SERVICE_ID, "resource_type": "service", "owner_id": OWNER_ID},
                {"id": FOREIGN_VENUE_ID, "resource_type": "venue", "owner_id": OTHER_OWNER_ID},
            ],
        )


@pytest.fixture
def make_reservation(db_engine: Engine, resources: None) -> Callable[..., dict[str, Any]]:
    """Insert a reservation the way the booking-creation flow would."""

    def _make(
        resource_id: str = VENUE_ID,
        day: date = JUNE_FIRST,
        status: str = "pending",
        total_price: str = "5000",
        customer_id: str = "customer-1",
        **extra: Any,
    ) -> dict[str, Any]:
        resource_type = "service" if resource_id.startswith("service") else "venue"
        with db_engine.begin() as conn:
            return insert_reservation(
                conn,
                {
                    "resource_id": resource_id,
                    "resource_type": resource_type,
                    "customer_id": customer_id,
                    "date": day,
                    "status": status,
                    "total_price": Decimal(total_price),
                    **extra,
                },
            )

    return _make


@pytest.fixture
def snapshot(db_engine: Engine) -> Callable[[str], tuple[str, dict[str, Any]]]:
    """Return (reservation status, availability record of its date) for a reservation."""

    def _snapshot(reservation_id: str) -> tuple[str, dict[str, Any]]:
        with db_engine.connect() as conn:
            reservation = get_reservation(conn, reservation_id)
            assert reservation is not None
            record = get_availability(conn, reservation["resource_id"], reservation["date"])
        return reservation["status"], record

    return _snapshot


@pytest.fixture
def locks() -> KeyLockRegistry:
    return KeyLockRegistry()


@pytest.fixture
def refund_client() -> Mock:
    client = Mock(spec=RefundClient)
    client.request_refund.return_value = {"success": True}
    return client


@pytest.fixture
def notification_client() -> Mock:
    return Mock(spec=NotificationClient)


@pytest.fixture
def dispatcher(
    db_engine: Engine, refund_client: Mock, notification_client: Mock
) -> Generator[SideEffectDispatcher, None, None]:
    """Dispatcher with mocked collaborators and no real backoff sleeping."""
    dispatcher = SideEffectDispatcher(
        db_engine,
        refund_client=refund_client,
        notification_client=notification_client,
        max_workers=2,
        backoff_seconds=0.01,
        ack_seconds=5,
        sleep=lambda seconds: None,
    )
    yield dispatcher
    dispatcher.shutdown(wait=True)


@pytest.fixture
def machine(
    db_engine: Engine, dispatcher: SideEffectDispatcher, locks: KeyLockRegistry
) -> ReservationStateMachine:
    return ReservationStateMachine(db_engine, dispatcher, locks=locks, lock_timeout=2)


@pytest.fixture
def adapter(db_engine: Engine, locks: KeyLockRegistry) -> ExternalReservationAdapter:
    return ExternalReservationAdapter(db_engine, locks=locks, lock_timeout=2)


@pytest.fixture
def availability_service(db_engine: Engine, locks: KeyLockRegistry) -> AvailabilityService:
    return AvailabilityService(db_engine, locks=locks, lock_timeout=2)


@pytest.fixture
def projector(db_engine: Engine) -> CalendarProjector:
    return CalendarProjector(db_engine)
