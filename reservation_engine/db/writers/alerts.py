import structlog
from sqlalchemy import insert
from sqlalchemy.engine import Connection

from reservation_engine.models.alerts import SideEffectFailure
from reservation_engine.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def record_side_effect_failure(
    conn: Connection,
    reservation_id: str,
    kind: str,
    attempts: int,
    error: str | None,
    resource_id: str | None = None,
) -> None:
    """
    Persist a terminally failed side effect for operator follow-up.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation the side effect belonged to.
        kind (str): refund or notify.
        attempts (int): Attempts made before giving up.
        error (str | None): Last error message.
        resource_id (str | None): Resource of the reservation, used to scope alert listings.
    """
    conn.execute(
        insert(SideEffectFailure).values(
            reservation_id=reservation_id,
            resource_id=resource_id,
            kind=kind,
            attempts=attempts,
            error=error,
            created_at=utc_now(),
        )
    )
    logger.info("side_effect_failure_recorded", reservation_id=reservation_id, kind=kind)
