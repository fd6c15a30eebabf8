import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from reservation_engine.dependencies import get_calendar_projector, get_db_engine, get_requester_id
from reservation_engine.errors import NotOwner
from reservation_engine.routes._helpers import calendar_day_out
from reservation_engine.schemas.availability import CalendarDayOut, DashboardOut
from reservation_engine.services.calendar import CalendarProjector
from reservation_engine.services.dashboard import owner_dashboard
from reservation_engine.services.ownership import require_owner

logger = structlog.get_logger(__name__)
router = APIRouter()


def _require_self(owner_id: str, requester_id: str) -> None:
    if owner_id != requester_id:
        raise NotOwner(f"Requester {requester_id} cannot view owner {owner_id}")


@router.get("/resources/{resource_id}/calendar", response_model=list[CalendarDayOut])
def resource_calendar(
    resource_id: str,
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: Engine = Depends(get_db_engine),
    projector: CalendarProjector = Depends(get_calendar_projector),
    requester_id: str = Depends(get_requester_id),
) -> list[CalendarDayOut]:
    """
    One entry per day of the month for one resource.

    Days where the stores disagree come back as ``needs-reconciliation``.
    """
    with db.connect() as conn:
        require_owner(conn, resource_id, requester_id)
    return [calendar_day_out(day) for day in projector.resource_month(resource_id, year, month)]


@router.get("/owners/{owner_id}/calendar", response_model=list[CalendarDayOut])
def owner_calendar(
    owner_id: str,
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    projector: CalendarProjector = Depends(get_calendar_projector),
    requester_id: str = Depends(get_requester_id),
) -> list[CalendarDayOut]:
    """Combined calendar of every resource the owner has."""
    _require_self(owner_id, requester_id)
    return [calendar_day_out(day) for day in projector.owner_month(owner_id, year, month)]


@router.get("/owners/{owner_id}/dashboard", response_model=DashboardOut)
def dashboard(
    owner_id: str,
    db: Engine = Depends(get_db_engine),
    requester_id: str = Depends(get_requester_id),
) -> DashboardOut:
    """Pending, accepted and paid counts across the owner's resources."""
    _require_self(owner_id, requester_id)
    return DashboardOut(**owner_dashboard(db, owner_id))
