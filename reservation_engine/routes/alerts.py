"""
Side effects that exhausted their retries, for the owner whose resources they
belong to.

Each entry is a refund or notification that needs a human; refunds listed
here have their reservation flagged ``refund_status = manual_review``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from reservation_engine.db.readers.alerts import list_side_effect_failures
from reservation_engine.db.readers.resources import list_owned_resources
from reservation_engine.dependencies import get_db_engine, get_requester_id
from reservation_engine.schemas.reservations import SideEffectFailureOut

router = APIRouter()


@router.get("/alerts/side-effects", response_model=list[SideEffectFailureOut])
def side_effect_alerts(
    reservation_id: Optional[str] = Query(None, description="Restrict to one reservation"),
    limit: int = Query(100, ge=1, le=1000),
    requester_id: str = Depends(get_requester_id),
    db: Engine = Depends(get_db_engine),
) -> list[SideEffectFailureOut]:
    with db.connect() as conn:
        resource_ids = [r["id"] for r in list_owned_resources(conn, requester_id)]
        rows = list_side_effect_failures(
            conn, reservation_id=reservation_id, limit=limit, resource_ids=resource_ids
        )
    return [SideEffectFailureOut(**row) for row in rows]
