from datetime import date, timedelta

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Engine

from reservation_engine.db.readers.availability import get_availability_range
from reservation_engine.db.readers.resources import get_resource
from reservation_engine.dependencies import (
    get_availability_service,
    get_db_engine,
    get_requester_id,
)
from reservation_engine.errors import InvalidRequest, NotFound, ReservationEngineError
from reservation_engine.routes._helpers import availability_out, outcome_response
from reservation_engine.schemas.availability import AvailabilityOut, AvailabilityPayload
from reservation_engine.schemas.reservations import MutationResponse
from reservation_engine.services.availability import AvailabilityService

logger = structlog.get_logger(__name__)
router = APIRouter()

# Widest range a single availability query may cover
MAX_RANGE_DAYS = 366


@router.get("/resources/{resource_id}/availability", response_model=list[AvailabilityOut])
def get_availability_endpoint(
    resource_id: str,
    start: date = Query(..., description="First day (inclusive)"),
    end: date = Query(..., description="Last day (inclusive)"),
    db: Engine = Depends(get_db_engine),
) -> list[AvailabilityOut]:
    """
    Availability of a resource for every day in [start, end].

    Days without a stored record are returned as ``available``.
    """
    if end < start:
        raise InvalidRequest("end must not be before start")
    if end - start > timedelta(days=MAX_RANGE_DAYS):
        raise InvalidRequest(f"Range is limited to {MAX_RANGE_DAYS} days")

    with db.connect() as conn:
        if get_resource(conn, resource_id) is None:
            raise NotFound(f"Resource {resource_id} not found", resource_id=resource_id)
        records = get_availability_range(conn, resource_id, start, end)
    return [availability_out(record) for record in records.values()]


@router.put("/resources/{resource_id}/availability/{day}", response_model=MutationResponse)
def set_availability_endpoint(
    resource_id: str,
    day: date,
    payload: AvailabilityPayload,
    service: AvailabilityService = Depends(get_availability_service),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """Set a free day to available or resale."""
    try:
        outcome = service.set_day(
            resource_id,
            day,
            payload.status,
            requester_id,
            discount=payload.discount,
            notes=payload.notes,
        )
        return outcome_response(outcome)

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception("availability_update_failed", resource_id=resource_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/resources/{resource_id}/availability/{day}/reconcile", response_model=MutationResponse
)
def reconcile_endpoint(
    resource_id: str,
    day: date,
    service: AvailabilityService = Depends(get_availability_service),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """Rewrite a day flagged needs-reconciliation from the reservation store."""
    try:
        return outcome_response(service.reconcile_day(resource_id, day, requester_id))

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception("reconciliation_failed", resource_id=resource_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
