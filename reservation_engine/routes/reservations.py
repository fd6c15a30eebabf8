from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from reservation_engine.db.readers.reservations import get_reservation, get_status_history
from reservation_engine.dependencies import get_db_engine, get_requester_id, get_state_machine
from reservation_engine.errors import NotFound, NotOwner, ReservationEngineError
from reservation_engine.routes._helpers import outcome_response, reservation_out
from reservation_engine.schemas.reservations import (
    MutationResponse,
    ReservationOut,
    ReservationUpdatePayload,
    ResalePayload,
    ReschedulePayload,
    StatusHistoryOut,
    TransitionPayload,
)
from reservation_engine.services.dashboard import list_owner_reservations
from reservation_engine.services.ownership import require_owner
from reservation_engine.services.state_machine import ReservationStateMachine

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/reservations", response_model=list[ReservationOut])
def list_reservations_endpoint(
    owner_id: str = Query(..., description="Owner whose resources are listed"),
    status_filter: Optional[list[str]] = Query(None, alias="status"),
    resource_id: Optional[str] = Query(None, description="Restrict to one resource"),
    db: Engine = Depends(get_db_engine),
    requester_id: str = Depends(get_requester_id),
) -> list[ReservationOut]:
    """
    List reservations on the requester's resources, newest first.

    Args:
        owner_id: Must be the requester
        status_filter: Repeatable ``status`` query parameter
        resource_id: Optional single resource
    """
    try:
        if owner_id != requester_id:
            raise NotOwner(f"Requester {requester_id} cannot list reservations of {owner_id}")
        rows = list_owner_reservations(db, owner_id, status=status_filter, resource_id=resource_id)
        return [reservation_out(row) for row in rows]

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception("reservation_list_failed", owner_id=owner_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/{reservation_id}", response_model=ReservationOut)
def get_reservation_endpoint(
    reservation_id: str,
    db: Engine = Depends(get_db_engine),
    requester_id: str = Depends(get_requester_id),
) -> ReservationOut:
    with db.connect() as conn:
        row = get_reservation(conn, reservation_id)
        if row is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        require_owner(conn, row["resource_id"], requester_id)
    return reservation_out(row)


@router.get("/reservations/{reservation_id}/history", response_model=list[StatusHistoryOut])
def get_history_endpoint(
    reservation_id: str,
    db: Engine = Depends(get_db_engine),
    requester_id: str = Depends(get_requester_id),
) -> list[StatusHistoryOut]:
    with db.connect() as conn:
        row = get_reservation(conn, reservation_id)
        if row is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        require_owner(conn, row["resource_id"], requester_id)
        history = get_status_history(conn, reservation_id)
    return [StatusHistoryOut(**entry) for entry in history]


@router.post(
    "/reservations/{reservation_id}/transitions",
    response_model=MutationResponse,
    status_code=status.HTTP_200_OK,
)
def transition_endpoint(
    reservation_id: str,
    payload: TransitionPayload,
    machine: ReservationStateMachine = Depends(get_state_machine),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """
    Apply a status transition.

    Returns:
        MutationResponse: post-transition reservation and availability, with
        side-effect warnings when a refund or notification already failed
    """
    try:
        outcome = machine.transition(
            reservation_id,
            payload.to_status,
            requester_id,
            resale_discount=payload.resale_discount,
            note=payload.note,
        )
        return outcome_response(outcome)

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception("transition_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/resale", response_model=MutationResponse)
def resale_endpoint(
    reservation_id: str,
    payload: ResalePayload,
    machine: ReservationStateMachine = Depends(get_state_machine),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """Cancel an accepted reservation and relist its date at a discount."""
    try:
        outcome = machine.resell(
            reservation_id, payload.discount_percent, requester_id, notes=payload.notes
        )
        return outcome_response(outcome)

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception("resale_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/reschedule", response_model=MutationResponse)
def reschedule_endpoint(
    reservation_id: str,
    payload: ReschedulePayload,
    machine: ReservationStateMachine = Depends(get_state_machine),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """Move a pending reservation to another date."""
    try:
        return outcome_response(machine.reschedule(reservation_id, payload.date, requester_id))

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception("reschedule_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/reservations/{reservation_id}", response_model=MutationResponse)
def update_reservation_endpoint(
    reservation_id: str,
    payload: ReservationUpdatePayload,
    machine: ReservationStateMachine = Depends(get_state_machine),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """Toggle the deposit flag or replace owner notes."""
    try:
        outcome = machine.update_details(
            reservation_id,
            requester_id,
            deposit_paid=payload.deposit_paid,
            notes=payload.notes,
        )
        return outcome_response(outcome)

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception("reservation_update_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
