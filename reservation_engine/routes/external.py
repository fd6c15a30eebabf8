import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from reservation_engine.dependencies import get_external_adapter, get_requester_id
from reservation_engine.errors import ReservationEngineError
from reservation_engine.routes._helpers import outcome_response
from reservation_engine.schemas.reservations import (
    ExternalReservationCreatePayload,
    ExternalReservationUpdatePayload,
    MutationResponse,
)
from reservation_engine.services.external import ExternalReservationAdapter

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/external-reservations",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_external_reservation(
    payload: ExternalReservationCreatePayload,
    adapter: ExternalReservationAdapter = Depends(get_external_adapter),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """
    Register a reservation the owner took outside the customer flow.

    The reservation is created accepted/confirmed and its date booked in one
    atomic unit; 409 when the date is already taken.
    """
    try:
        outcome = adapter.create(
            requester_id,
            payload.resource_id,
            payload.date,
            payload.total_price,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            notes=payload.notes,
            guest_count_men=payload.guest_count_men,
            guest_count_women=payload.guest_count_women,
            deposit_paid=payload.deposit_paid,
        )
        return outcome_response(outcome)

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception(
            "external_reservation_creation_failed", resource_id=payload.resource_id, error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/external-reservations/{reservation_id}", response_model=MutationResponse)
def edit_external_reservation(
    reservation_id: str,
    payload: ExternalReservationUpdatePayload,
    adapter: ExternalReservationAdapter = Depends(get_external_adapter),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """Edit date, price, contact, guest counts or deposit of an external reservation."""
    try:
        outcome = adapter.edit(
            reservation_id,
            requester_id,
            day=payload.date,
            total_price=payload.total_price,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            notes=payload.notes,
            guest_count_men=payload.guest_count_men,
            guest_count_women=payload.guest_count_women,
            deposit_paid=payload.deposit_paid,
        )
        return outcome_response(outcome)

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception(
            "external_reservation_edit_failed", reservation_id=reservation_id, error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/external-reservations/{reservation_id}", response_model=MutationResponse)
def delete_external_reservation(
    reservation_id: str,
    adapter: ExternalReservationAdapter = Depends(get_external_adapter),
    requester_id: str = Depends(get_requester_id),
) -> MutationResponse:
    """Delete an external reservation and free its date."""
    try:
        return outcome_response(adapter.delete(reservation_id, requester_id))

    except ReservationEngineError:
        raise
    except Exception as e:
        logger.exception(
            "external_reservation_delete_failed", reservation_id=reservation_id, error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")
