"""
Error taxonomy for the reservation lifecycle engine.

Every error carries a stable machine ``code`` and the HTTP status the API layer
answers with. Validation and invariant errors are raised before anything is
committed; ``SideEffectFailed`` is never raised to callers, it travels as a
warning attached to an otherwise successful result.
"""

from __future__ import annotations

from typing import Any


class ReservationEngineError(Exception):
    """Base exception for reservation engine errors."""

    code = "reservation_engine_error"
    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.context}


class InvalidTransition(ReservationEngineError):
    """Requested status change is not an edge of the state machine."""

    code = "invalid_transition"
    status_code = 409


class Conflict(ReservationEngineError):
    """Another reservation already occupies the resource on that date."""

    code = "conflict"
    status_code = 409


class InvalidDiscount(ReservationEngineError):
    """Resale discount outside the accepted 5-50 percent range."""

    code = "invalid_discount"
    status_code = 422


class InvalidRequest(ReservationEngineError):
    """Request is well-formed but violates a field rule (negative price, wrong origin)."""

    code = "invalid_request"
    status_code = 422


class NotFound(ReservationEngineError):
    """Reservation or resource id is unknown."""

    code = "not_found"
    status_code = 404


class NotOwner(ReservationEngineError):
    """Requester does not own the resource being mutated."""

    code = "not_owner"
    status_code = 403


class Busy(ReservationEngineError):
    """Per-key lock could not be acquired in time. Safe to retry."""

    code = "busy"
    status_code = 503


class CollaboratorError(ReservationEngineError):
    """An external collaborator (refunds, notifications) answered with a failure."""

    code = "collaborator_error"
    status_code = 502


class SideEffectFailed(ReservationEngineError):
    """Non-fatal: a refund or notification could not be delivered (yet)."""

    code = "side_effect_failed"
    status_code = 200

    def __init__(self, message: str, kind: str, reservation_id: str, **context: Any) -> None:
        super().__init__(message, kind=kind, reservation_id=reservation_id, **context)
        self.kind = kind
        self.reservation_id = reservation_id
