"""
Asynchronous dispatch of transition side effects (refunds, notifications).

The state machine hands over a list of ``SideEffect`` after its transaction
commits. Each one runs on a worker thread with exponential backoff; a side
effect that exhausts its retries is logged at ERROR, counted in
``reservation_side_effect_terminal_failures_total`` and persisted in
``side_effect_failures``. Nothing here ever touches reservation status.

``dispatch`` waits up to ``ack_seconds`` for the first attempt of each job so
an immediate failure can be returned to the caller as a non-fatal
``SideEffectFailed`` warning.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

import structlog
from sqlalchemy.engine import Engine

from reservation_engine.config import (
    NOTIFY_MAX_RETRIES,
    REFUND_MAX_RETRIES,
    SIDE_EFFECT_ACK_SECONDS,
    SIDE_EFFECT_BACKOFF_SECONDS,
    SIDE_EFFECT_WORKERS,
)
from reservation_engine.db.writers.alerts import record_side_effect_failure
from reservation_engine.db.writers.reservations import update_reservation_fields
from reservation_engine.errors import SideEffectFailed
from reservation_engine.metrics import side_effect_terminal_failures, side_effects_total
from reservation_engine.models.enums import RefundStatus, SideEffectKind
from reservation_engine.network.notifications import NotificationClient
from reservation_engine.network.refunds import RefundClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SideEffect:
    """One refund request or customer notification produced by a transition."""

    kind: SideEffectKind
    reservation_id: str
    resource_type: str
    customer_id: str
    template: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    resource_id: Optional[str] = None


class _Job:
    def __init__(self, effect: SideEffect) -> None:
        self.effect = effect
        self.first_attempt = threading.Event()
        self.first_error: Optional[str] = None
        self.will_retry = False


class SideEffectDispatcher:
    """
    Fire-and-forget executor for side effects with retry and alerting.

    Example:
        >>> dispatcher = SideEffectDispatcher(engine)
        >>> warnings = dispatcher.dispatch([
        ...     SideEffect(SideEffectKind.REFUND, reservation_id, "venue", customer_id),
        ... ])
        >>> [w.kind for w in warnings]  # only first attempts that already failed
        []
    """

    def __init__(
        self,
        engine: Engine,
        refund_client: Optional[RefundClient] = None,
        notification_client: Optional[NotificationClient] = None,
        max_workers: int = SIDE_EFFECT_WORKERS,
        refund_max_retries: int = REFUND_MAX_RETRIES,
        notify_max_retries: int = NOTIFY_MAX_RETRIES,
        backoff_seconds: float = SIDE_EFFECT_BACKOFF_SECONDS,
        ack_seconds: float = SIDE_EFFECT_ACK_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.engine = engine
        self.refund_client = refund_client or RefundClient()
        self.notification_client = notification_client or NotificationClient()
        self.max_retries = {
            SideEffectKind.REFUND: refund_max_retries,
            SideEffectKind.NOTIFY: notify_max_retries,
        }
        self.backoff_seconds = backoff_seconds
        self.ack_seconds = ack_seconds
        self._sleep = sleep
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="side-effects"
        )

    def dispatch(self, effects: Iterable[SideEffect]) -> list[SideEffectFailed]:
        """
        Queue side effects and return warnings for those already known to fail.

        Args:
            effects: Side effects of one committed transition

        Returns:
            list[SideEffectFailed]: One warning per effect that could not be
            queued or whose first attempt failed within the ack window.
        """
        jobs: list[_Job] = []
        warnings: list[SideEffectFailed] = []

        for effect in effects:
            job = _Job(effect)
            try:
                self._executor.submit(self._run, job)
            except RuntimeError as e:
                # Executor already shut down
                logger.error(
                    "side_effect_not_queued",
                    kind=effect.kind.value,
                    reservation_id=effect.reservation_id,
                    error=str(e),
                )
                self._fail_terminally(effect, 0, str(e))
                warnings.append(
                    SideEffectFailed(
                        f"{effect.kind.value} could not be queued",
                        kind=effect.kind.value,
                        reservation_id=effect.reservation_id,
                    )
                )
                continue
            jobs.append(job)

        deadline = time.monotonic() + self.ack_seconds
        for job in jobs:
            job.first_attempt.wait(max(deadline - time.monotonic(), 0))
            if job.first_error is None:
                continue
            follow_up = (
                "retrying in background" if job.will_retry else "flagged for manual review"
            )
            warnings.append(
                SideEffectFailed(
                    f"{job.effect.kind.value} failed ({job.first_error}); {follow_up}",
                    kind=job.effect.kind.value,
                    reservation_id=job.effect.reservation_id,
                )
            )

        return warnings

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; with ``wait`` block until queued jobs finish."""
        self._executor.shutdown(wait=wait)

    def _run(self, job: _Job) -> bool:
        effect = job.effect
        max_retries = self.max_retries[effect.kind]
        attempt = 0

        try:
            while True:
                attempt += 1
                try:
                    self._deliver(effect)
                except Exception as e:
                    error = str(e) or e.__class__.__name__
                    side_effects_total.labels(kind=effect.kind.value, outcome="failure").inc()
                    logger.warning(
                        "side_effect_attempt_failed",
                        kind=effect.kind.value,
                        reservation_id=effect.reservation_id,
                        attempt=attempt,
                        error=error,
                    )
                    if attempt == 1:
                        job.first_error = error
                        job.will_retry = max_retries > 0
                        job.first_attempt.set()
                    if attempt > max_retries:
                        self._fail_terminally(effect, attempt, error)
                        return False
                    self._sleep(self.backoff_seconds * 2 ** (attempt - 1))
                    continue

                side_effects_total.labels(kind=effect.kind.value, outcome="success").inc()
                job.first_attempt.set()
                if effect.kind == SideEffectKind.REFUND:
                    self._set_refund_status(effect.reservation_id, RefundStatus.REFUNDED)
                logger.info(
                    "side_effect_delivered",
                    kind=effect.kind.value,
                    reservation_id=effect.reservation_id,
                    attempts=attempt,
                )
                return True
        finally:
            job.first_attempt.set()

    def _deliver(self, effect: SideEffect) -> None:
        if effect.kind == SideEffectKind.REFUND:
            self.refund_client.request_refund(effect.reservation_id, effect.resource_type)
        else:
            self.notification_client.notify(
                effect.customer_id, effect.template or "reservation_updated", effect.payload
            )

    def _set_refund_status(self, reservation_id: str, status: RefundStatus) -> None:
        try:
            with self.engine.begin() as conn:
                update_reservation_fields(conn, reservation_id, {"refund_status": status.value})
        except Exception:
            logger.exception("refund_status_update_failed", reservation_id=reservation_id)

    def _fail_terminally(self, effect: SideEffect, attempts: int, error: str) -> None:
        side_effect_terminal_failures.labels(kind=effect.kind.value).inc()
        logger.error(
            "side_effect_failed_terminally",
            kind=effect.kind.value,
            reservation_id=effect.reservation_id,
            attempts=attempts,
            error=error,
        )
        try:
            with self.engine.begin() as conn:
                record_side_effect_failure(
                    conn,
                    effect.reservation_id,
                    effect.kind.value,
                    attempts,
                    error,
                    resource_id=effect.resource_id,
                )
                if effect.kind == SideEffectKind.REFUND:
                    update_reservation_fields(
                        conn,
                        effect.reservation_id,
                        {"refund_status": RefundStatus.MANUAL_REVIEW.value},
                    )
        except Exception:
            logger.exception("side_effect_failure_not_recorded", reservation_id=effect.reservation_id)
