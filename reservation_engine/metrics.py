"""
Prometheus metrics for the reservation lifecycle engine.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.
``side_effect_terminal_failures_total`` is the operational alert signal for
refunds and notifications that exhausted their retries.

Example:
    >>> from reservation_engine.metrics import transition_duration, transitions_total
    >>> with transition_duration.labels(resource_type="venue").time():
    ...     outcome = machine.transition(reservation_id, "accepted", requester_id="owner-1")
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# State Machine Metrics
# =============================================================================

transitions_total = Counter(
    "reservation_transitions_total",
    "Total reservation status transitions attempted",
    ["resource_type", "from_status", "to_status", "outcome"],
)
"""
Counter for transition attempts.

Labels:
    resource_type: venue or service
    from_status: status read inside the atomic unit
    to_status: target status (accepted for confirmed); "invalid" when the request named no known status
    outcome: committed, or the error code that stopped it (conflict, invalid_transition, ...)
"""

transition_duration = Histogram(
    "reservation_transition_duration_seconds",
    "Duration of the atomic unit of a transition, lock wait included",
    ["resource_type"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)

# =============================================================================
# Locking Metrics
# =============================================================================

lock_wait = Histogram(
    "reservation_lock_wait_seconds",
    "Time spent waiting for per-(resource, date) locks",
    buckets=(0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, float("inf")),
)

lock_timeouts = Counter(
    "reservation_lock_timeouts_total",
    "Number of operations rejected with Busy because a key lock was not acquired in time",
)

# =============================================================================
# Side Effect Metrics
# =============================================================================

side_effects_total = Counter(
    "reservation_side_effects_total",
    "Side effect delivery attempts",
    ["kind", "outcome"],
)
"""
Counter for side effect attempts.

Labels:
    kind: refund or notify
    outcome: success or failure (one increment per attempt, retries included)
"""

side_effect_terminal_failures = Counter(
    "reservation_side_effect_terminal_failures_total",
    "Side effects that exhausted their retries and need operator attention",
    ["kind"],
)

collaborator_requests = Counter(
    "reservation_collaborator_requests_total",
    "HTTP requests made to external collaborators",
    ["collaborator", "status_code"],
)

collaborator_latency = Histogram(
    "reservation_collaborator_latency_seconds",
    "External collaborator request latency in seconds",
    ["collaborator"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

# =============================================================================
# Calendar Metrics
# =============================================================================

reconciliation_days = Gauge(
    "reservation_calendar_reconciliation_days",
    "Days flagged needs-reconciliation in the most recent month projected for a resource",
    ["resource_id"],
)
