"""
HTTP client for the refund collaborator.

The collaborator reverses any captured payment for a reservation. It is
called only from the side-effect dispatcher, which owns retries; this client
makes exactly one attempt per call.
"""

import time
from typing import Any, Optional, cast
from urllib.parse import urljoin

import requests
import structlog

from reservation_engine.config import HTTP_TIMEOUT_SECONDS, REFUND_SERVICE_URL
from reservation_engine.errors import CollaboratorError
from reservation_engine.metrics import collaborator_latency, collaborator_requests

logger = structlog.get_logger(__name__)


class RefundClient:
    """
    Client for ``POST {base_url}/refunds``.

    When no base URL is configured, refunds are logged as skipped and treated
    as delivered, which keeps local and test deployments usable.

    Example:
        >>> client = RefundClient("https://payments.internal/")
        >>> client.request_refund("3f0c...", "venue")
        {'success': True, 'refund_id': 'rf_123'}
    """

    def __init__(
        self,
        base_url: Optional[str] = REFUND_SERVICE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout

    def request_refund(self, reservation_id: str, resource_type: str) -> dict[str, Any]:
        """
        Ask the collaborator to refund a reservation.

        Args:
            reservation_id (str): Reservation being refunded.
            resource_type (str): venue or service.

        Returns:
            dict[str, Any]: Collaborator response body.

        Raises:
            CollaboratorError: non-2xx answer or ``success: false`` in the body.
            requests.RequestException: transport failure (timeout, connection error).
        """
        if not self.base_url:
            logger.info("refund_skipped_unconfigured", reservation_id=reservation_id)
            return {"success": True, "skipped": True}

        url = urljoin(self.base_url, "refunds")
        start_time = time.time()
        res = requests.post(
            url,
            json={"reservation_id": reservation_id, "resource_type": resource_type},
            timeout=self.timeout,
        )
        collaborator_requests.labels(collaborator="refunds", status_code=str(res.status_code)).inc()
        collaborator_latency.labels(collaborator="refunds").observe(time.time() - start_time)

        if res.status_code >= 400:
            raise CollaboratorError(
                f"Refund collaborator answered {res.status_code}",
                reservation_id=reservation_id,
                status=res.status_code,
            )

        body = cast(dict[str, Any], res.json())
        if not body.get("success", True):
            raise CollaboratorError(
                f"Refund rejected: {body.get('error', 'unknown error')}",
                reservation_id=reservation_id,
            )

        logger.info("refund_requested", reservation_id=reservation_id, refund_id=body.get("refund_id"))
        return body
