"""HTTP client for the notification collaborator."""

import time
from typing import Any, Optional
from urllib.parse import urljoin

import requests
import structlog

from reservation_engine.config import HTTP_TIMEOUT_SECONDS, NOTIFICATION_SERVICE_URL
from reservation_engine.errors import CollaboratorError
from reservation_engine.metrics import collaborator_latency, collaborator_requests

logger = structlog.get_logger(__name__)


class NotificationClient:
    """
    Client for ``POST {base_url}/notifications``.

    The collaborator picks the delivery channel (push, email, chat) itself;
    this client only hands over who, which template, and the template data.
    """

    def __init__(
        self,
        base_url: Optional[str] = NOTIFICATION_SERVICE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout

    def notify(self, customer_id: str, template: str, payload: dict[str, Any]) -> None:
        """
        Send one notification.

        Args:
            customer_id (str): Recipient.
            template (str): Template kind, e.g. ``reservation_rejected``.
            payload (dict[str, Any]): Template data (JSON-serializable).

        Raises:
            CollaboratorError: non-2xx answer.
            requests.RequestException: transport failure.
        """
        if not self.base_url:
            logger.info("notification_skipped_unconfigured", customer_id=customer_id, template=template)
            return

        start_time = time.time()
        res = requests.post(
            urljoin(self.base_url, "notifications"),
            json={"customer_id": customer_id, "template": template, "payload": payload},
            timeout=self.timeout,
        )
        collaborator_requests.labels(
            collaborator="notifications", status_code=str(res.status_code)
        ).inc()
        collaborator_latency.labels(collaborator="notifications").observe(time.time() - start_time)

        if res.status_code >= 400:
            raise CollaboratorError(
                f"Notification collaborator answered {res.status_code}",
                customer_id=customer_id,
                template=template,
            )

        logger.info("notification_sent", customer_id=customer_id, template=template)
