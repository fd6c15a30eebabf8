"""
Unit tests for the notification collaborator client.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from reservation_engine.errors import CollaboratorError
from reservation_engine.network.notifications import NotificationClient


@pytest.mark.unit
@patch("reservation_engine.network.notifications.requests.post")
def test_notify_posts_template_and_payload(mock_post):
    """Test that a notification carries recipient, template and data."""
    mock_post.return_value = MagicMock(status_code=202)

    NotificationClient("https://notify.test/").notify(
        "customer-1", "reservation_rejected", {"reservation_id": "res-1"}
    )

    mock_post.assert_called_once_with(
        "https://notify.test/notifications",
        json={
            "customer_id": "customer-1",
            "template": "reservation_rejected",
            "payload": {"reservation_id": "res-1"},
        },
        timeout=5.0,
    )


@pytest.mark.unit
@patch("reservation_engine.network.notifications.requests.post")
def test_notify_raises_on_error_status(mock_post):
    """Test that a 4xx answer raises CollaboratorError."""
    mock_post.return_value = MagicMock(status_code=400)

    with pytest.raises(CollaboratorError):
        NotificationClient("https://notify.test/").notify("customer-1", "reservation_accepted", {})


@pytest.mark.unit
@patch("reservation_engine.network.notifications.requests.post")
def test_notify_skipped_without_base_url(mock_post):
    """Test that an unconfigured client does not call out."""
    NotificationClient(base_url=None).notify("customer-1", "reservation_accepted", {})

    mock_post.assert_not_called()
