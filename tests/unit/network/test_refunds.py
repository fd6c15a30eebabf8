"""
Unit tests for the refund collaborator client.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from reservation_engine.errors import CollaboratorError
from reservation_engine.network.refunds import RefundClient


def _response(status_code: int, body: dict | None = None) -> MagicMock:
    res = MagicMock()
    res.status_code = status_code
    res.json.return_value = body or {}
    return res


@pytest.mark.unit
@patch("reservation_engine.network.refunds.requests.post")
def test_request_refund_posts_reservation(mock_post):
    """Test that a refund is requested once with the reservation and resource type."""
    mock_post.return_value = _response(200, {"success": True, "refund_id": "rf_1"})

    body = RefundClient("https://payments.test/").request_refund("res-1", "venue")

    assert body["refund_id"] == "rf_1"
    mock_post.assert_called_once_with(
        "https://payments.test/refunds",
        json={"reservation_id": "res-1", "resource_type": "venue"},
        timeout=5.0,
    )


@pytest.mark.unit
@patch("reservation_engine.network.refunds.requests.post")
def test_request_refund_raises_on_error_status(mock_post):
    """Test that a 5xx answer raises CollaboratorError."""
    mock_post.return_value = _response(500)

    with pytest.raises(CollaboratorError):
        RefundClient("https://payments.test/").request_refund("res-1", "venue")


@pytest.mark.unit
@patch("reservation_engine.network.refunds.requests.post")
def test_request_refund_raises_when_body_reports_failure(mock_post):
    """Test that success: false in the body raises CollaboratorError with the reason."""
    mock_post.return_value = _response(200, {"success": False, "error": "already refunded"})

    with pytest.raises(CollaboratorError, match="already refunded"):
        RefundClient("https://payments.test/").request_refund("res-1", "venue")


@pytest.mark.unit
@patch("reservation_engine.network.refunds.requests.post")
def test_request_refund_propagates_transport_errors(mock_post):
    """Test that timeouts are left for the dispatcher to retry."""
    mock_post.side_effect = requests.Timeout("read timed out")

    with pytest.raises(requests.Timeout):
        RefundClient("https://payments.test/").request_refund("res-1", "venue")


@pytest.mark.unit
@patch("reservation_engine.network.refunds.requests.post")
def test_request_refund_skipped_without_base_url(mock_post):
    """Test that an unconfigured client does not call out."""
    assert RefundClient(base_url=None).request_refund("res-1", "venue")["skipped"] is True
    mock_post.assert_not_called()
