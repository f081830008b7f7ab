"""
Pytest fixtures for webhook tests.

Provides a helper that signs and posts webhook bodies to the view, and a
hook that makes the view dispatch through the test reconciliation service.
Payload builders live in payments.webhooks.tests.payloads.
"""

import json

import pytest
from django.test import RequestFactory

from payments.tests.factories import sign_webhook
from payments.webhooks.views import razorpay_webhook


WEBHOOK_PATH = "/api/v1/payments/webhook/"


# =============================================================================
# Request Fixtures
# =============================================================================


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def post_webhook(rf):
    """
    Sign and POST a webhook body to the view.

    Accepts a dict (serialised here) or raw bytes. Pass signature= to
    override the computed signature, or event_id= to set the event id header.
    """

    def _post(body, signature=None, event_id=None):
        raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        headers = {}
        if signature is not False:
            headers["HTTP_X_RAZORPAY_SIGNATURE"] = signature or sign_webhook(raw)
        if event_id:
            headers["HTTP_X_RAZORPAY_EVENT_ID"] = event_id
        request = rf.post(WEBHOOK_PATH, data=raw, content_type="application/json", **headers)
        return razorpay_webhook(request)

    return _post


@pytest.fixture
def use_test_service(mocker, reconciliation_service):
    """Make dispatch_webhook use the fake-gateway reconciliation service."""
    mocker.patch(
        "payments.services.get_reconciliation_service",
        return_value=reconciliation_service,
    )
    return reconciliation_service
