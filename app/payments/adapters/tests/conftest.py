"""
Pytest fixtures for Razorpay adapter tests.

The adapter takes a pre-built SDK client, so tests hand it a MagicMock
shaped like razorpay.Client and feed it canned gateway responses.

Sections:
    - Mock Razorpay Client Fixtures
    - Mock Response Fixtures
"""

import pytest

from payments.adapters import RazorpayAdapter


# =============================================================================
# Mock Razorpay Client Fixtures
# =============================================================================


@pytest.fixture
def mock_client(mocker):
    """MagicMock with the order and payment resources of razorpay.Client."""
    client = mocker.MagicMock()
    client.order = mocker.MagicMock()
    client.payment = mocker.MagicMock()
    return client


@pytest.fixture
def adapter(mock_client):
    return RazorpayAdapter(
        key_id="rzp_test_1DP5mmOlF5G5ag",
        key_secret="test_key_secret",
        timeout=5,
        client=mock_client,
    )


# =============================================================================
# Mock Response Fixtures
# =============================================================================


@pytest.fixture
def order_response():
    """Create a gateway order entity."""

    def _create(
        id: str = "order_N5xYzAbCdEf123",
        amount: int = 99900,
        currency: str = "INR",
        receipt: str = "receipt_1700000000000_1",
        status: str = "created",
    ) -> dict:
        return {
            "id": id,
            "entity": "order",
            "amount": amount,
            "amount_paid": 0,
            "amount_due": amount,
            "currency": currency,
            "receipt": receipt,
            "status": status,
            "attempts": 0,
            "notes": {},
        }

    return _create


@pytest.fixture
def payment_response():
    """Create a gateway payment entity."""

    def _create(
        id: str = "pay_29QQoUBi66xm2f",
        order_id: str = "order_N5xYzAbCdEf123",
        status: str = "captured",
        amount: int = 99900,
        method: str = "upi",
        **extra,
    ) -> dict:
        return {
            "id": id,
            "entity": "payment",
            "order_id": order_id,
            "status": status,
            "amount": amount,
            "currency": "INR",
            "method": method,
            "captured": status == "captured",
            "email": "student@example.com",
            "contact": "+919900000000",
            **extra,
        }

    return _create


@pytest.fixture
def refund_response():
    """Create a gateway refund entity."""

    def _create(
        id: str = "rfnd_FP8QHiV938haTz",
        payment_id: str = "pay_29QQoUBi66xm2f",
        amount: int = 49950,
        status: str = "processed",
    ) -> dict:
        return {
            "id": id,
            "entity": "refund",
            "payment_id": payment_id,
            "amount": amount,
            "currency": "INR",
            "status": status,
        }

    return _create
