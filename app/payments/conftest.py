"""
Pytest fixtures shared by every payments test package.

Provides users, payment records in each status, a fake gateway adapter,
a signature verifier keyed with test secrets, and a mocked Redis client
for the refund lock.

Usage:
    def test_capture(reconciliation_service, pending_record, fake_gateway):
        fake_gateway.fetch_payment.return_value = make_gateway_payment(...)
"""

from decimal import Decimal
from itertools import count

import pytest

from payments.adapters import GatewayOrder, RazorpayAdapter, RefundReceipt
from payments.services import PaymentReconciliationService, RefundService
from payments.signatures import SignatureVerifier
from payments.state_machines import PaymentStatus
from payments.tests.factories import (
    TEST_KEY_ID,
    TEST_KEY_SECRET,
    TEST_WEBHOOK_SECRET,
    PaymentRecordFactory,
    StaffUserFactory,
    UserFactory,
)


@pytest.fixture(autouse=True)
def _razorpay_test_settings(settings):
    settings.RAZORPAY_KEY_ID = TEST_KEY_ID
    settings.RAZORPAY_KEY_SECRET = TEST_KEY_SECRET
    settings.RAZORPAY_WEBHOOK_SECRET = TEST_WEBHOOK_SECRET
    settings.PAYMENT_DEFAULT_CURRENCY = "INR"
    settings.PAYMENT_TRANSITION_MAX_ATTEMPTS = 3


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def staff_user(db):
    return StaffUserFactory()


# =============================================================================
# PaymentRecord State Fixtures
# =============================================================================


@pytest.fixture
def pending_record(db, user):
    """Create a payment record in PENDING status."""
    return PaymentRecordFactory(user=user)


@pytest.fixture
def processing_record(db, user):
    """Create a payment record in PROCESSING status with a known attempt."""
    return PaymentRecordFactory(
        user=user,
        status=PaymentStatus.PROCESSING,
        transaction_id="pay_TEST000000001",
    )


@pytest.fixture
def completed_record(db, user):
    """Create a payment record in COMPLETED status."""
    return PaymentRecordFactory(
        user=user,
        status=PaymentStatus.COMPLETED,
        transaction_id="pay_TEST000000001",
    )


@pytest.fixture
def failed_record(db, user):
    """Create a payment record in FAILED status."""
    return PaymentRecordFactory(
        user=user,
        status=PaymentStatus.FAILED,
        transaction_id="pay_TEST000000001",
        notes="Payment failed",
    )


@pytest.fixture
def cancelled_record(db, user):
    """Create a payment record in CANCELLED status."""
    return PaymentRecordFactory(user=user, status=PaymentStatus.CANCELLED)


@pytest.fixture
def refunded_record(db, user):
    """Create a payment record in REFUNDED status."""
    return PaymentRecordFactory(
        user=user,
        status=PaymentStatus.REFUNDED,
        transaction_id="pay_TEST000000001",
        refund_amount=Decimal("999.00"),
        refund_reason="Requested refund",
        refund_id="rfnd_TEST000000001",
    )


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def fake_gateway(mocker):
    """
    Fake RazorpayAdapter.

    create_order hands out sequential order ids and echoes the amount;
    issue_refund echoes the payment id and amount. fetch_payment has no
    default; tests set its return_value or side_effect.
    """
    gateway = mocker.MagicMock(spec=RazorpayAdapter)
    gateway.key_id = TEST_KEY_ID
    order_numbers = count(1)
    refund_numbers = count(1)

    def create_order(amount, currency, receipt, notes=None):
        return GatewayOrder(
            id=f"order_FAKE{next(order_numbers):010d}",
            amount=amount,
            currency=currency,
            status="created",
            receipt=receipt,
        )

    def issue_refund(payment_id, amount, notes=None):
        return RefundReceipt(
            id=f"rfnd_FAKE{next(refund_numbers):010d}",
            payment_id=payment_id,
            amount=amount,
            currency="INR",
            status="processed",
        )

    gateway.create_order.side_effect = create_order
    gateway.issue_refund.side_effect = issue_refund
    return gateway


@pytest.fixture
def verifier():
    return SignatureVerifier(key_secret=TEST_KEY_SECRET, webhook_secret=TEST_WEBHOOK_SECRET)


@pytest.fixture
def reconciliation_service(fake_gateway, verifier):
    return PaymentReconciliationService(gateway=fake_gateway, verifier=verifier)


@pytest.fixture
def refund_service(fake_gateway, mock_redis):
    return RefundService(gateway=fake_gateway, lock_timeout=0.2)


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client for distributed lock tests.

    Returns a MagicMock configured so every lock is free and releases cleanly.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1

    mocker.patch(
        "payments.locks.get_redis_connection",
        return_value=mock_client,
    )

    return mock_client
