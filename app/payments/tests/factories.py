"""
Factory Boy factories for payment test data.

Usage:
    from payments.tests.factories import PaymentRecordFactory

    # A pending record for a new user
    record = PaymentRecordFactory()

    # A record in a specific state
    record = PaymentRecordFactory(status=PaymentStatus.COMPLETED, transaction_id="pay_1")

    # With a specific purchaser
    record = PaymentRecordFactory(user=user)
"""

from decimal import Decimal

import factory

from payments.adapters import GatewayPayment
from payments.models import PaymentRecord, WebhookEvent
from payments.signatures import compute_signature
from payments.state_machines import PaymentStatus, WebhookEventStatus


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for creating User instances for payment tests."""

    class Meta:
        model = "auth.User"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"student{n}")
    email = factory.Sequence(lambda n: f"student{n}@example.com")
    first_name = "Asha"
    last_name = factory.Sequence(lambda n: f"Rao{n}")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


class StaffUserFactory(UserFactory):
    username = factory.Sequence(lambda n: f"staff{n}")
    email = factory.Sequence(lambda n: f"staff{n}@example.com")
    is_staff = True


class PaymentRecordFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating PaymentRecord instances.

    Defaults to a PENDING 999.00 INR order for one course.
    """

    class Meta:
        model = PaymentRecord

    user = factory.SubFactory(UserFactory)
    user_name = factory.LazyAttribute(lambda o: o.user.get_full_name())
    user_email = factory.LazyAttribute(lambda o: o.user.email)
    order_id = factory.Sequence(lambda n: f"order_TEST{n:010d}")
    amount = Decimal("999.00")
    currency = "INR"
    status = PaymentStatus.PENDING
    items = factory.LazyFunction(
        lambda: [
            {
                "item_type": "course",
                "item_id": "course-101",
                "item_name": "Foundations of Algebra",
                "quantity": 1,
                "price": "999.00",
            }
        ]
    )
    billing_address = factory.LazyFunction(dict)
    metadata = factory.LazyFunction(dict)


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """Factory for creating WebhookEvent instances."""

    class Meta:
        model = WebhookEvent

    event_id = factory.Sequence(lambda n: f"evt_TEST{n:010d}")
    event_type = "payment.captured"
    order_id = ""
    payload = factory.LazyFunction(dict)
    status = WebhookEventStatus.RECEIVED


# =============================================================================
# Gateway Helpers
# =============================================================================

TEST_KEY_ID = "rzp_test_1DP5mmOlF5G5ag"
TEST_KEY_SECRET = "test_key_secret"
TEST_WEBHOOK_SECRET = "test_webhook_secret"


def sign_payment(order_id: str, payment_id: str, secret: str = TEST_KEY_SECRET) -> str:
    """Signature the checkout widget would hand back for this payment."""
    return compute_signature(secret, f"{order_id}|{payment_id}".encode("utf-8"))


def sign_webhook(body: bytes, secret: str = TEST_WEBHOOK_SECRET) -> str:
    return compute_signature(secret, body)


def make_gateway_payment(
    order_id: str,
    payment_id: str = "pay_TEST000000001",
    status: str = "captured",
    amount: Decimal = Decimal("999.00"),
    method: str = "upi",
    **extra,
) -> GatewayPayment:
    return GatewayPayment(
        id=payment_id,
        order_id=order_id,
        status=status,
        method=method,
        amount=amount,
        **extra,
    )
