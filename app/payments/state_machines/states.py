"""
State and choice enums for payment models.

These are Django TextChoices for database storage and admin integration.
PaymentStatus drives the django-fsm field on PaymentRecord.

PaymentRecord States:
    pending → processing → completed → refunded
    pending/processing → completed (captured straight away)
    pending/processing → failed → processing/completed (later attempt succeeds)
    pending/processing/failed → cancelled (admin)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the PaymentRecord lifecycle.

    PENDING is the only initial state. COMPLETED, REFUNDED and CANCELLED are
    terminal for gateway-driven transitions; only a refund may leave
    COMPLETED. FAILED is not terminal because the customer may retry the
    same gateway order.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    CANCELLED = "cancelled", "Cancelled"


# Source states from which gateway or admin events may still move a record.
OPEN_STATUSES = (
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.FAILED,
)

TERMINAL_STATUSES = (
    PaymentStatus.COMPLETED,
    PaymentStatus.REFUNDED,
    PaymentStatus.CANCELLED,
)


class PaymentMethod(models.TextChoices):
    """
    Advisory payment method labels accepted at order creation.

    The stored value is free-form: gateway-reported methods such as
    "card" overwrite it without validation.
    """

    CREDIT_CARD = "credit_card", "Credit Card"
    DEBIT_CARD = "debit_card", "Debit Card"
    UPI = "upi", "UPI"
    NETBANKING = "netbanking", "Net Banking"
    WALLET = "wallet", "Wallet"
    CASH = "cash", "Cash"
    OTHER = "other", "Other"


class PaymentGateway(models.TextChoices):
    RAZORPAY = "razorpay", "Razorpay"
    STRIPE = "stripe", "Stripe"
    PAYPAL = "paypal", "PayPal"
    CASHFREE = "cashfree", "Cashfree"
    MANUAL = "manual", "Manual"
    OTHER = "other", "Other"


class ItemType(models.TextChoices):
    """Kinds of purchasable items a line item can reference."""

    COURSE = "course", "Course"
    CERTIFICATION = "certification", "Certification"
    PLACEMENT_TRAINING = "placement_training", "Placement Training"
    WORKSHOP = "workshop", "Workshop"
    MEMBERSHIP = "membership", "Membership"
    OTHER = "other", "Other"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        RECEIVED → PROCESSED
        RECEIVED → IGNORED (unknown order or unhandled event type)
        RECEIVED → FAILED (gateway redelivers; next delivery retries)
    """

    RECEIVED = "received", "Received"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"
    FAILED = "failed", "Failed"


__all__ = [
    "ItemType",
    "OPEN_STATUSES",
    "PaymentGateway",
    "PaymentMethod",
    "PaymentStatus",
    "TERMINAL_STATUSES",
    "WebhookEventStatus",
]
