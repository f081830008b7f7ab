"""
Payment domain models.

- PaymentRecord: One payment per gateway order, driven by an FSM
- WebhookEvent: Gateway webhook deliveries for idempotent processing
"""

from payments.models.payment_record import PaymentRecord
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "PaymentRecord",
    "WebhookEvent",
]
