"""
Webhook handling for payment events from Razorpay.

Webhooks are verified against the raw body, stored once per event id,
and applied synchronously through the handler registry.

Usage:
    # In urls.py
    from payments.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhook/", razorpay_webhook, name="webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import razorpay_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "razorpay_webhook",
]
