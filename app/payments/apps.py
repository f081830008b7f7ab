"""
Payments app configuration.

This app provides the payment order lifecycle:
- Razorpay order creation
- Client verification and webhook reconciliation
- Refunds
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        # Registers webhook handlers
        from payments.webhooks import handlers  # noqa: F401
