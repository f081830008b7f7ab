"""
Payment services for coordinating payment operations.

This module provides:
- PaymentReconciliationService: Order creation, client verification,
  webhook events and admin status updates
- RefundService: Refunds of completed payments

Both are built from settings by the factories below; tests construct them
directly with a fake gateway.

Usage:
    from payments.services import get_reconciliation_service

    created = get_reconciliation_service().create_order(
        user,
        amount=Decimal("999.00"),
        items=[{"item_type": "course", "item_id": "42", "item_name": "Algebra I", "quantity": 1, "price": "999.00"}],
    )

    from payments.services import get_refund_service

    record = get_refund_service().refund(payment.pk, amount=Decimal("999.00"))
"""

from payments.adapters import RazorpayAdapter
from payments.services.reconciliation_service import (
    OrderCreation,
    PaymentReconciliationService,
)
from payments.services.refund_service import RefundService
from payments.signatures import SignatureVerifier


def get_reconciliation_service() -> PaymentReconciliationService:
    return PaymentReconciliationService(
        gateway=RazorpayAdapter.from_settings(),
        verifier=SignatureVerifier.from_settings(),
    )


def get_refund_service() -> RefundService:
    return RefundService(gateway=RazorpayAdapter.from_settings())


__all__ = [
    "OrderCreation",
    "PaymentReconciliationService",
    "RefundService",
    "get_reconciliation_service",
    "get_refund_service",
]
