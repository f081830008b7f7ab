"""
Payment adapters for external services.

All payment gateway calls go through these adapters to ensure consistent
error handling, timeouts, and observability.

Usage:
    from payments.adapters import RazorpayAdapter

    adapter = RazorpayAdapter.from_settings()
    order = adapter.create_order(Decimal("999.00"), "INR", receipt="receipt_1")
"""

from payments.adapters.razorpay_adapter import (
    GatewayOrder,
    GatewayPayment,
    RazorpayAdapter,
    RefundReceipt,
)

__all__ = [
    "GatewayOrder",
    "GatewayPayment",
    "RazorpayAdapter",
    "RefundReceipt",
]
