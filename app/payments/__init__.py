"""
Payments app for Razorpay integration.

This app handles:
- Order creation against the gateway
- Client payment verification (HMAC signature + gateway fetch)
- Webhook event handling, idempotent per event and per payment
- Refunds of completed payments
- Admin status updates and reporting

Usage:
    from payments.services import get_reconciliation_service

    service = get_reconciliation_service()
    created = service.create_order(user, amount=Decimal("999.00"), items=items)
    record = service.verify_payment(order_id, payment_id, signature, user)
"""
