"""
Webhook event handlers for Razorpay events.

This module provides a handler registry and implementations for
processing different Razorpay webhook events.

The handler registry allows:
- Clean separation between event routing and handling
- Easy extension for new event types
- Centralized error handling

Handlers return ServiceResult:
- success: the event was applied (or was already reflected on the record)
- failure: the event was discarded on purpose (unknown order, conflicting
  transaction id, malformed entity); the delivery is acknowledged anyway
Anything raised is an internal failure; the view answers 500 so the
gateway redelivers.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("refund.processed")
    def handle_refund_processed(webhook_event, service) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from core.services import ServiceResult

from payments.adapters import GatewayPayment
from payments.exceptions import DuplicateTransactionIdError, PaymentNotFoundError
from payments.models import WebhookEvent

if TYPE_CHECKING:
    from payments.services import PaymentReconciliationService


logger = logging.getLogger(__name__)

Handler = Callable[[WebhookEvent, "PaymentReconciliationService"], ServiceResult]


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The Razorpay event type (e.g., "payment.captured")
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(
    webhook_event: WebhookEvent,
    service: PaymentReconciliationService | None = None,
) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are discarded with a failure result rather than an
    error, so the gateway does not keep redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_id": webhook_event.event_id},
        )
        return ServiceResult.failure(
            f"Unhandled event type: {webhook_event.event_type}",
            error_code="UNHANDLED_EVENT_TYPE",
        )

    if service is None:
        from payments.services import get_reconciliation_service

        service = get_reconciliation_service()

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_id": webhook_event.event_id, "order_id": webhook_event.order_id},
    )
    return handler(webhook_event, service)


# =============================================================================
# Payload Helpers
# =============================================================================


def _entity(payload: Any, kind: str) -> dict[str, Any] | None:
    """
    payload.<kind>.entity, or None.

    Signed bodies are still untrusted in shape: any level may be missing,
    null, or not an object.
    """
    node = payload
    for key in ("payload", kind, "entity"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


def extract_payment_entity(payload: Any) -> dict[str, Any] | None:
    """Return payload.payment.entity from a webhook body, if present."""
    return _entity(payload, "payment")


def extract_order_id(payload: Any) -> str:
    """Order id from the order entity, falling back to the payment entity."""
    order_id = (_entity(payload, "order") or {}).get("id")
    if not order_id or not isinstance(order_id, str):
        order_id = (extract_payment_entity(payload) or {}).get("order_id")
    return order_id if isinstance(order_id, str) else ""


def has_payment_ids(entity: dict[str, Any] | None) -> bool:
    return bool(entity) and all(isinstance(entity.get(key), str) and entity[key] for key in ("id", "order_id"))


def _discard(webhook_event: WebhookEvent, reason: str, error_code: str) -> ServiceResult:
    logger.info(
        f"Discarding {webhook_event.event_type}: {reason}",
        extra={"event_id": webhook_event.event_id, "order_id": webhook_event.order_id},
    )
    return ServiceResult.failure(reason, error_code=error_code)


def _apply(
    webhook_event: WebhookEvent,
    apply: Callable[[], Any],
) -> ServiceResult:
    """Run a service call, turning expected discards into failure results."""
    try:
        record = apply()
    except PaymentNotFoundError:
        return _discard(webhook_event, "No payment record for order", "ORDER_NOT_FOUND")
    except DuplicateTransactionIdError as e:
        logger.warning(
            "Webhook transaction id belongs to another payment",
            extra={"event_id": webhook_event.event_id, **e.details},
        )
        return ServiceResult.failure(e.message, error_code=e.error_code)

    return ServiceResult.success({"order_id": record.order_id, "status": record.status})


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("payment.captured")
def handle_payment_captured(
    webhook_event: WebhookEvent,
    service: PaymentReconciliationService,
) -> ServiceResult:
    """Capture confirmed by the gateway: complete the record."""
    entity = extract_payment_entity(webhook_event.payload)
    if not has_payment_ids(entity):
        return _discard(webhook_event, "Payment entity missing id or order_id", "MALFORMED_EVENT")

    payment = GatewayPayment.from_entity(entity)
    return _apply(webhook_event, lambda: service.apply_payment_captured(payment))


@register_handler("payment.failed")
def handle_payment_failed(
    webhook_event: WebhookEvent,
    service: PaymentReconciliationService,
) -> ServiceResult:
    """Payment attempt failed: fail the record with the gateway's reason."""
    entity = extract_payment_entity(webhook_event.payload)
    if not has_payment_ids(entity):
        return _discard(webhook_event, "Payment entity missing id or order_id", "MALFORMED_EVENT")

    payment = GatewayPayment.from_entity(entity)
    return _apply(webhook_event, lambda: service.apply_payment_failed(payment))


# =============================================================================
# Order Handlers
# =============================================================================


@register_handler("order.paid")
def handle_order_paid(
    webhook_event: WebhookEvent,
    service: PaymentReconciliationService,
) -> ServiceResult:
    """
    Order fully paid.

    The embedded payment entity is optional; it only supplies a
    transaction id when the record has none.
    """
    order_id = extract_order_id(webhook_event.payload)
    if not order_id:
        return _discard(webhook_event, "Order id missing", "MALFORMED_EVENT")

    entity = extract_payment_entity(webhook_event.payload)
    payment = GatewayPayment.from_entity(entity) if entity and isinstance(entity.get("id"), str) else None
    return _apply(webhook_event, lambda: service.apply_order_paid(order_id, payment))
