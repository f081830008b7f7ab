"""
Webhook endpoint view for Razorpay.

The view:
1. Verifies the X-Razorpay-Signature header over the raw body
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Applies the event synchronously through the handler registry
4. Records the outcome on the WebhookEvent

Usage:
    # In urls.py
    from payments.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhook/", razorpay_webhook, name="webhook"),
    ]
"""

from __future__ import annotations

import hashlib
import json
import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.exceptions import SignatureInvalidError
from payments.models import WebhookEvent
from payments.signatures import SignatureVerifier
from payments.webhooks.handlers import dispatch_webhook, extract_order_id

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"
EVENT_ID_HEADER = "X-Razorpay-Event-Id"


@csrf_exempt
@require_POST
def razorpay_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and apply Razorpay webhook events.

    Security:
    - The signature is checked against request.body exactly as received
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - WebhookEvent.event_id is unique; the X-Razorpay-Event-Id header is
      used when present, otherwise a SHA-256 of the body
    - Events already processed or ignored are acknowledged as duplicates

    Returns:
        JsonResponse with status:
        - 200: processed, ignored (unknown order / event type) or duplicate
        - 400: missing or invalid signature, or unparseable body
        - 500: handler error; the gateway will redeliver
    """
    body = request.body
    signature = request.headers.get(SIGNATURE_HEADER, "")

    # Step 1: Verify signature
    try:
        SignatureVerifier.from_settings().verify_webhook_signature(body, signature)
    except SignatureInvalidError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"reason": e.details.get("reason")},
        )
        return JsonResponse(e.to_dict(), status=400)

    # Step 2: Parse
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError):
        logger.warning("Webhook body is not valid JSON")
        return JsonResponse(
            {"error": "Invalid payload", "error_code": "INVALID_PAYLOAD"},
            status=400,
        )
    event_type = payload.get("event") if isinstance(payload, dict) else None
    if not event_type or not isinstance(event_type, str):
        logger.warning("Webhook missing event type")
        return JsonResponse(
            {"error": "Invalid payload", "error_code": "INVALID_PAYLOAD"},
            status=400,
        )

    event_id = request.headers.get(EVENT_ID_HEADER) or hashlib.sha256(body).hexdigest()
    order_id = extract_order_id(payload)

    logger.info(
        f"Received Razorpay webhook: {event_type}",
        extra={"event_id": event_id, "event_type": event_type, "order_id": order_id},
    )

    # Step 3: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        event_id=event_id,
        defaults={
            "event_type": event_type,
            "order_id": order_id,
            "payload": payload,
        },
    )

    if not created and webhook_event.is_handled:
        logger.info(
            "Webhook already handled, returning success",
            extra={"event_id": event_id, "status": webhook_event.status},
        )
        webhook_event.attempts += 1
        webhook_event.save(update_fields=["attempts", "updated_at"])
        return JsonResponse({"status": "duplicate"})

    webhook_event.mark_received()
    webhook_event.save()

    # Step 4: Apply
    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        logger.error(
            f"Webhook processing failed: {type(e).__name__}",
            extra={"event_id": event_id, "event_type": event_type, "order_id": order_id},
            exc_info=True,
        )
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save()
        return JsonResponse(
            {"error": "Webhook processing failed", "error_code": "WEBHOOK_PROCESSING_FAILED"},
            status=500,
        )

    if result:
        webhook_event.mark_processed()
        webhook_event.save()
        return JsonResponse({"status": "processed"})

    webhook_event.mark_ignored(result.error or "")
    webhook_event.save()
    return JsonResponse({"status": "ignored", "reason": result.error_code})
