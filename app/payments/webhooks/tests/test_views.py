"""
Tests for the Razorpay webhook view.

Tests cover:
- Signature verification over the raw body
- Payload validation
- Webhook event creation and idempotency
- Outcome recording (processed, ignored, failed)
"""

import hashlib
import json

import pytest

from payments.models import PaymentRecord, WebhookEvent
from payments.state_machines import PaymentStatus, WebhookEventStatus
from payments.tests.factories import WebhookEventFactory, sign_webhook
from payments.webhooks.tests.payloads import order_paid_event, payment_event
from payments.webhooks.views import razorpay_webhook


def reload(record):
    return PaymentRecord.objects.get(pk=record.pk)


# =============================================================================
# Signature Verification Tests
# =============================================================================


class TestWebhookSignature:
    """Tests for signature verification."""

    def test_missing_signature_returns_400(self, post_webhook, pending_record):
        response = post_webhook(payment_event("payment.captured", pending_record.order_id), signature=False)

        assert response.status_code == 400
        assert json.loads(response.content)["error_code"] == "SIGNATURE_INVALID"
        assert WebhookEvent.objects.count() == 0

    def test_invalid_signature_returns_400(self, post_webhook, pending_record):
        response = post_webhook(
            payment_event("payment.captured", pending_record.order_id),
            signature="0" * 64,
        )

        assert response.status_code == 400
        assert reload(pending_record).status == PaymentStatus.PENDING
        assert WebhookEvent.objects.count() == 0

    def test_signature_over_other_body_returns_400(self, post_webhook, pending_record):
        signed = json.dumps(payment_event("payment.captured", pending_record.order_id)).encode()
        forged = json.dumps(payment_event("payment.captured", pending_record.order_id, "pay_EVIL")).encode()

        response = post_webhook(forged, signature=sign_webhook(signed))

        assert response.status_code == 400
        assert reload(pending_record).transaction_id is None

    def test_non_ascii_signature_returns_400(self, post_webhook, pending_record):
        response = post_webhook(
            payment_event("payment.captured", pending_record.order_id),
            signature="é" * 64,
        )

        assert response.status_code == 400
        assert json.loads(response.content)["error_code"] == "SIGNATURE_INVALID"
        assert reload(pending_record).status == PaymentStatus.PENDING

    def test_get_not_allowed(self, rf):
        response = razorpay_webhook(rf.get("/api/v1/payments/webhook/"))

        assert response.status_code == 405


# =============================================================================
# Payload Validation Tests
# =============================================================================


class TestWebhookPayload:
    def test_non_json_body_returns_400(self, post_webhook, db):
        response = post_webhook(b"not json at all")

        assert response.status_code == 400
        assert json.loads(response.content)["error_code"] == "INVALID_PAYLOAD"

    def test_missing_event_type_returns_400(self, post_webhook, db):
        response = post_webhook({"payload": {}})

        assert response.status_code == 400

    def test_json_array_returns_400(self, post_webhook, db):
        response = post_webhook(b"[1, 2, 3]")

        assert response.status_code == 400

    def test_non_string_event_type_returns_400(self, post_webhook, db):
        response = post_webhook({"event": ["payment.captured"], "payload": {}})

        assert response.status_code == 400
        assert WebhookEvent.objects.count() == 0

    @pytest.mark.parametrize(
        "inner",
        [{"payment": None}, {"payment": "pay_A"}, {"payment": {"entity": []}}, ["payment"], "payment"],
    )
    def test_unhandled_event_with_odd_payload_acknowledged(self, post_webhook, db, inner):
        response = post_webhook({"event": "refund.created", "payload": inner})

        assert response.status_code == 200
        assert json.loads(response.content) == {"status": "ignored", "reason": "UNHANDLED_EVENT_TYPE"}

    @pytest.mark.parametrize(
        "inner",
        [
            {"payment": None},
            {"payment": {"entity": None}},
            {"payment": {"entity": {"id": 42, "order_id": ["order_A"]}}},
        ],
    )
    def test_captured_event_with_odd_payload_is_malformed(self, post_webhook, use_test_service, db, inner):
        response = post_webhook({"event": "payment.captured", "payload": inner})

        assert response.status_code == 200
        assert json.loads(response.content) == {"status": "ignored", "reason": "MALFORMED_EVENT"}
        assert PaymentRecord.objects.count() == 0


# =============================================================================
# Processing Tests
# =============================================================================


class TestWebhookProcessing:
    """Valid deliveries are applied and their outcome recorded."""

    def test_payment_captured_completes_record(self, post_webhook, use_test_service, pending_record):
        response = post_webhook(
            payment_event("payment.captured", pending_record.order_id, "pay_A"),
            event_id="evt_1",
        )

        assert response.status_code == 200
        assert json.loads(response.content) == {"status": "processed"}
        stored = reload(pending_record)
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.transaction_id == "pay_A"

        event = WebhookEvent.objects.get(event_id="evt_1")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.event_type == "payment.captured"
        assert event.order_id == pending_record.order_id
        assert event.attempts == 1
        assert event.processed_at is not None

    def test_order_paid(self, post_webhook, use_test_service, processing_record):
        response = post_webhook(order_paid_event(processing_record.order_id))

        assert response.status_code == 200
        assert reload(processing_record).status == PaymentStatus.COMPLETED

    def test_event_id_defaults_to_body_hash(self, post_webhook, use_test_service, pending_record):
        raw = json.dumps(payment_event("payment.captured", pending_record.order_id)).encode()

        post_webhook(raw)

        assert WebhookEvent.objects.filter(event_id=hashlib.sha256(raw).hexdigest()).exists()

    def test_unknown_order_acknowledged_as_ignored(self, post_webhook, use_test_service, db):
        response = post_webhook(payment_event("payment.captured", "order_NotOurs"), event_id="evt_2")

        assert response.status_code == 200
        assert json.loads(response.content) == {"status": "ignored", "reason": "ORDER_NOT_FOUND"}
        assert PaymentRecord.objects.count() == 0
        assert WebhookEvent.objects.get(event_id="evt_2").status == WebhookEventStatus.IGNORED

    def test_unhandled_event_type_acknowledged(self, post_webhook, db):
        response = post_webhook({"event": "refund.created", "payload": {}})

        assert response.status_code == 200
        assert json.loads(response.content)["reason"] == "UNHANDLED_EVENT_TYPE"

    def test_handler_error_returns_500_and_marks_failed(self, post_webhook, mocker, pending_record):
        service = mocker.MagicMock()
        service.apply_payment_captured.side_effect = RuntimeError("database went away")
        mocker.patch("payments.services.get_reconciliation_service", return_value=service)

        response = post_webhook(payment_event("payment.captured", pending_record.order_id), event_id="evt_3")

        assert response.status_code == 500
        assert json.loads(response.content)["error_code"] == "WEBHOOK_PROCESSING_FAILED"
        event = WebhookEvent.objects.get(event_id="evt_3")
        assert event.status == WebhookEventStatus.FAILED
        assert "database went away" in event.error_message


# =============================================================================
# Idempotency Tests
# =============================================================================


class TestWebhookIdempotency:
    def test_redelivery_is_duplicate(self, post_webhook, use_test_service, pending_record):
        body = payment_event("payment.captured", pending_record.order_id, "pay_A")
        post_webhook(body, event_id="evt_4")
        version = reload(pending_record).version

        response = post_webhook(body, event_id="evt_4")

        assert json.loads(response.content) == {"status": "duplicate"}
        assert reload(pending_record).version == version
        event = WebhookEvent.objects.get(event_id="evt_4")
        assert event.attempts == 2
        assert WebhookEvent.objects.count() == 1

    def test_ignored_event_redelivery_is_duplicate(self, post_webhook, use_test_service, db):
        body = payment_event("payment.captured", "order_NotOurs")
        post_webhook(body, event_id="evt_5")

        response = post_webhook(body, event_id="evt_5")

        assert json.loads(response.content) == {"status": "duplicate"}

    def test_failed_event_is_retried(self, post_webhook, use_test_service, pending_record):
        body = payment_event("payment.captured", pending_record.order_id)
        WebhookEventFactory(
            event_id="evt_6",
            event_type="payment.captured",
            order_id=pending_record.order_id,
            payload=body,
            status=WebhookEventStatus.FAILED,
            attempts=1,
        )

        response = post_webhook(body, event_id="evt_6")

        assert json.loads(response.content) == {"status": "processed"}
        event = WebhookEvent.objects.get(event_id="evt_6")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.attempts == 2
        assert reload(pending_record).status == PaymentStatus.COMPLETED

    def test_distinct_events_for_same_payment_converge(self, post_webhook, use_test_service, pending_record):
        post_webhook(payment_event("payment.captured", pending_record.order_id, "pay_A"), event_id="evt_7")
        post_webhook(order_paid_event(pending_record.order_id, "pay_A"), event_id="evt_8")

        stored = reload(pending_record)
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.transaction_id == "pay_A"
        assert stored.version == 2
