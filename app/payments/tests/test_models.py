"""
Tests for payment domain models.

Tests field defaults, constraints, field helpers and basic
functionality for PaymentRecord and WebhookEvent.
"""

import uuid
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from payments.models import PaymentRecord, WebhookEvent
from payments.state_machines import (
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    WebhookEventStatus,
)
from payments.tests.factories import PaymentRecordFactory, WebhookEventFactory
from payments.types import GatewayPaymentDetails


# =============================================================================
# PaymentRecord Tests
# =============================================================================


class TestPaymentRecordModel:
    """Tests for PaymentRecord model."""

    def test_create_with_required_fields(self, db, user):
        """Should create a record with only the required fields."""
        record = PaymentRecord.objects.create(
            user=user,
            order_id="order_Abc123",
            amount=Decimal("999.00"),
        )

        assert isinstance(record.pk, uuid.UUID)
        assert record.order_id == "order_Abc123"

    def test_default_values(self, db, user):
        """Should default to a pending razorpay INR record at version 1."""
        record = PaymentRecord.objects.create(
            user=user,
            order_id="order_Abc123",
            amount=Decimal("999.00"),
        )

        assert record.status == PaymentStatus.PENDING
        assert record.currency == "INR"
        assert record.payment_method == PaymentMethod.UPI
        assert record.payment_gateway == PaymentGateway.RAZORPAY
        assert record.transaction_id is None
        assert record.refund_amount is None
        assert record.items == []
        assert record.gateway_details == {}
        assert record.review_required is False
        assert record.version == 1

    def test_order_id_unique(self, db, user):
        """Should reject a second record for the same order."""
        PaymentRecordFactory(user=user, order_id="order_Dup")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                PaymentRecordFactory(user=user, order_id="order_Dup")

    def test_transaction_id_unique_when_set(self, db, user):
        """Should reject the same gateway payment id on two records."""
        PaymentRecordFactory(user=user, transaction_id="pay_Same")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                PaymentRecordFactory(user=user, transaction_id="pay_Same")

    def test_many_records_without_transaction_id(self, db, user):
        """NULL transaction ids do not collide."""
        PaymentRecordFactory(user=user)
        PaymentRecordFactory(user=user)

        assert PaymentRecord.objects.filter(transaction_id__isnull=True).count() == 2

    def test_amount_must_be_positive(self, db, user):
        """Should reject a zero amount at the database level."""
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                PaymentRecordFactory(user=user, amount=Decimal("0.00"))

    def test_str_representation(self, db, pending_record):
        assert str(pending_record) == (
            f"PaymentRecord({pending_record.order_id}, pending, 999.00 INR)"
        )

    def test_is_terminal(self, db, pending_record, completed_record, cancelled_record):
        assert pending_record.is_terminal is False
        assert completed_record.is_terminal is True
        assert cancelled_record.is_terminal is True


class TestPaymentRecordVersion:
    """Tests for the optimistic locking version column."""

    def test_new_record_has_version_1(self, db, pending_record):
        assert pending_record.version == 1

    def test_version_increments_on_save(self, db, pending_record):
        pending_record.notes = "first"
        pending_record.save()

        assert pending_record.version == 2

        pending_record.notes = "second"
        pending_record.save()

        assert pending_record.version == 3
        assert PaymentRecord.objects.get(pk=pending_record.pk).version == 3


class TestGatewayDetailsMerge:
    """Tests for PaymentRecord.merge_gateway_details."""

    def test_merge_into_empty(self, db, pending_record):
        changed = pending_record.merge_gateway_details(
            GatewayPaymentDetails(method="upi", vpa="asha@okaxis")
        )

        assert changed is True
        assert pending_record.gateway_details == {"method": "upi", "vpa": "asha@okaxis"}

    def test_merge_keeps_existing_values(self, db, pending_record):
        pending_record.gateway_details = {"method": "upi", "vpa": "asha@okaxis"}

        pending_record.merge_gateway_details(
            GatewayPaymentDetails(method="upi", contact="+919900000000")
        )

        assert pending_record.gateway_details == {
            "method": "upi",
            "vpa": "asha@okaxis",
            "contact": "+919900000000",
        }

    def test_merge_same_values_reports_no_change(self, db, pending_record):
        pending_record.gateway_details = {"method": "upi", "vpa": "asha@okaxis"}

        changed = pending_record.merge_gateway_details(
            GatewayPaymentDetails(method="upi", vpa="asha@okaxis")
        )

        assert changed is False

    def test_reported_method_replaces_payment_method(self, db, pending_record):
        pending_record.merge_gateway_details(GatewayPaymentDetails(method="card"))

        assert pending_record.payment_method == "card"

    def test_merge_none_is_noop(self, db, pending_record):
        assert pending_record.merge_gateway_details(None) is False


class TestNotesAndReview:
    """Tests for the note and review helpers."""

    def test_append_note_to_empty(self, db, pending_record):
        pending_record.append_note("Payment failed")

        assert pending_record.notes == "Payment failed"

    def test_append_note_keeps_previous(self, db, pending_record):
        pending_record.notes = "Customer called"
        pending_record.append_note("Payment failed")

        assert pending_record.notes == "Customer called\nPayment failed"

    def test_flag_for_review(self, db, completed_record):
        completed_record.flag_for_review("Second capture pay_B")

        assert completed_record.review_required is True
        assert completed_record.review_reason == "Second capture pay_B"

    def test_review_reason_not_duplicated(self, db, completed_record):
        completed_record.flag_for_review("Second capture pay_B")
        completed_record.flag_for_review("Second capture pay_B")

        assert completed_record.review_reason == "Second capture pay_B"


# =============================================================================
# WebhookEvent Tests
# =============================================================================


class TestWebhookEventModel:
    """Tests for WebhookEvent model."""

    def test_default_values(self, db):
        event = WebhookEvent.objects.create(
            event_id="evt_1",
            event_type="payment.captured",
            payload={"event": "payment.captured"},
        )

        assert event.status == WebhookEventStatus.RECEIVED
        assert event.attempts == 0
        assert event.processed_at is None
        assert event.is_handled is False

    def test_event_id_unique(self, db):
        WebhookEventFactory(event_id="evt_dup")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                WebhookEventFactory(event_id="evt_dup")

    def test_mark_received_counts_attempts(self, db):
        event = WebhookEventFactory()

        event.mark_received()
        event.mark_received()

        assert event.attempts == 2
        assert event.status == WebhookEventStatus.RECEIVED

    def test_mark_processed(self, db):
        event = WebhookEventFactory(error_message="earlier failure")

        event.mark_processed()

        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert event.error_message == ""
        assert event.is_handled is True

    def test_mark_ignored(self, db):
        event = WebhookEventFactory()

        event.mark_ignored("No payment record for order")

        assert event.status == WebhookEventStatus.IGNORED
        assert event.error_message == "No payment record for order"
        assert event.is_handled is True

    def test_mark_failed_is_not_handled(self, db):
        event = WebhookEventFactory()

        event.mark_failed("OperationalError: database is locked")

        assert event.status == WebhookEventStatus.FAILED
        assert event.is_handled is False
