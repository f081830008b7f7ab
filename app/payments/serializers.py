"""
DRF serializers for payments app.

This module provides serializers for:
- Order creation requests and responses
- Client payment verification
- Admin refund and status updates
- Payment record display (full and summary)

Related files:
    - models/payment_record.py: PaymentRecord
    - views.py: Payment API views

Usage:
    serializer = CreateOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    created = service.create_order(request.user, **serializer.validated_data)
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from payments.models import PaymentRecord
from payments.state_machines import ItemType, PaymentMethod, PaymentStatus


# ============================================================================
# Order Creation
# ============================================================================


class OrderItemSerializer(serializers.Serializer):
    """
    One purchased line item.

    Fields:
        item_type: course, certification, workshop, ...
        item_id: Catalogue id of the purchased item
        item_name: Display name at purchase time
        quantity: At least 1
        price: Unit price in major units, not negative
    """

    item_type = serializers.ChoiceField(choices=ItemType.choices)
    item_id = serializers.CharField(max_length=100)
    item_name = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, default=1)
    price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
        coerce_to_string=True,
    )


class CreateOrderSerializer(serializers.Serializer):
    """
    Request body for POST orders/.

    Fields:
        amount: Total to charge in major units (> 0)
        currency: ISO 4217 code (default from PAYMENT_DEFAULT_CURRENCY)
        items: At least one line item
        billing_address: Free-form address object
        metadata: Key/value data stored on the record and sent to the gateway
        notes: Free-text notes
        payment_method: Preferred method label
    """

    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
    )
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    items = OrderItemSerializer(many=True, allow_empty=False)
    billing_address = serializers.DictField(required=False)
    metadata = serializers.DictField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        required=False,
    )

    def validate_currency(self, value: str) -> str:
        if not value.isalpha():
            raise serializers.ValidationError("Currency must be a 3-letter ISO 4217 code.")
        return value.upper()

    def validate_items(self, value: list[dict]) -> list[dict]:
        # Stored as JSON, so keep prices as strings
        return [{**item, "price": str(item["price"])} for item in value]

    def validate(self, attrs: dict) -> dict:
        attrs.setdefault("currency", settings.PAYMENT_DEFAULT_CURRENCY)
        return attrs


class GatewayOrderSerializer(serializers.Serializer):
    """Gateway order details the checkout widget needs."""

    id = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    receipt = serializers.CharField()
    status = serializers.CharField()
    key_id = serializers.CharField()


class OrderPaymentSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    order_id = serializers.CharField()
    status = serializers.CharField()


class CreateOrderResponseSerializer(serializers.Serializer):
    """Response body for POST orders/."""

    order = GatewayOrderSerializer()
    payment = OrderPaymentSerializer()


# ============================================================================
# Verification
# ============================================================================


class VerifyPaymentSerializer(serializers.Serializer):
    """
    Request body for POST verify/.

    Fields are exactly what the checkout widget hands back to the client.
    """

    order_id = serializers.CharField(max_length=100)
    payment_id = serializers.CharField(max_length=100)
    signature = serializers.CharField(max_length=256)


# ============================================================================
# Admin Updates
# ============================================================================


class RefundSerializer(serializers.Serializer):
    """
    Request body for PUT <id>/refund/.

    Fields:
        refund_amount: Amount to return in major units
        refund_reason: Stored on the record and sent to the gateway
        notes: Extra key/value pairs for the gateway refund
    """

    refund_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    refund_reason = serializers.CharField(
        max_length=500,
        required=False,
        allow_blank=True,
        default="",
    )
    notes = serializers.DictField(child=serializers.CharField(), required=False)


class StatusUpdateSerializer(serializers.Serializer):
    """
    Request body for PUT <id>/status/.

    Every field is optional; only the ones present are applied.
    """

    status = serializers.ChoiceField(choices=PaymentStatus.choices, required=False)
    transaction_id = serializers.CharField(max_length=100, required=False)
    receipt_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    invoice_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs: dict) -> dict:
        if not attrs:
            raise serializers.ValidationError("At least one field must be provided.")
        return attrs


# ============================================================================
# Display
# ============================================================================


class PaymentRecordSerializer(serializers.ModelSerializer):
    """
    Full payment record for owners and staff.

    Usage:
        serializer = PaymentRecordSerializer(record)
    """

    user_id = serializers.CharField(read_only=True)

    class Meta:
        model = PaymentRecord
        fields = [
            "id",
            "user_id",
            "user_name",
            "user_email",
            "order_id",
            "transaction_id",
            "amount",
            "currency",
            "status",
            "payment_method",
            "payment_gateway",
            "items",
            "billing_address",
            "receipt_url",
            "invoice_url",
            "refund_amount",
            "refund_reason",
            "refund_id",
            "refunded_at",
            "metadata",
            "gateway_details",
            "notes",
            "review_required",
            "review_reason",
            "completed_at",
            "failed_at",
            "cancelled_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentRecordSummarySerializer(serializers.ModelSerializer):
    """Compact record for list views and verification responses."""

    class Meta:
        model = PaymentRecord
        fields = [
            "id",
            "order_id",
            "transaction_id",
            "amount",
            "currency",
            "status",
            "payment_method",
            "items",
            "completed_at",
            "created_at",
        ]
        read_only_fields = fields


class PaymentListSummarySerializer(serializers.Serializer):
    """Totals over the filtered admin list."""

    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_count = serializers.IntegerField()
