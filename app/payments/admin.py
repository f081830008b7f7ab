"""
Payment admin configuration.

Registers payment records and webhook deliveries with the Django admin.
Status changes and refunds go through the API so they pass the state
machine and the gateway; the admin is for inspection.
"""

from django.contrib import admin

from payments.models import PaymentRecord, WebhookEvent

__all__ = [
    "PaymentRecordAdmin",
    "WebhookEventAdmin",
]


@admin.register(PaymentRecord)
class PaymentRecordAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentRecord.

    Status, amounts and gateway identifiers are read-only here.
    """

    list_display = [
        "order_id",
        "user_email",
        "amount",
        "currency",
        "status",
        "payment_method",
        "transaction_id",
        "review_required",
        "created_at",
    ]
    list_filter = ["status", "payment_method", "payment_gateway", "review_required", "created_at"]
    search_fields = ["id", "order_id", "transaction_id", "user_email", "user_name"]
    readonly_fields = [
        "id",
        "user",
        "order_id",
        "transaction_id",
        "amount",
        "currency",
        "status",
        "payment_gateway",
        "gateway_details",
        "refund_amount",
        "refund_id",
        "refunded_at",
        "completed_at",
        "failed_at",
        "cancelled_at",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "order_id", "transaction_id", "status", "amount", "currency"),
            },
        ),
        (
            "Purchaser",
            {
                "fields": ("user", "user_name", "user_email", "billing_address"),
            },
        ),
        (
            "Order",
            {
                "fields": ("items", "payment_method", "payment_gateway", "metadata", "notes"),
            },
        ),
        (
            "Gateway",
            {
                "fields": ("gateway_details", "receipt_url", "invoice_url"),
                "classes": ("collapse",),
            },
        ),
        (
            "Refund",
            {
                "fields": ("refund_amount", "refund_reason", "refund_id", "refunded_at"),
                "classes": ("collapse",),
            },
        ),
        (
            "Review",
            {
                "fields": ("review_required", "review_reason"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "completed_at",
                    "failed_at",
                    "cancelled_at",
                    "created_at",
                    "updated_at",
                    "version",
                ),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "event_id",
        "event_type",
        "order_id",
        "status",
        "attempts",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "order_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "event_id",
        "event_type",
        "order_id",
        "payload",
        "processed_at",
        "attempts",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "event_id", "event_type", "order_id", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "attempts"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )
