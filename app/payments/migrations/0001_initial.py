import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "user_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Purchaser display name at order time",
                        max_length=255,
                    ),
                ),
                (
                    "user_email",
                    models.EmailField(
                        blank=True,
                        default="",
                        help_text="Purchaser email at order time",
                        max_length=254,
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        help_text="Gateway order id (order_xxx), assigned at creation",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "transaction_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway payment id (pay_xxx) once a payment attempt is known",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount in major currency units (e.g. rupees)",
                        max_digits=12,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="INR",
                        help_text="ISO 4217 currency code (uppercase)",
                        max_length=3,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current payment status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        default="upi",
                        help_text="Payment method label; gateway-reported values overwrite it",
                        max_length=30,
                    ),
                ),
                (
                    "payment_gateway",
                    models.CharField(
                        choices=[
                            ("razorpay", "Razorpay"),
                            ("stripe", "Stripe"),
                            ("paypal", "PayPal"),
                            ("cashfree", "Cashfree"),
                            ("manual", "Manual"),
                            ("other", "Other"),
                        ],
                        default="razorpay",
                        max_length=20,
                    ),
                ),
                (
                    "items",
                    models.JSONField(
                        default=list,
                        help_text="Line items: item_type, item_id, item_name, quantity, price",
                    ),
                ),
                ("billing_address", models.JSONField(blank=True, default=dict)),
                ("receipt_url", models.URLField(blank=True, default="", max_length=500)),
                ("invoice_url", models.URLField(blank=True, default="", max_length=500)),
                (
                    "refund_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                ("refund_reason", models.CharField(blank=True, default="", max_length=500)),
                (
                    "refund_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway refund id (rfnd_xxx)",
                        max_length=100,
                    ),
                ),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Client-supplied key/value data from order creation",
                    ),
                ),
                (
                    "gateway_details",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Gateway-reported payment details (method, bank, vpa, ...)",
                    ),
                ),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "review_required",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Set when gateway data conflicts with the stored record",
                    ),
                ),
                ("review_reason", models.TextField(blank=True, default="")),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who placed the order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Record",
                "verbose_name_plural": "Payment Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "status"], name="payments_pa_user_id_3c9a1e_idx"
                    ),
                    models.Index(
                        fields=["user", "created_at"], name="payments_pa_user_id_8f2d4b_idx"
                    ),
                    models.Index(
                        fields=["status", "created_at"], name="payments_pa_status_5e7c21_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("amount__gt", 0)),
                        name="payment_record_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "event_id",
                    models.CharField(
                        help_text="Gateway event id - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                ("event_type", models.CharField(db_index=True, max_length=100)),
                (
                    "order_id",
                    models.CharField(blank=True, db_index=True, default="", max_length=100),
                ),
                ("payload", models.JSONField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("processed", "Processed"),
                            ("ignored", "Ignored"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="received",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"], name="payments_we_status_a41b09_idx"
                    ),
                ],
            },
        ),
    ]
