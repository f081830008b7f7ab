"""
PaymentRecord model: one row per gateway order.

A PaymentRecord is created as PENDING right after the gateway accepts a new
order and is then moved by client verification, gateway webhooks, admin
status updates and, once, by a refund.

Usage:
    from payments.models import PaymentRecord

    record = PaymentRecord.objects.get(order_id="order_N5xYz")
    record.complete(transaction_id="pay_29QQoUBi66xm2f")
    record.save()  # version auto-increments

Note:
    The status field is protected; it can only change through the
    @transition methods below. Reload a record with objects.get() rather
    than refresh_from_db() when you need a fresh status.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
)
from payments.types import GatewayPaymentDetails


class PaymentRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Payment for a single gateway order.

    Uses django-fsm for the status machine and a version column for
    optimistic locking (see payments.store.PaymentRecordStore.save).

    State Flow:
        PENDING -> PROCESSING -> COMPLETED -> REFUNDED
        PENDING/PROCESSING -> FAILED -> PROCESSING/COMPLETED (retry on same order)
        PENDING/PROCESSING/FAILED -> CANCELLED

    Fields:
        user: Purchaser; user_name/user_email are snapshots at creation
        order_id: Gateway order id, unique and immutable
        transaction_id: Gateway payment id, unique when present
        amount/currency: Requested amount in major units, immutable
        status: Current FSM state
        items: Line items purchased (at least one)
        gateway_details: GatewayPaymentDetails as JSON, merged on update
        refund_*: Set once by the refund path, only from COMPLETED
        review_required/review_reason: Flag for anomalies needing a human
        version: Optimistic locking version
    """

    # ==========================================================================
    # Purchaser
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_records",
        help_text="User who placed the order",
    )

    user_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Purchaser display name at order time",
    )

    user_email = models.EmailField(
        blank=True,
        default="",
        help_text="Purchaser email at order time",
    )

    # ==========================================================================
    # Gateway Identifiers
    # ==========================================================================

    order_id = models.CharField(
        max_length=100,
        unique=True,
        help_text="Gateway order id (order_xxx), assigned at creation",
    )

    transaction_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Gateway payment id (pay_xxx) once a payment attempt is known",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount in major currency units (e.g. rupees)",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code (uppercase)",
    )

    # ==========================================================================
    # Status & Method
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current payment status (managed by FSM)",
    )

    payment_method = models.CharField(
        max_length=30,
        default=PaymentMethod.UPI,
        help_text="Payment method label; gateway-reported values overwrite it",
    )

    payment_gateway = models.CharField(
        max_length=20,
        choices=PaymentGateway.choices,
        default=PaymentGateway.RAZORPAY,
    )

    # ==========================================================================
    # Order Contents
    # ==========================================================================

    items = models.JSONField(
        default=list,
        help_text="Line items: item_type, item_id, item_name, quantity, price",
    )

    billing_address = models.JSONField(
        default=dict,
        blank=True,
    )

    receipt_url = models.URLField(max_length=500, blank=True, default="")
    invoice_url = models.URLField(max_length=500, blank=True, default="")

    # ==========================================================================
    # Refund
    # ==========================================================================

    refund_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    refund_reason = models.CharField(max_length=500, blank=True, default="")
    refund_id = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Gateway refund id (rfnd_xxx)",
    )
    refunded_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Metadata & Notes
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Client-supplied key/value data from order creation",
    )

    gateway_details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Gateway-reported payment details (method, bank, vpa, ...)",
    )

    notes = models.TextField(blank=True, default="")

    review_required = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Set when gateway data conflicts with the stored record",
    )
    review_reason = models.TextField(blank=True, default="")

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Record"
        verbose_name_plural = "Payment Records"
        indexes = [
            models.Index(fields=["user", "status"], name="payments_pa_user_id_3c9a1e_idx"),
            models.Index(fields=["user", "created_at"], name="payments_pa_user_id_8f2d4b_idx"),
            models.Index(fields=["status", "created_at"], name="payments_pa_status_5e7c21_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name="payment_record_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentRecord({self.order_id}, {self.status}, {self.amount} {self.currency})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field so concurrent writers can detect each other.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def details(self) -> GatewayPaymentDetails:
        return GatewayPaymentDetails.from_dict(self.gateway_details)

    # ==========================================================================
    # Field Helpers (no save)
    # ==========================================================================

    def merge_gateway_details(self, incoming: GatewayPaymentDetails | None) -> bool:
        """
        Merge gateway-reported details into the record.

        The gateway's method label also replaces payment_method.

        Returns:
            True if anything changed
        """
        if incoming is None:
            return False
        merged = self.details.merge(incoming).to_dict()
        changed = merged != (self.gateway_details or {})
        self.gateway_details = merged
        if incoming.method and incoming.method != self.payment_method:
            self.payment_method = incoming.method
            changed = True
        return changed

    def append_note(self, note: str) -> None:
        self.notes = f"{self.notes}\n{note}" if self.notes else note

    def flag_for_review(self, reason: str) -> None:
        self.review_required = True
        self.append_review_reason(reason)

    def append_review_reason(self, reason: str) -> None:
        if reason not in self.review_reason:
            self.review_reason = (
                f"{self.review_reason}\n{reason}" if self.review_reason else reason
            )

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=list(OPEN_STATUSES), target=PaymentStatus.PROCESSING)
    def mark_processing(self, transaction_id: str | None = None):
        """
        Payment attempt is known but not yet captured.

        Transition: PENDING/PROCESSING/FAILED -> PROCESSING
        """
        if transaction_id:
            self.transaction_id = transaction_id
        self.failed_at = None

    @transition(field=status, source=list(OPEN_STATUSES), target=PaymentStatus.COMPLETED)
    def complete(self, transaction_id: str | None = None):
        """
        Gateway confirmed capture.

        Transition: PENDING/PROCESSING/FAILED -> COMPLETED
        """
        if transaction_id:
            self.transaction_id = transaction_id
        self.completed_at = timezone.now()
        self.failed_at = None

    @transition(field=status, source=list(OPEN_STATUSES), target=PaymentStatus.FAILED)
    def fail(
        self,
        reason: str = "",
        transaction_id: str | None = None,
        append_note: bool = False,
    ):
        """
        Payment attempt failed.

        Transition: PENDING/PROCESSING/FAILED -> FAILED

        Args:
            reason: Stored in notes (replacing them unless append_note)
            transaction_id: Failed attempt's gateway payment id, if known
            append_note: Keep existing notes and add the reason after them
        """
        if transaction_id:
            self.transaction_id = transaction_id
        if reason:
            if append_note:
                self.append_note(reason)
            else:
                self.notes = reason
        self.failed_at = timezone.now()

    @transition(field=status, source=list(OPEN_STATUSES), target=PaymentStatus.CANCELLED)
    def cancel(self):
        """
        Cancel an unpaid order.

        Transition: PENDING/PROCESSING/FAILED -> CANCELLED
        """
        self.cancelled_at = timezone.now()

    @transition(field=status, source=PaymentStatus.COMPLETED, target=PaymentStatus.REFUNDED)
    def refund(self, amount: Decimal, reason: str, refund_id: str = ""):
        """
        Record a refund confirmed by the gateway.

        Transition: COMPLETED -> REFUNDED

        Note:
            Bounds and duplicate checks happen in RefundService before the
            gateway is called; this only records the outcome.
        """
        self.refund_amount = amount
        self.refund_reason = reason
        self.refund_id = refund_id
        self.refunded_at = timezone.now()
