"""
WebhookEvent model for gateway webhook delivery tracking.

Every authenticated webhook delivery is stored once, keyed by the
gateway's event id, so redeliveries of an already-handled event are
acknowledged without touching payment records again.

Usage:
    from payments.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        event_id=event_id,
        defaults={"event_type": "payment.captured", "payload": payload},
    )
    if not created and event.is_handled:
        return JsonResponse({"status": "duplicate"})
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Audit and idempotency log for gateway webhooks.

    Processing Flow:
        1. Verify X-Razorpay-Signature over the raw body
        2. get_or_create by event_id (X-Razorpay-Event-Id, or body hash)
        3. If PROCESSED or IGNORED -> acknowledge as duplicate
        4. Dispatch to the handler for event_type
        5. Mark PROCESSED, IGNORED or FAILED

    Fields:
        event_id: Gateway event id, unique
        event_type: e.g. 'payment.captured'
        order_id: Gateway order id the event refers to, when present
        payload: Parsed JSON body
        status: Processing status
        attempts: Number of deliveries seen for this event
    """

    event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway event id - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
    )

    order_id = models.CharField(
        max_length=100,
        blank=True,
        default="",
        db_index=True,
    )

    payload = models.JSONField()

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.RECEIVED,
        db_index=True,
    )

    processed_at = models.DateTimeField(null=True, blank=True)

    error_message = models.TextField(blank=True, default="")

    attempts = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_we_status_a41b09_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_id}, {self.event_type})"

    @property
    def is_handled(self) -> bool:
        """True once the event reached a final outcome (processed or ignored)."""
        return self.status in (WebhookEventStatus.PROCESSED, WebhookEventStatus.IGNORED)

    # Helpers below do not save; the caller saves.

    def mark_received(self) -> None:
        self.status = WebhookEventStatus.RECEIVED
        self.attempts += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = ""

    def mark_ignored(self, reason: str) -> None:
        self.status = WebhookEventStatus.IGNORED
        self.processed_at = timezone.now()
        self.error_message = reason

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
