"""
Refund service for returning money on completed payments.

A refund is a single full-or-partial return against a COMPLETED record and
moves it to REFUNDED. There is at most one refund per record.

The gateway call cannot be rolled back, so the service follows a two-phase
pattern:
    1. Acquire a distributed lock on the order so two admins cannot refund
       the same payment at once
    2. Re-read the record and check every precondition
    3. Call the gateway refund API (no database transaction open)
    4. Record the refund on the record with the usual version-checked write

If the gateway refuses or fails, nothing is written and the error
propagates. If the write fails after the gateway accepted, the gateway
refund id is logged at CRITICAL level so it can be reconciled by hand.

Usage:
    from payments.services import get_refund_service

    record = get_refund_service().refund(
        payment.pk,
        amount=Decimal("499.00"),
        reason="Course cancelled",
    )
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.services import BaseService

from payments.exceptions import (
    ConcurrentModificationError,
    PaymentValidationError,
    RefundNotAllowedError,
)
from payments.locks import DistributedLock
from payments.models import PaymentRecord
from payments.state_machines import PaymentStatus
from payments.store import PaymentRecordStore

if TYPE_CHECKING:
    from payments.adapters import RazorpayAdapter, RefundReceipt


# =============================================================================
# Constants
# =============================================================================

# Distributed lock TTL for refund execution (seconds)
REFUND_LOCK_TTL = 120

# Lock acquisition timeout (seconds)
REFUND_LOCK_TIMEOUT = 10.0

DEFAULT_REFUND_REASON = "Requested refund"


class RefundService(BaseService):
    """
    Issues refunds through the gateway and records them.

    Preconditions, checked in this order after the lock is held:
        - record exists                      (PaymentNotFoundError)
        - status is COMPLETED                (RefundNotAllowedError)
        - no refund recorded yet             (RefundNotAllowedError, ALREADY_REFUNDED)
        - 0 < amount <= record amount        (PaymentValidationError)
        - record has a gateway payment id    (RefundNotAllowedError, NO_GATEWAY_PAYMENT)

    Args:
        gateway: Gateway adapter (issue_refund)
        store: Record store (defaults to PaymentRecordStore())
        lock_ttl: Seconds the refund lock lives
        lock_timeout: Seconds to wait for the refund lock
        max_attempts: Write attempts when recording the refund
    """

    def __init__(
        self,
        gateway: RazorpayAdapter,
        store: PaymentRecordStore | None = None,
        lock_ttl: int | None = None,
        lock_timeout: float | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.gateway = gateway
        self.store = store or PaymentRecordStore()
        self.lock_ttl = lock_ttl or getattr(settings, "PAYMENT_REFUND_LOCK_TTL", REFUND_LOCK_TTL)
        self.lock_timeout = lock_timeout or getattr(
            settings, "PAYMENT_REFUND_LOCK_TIMEOUT", REFUND_LOCK_TIMEOUT
        )
        self.max_attempts = max_attempts or getattr(settings, "PAYMENT_TRANSITION_MAX_ATTEMPTS", 3)

    def refund(
        self,
        pk: Any,
        amount: Any,
        reason: str = DEFAULT_REFUND_REASON,
        notes: dict[str, Any] | None = None,
        actor: Any = None,
    ) -> PaymentRecord:
        """
        Refund a completed payment.

        Args:
            pk: PaymentRecord id
            amount: Refund amount in major units
            reason: Stored on the record and sent to the gateway
            notes: Extra key/value pairs for the gateway refund
            actor: Staff user issuing the refund (for logging)

        Returns:
            The REFUNDED record

        Raises:
            PaymentNotFoundError: No record with that id
            RefundNotAllowedError: Not COMPLETED, already refunded, or no gateway payment
            PaymentValidationError: Amount not positive or above the paid amount
            LockAcquisitionError: Another refund for this order is in flight
            GatewayError: Gateway refused or failed (record untouched)
        """
        logger = self.get_logger()
        reason = reason or DEFAULT_REFUND_REASON

        record = self.store.find_by_id(pk)
        lock_key = f"payment:refund:{record.order_id}"

        with DistributedLock(lock_key, ttl=self.lock_ttl, timeout=self.lock_timeout):
            record = self.store.find_by_id(pk)
            amount = self._check_refundable(record, amount)

            gateway_notes = {
                "order_id": record.order_id,
                "reason": reason[:256],
                **{str(k): str(v) for k, v in (notes or {}).items()},
            }
            receipt = self.gateway.issue_refund(
                record.transaction_id,
                amount,
                notes=gateway_notes,
            )

            logger.info(
                "Gateway refund issued",
                extra={
                    "order_id": record.order_id,
                    "transaction_id": record.transaction_id,
                    "refund_id": receipt.id,
                    "amount": str(amount),
                    "actor_id": str(getattr(actor, "pk", "")),
                },
            )

            try:
                return self._record_refund(pk, amount, reason, receipt)
            except Exception:
                logger.critical(
                    "Gateway refund issued but not recorded",
                    extra={
                        "order_id": record.order_id,
                        "refund_id": receipt.id,
                        "amount": str(amount),
                    },
                    exc_info=True,
                )
                raise

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _check_refundable(record: PaymentRecord, amount: Any) -> Decimal:
        if record.status != PaymentStatus.COMPLETED:
            raise RefundNotAllowedError(
                f"Only completed payments can be refunded (status: {record.status})",
                details={"order_id": record.order_id, "status": record.status},
            )

        if record.refund_amount is not None:
            raise RefundNotAllowedError(
                "Payment has already been refunded",
                error_code="ALREADY_REFUNDED",
                details={
                    "order_id": record.order_id,
                    "refund_amount": str(record.refund_amount),
                },
            )

        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, TypeError, ValueError):
            amount = None
        if amount is None or not amount.is_finite() or amount <= 0:
            raise PaymentValidationError(
                "Refund amount must be greater than zero",
                error_code="INVALID_REFUND_AMOUNT",
                details={"amount": ["Refund amount must be greater than zero."]},
            )

        if amount > record.amount:
            raise PaymentValidationError(
                "Refund amount cannot exceed the payment amount",
                error_code="REFUND_EXCEEDS_AMOUNT",
                details={
                    "amount": [f"Refund amount cannot exceed {record.amount}."],
                    "payment_amount": str(record.amount),
                },
            )

        if not record.transaction_id:
            raise RefundNotAllowedError(
                "Payment has no gateway transaction to refund",
                error_code="NO_GATEWAY_PAYMENT",
                details={"order_id": record.order_id},
            )

        return amount

    def _record_refund(
        self,
        pk: Any,
        amount: Decimal,
        reason: str,
        receipt: RefundReceipt,
    ) -> PaymentRecord:
        """
        Write the gateway-confirmed refund onto the record.

        A concurrent writer can only have touched non-status fields while the
        lock was held, so the write is retried from a fresh read. If the
        record somehow left COMPLETED, it is flagged for review instead.
        """
        logger = self.get_logger()
        for attempt in range(1, self.max_attempts + 1):
            record = self.store.find_by_id(pk)
            if record.status == PaymentStatus.COMPLETED:
                record.refund(amount=amount, reason=reason, refund_id=receipt.id)
            else:
                logger.critical(
                    "Refund issued for payment that is no longer completed",
                    extra={
                        "order_id": record.order_id,
                        "status": record.status,
                        "refund_id": receipt.id,
                    },
                )
                record.flag_for_review(
                    f"Gateway refund {receipt.id} for {amount} issued while status was {record.status}"
                )
            try:
                return self.store.save(record)
            except ConcurrentModificationError:
                if attempt >= self.max_attempts:
                    raise
                logger.info(
                    "Payment record changed concurrently while recording refund, retrying",
                    extra={"order_id": record.order_id, "attempt": attempt},
                )
        raise AssertionError("unreachable")
