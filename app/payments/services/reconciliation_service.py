"""
Payment reconciliation service: the state machine driver for PaymentRecord.

Every event that can move a payment record funnels through this service:
order creation, client verification, gateway webhooks, and admin status
updates. The client verify call and the gateway webhook for the same order
can arrive in either order, concurrently, and more than once; the service
makes them converge on the same record.

Transition rules:
    - Events are "set to X", never "advance by one", so replaying an event
      whose effect is already present is a no-op.
    - COMPLETED, REFUNDED and CANCELLED are terminal for gateway events.
      Late events against them are logged and skipped.
    - Gateway calls happen before the read-modify-write and are never
      repeated because of a write conflict.

Concurrency:
    Each write is a read-modify-write on one row: fresh read, pure in-memory
    transition, PaymentRecordStore.save() with a version check. A lost race
    raises ConcurrentModificationError and the whole step is re-run from a
    fresh read, up to PAYMENT_TRANSITION_MAX_ATTEMPTS times.

Usage:
    from payments.services import get_reconciliation_service

    service = get_reconciliation_service()
    created = service.create_order(user, amount=Decimal("999"), items=[...])
    record = service.verify_payment(order_id, payment_id, signature, user)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable

from django.conf import settings
from django_fsm import TransitionNotAllowed

from core.exceptions import PermissionDeniedError
from core.services import BaseService

from payments.exceptions import (
    ConcurrentModificationError,
    InvalidStateTransitionError,
    PaymentValidationError,
    SignatureInvalidError,
)
from payments.models import PaymentRecord
from payments.state_machines import OPEN_STATUSES, PaymentMethod, PaymentStatus
from payments.store import PaymentRecordStore
from payments.types import GatewayPaymentDetails

if TYPE_CHECKING:
    from payments.adapters import GatewayOrder, GatewayPayment, RazorpayAdapter
    from payments.signatures import SignatureVerifier


# Receipt references are limited to 40 characters by the gateway
RECEIPT_MAX_LENGTH = 40

# Gateway notes accept at most 15 key/value pairs
MAX_GATEWAY_NOTES = 15

VERIFICATION_FAILED_NOTE = "Payment verification failed: invalid signature"
GATEWAY_FAILED_NOTE = "Payment failed"

# Admin may set these directly; PENDING is initial-only and REFUNDED is
# reachable only through RefundService.
ADMIN_SETTABLE_STATUSES = frozenset(
    [
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    ]
)


@dataclass
class OrderCreation:
    """
    Result of create_order.

    Attributes:
        record: The persisted PENDING PaymentRecord
        gateway_order: Gateway order the client pays against
        key_id: Public gateway key for the checkout widget
    """

    record: PaymentRecord
    gateway_order: GatewayOrder
    key_id: str


class PaymentReconciliationService(BaseService):
    """
    Applies order, verification, webhook and admin events to PaymentRecords.

    Args:
        gateway: Gateway adapter (create_order, fetch_payment)
        verifier: Signature verifier for client confirmations
        store: Record store (defaults to PaymentRecordStore())
        max_attempts: Write attempts per event before giving up
    """

    def __init__(
        self,
        gateway: RazorpayAdapter,
        verifier: SignatureVerifier,
        store: PaymentRecordStore | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.gateway = gateway
        self.verifier = verifier
        self.store = store or PaymentRecordStore()
        self.max_attempts = max_attempts or getattr(settings, "PAYMENT_TRANSITION_MAX_ATTEMPTS", 3)

    # =========================================================================
    # Order Creation
    # =========================================================================

    def create_order(
        self,
        user: Any,
        amount: Decimal,
        items: list[dict[str, Any]],
        currency: str | None = None,
        billing_address: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        notes: str = "",
        payment_method: str | None = None,
    ) -> OrderCreation:
        """
        Create a gateway order, then persist a PENDING record for it.

        The record is written only after the gateway accepted the order, so
        a gateway failure or timeout leaves nothing behind.

        Raises:
            PaymentValidationError: Bad amount, currency or items
            GatewayError: Gateway refused or could not be reached
            DuplicateOrderIdError: Gateway returned an order id already stored
        """
        logger = self.get_logger()
        currency = (currency or settings.PAYMENT_DEFAULT_CURRENCY).upper()
        amount = self._validate_order(amount, currency, items)

        receipt = self._build_receipt(user)
        gateway_notes = self._build_gateway_notes(user, metadata)

        gateway_order = self.gateway.create_order(
            amount=amount,
            currency=currency,
            receipt=receipt,
            notes=gateway_notes,
        )

        record = PaymentRecord(
            user=user,
            user_name=_display_name(user),
            user_email=getattr(user, "email", "") or "",
            order_id=gateway_order.id,
            amount=amount,
            currency=currency,
            items=items,
            billing_address=billing_address or {},
            metadata=metadata or {},
            notes=notes or "",
            payment_method=payment_method or PaymentMethod.UPI,
        )
        self.store.create(record)

        logger.info(
            "Payment order created",
            extra={
                "order_id": record.order_id,
                "payment_id": str(record.pk),
                "amount": str(amount),
                "currency": currency,
                "user_id": str(user.pk),
            },
        )
        return OrderCreation(
            record=record,
            gateway_order=gateway_order,
            key_id=self.gateway.key_id,
        )

    # =========================================================================
    # Client Verification
    # =========================================================================

    def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        user: Any,
    ) -> PaymentRecord:
        """
        Apply a client-submitted payment confirmation.

        A bad signature moves a non-terminal record to FAILED (keeping any
        transaction id it already had) and raises. A good signature is
        followed by a gateway fetch that decides between COMPLETED (captured)
        and PROCESSING (anything else).

        Raises:
            PaymentValidationError: Missing order_id, payment_id or signature
            PaymentNotFoundError: No record for order_id
            PermissionDeniedError: Caller neither owns the record nor is staff
            SignatureInvalidError: Signature mismatch
            GatewayError: Payment could not be fetched (record untouched)
        """
        logger = self.get_logger()

        missing = self.validate_required(
            order_id=order_id, payment_id=payment_id, signature=signature
        )
        if missing is not None:
            raise PaymentValidationError(
                "Missing required payment verification fields",
                details=missing.errors,
            )

        record = self.store.find_by_order_id(order_id)
        if record.user_id != user.pk and not user.is_staff:
            raise PermissionDeniedError(
                "You are not allowed to verify this payment",
                details={"order_id": order_id},
            )

        try:
            self.verifier.verify_payment_signature(order_id, payment_id, signature)
        except SignatureInvalidError:
            logger.warning(
                "Client verification failed signature check",
                extra={"order_id": order_id, "payment_id": payment_id},
            )
            self._apply_transition(
                lambda: self.store.find_by_order_id(order_id),
                self._mark_verification_failed,
            )
            raise

        gateway_payment = self.gateway.fetch_payment(payment_id)
        details = gateway_payment.details

        if gateway_payment.is_captured:
            mutate = lambda r: self._set_completed(
                r, payment_id, details, source="verification", receipt=gateway_payment.receipt
            )
        else:
            mutate = lambda r: self._set_processing(r, payment_id, details)

        record = self._apply_transition(lambda: self.store.find_by_order_id(order_id), mutate)
        logger.info(
            "Client verification applied",
            extra={
                "order_id": order_id,
                "transaction_id": payment_id,
                "gateway_status": gateway_payment.status,
                "status": record.status,
            },
        )
        return record

    # =========================================================================
    # Webhook Events
    # =========================================================================

    def apply_payment_captured(self, payment: GatewayPayment) -> PaymentRecord:
        """
        payment.captured: set transaction id, merge details, COMPLETED.

        Raises:
            PaymentNotFoundError: Unknown order (caller discards the event)
        """
        return self._apply_transition(
            lambda: self.store.find_by_order_id(payment.order_id),
            lambda r: self._set_completed(r, payment.id, payment.details, source="webhook", receipt=payment.receipt),
        )

    def apply_payment_failed(self, payment: GatewayPayment) -> PaymentRecord:
        """
        payment.failed: set transaction id, FAILED with the gateway's reason.

        Raises:
            PaymentNotFoundError: Unknown order (caller discards the event)
        """
        reason = payment.error_description or GATEWAY_FAILED_NOTE
        return self._apply_transition(
            lambda: self.store.find_by_order_id(payment.order_id),
            lambda r: self._set_failed(r, payment.id, reason, payment.details),
        )

    def apply_order_paid(self, order_id: str, payment: GatewayPayment | None) -> PaymentRecord:
        """
        order.paid: COMPLETED unless already there.

        The transaction id is taken from the embedded payment entity only
        when the record has none yet.

        Raises:
            PaymentNotFoundError: Unknown order (caller discards the event)
        """
        return self._apply_transition(
            lambda: self.store.find_by_order_id(order_id),
            lambda r: self._set_order_paid(r, payment),
        )

    # =========================================================================
    # Admin Status Update
    # =========================================================================

    def update_status(
        self,
        pk: Any,
        status: str | None = None,
        transaction_id: str | None = None,
        receipt_url: str | None = None,
        invoice_url: str | None = None,
        notes: str | None = None,
        actor: Any = None,
    ) -> PaymentRecord:
        """
        Admin update of status and free-text fields.

        Raises:
            PaymentNotFoundError: No record with that id
            InvalidStateTransitionError: Target status not reachable
        """
        logger = self.get_logger()

        def mutate(record: PaymentRecord) -> bool:
            previous = record.status
            was_terminal = record.is_terminal
            if status and status != record.status:
                self._admin_transition(record, status, transaction_id, notes)
            if transaction_id and transaction_id != record.transaction_id:
                if was_terminal:
                    raise InvalidStateTransitionError(
                        "Transaction id of a settled payment cannot be changed",
                        details={
                            "current_status": record.status,
                            "transaction_id": record.transaction_id,
                        },
                    )
                record.transaction_id = transaction_id
            if receipt_url is not None:
                record.receipt_url = receipt_url
            if invoice_url is not None:
                record.invoice_url = invoice_url
            if notes is not None:
                record.notes = notes
            if previous != record.status:
                logger.info(
                    "Admin status update",
                    extra={
                        "order_id": record.order_id,
                        "from_status": previous,
                        "to_status": record.status,
                        "actor_id": str(getattr(actor, "pk", "")),
                    },
                )
            return True

        return self._apply_transition(lambda: self.store.find_by_id(pk), mutate)

    def _admin_transition(
        self,
        record: PaymentRecord,
        status: str,
        transaction_id: str | None,
        notes: str | None,
    ) -> None:
        if status not in ADMIN_SETTABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Status cannot be set to '{status}' directly",
                details={"current_status": record.status, "target_status": status},
            )
        try:
            if status == PaymentStatus.PROCESSING:
                record.mark_processing(transaction_id=transaction_id)
            elif status == PaymentStatus.COMPLETED:
                record.complete(transaction_id=transaction_id)
            elif status == PaymentStatus.FAILED:
                record.fail(reason=notes or "", transaction_id=transaction_id)
            else:
                record.cancel()
        except TransitionNotAllowed as e:
            raise InvalidStateTransitionError(
                f"Cannot move payment from '{record.status}' to '{status}'",
                details={"current_status": record.status, "target_status": status},
            ) from e

    # =========================================================================
    # Read-Modify-Write
    # =========================================================================

    def _apply_transition(
        self,
        load: Callable[[], PaymentRecord],
        mutate: Callable[[PaymentRecord], bool],
    ) -> PaymentRecord:
        """
        Run load -> mutate -> save, retrying the whole step on a lost race.

        `mutate` must be free of side effects other than changes to the
        record, and returns False when there is nothing to write.
        """
        logger = self.get_logger()
        for attempt in range(1, self.max_attempts + 1):
            record = load()
            if not mutate(record):
                return record
            try:
                return self.store.save(record)
            except ConcurrentModificationError:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Giving up on payment update after repeated conflicts",
                        extra={"order_id": record.order_id, "attempts": attempt},
                    )
                    raise
                logger.info(
                    "Payment record changed concurrently, retrying",
                    extra={"order_id": record.order_id, "attempt": attempt},
                )
        raise AssertionError("unreachable")

    # =========================================================================
    # Pure Transitions (mutate in memory, return whether anything changed)
    # =========================================================================

    def _mark_verification_failed(self, record: PaymentRecord) -> bool:
        if record.status not in OPEN_STATUSES:
            return False
        record.fail(reason=VERIFICATION_FAILED_NOTE, append_note=True)
        return True

    def _set_completed(
        self,
        record: PaymentRecord,
        transaction_id: str,
        details: GatewayPaymentDetails,
        source: str,
        receipt: str | None = None,
    ) -> bool:
        logger = self.get_logger()

        if record.status == PaymentStatus.COMPLETED:
            if record.transaction_id and record.transaction_id != transaction_id:
                return self._flag_transaction_conflict(record, transaction_id, source)
            changed = record.merge_gateway_details(details)
            if not record.transaction_id:
                record.transaction_id = transaction_id
                changed = True
            return self._fill_receipt(record, receipt) or changed

        if record.status not in OPEN_STATUSES:
            logger.info(
                f"Ignoring capture for {record.status} payment",
                extra={"order_id": record.order_id, "transaction_id": transaction_id, "source": source},
            )
            return False

        record.complete(transaction_id=transaction_id)
        record.merge_gateway_details(details)
        self._fill_receipt(record, receipt)
        return True

    @staticmethod
    def _fill_receipt(record: PaymentRecord, receipt: str | None) -> bool:
        """Keep an existing receipt_url; an admin may have set it."""
        if not receipt or record.receipt_url:
            return False
        record.receipt_url = receipt[: PaymentRecord._meta.get_field("receipt_url").max_length]
        return True

    def _set_processing(
        self,
        record: PaymentRecord,
        transaction_id: str,
        details: GatewayPaymentDetails,
    ) -> bool:
        if record.status not in OPEN_STATUSES:
            if record.transaction_id != transaction_id:
                self.get_logger().info(
                    f"Ignoring uncaptured verification for {record.status} payment",
                    extra={"order_id": record.order_id, "transaction_id": transaction_id},
                )
            return False

        if record.status == PaymentStatus.PROCESSING and record.transaction_id == transaction_id:
            return record.merge_gateway_details(details)

        record.mark_processing(transaction_id=transaction_id)
        record.merge_gateway_details(details)
        return True

    def _set_failed(
        self,
        record: PaymentRecord,
        transaction_id: str,
        reason: str,
        details: GatewayPaymentDetails,
    ) -> bool:
        if record.status not in OPEN_STATUSES:
            self.get_logger().info(
                f"Ignoring payment failure for {record.status} payment",
                extra={"order_id": record.order_id, "transaction_id": transaction_id},
            )
            return False

        if (
            record.status == PaymentStatus.FAILED
            and record.transaction_id == transaction_id
            and record.notes == reason
        ):
            return record.merge_gateway_details(details)

        record.fail(reason=reason, transaction_id=transaction_id)
        record.merge_gateway_details(details)
        return True

    def _set_order_paid(self, record: PaymentRecord, payment: GatewayPayment | None) -> bool:
        transaction_id = payment.id if payment and payment.id else None

        if record.status == PaymentStatus.COMPLETED:
            if not record.transaction_id and transaction_id:
                record.transaction_id = transaction_id
                return True
            return False

        if record.status not in OPEN_STATUSES:
            self.get_logger().info(
                f"Ignoring order.paid for {record.status} payment",
                extra={"order_id": record.order_id},
            )
            return False

        record.complete(transaction_id=None if record.transaction_id else transaction_id)
        if payment is not None:
            record.merge_gateway_details(payment.details)
        return True

    def _flag_transaction_conflict(
        self,
        record: PaymentRecord,
        transaction_id: str,
        source: str,
    ) -> bool:
        """
        A second, different capture for a completed order.

        The stored transaction id is kept; the record is flagged so someone
        can refund the extra payment on the gateway.
        """
        reason = (
            f"Captured payment {transaction_id} reported by {source} differs from "
            f"recorded transaction {record.transaction_id}"
        )
        if record.review_required and reason in record.review_reason:
            return False
        self.get_logger().warning(
            "Conflicting transaction id for completed payment",
            extra={
                "order_id": record.order_id,
                "transaction_id": record.transaction_id,
                "incoming_transaction_id": transaction_id,
                "source": source,
            },
        )
        record.flag_for_review(reason)
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _validate_order(amount: Any, currency: str, items: list[dict[str, Any]]) -> Decimal:
        errors: dict[str, list[str]] = {}

        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, TypeError, ValueError):
            errors["amount"] = ["Amount must be a number."]
        else:
            if not amount.is_finite() or amount <= 0:
                errors["amount"] = ["Amount must be greater than zero."]
            elif amount != amount.quantize(Decimal("0.01")):
                errors["amount"] = ["Amount cannot have more than two decimal places."]

        if len(currency) != 3 or not currency.isalpha():
            errors["currency"] = ["Currency must be a 3-letter ISO 4217 code."]

        if not items:
            errors["items"] = ["At least one item is required."]
        else:
            for index, item in enumerate(items):
                if int(item.get("quantity", 1)) < 1:
                    errors.setdefault("items", []).append(f"Item {index}: quantity must be at least 1.")
                if Decimal(str(item.get("price", 0))) < 0:
                    errors.setdefault("items", []).append(f"Item {index}: price cannot be negative.")

        if errors:
            raise PaymentValidationError("Invalid payment order", details=errors)
        return amount

    @staticmethod
    def _build_receipt(user: Any) -> str:
        receipt = f"receipt_{int(time.time() * 1000)}_{str(user.pk)[:8]}"
        return receipt[:RECEIPT_MAX_LENGTH]

    @staticmethod
    def _build_gateway_notes(user: Any, metadata: dict[str, Any] | None) -> dict[str, str]:
        notes = {
            "user_id": str(user.pk),
            "user_name": _display_name(user),
            "user_email": getattr(user, "email", "") or "",
        }
        for key, value in (metadata or {}).items():
            if len(notes) >= MAX_GATEWAY_NOTES:
                break
            notes.setdefault(str(key), str(value)[:256])
        return notes


def _display_name(user: Any) -> str:
    full_name = user.get_full_name() if hasattr(user, "get_full_name") else ""
    return full_name or user.get_username()
