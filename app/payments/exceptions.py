"""
Payment-specific exceptions for payment operations.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - No record for the order/transaction/id
    ├── PaymentValidationError - Request violates a payment business rule
    ├── SignatureInvalidError - HMAC check failed (client or webhook)
    ├── DuplicateOrderIdError - Gateway order id already stored (fatal)
    └── GatewayError - Base for all payment gateway errors
        ├── GatewayRejectedError - Gateway refused the request (permanent)
        └── GatewayUnavailableError - Gateway unreachable or 5xx (transient)
            └── GatewayTimeoutError - Call exceeded the configured timeout

    ConcurrentModificationError - Optimistic locking conflict (ConflictError)
    LockAcquisitionError - Distributed lock timeout (ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (ConflictError)
    RefundNotAllowedError - Record not refundable (ConflictError)
    DuplicateTransactionIdError - Transaction id owned by another record (ConflictError)

Usage:
    from payments.exceptions import GatewayError, SignatureInvalidError

    try:
        adapter.issue_refund(payment_id, amount)
    except GatewayError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for all payment operations."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when a payment record lookup finds nothing.

    Example:
        raise PaymentNotFoundError(
            f"Payment for order {order_id} not found",
            details={"order_id": order_id},
        )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when a payment request violates a business rule.

    Rejected before any record is touched: non-positive amounts, empty
    item lists, refunds larger than the original payment.
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class SignatureInvalidError(PaymentError):
    """
    Raised when an HMAC signature is missing or does not match.

    Covers both client-submitted payment confirmations and inbound
    webhooks. Never carries the expected digest in its details.
    """

    default_error_code: str = "SIGNATURE_INVALID"


class DuplicateOrderIdError(PaymentError):
    """
    Raised when a new record reuses an existing gateway order id.

    The gateway issues a fresh order id per create call, so this signals
    an integrity problem rather than a user error.
    """

    default_error_code: str = "DUPLICATE_ORDER_ID"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentError):
    """
    Base exception for payment gateway failures.

    The adapter never retries on its own. is_retryable is copied into the
    error details so API clients know whether resubmitting can help:
    - True: transient failure, the same request may succeed later
    - False: the gateway refused the request, retrying will not help

    No local payment state changes when a GatewayError is raised.
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_code:
            details["gateway_code"] = gateway_code
        details.setdefault("retryable", self.is_retryable)
        super().__init__(message, error_code=error_code, details=details)
        self.gateway_code = gateway_code


class GatewayRejectedError(GatewayError):
    """
    Gateway rejected the request (bad amount, unknown payment, already
    refunded on the gateway side, invalid credentials).
    """

    default_error_code: str = "GATEWAY_REJECTED"
    is_retryable: bool = False


class GatewayUnavailableError(GatewayError):
    """Gateway could not be reached or answered with a server error."""

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayUnavailableError):
    """
    Gateway call exceeded the configured timeout.

    The outcome on the gateway side is unknown; for order creation no
    record is persisted, so a retry simply creates a new gateway order.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class ConcurrentModificationError(ConflictError):
    """
    Raised when a record changed between read and write.

    The store compares the version the record was read at with the row's
    current version under a row lock. Callers re-read and retry the whole
    read-modify-write step.

    Example:
        raise ConcurrentModificationError(
            f"PaymentRecord {pk} has been modified",
            details={"pk": str(pk), "expected_version": 3, "current_version": 4},
        )
    """

    default_error_code: str = "CONCURRENT_MODIFICATION"


class LockAcquisitionError(ConflictError):
    """Raised when a distributed lock cannot be acquired in time."""

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an FSM transition is not allowed from the current state.

    Wraps django_fsm.TransitionNotAllowed for admin-driven updates.
    Gateway-driven events never raise this; they log and skip instead.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class RefundNotAllowedError(ConflictError):
    """
    Raised when a refund is requested against a record that cannot be
    refunded (not completed, or already refunded).
    """

    default_error_code: str = "REFUND_NOT_ALLOWED"


class DuplicateTransactionIdError(ConflictError):
    """Raised when a gateway payment id already belongs to another record."""

    default_error_code: str = "DUPLICATE_TRANSACTION_ID"


__all__ = [
    "ConcurrentModificationError",
    "DuplicateOrderIdError",
    "DuplicateTransactionIdError",
    "GatewayError",
    "GatewayRejectedError",
    "GatewayTimeoutError",
    "GatewayUnavailableError",
    "InvalidStateTransitionError",
    "LockAcquisitionError",
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "RefundNotAllowedError",
    "SignatureInvalidError",
]
