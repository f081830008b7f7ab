"""
Razorpay API adapter for payment operations.

This module provides the RazorpayAdapter class which encapsulates all
Razorpay API interactions. Every gateway call goes through this adapter so
timeouts, error translation and logging are handled the same way.

Features:
- Explicit construction with credentials and timeout (no global client)
- Configurable timeout on every API call
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Major-unit amounts in, major-unit amounts out (paise stay inside)

Configuration (via settings, used by from_settings()):
- RAZORPAY_KEY_ID: Public key id
- RAZORPAY_KEY_SECRET: API key secret
- RAZORPAY_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import RazorpayAdapter

    adapter = RazorpayAdapter.from_settings()
    order = adapter.create_order(
        amount=Decimal("999.00"),
        currency="INR",
        receipt="receipt_1700000000000_42",
        notes={"user_id": "42"},
    )
    payment = adapter.fetch_payment("pay_29QQoUBi66xm2f")
    if payment.is_captured:
        ...
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import razorpay
import requests
from django.conf import settings
from razorpay.errors import BadRequestError, GatewayError as RazorpayGatewayError, ServerError

from payments.exceptions import (
    GatewayRejectedError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)
from payments.types import GatewayPaymentDetails, from_subunits, to_subunits


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class GatewayOrder:
    """
    Result from order creation.

    Attributes:
        id: Gateway order id (order_xxx)
        amount: Order amount in major units
        currency: Currency code
        status: Gateway order status (created, attempted, paid)
        receipt: Merchant receipt reference sent at creation
        raw_response: Full gateway response dict (for debugging)
    """

    id: str
    amount: Decimal
    currency: str
    status: str
    receipt: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayPayment:
    """
    Result from fetching a payment.

    Attributes:
        id: Gateway payment id (pay_xxx)
        order_id: Gateway order the payment belongs to
        status: created, authorized, captured, refunded or failed
        method: card, upi, netbanking, wallet, ...
        amount: Payment amount in major units
        bank/wallet/vpa/contact/email: Method-specific details, when reported
        error_description: Gateway failure reason, when failed
        receipt: Receipt link the gateway attached to a captured payment
    """

    id: str
    order_id: str
    status: str
    method: str | None = None
    amount: Decimal | None = None
    bank: str | None = None
    wallet: str | None = None
    vpa: str | None = None
    contact: str | None = None
    email: str | None = None
    error_description: str | None = None
    receipt: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_captured(self) -> bool:
        return self.status == "captured"

    @property
    def details(self) -> GatewayPaymentDetails:
        return GatewayPaymentDetails(
            method=self.method,
            bank=self.bank,
            wallet=self.wallet,
            vpa=self.vpa,
            contact=self.contact,
            email=self.email,
        )

    @classmethod
    def from_entity(cls, entity: dict[str, Any]) -> GatewayPayment:
        """
        Build from a gateway payment entity.

        Used for both fetch responses and the payment entity embedded in
        webhook payloads, which share the same shape.
        """
        amount = entity.get("amount")
        return cls(
            id=entity.get("id", ""),
            order_id=entity.get("order_id") or "",
            status=entity.get("status", ""),
            method=entity.get("method"),
            amount=from_subunits(amount) if amount is not None else None,
            bank=entity.get("bank"),
            wallet=entity.get("wallet"),
            vpa=entity.get("vpa"),
            contact=entity.get("contact"),
            email=entity.get("email"),
            error_description=entity.get("error_description"),
            receipt=entity["receipt"] if isinstance(entity.get("receipt"), str) else None,
            raw_response=dict(entity),
        )


@dataclass
class RefundReceipt:
    """
    Result from issuing a refund.

    Attributes:
        id: Gateway refund id (rfnd_xxx)
        payment_id: Refunded payment id
        amount: Refunded amount in major units
        currency: Currency code
        status: pending, processed or failed
    """

    id: str
    payment_id: str
    amount: Decimal
    currency: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Razorpay Adapter
# =============================================================================


class RazorpayAdapter:
    """
    Adapter for Razorpay API operations.

    Instances are cheap and hold only the SDK client and timeout, so they
    are safe to share across requests. Tests pass a fake `client`.

    Args:
        key_id: Razorpay key id
        key_secret: Razorpay key secret
        timeout: Seconds allowed per API call
        client: Pre-built SDK client (tests, custom sessions)
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        timeout: float = 10,
        client: Any | None = None,
    ) -> None:
        self.key_id = key_id
        self.timeout = timeout
        self._client = client or razorpay.Client(auth=(key_id, key_secret))

    @classmethod
    def from_settings(cls) -> RazorpayAdapter:
        """Build an adapter from the RAZORPAY_* settings."""
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            timeout=getattr(settings, "RAZORPAY_API_TIMEOUT_SECONDS", 10),
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_order(
        self,
        amount: Decimal,
        currency: str,
        receipt: str,
        notes: dict[str, Any] | None = None,
    ) -> GatewayOrder:
        """
        Create a gateway order the client can pay against.

        Args:
            amount: Amount in major units; sent to the gateway in subunits
            currency: ISO 4217 code
            receipt: Merchant reference (gateway limit: 40 characters)
            notes: Key-value pairs attached to the order

        Raises:
            GatewayRejectedError: Gateway refused the parameters
            GatewayUnavailableError: Gateway unreachable or failing
            GatewayTimeoutError: Call exceeded the timeout
        """
        logger = self.get_logger()
        log_context = {
            "operation": "create_order",
            "amount": str(amount),
            "currency": currency,
            "receipt": receipt,
        }

        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        try:
            response = self._client.order.create(
                data={
                    "amount": to_subunits(amount),
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes or {},
                },
                timeout=self.timeout,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_gateway_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Razorpay operation completed",
            extra={
                **log_context,
                "order_id": response.get("id"),
                "duration_ms": duration_ms,
            },
        )

        return GatewayOrder(
            id=response["id"],
            amount=from_subunits(response.get("amount", to_subunits(amount))),
            currency=response.get("currency", currency),
            status=response.get("status", "created"),
            receipt=response.get("receipt") or receipt,
            raw_response=dict(response),
        )

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """
        Fetch the current state of a payment.

        Raises:
            GatewayRejectedError: Unknown payment id
            GatewayUnavailableError: Gateway unreachable or failing
            GatewayTimeoutError: Call exceeded the timeout
        """
        logger = self.get_logger()
        log_context = {
            "operation": "fetch_payment",
            "payment_id": payment_id,
        }

        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        try:
            response = self._client.payment.fetch(payment_id, timeout=self.timeout)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_gateway_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Razorpay operation completed",
            extra={
                **log_context,
                "status": response.get("status"),
                "duration_ms": duration_ms,
            },
        )

        return GatewayPayment.from_entity(response)

    def issue_refund(
        self,
        payment_id: str,
        amount: Decimal,
        notes: dict[str, Any] | None = None,
    ) -> RefundReceipt:
        """
        Refund a captured payment, fully or partially.

        Args:
            payment_id: Gateway payment id to refund
            amount: Refund amount in major units
            notes: Key-value pairs attached to the refund

        Raises:
            GatewayRejectedError: Gateway refused (e.g. already refunded there)
            GatewayUnavailableError: Gateway unreachable or failing
            GatewayTimeoutError: Call exceeded the timeout
        """
        logger = self.get_logger()
        log_context = {
            "operation": "issue_refund",
            "payment_id": payment_id,
            "amount": str(amount),
        }

        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        try:
            response = self._client.payment.refund(
                payment_id,
                {"amount": to_subunits(amount), "notes": notes or {}},
                timeout=self.timeout,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_gateway_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Razorpay operation completed",
            extra={
                **log_context,
                "refund_id": response.get("id"),
                "duration_ms": duration_ms,
            },
        )

        return RefundReceipt(
            id=response["id"],
            payment_id=response.get("payment_id", payment_id),
            amount=from_subunits(response.get("amount", to_subunits(amount))),
            currency=response.get("currency", ""),
            status=response.get("status", ""),
            raw_response=dict(response),
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_gateway_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate SDK and transport exceptions to domain exceptions.

        Raises:
            GatewayRejectedError: BAD_REQUEST_ERROR from the gateway
            GatewayTimeoutError: HTTP timeout
            GatewayUnavailableError: Connection errors, GATEWAY_ERROR,
                SERVER_ERROR and anything unexpected
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, BadRequestError):
            logger.warning(
                "Razorpay rejected request",
                extra={**log_context, "gateway_error": str(error)},
            )
            raise GatewayRejectedError(
                str(error) or "Payment gateway rejected the request",
                gateway_code="BAD_REQUEST_ERROR",
            )

        if isinstance(error, requests.exceptions.Timeout):
            logger.error("Razorpay request timed out", extra=log_context)
            raise GatewayTimeoutError(
                f"Payment gateway did not respond within {self.timeout}s",
                gateway_code="timeout",
                details={"timeout": self.timeout},
            )

        if isinstance(error, requests.exceptions.ConnectionError):
            logger.error("Connection error to Razorpay", extra=log_context, exc_info=True)
            raise GatewayUnavailableError(
                "Could not connect to payment gateway. Please retry.",
                gateway_code="connection_error",
            )

        if isinstance(error, (RazorpayGatewayError, ServerError)):
            code = "GATEWAY_ERROR" if isinstance(error, RazorpayGatewayError) else "SERVER_ERROR"
            logger.error(
                "Razorpay server error",
                extra={**log_context, "gateway_code": code},
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Payment gateway error. Please retry.",
                gateway_code=code,
            )

        logger.error(
            f"Unexpected error from Razorpay: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise GatewayUnavailableError(
            f"Unexpected payment gateway error: {error}",
            gateway_code="unknown_error",
        )
