"""
DRF views for payments app.

This module provides API views for:
- Order creation
- Client payment verification
- Admin refunds and status updates
- Payment listings and detail

The webhook endpoint is a plain Django view in payments.webhooks.views
because it needs the raw request body.

Related files:
    - services/: PaymentReconciliationService, RefundService
    - serializers.py: Request/response serializers
    - filters.py: List filters
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/orders/ - Create a gateway order
    POST /api/v1/payments/verify/ - Verify a client payment confirmation
    POST /api/v1/payments/webhook/ - Razorpay webhook endpoint
    PUT  /api/v1/payments/<id>/refund/ - Refund a completed payment (staff)
    PUT  /api/v1/payments/<id>/status/ - Update status and fields (staff)
    GET  /api/v1/payments/list/ - All payments with filters and totals (staff)
    GET  /api/v1/payments/my-payments/ - Caller's payments
    GET  /api/v1/payments/<id>/ - Payment detail (owner or staff)

Security:
    - All endpoints require authentication except webhook
    - Webhook verifies the X-Razorpay-Signature header
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db.models import Count, Sum
from rest_framework import generics, status
from rest_framework import serializers as drf_serializers
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
    inline_serializer,
)

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

from payments.exceptions import (
    DuplicateOrderIdError,
    GatewayRejectedError,
    GatewayUnavailableError,
    SignatureInvalidError,
)
from payments.filters import MyPaymentFilter, PaymentRecordFilter
from payments.models import PaymentRecord
from payments.serializers import (
    CreateOrderResponseSerializer,
    CreateOrderSerializer,
    PaymentListSummarySerializer,
    PaymentRecordSerializer,
    PaymentRecordSummarySerializer,
    RefundSerializer,
    StatusUpdateSerializer,
    VerifyPaymentSerializer,
)
from payments.services import get_reconciliation_service, get_refund_service

logger = logging.getLogger(__name__)


# Checked in order; first match wins
ERROR_STATUS_MAP: list[tuple[type[BaseApplicationError], int]] = [
    (DuplicateOrderIdError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (SignatureInvalidError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (GatewayRejectedError, status.HTTP_502_BAD_GATEWAY),
    (GatewayUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for_error(error: BaseApplicationError) -> int:
    for error_class, http_status in ERROR_STATUS_MAP:
        if isinstance(error, error_class):
            return http_status
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(error: BaseApplicationError) -> Response:
    """Translate a domain error into the standard JSON error body."""
    http_status = status_for_error(error)
    if http_status >= 500:
        logger.error(
            f"Payment request failed: {error.error_code}",
            extra={"error_code": error.error_code, "details": error.details},
        )
    return Response(error.to_dict(), status=http_status)


ERROR_RESPONSES = {
    400: OpenApiResponse(description="Invalid input or signature"),
    403: OpenApiResponse(description="Not allowed to act on this payment"),
    404: OpenApiResponse(description="Payment not found"),
    409: OpenApiResponse(description="Payment state does not allow this operation"),
    502: OpenApiResponse(description="Payment gateway rejected the request"),
    503: OpenApiResponse(description="Payment gateway unavailable, retry"),
}


# =============================================================================
# Customer Endpoints
# =============================================================================


class CreateOrderView(APIView):
    """
    Create a gateway order and a PENDING payment record.

    POST /api/v1/payments/orders/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_payment_order",
        summary="Create payment order",
        description=(
            "Create a Razorpay order for the given items and amount. "
            "The response carries what the checkout widget needs."
        ),
        request=CreateOrderSerializer,
        responses={201: CreateOrderResponseSerializer, **ERROR_RESPONSES},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            created = get_reconciliation_service().create_order(
                request.user,
                **serializer.validated_data,
            )
        except BaseApplicationError as e:
            return error_response(e)

        response = CreateOrderResponseSerializer(
            {
                "order": {
                    "id": created.gateway_order.id,
                    "amount": created.gateway_order.amount,
                    "currency": created.gateway_order.currency,
                    "receipt": created.gateway_order.receipt,
                    "status": created.gateway_order.status,
                    "key_id": created.key_id,
                },
                "payment": {
                    "id": created.record.pk,
                    "order_id": created.record.order_id,
                    "status": created.record.status,
                },
            }
        )
        return Response(response.data, status=status.HTTP_201_CREATED)


class VerifyPaymentView(APIView):
    """
    Apply the checkout widget's payment confirmation.

    POST /api/v1/payments/verify/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify payment",
        description=(
            "Verify the order_id|payment_id signature returned by checkout and "
            "update the payment from the gateway's view of it."
        ),
        request=VerifyPaymentSerializer,
        responses={200: PaymentRecordSummarySerializer, **ERROR_RESPONSES},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            record = get_reconciliation_service().verify_payment(
                user=request.user,
                **serializer.validated_data,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PaymentRecordSummarySerializer(record).data)


@extend_schema_view(
    get=extend_schema(
        operation_id="list_my_payments",
        summary="List my payments",
        description="Paginated list of the caller's payments, newest first.",
        tags=["Payments"],
    ),
)
class MyPaymentsView(generics.ListAPIView):
    """GET /api/v1/payments/my-payments/"""

    permission_classes = [IsAuthenticated]
    serializer_class = PaymentRecordSummarySerializer
    filterset_class = MyPaymentFilter

    def get_queryset(self):
        return PaymentRecord.objects.filter(user=self.request.user)


class PaymentDetailView(APIView):
    """
    Full payment record.

    GET /api/v1/payments/<id>/

    Owners see their own records; staff see all.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment",
        summary="Get payment",
        responses={200: PaymentRecordSerializer, **ERROR_RESPONSES},
        tags=["Payments"],
    )
    def get(self, request, pk):
        try:
            record = PaymentRecord.objects.get(pk=pk)
        except PaymentRecord.DoesNotExist:
            return Response(
                {"error": "Payment not found", "error_code": "PAYMENT_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )

        if record.user_id != request.user.pk and not request.user.is_staff:
            return error_response(PermissionDeniedError("You are not allowed to view this payment"))

        return Response(PaymentRecordSerializer(record).data)


# =============================================================================
# Staff Endpoints
# =============================================================================


class RefundPaymentView(APIView):
    """
    Refund a completed payment through the gateway.

    PUT /api/v1/payments/<id>/refund/
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="refund_payment",
        summary="Refund payment",
        description=(
            "Issue a full or partial refund for a completed payment. "
            "A payment can be refunded once."
        ),
        request=RefundSerializer,
        responses={200: PaymentRecordSerializer, **ERROR_RESPONSES},
        tags=["Payments - Admin"],
    )
    def put(self, request, pk):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            record = get_refund_service().refund(
                pk,
                amount=data["refund_amount"],
                reason=data.get("refund_reason", ""),
                notes=data.get("notes"),
                actor=request.user,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PaymentRecordSerializer(record).data)


class PaymentStatusView(APIView):
    """
    Admin status and field update.

    PUT /api/v1/payments/<id>/status/
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="update_payment_status",
        summary="Update payment status",
        description=(
            "Move a payment to processing, completed, failed or cancelled, "
            "and/or update transaction id, receipt/invoice URLs and notes."
        ),
        request=StatusUpdateSerializer,
        responses={200: PaymentRecordSerializer, **ERROR_RESPONSES},
        tags=["Payments - Admin"],
    )
    def put(self, request, pk):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            record = get_reconciliation_service().update_status(
                pk,
                actor=request.user,
                **serializer.validated_data,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PaymentRecordSerializer(record).data)


@extend_schema_view(
    get=extend_schema(
        operation_id="list_payments",
        summary="List payments",
        description=(
            "Paginated list of all payments with filters. "
            "The summary covers every record matching the filters, not just the page."
        ),
        responses={
            200: inline_serializer(
                name="PaymentListResponse",
                fields={
                    "count": drf_serializers.IntegerField(),
                    "next": drf_serializers.URLField(allow_null=True),
                    "previous": drf_serializers.URLField(allow_null=True),
                    "results": PaymentRecordSerializer(many=True),
                    "summary": PaymentListSummarySerializer(),
                },
            ),
        },
        tags=["Payments - Admin"],
    ),
)
class PaymentListView(generics.ListAPIView):
    """GET /api/v1/payments/list/"""

    permission_classes = [IsAdminUser]
    serializer_class = PaymentRecordSerializer
    filterset_class = PaymentRecordFilter
    queryset = PaymentRecord.objects.all()

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        totals = queryset.aggregate(total_amount=Sum("amount"), total_count=Count("id"))
        summary = PaymentListSummarySerializer(
            {
                "total_amount": totals["total_amount"] or Decimal("0.00"),
                "total_count": totals["total_count"],
            }
        ).data

        page = self.paginate_queryset(queryset)
        if page is not None:
            response = self.get_paginated_response(self.get_serializer(page, many=True).data)
            response.data["summary"] = summary
            return response

        serializer = self.get_serializer(queryset, many=True)
        return Response({"results": serializer.data, "summary": summary})
