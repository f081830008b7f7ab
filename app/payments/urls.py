"""
URL configuration for the payments app.

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import razorpay_webhook

app_name = "payments"

urlpatterns = [
    path("orders/", views.CreateOrderView.as_view(), name="create_order"),
    path("verify/", views.VerifyPaymentView.as_view(), name="verify"),
    # Webhook endpoint
    path("webhook/", razorpay_webhook, name="webhook"),
    # Listings
    path("list/", views.PaymentListView.as_view(), name="list"),
    path("my-payments/", views.MyPaymentsView.as_view(), name="my_payments"),
    # Single payment
    path("<uuid:pk>/refund/", views.RefundPaymentView.as_view(), name="refund"),
    path("<uuid:pk>/status/", views.PaymentStatusView.as_view(), name="status"),
    path("<uuid:pk>/", views.PaymentDetailView.as_view(), name="detail"),
]
