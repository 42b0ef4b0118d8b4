"""
URL configuration for the payments app.

Routes:
    - POST /initialize/ - Create a checkout link
    - GET /<tx_ref>/status/ - Payment status
    - POST /<tx_ref>/refund/ - Refund a payment
    - POST /webhooks/flutterwave/ - Flutterwave webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments.views import InitializePaymentView, PaymentStatusView, RefundPaymentView
from payments.webhooks.views import flutterwave_webhook

app_name = "payments"

urlpatterns = [
    path("initialize/", InitializePaymentView.as_view(), name="initialize"),
    path("<str:tx_ref>/status/", PaymentStatusView.as_view(), name="status"),
    path("<str:tx_ref>/refund/", RefundPaymentView.as_view(), name="refund"),
    # Webhook endpoints
    path("webhooks/flutterwave/", flutterwave_webhook, name="flutterwave_webhook"),
]
