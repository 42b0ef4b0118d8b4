"""
URL configuration for the payment reconciliation service.

URL Structure:
    /                                      - ReDoc API documentation
    /admin/                                - Django admin interface
    /health/                               - Health check endpoint
    /schema/                               - OpenAPI schema (YAML)
    /api/v1/payments/                      - Payment endpoints
        initialize/                        - Create a Flutterwave checkout link
        <tx_ref>/status/                   - Payment status for the owner
        <tx_ref>/refund/                   - Request a refund
        webhooks/flutterwave/              - Flutterwave webhook endpoint (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Payments Admin"
admin.site.site_title = "Payments Admin Portal"
admin.site.index_title = "Bookings, payments and payouts"
