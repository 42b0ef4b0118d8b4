"""
DRF views for payments app.

Endpoints:
    POST /api/v1/payments/initialize/ - Create a Flutterwave checkout link
    GET /api/v1/payments/<tx_ref>/status/ - Payment status
    POST /api/v1/payments/<tx_ref>/refund/ - Request a refund
    POST /api/v1/payments/webhooks/flutterwave/ - Flutterwave webhook (webhooks/views.py)

Caller errors (not found, permission, validation, refund already in
progress) are PaymentError subclasses rendered by the API exception
handler. A refund whose provider outcome is unknown answers 502 so the
client polls status instead of assuming success or failure.

Security:
    - All endpoints here require authentication
    - The webhook verifies Flutterwave's verif-hash instead
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.exceptions import ProviderError
from payments.serializers import (
    InitializePaymentSerializer,
    PaymentLinkSerializer,
    PaymentStatusSerializer,
    RefundRequestSerializer,
    RefundResultSerializer,
)
from payments.services import PaymentService, RefundService

logger = logging.getLogger(__name__)


class InitializePaymentView(APIView):
    """
    Create a hosted checkout for a booking or extension.

    POST /api/v1/payments/initialize/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="initialize_payment",
        summary="Initialize payment",
        request=InitializePaymentSerializer,
        responses={
            201: PaymentLinkSerializer,
            400: OpenApiResponse(description="Amount mismatch or entity not payable"),
            403: OpenApiResponse(description="Not the owner of the booking"),
            404: OpenApiResponse(description="Booking or extension not found"),
            502: OpenApiResponse(description="Flutterwave could not create the checkout"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = InitializePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PaymentService.initialize_payment(
            user=request.user,
            **serializer.validated_data,
        )

        return Response(
            PaymentLinkSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class PaymentStatusView(APIView):
    """
    Status of one of the caller's payments.

    GET /api/v1/payments/<tx_ref>/status/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment_status",
        summary="Get payment status",
        responses={
            200: PaymentStatusSerializer,
            403: OpenApiResponse(description="Not the owner of the payment"),
            404: OpenApiResponse(description="Payment not found"),
        },
        tags=["Payments"],
    )
    def get(self, request, tx_ref: str):
        result = PaymentService.get_payment_status(user=request.user, tx_ref=tx_ref)
        return Response(PaymentStatusSerializer(result.data).data)


class RefundPaymentView(APIView):
    """
    Request a refund on a payment.

    POST /api/v1/payments/<tx_ref>/refund/

    Returns:
        200 with the refund result when Flutterwave accepted it
        200 with success false when Flutterwave declined it
        502 REFUND_OUTCOME_UNKNOWN when the outcome is unknown
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="refund_payment",
        summary="Refund payment",
        request=RefundRequestSerializer,
        responses={
            200: RefundResultSerializer,
            400: OpenApiResponse(description="Amount or payment state not refundable"),
            403: OpenApiResponse(description="Not the owner of the payment"),
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Refund already in progress"),
            502: OpenApiResponse(description="Refund outcome unknown; poll status"),
        },
        tags=["Payments"],
    )
    def post(self, request, tx_ref: str):
        serializer = RefundRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = RefundService.initiate_refund(
                user=request.user,
                tx_ref=tx_ref,
                **serializer.validated_data,
            )
        except ProviderError as e:
            logger.error(
                "Refund outcome unknown",
                extra={"tx_ref": tx_ref, "error_code": e.error_code},
            )
            return Response(
                {
                    "success": False,
                    "error": "Refund outcome is unknown; check the payment status later",
                    "error_code": "REFUND_OUTCOME_UNKNOWN",
                },
                status=status.HTTP_502_BAD_GATEWAY,
            )

        if not result.success:
            return Response(result.to_response(), status=status.HTTP_200_OK)

        return Response(
            {"success": True, "data": RefundResultSerializer(result.data).data},
            status=status.HTTP_200_OK,
        )
