# Standard Library
import logging

# Django
from django.db import transaction

# Django REST Framework
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

# Local
from .models import OrderHasPaid
from .orders import _serialize_payment
from .permissions import HasCapability
from .serializers import PaymentSerializer
from .utilities import (
    error_response,
    not_found_response,
    paginate,
    success_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

PAYMENT_CAPABILITIES = {
    method: "manage-payments" for method in ("GET", "POST", "PUT", "PATCH", "DELETE")
}


def save_payment(data, existing_payment=None):
    payment = existing_payment or OrderHasPaid()
    if "order_id" in data:
        payment.order = data["order_id"]
    for field in ("amount", "method", "status", "transaction_id", "notes"):
        if field in data:
            setattr(payment, field, data[field])
    payment.save()
    return payment


class PaymentListCreateAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = PAYMENT_CAPABILITIES

    def get(self, request):
        qs = OrderHasPaid.objects.all()
        order_id = request.query_params.get("order_id")
        if order_id and order_id.isdigit():
            qs = qs.filter(order_id=int(order_id))
        payments, pagination = paginate(qs, request)
        return success_response("Payments retrieved successfully", {
            "data": [_serialize_payment(p) for p in payments],
            "pagination": pagination,
        })

    def post(self, request):
        serializer = PaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            with transaction.atomic():
                payment = save_payment(serializer.validated_data)
            logger.info("Payment #%s recorded for order #%s.", payment.pk, payment.order_id)
            return success_response(
                "Payment created successfully", _serialize_payment(payment), status.HTTP_201_CREATED,
            )
        except Exception:
            logger.exception("CreatePayment failed")
            return error_response("Failed to create payment", status.HTTP_500_INTERNAL_SERVER_ERROR)


class PaymentDetailAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = PAYMENT_CAPABILITIES

    def get(self, request, pk):
        payment = OrderHasPaid.objects.filter(pk=pk).first()
        if payment is None:
            return not_found_response("Payment not found")
        return success_response("Payment retrieved successfully", _serialize_payment(payment))

    def put(self, request, pk):
        return self._update(request, pk)

    def patch(self, request, pk):
        return self._update(request, pk)

    def _update(self, request, pk):
        payment = OrderHasPaid.objects.filter(pk=pk).first()
        if payment is None:
            return not_found_response("Payment not found")
        serializer = PaymentSerializer(payment, data=request.data, partial=True)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            with transaction.atomic():
                payment = save_payment(serializer.validated_data, existing_payment=payment)
            return success_response("Payment updated successfully", _serialize_payment(payment))
        except Exception:
            logger.exception("UpdatePayment #%s failed", pk)
            return error_response("Failed to update payment", status.HTTP_500_INTERNAL_SERVER_ERROR)

    def delete(self, request, pk):
        payment = OrderHasPaid.objects.filter(pk=pk).first()
        if payment is None:
            return not_found_response("Payment not found")
        try:
            payment.delete()
            return success_response("Payment deleted successfully")
        except Exception:
            logger.exception("DeletePayment #%s failed", pk)
            return error_response("Failed to delete payment", status.HTTP_500_INTERNAL_SERVER_ERROR)
