# Standard Library
import logging

# Django REST Framework
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

# Local
from .models import PreOrder
from .serializers import PreOrderSerializer
from .utilities import (
    _money,
    error_response,
    format_datetime,
    not_found_response,
    success_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)


def _serialize_preorder(preorder):
    return {
        "id": preorder.id,
        "user_id": preorder.user_id,
        "product_id": preorder.product_id,
        "product_name": preorder.product.name,
        "product_quantity": preorder.product_quantity,
        "final_product": preorder.final_product,
        "final_product_price": _money(preorder.final_product_price),
        "created_at": format_datetime(preorder.created_at),
        "updated_at": format_datetime(preorder.updated_at),
    }


def save_preorder(data, user, existing_preorder=None):
    preorder = existing_preorder or PreOrder(user=user)
    if "product_id" in data:
        preorder.product = data["product_id"]
    if "product_quantity" in data:
        preorder.product_quantity = data["product_quantity"]
    if "final_product" in data:
        preorder.final_product = data["final_product"] or {}
    if "final_product_price" in data:
        preorder.final_product_price = data["final_product_price"]
    preorder.save()
    return preorder


class PreOrderListCreateAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        preorders = PreOrder.objects.filter(user=request.user).select_related("product")
        return success_response(
            "Pre-orders retrieved successfully",
            [_serialize_preorder(p) for p in preorders],
        )

    def post(self, request):
        serializer = PreOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            preorder = save_preorder(serializer.validated_data, request.user)
            return success_response(
                "Pre-order created successfully", _serialize_preorder(preorder), status.HTTP_201_CREATED,
            )
        except Exception:
            logger.exception("CreatePreOrder failed")
            return error_response("Failed to create pre-order", status.HTTP_500_INTERNAL_SERVER_ERROR)


class PreOrderDetailAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def _get(self, request, pk):
        return PreOrder.objects.select_related("product").filter(pk=pk, user=request.user).first()

    def get(self, request, pk):
        preorder = self._get(request, pk)
        if preorder is None:
            return not_found_response("Pre-order not found")
        return success_response("Pre-order retrieved successfully", _serialize_preorder(preorder))

    def put(self, request, pk):
        return self._update(request, pk, partial=False)

    def patch(self, request, pk):
        return self._update(request, pk, partial=True)

    def _update(self, request, pk, partial):
        preorder = self._get(request, pk)
        if preorder is None:
            return not_found_response("Pre-order not found")
        serializer = PreOrderSerializer(preorder, data=request.data, partial=partial)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            preorder = save_preorder(serializer.validated_data, request.user, existing_preorder=preorder)
            return success_response("Pre-order updated successfully", _serialize_preorder(preorder))
        except Exception:
            logger.exception("UpdatePreOrder #%s failed", pk)
            return error_response("Failed to update pre-order", status.HTTP_500_INTERNAL_SERVER_ERROR)

    def delete(self, request, pk):
        preorder = self._get(request, pk)
        if preorder is None:
            return not_found_response("Pre-order not found")
        preorder.delete()
        return success_response("Pre-order deleted successfully")
