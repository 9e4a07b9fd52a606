# Standard Library
import logging

# Django
from django.db import transaction
from django.db.models import Q

# Django REST Framework
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

# Local
from .exceptions import MediaError
from .media import DOCUMENT_EXTENSIONS, media_batch, media_url
from .models import Order, OrderHasPaid, OrderItem
from .permissions import HasCapability
from .serializers import OrderCreateSerializer, OrderUpdateSerializer
from .utilities import (
    _money,
    _options,
    error_response,
    format_datetime,
    not_found_response,
    paginate,
    success_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

ORDER_FILES_FOLDER = "orders/files"
ORDER_ITEM_IMAGES_FOLDER = "orders/items"

ORDER_FIELDS = ("name", "email", "phone", "address", "status", "is_paid", "is_customized", "notes")
ITEM_FIELDS = ("quantity", "price")
PAYMENT_FIELDS = ("amount", "method", "status", "transaction_id", "notes")


# -----------------------
# Serialization
# -----------------------

def _serialize_payment(payment):
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": _money(payment.amount),
        "method": payment.method,
        "status": payment.status,
        "transaction_id": payment.transaction_id,
        "notes": payment.notes,
        "created_at": format_datetime(payment.created_at),
        "updated_at": format_datetime(payment.updated_at),
    }

def _serialize_item(item, request):
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product": {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
        } if product else None,
        "quantity": item.quantity,
        "price": _money(item.price),
        "customization_images": [media_url(request, p) for p in (item.customization_images or [])],
    }

def _serialize_order(order, request):
    return {
        "id": order.id,
        "user_id": order.user_id,
        "name": order.name,
        "email": order.email,
        "phone": order.phone,
        "address": order.address,
        "total": _money(order.total),
        "status": order.status,
        "is_paid": order.is_paid,
        "is_customized": order.is_customized,
        "customized_file": media_url(request, order.customized_file),
        "notes": order.notes,
        "updated_by": order.updated_by_id,
        "items": [_serialize_item(i, request) for i in order.items.all()],
        "payments": [_serialize_payment(p) for p in order.payments.all()],
        "created_at": format_datetime(order.created_at),
        "updated_at": format_datetime(order.updated_at),
    }

def order_queryset():
    return Order.objects.prefetch_related("items__product", "payments")


# -----------------------
# Save/Update Functions
# -----------------------

def place_order(data, media, acting_user=None):
    """
    Insert the order, its items and the initial payment row. Final product
    images and the final PDF are stored through `media` and mark the order
    as customized.
    """
    order = Order.objects.create(
        user=acting_user,
        name=data["name"],
        email=data["email"],
        phone=data["phone"],
        address=data["address"],
        total=data["total"],
        notes=data.get("notes") or "",
        is_paid=data["payment_status"] == "completed",
    )

    customized = False
    for index, item in enumerate(data["items"]):
        images = [
            media.store(value, ORDER_ITEM_IMAGES_FOLDER, field=f"items.{index}.final_product_images.{position}")
            for position, value in enumerate(item.get("final_product_images") or [])
        ]
        customized = customized or bool(images)
        OrderItem.objects.create(
            order=order,
            product=item["product_id"],
            quantity=item["quantity"],
            price=item["price"],
            customization_images=images,
        )

    if data.get("final_pdf"):
        order.customized_file = media.store(
            data["final_pdf"], ORDER_FILES_FOLDER, field="final_pdf",
            allowed=DOCUMENT_EXTENSIONS, default_extension="pdf",
        )
        customized = True

    if customized:
        order.is_customized = True
        order.save(update_fields=["customized_file", "is_customized", "updated_at"])

    OrderHasPaid.objects.create(
        order=order,
        amount=data["total"],
        method=data["payment_method"],
        status=data["payment_status"],
        transaction_id=data.get("transaction_id") or None,
    )
    return order

def _unknown_ids(rows, existing_ids, key):
    errors = {}
    for index, row in enumerate(rows):
        if "id" in row and row["id"] not in existing_ids:
            errors[f"{key}.{index}.id"] = ["The selected id is invalid."]
    return errors

def update_order(order, data, acting_user):
    """
    Apply a partial update. Nested `items` and `payments` rows carrying an
    id are updated in place, rows without one are inserted.
    """
    for field in ORDER_FIELDS:
        if field in data and data[field] is not None:
            setattr(order, field, data[field])
    order.updated_by = acting_user
    order.save()

    for row in data.get("items") or []:
        if "id" in row:
            item = order.items.get(pk=row["id"])
            for field in ITEM_FIELDS:
                if field in row:
                    setattr(item, field, row[field])
            if "product_id" in row:
                item.product = row["product_id"]
            item.save()
        else:
            product = row["product_id"]
            OrderItem.objects.create(
                order=order,
                product=product,
                quantity=row["quantity"],
                price=row.get("price", product.final_price),
            )

    for row in data.get("payments") or []:
        if "id" in row:
            payment = order.payments.get(pk=row["id"])
            for field in PAYMENT_FIELDS:
                if field in row:
                    setattr(payment, field, row[field])
            payment.save()
        else:
            OrderHasPaid.objects.create(
                order=order,
                amount=row["amount"],
                method=row["method"],
                status=row.get("status", "pending"),
                transaction_id=row.get("transaction_id") or None,
                notes=row.get("notes"),
            )
    return order


# -----------------------
# Customer views
# -----------------------

def _own_orders(user):
    return order_queryset().filter(Q(user=user) | Q(email__iexact=user.email))


class CustomerOrderListCreateAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        orders = _own_orders(request.user)
        return success_response(
            "Orders retrieved successfully",
            [_serialize_order(o, request) for o in orders],
        )

    def post(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            with media_batch() as media, transaction.atomic():
                order = place_order(serializer.validated_data, media, acting_user=request.user)

            order = order_queryset().get(pk=order.pk)
            return success_response(
                "Order placed successfully", _serialize_order(order, request), status.HTTP_201_CREATED,
            )

        except MediaError as e:
            logger.warning("PlaceOrder rejected media on %s: %s", e.field, e)
            return validation_error_response({e.field or "media": [str(e)]})

        except Exception:
            logger.exception("PlaceOrder failed")
            return error_response("Failed to place order", status.HTTP_500_INTERNAL_SERVER_ERROR)


class CustomerOrderDetailAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        order = _own_orders(request.user).filter(pk=pk).first()
        if order is None:
            return not_found_response("Order not found")
        return success_response("Order retrieved successfully", _serialize_order(order, request))


# -----------------------
# Admin views
# -----------------------

class AdminOrderListAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {"GET": "manage-orders"}

    def get(self, request):
        qs = order_queryset().select_related("updated_by")
        order_status = request.query_params.get("status")
        if order_status:
            qs = qs.filter(status=order_status)

        per_page = _options().get("ORDERS_PER_PAGE", 10)
        orders, pagination = paginate(qs, request, per_page=per_page)
        return success_response("Orders retrieved successfully", {
            "data": [_serialize_order(o, request) for o in orders],
            "pagination": pagination,
        })


class AdminOrderDetailAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {
        "GET": "manage-orders",
        "PUT": "manage-orders",
        "PATCH": "manage-orders",
    }

    def get(self, request, pk):
        order = order_queryset().filter(pk=pk).first()
        if order is None:
            return not_found_response("Order not found")
        return success_response("Order retrieved successfully", _serialize_order(order, request))

    def put(self, request, pk):
        return self._update(request, pk)

    def patch(self, request, pk):
        return self._update(request, pk)

    def _update(self, request, pk):
        order = Order.objects.filter(pk=pk).first()
        if order is None:
            return not_found_response("Order not found")

        serializer = OrderUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data

        errors = {}
        errors.update(_unknown_ids(data.get("items") or [], set(order.items.values_list("pk", flat=True)), "items"))
        errors.update(_unknown_ids(data.get("payments") or [], set(order.payments.values_list("pk", flat=True)), "payments"))
        if errors:
            return validation_error_response(errors)

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=pk)
                update_order(order, data, acting_user=request.user)

            order = order_queryset().get(pk=pk)
            return success_response("Order updated successfully", _serialize_order(order, request))

        except Exception:
            logger.exception("UpdateOrder #%s failed", pk)
            return error_response("Failed to update order", status.HTTP_500_INTERNAL_SERVER_ERROR)
