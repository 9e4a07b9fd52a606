# Standard Library
import logging

# Django
from django.db import transaction
from django.db.models import Count, ProtectedError

# Django REST Framework
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

# Local
from .models import Category
from .permissions import HasCapability
from .serializers import CategorySerializer
from .utilities import (
    error_response,
    format_datetime,
    generate_unique_slug,
    not_found_response,
    success_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

WRITE_CAPABILITIES = {
    "POST": "manage-categories",
    "PUT": "manage-categories",
    "PATCH": "manage-categories",
    "DELETE": "manage-categories",
}


def _serialize_category(category):
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "products_count": getattr(category, "products_count", None),
        "created_at": format_datetime(category.created_at),
        "updated_at": format_datetime(category.updated_at),
    }


def save_category(data, existing_category=None):
    category = existing_category or Category()
    if "name" in data:
        category.name = data["name"].strip()
    if data.get("slug"):
        category.slug = data["slug"]
    elif category.pk is None or "name" in data:
        category.slug = generate_unique_slug(Category, category.name, instance=category)
    category.save()
    return category


class CategoryListCreateAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = WRITE_CAPABILITIES

    def get(self, request):
        categories = Category.objects.annotate(products_count=Count("products"))
        return success_response(
            "Categories retrieved successfully",
            [_serialize_category(c) for c in categories],
        )

    def post(self, request):
        serializer = CategorySerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            with transaction.atomic():
                category = save_category(serializer.validated_data)
            logger.info("Category '%s' (#%s) created.", category.name, category.pk)
            return success_response(
                "Category created successfully", _serialize_category(category), status.HTTP_201_CREATED,
            )
        except Exception:
            logger.exception("CreateCategory failed")
            return error_response("Failed to create category", status.HTTP_500_INTERNAL_SERVER_ERROR)


class CategoryDetailAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = WRITE_CAPABILITIES

    def _get(self, pk):
        return Category.objects.annotate(products_count=Count("products")).filter(pk=pk).first()

    def get(self, request, pk):
        category = self._get(pk)
        if category is None:
            return not_found_response("Category not found")
        return success_response("Category retrieved successfully", _serialize_category(category))

    def put(self, request, pk):
        return self._update(request, pk, partial=False)

    def patch(self, request, pk):
        return self._update(request, pk, partial=True)

    def _update(self, request, pk, partial):
        category = self._get(pk)
        if category is None:
            return not_found_response("Category not found")
        serializer = CategorySerializer(category, data=request.data, partial=partial)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            with transaction.atomic():
                category = save_category(serializer.validated_data, existing_category=category)
            return success_response("Category updated successfully", _serialize_category(category))
        except Exception:
            logger.exception("UpdateCategory #%s failed", pk)
            return error_response("Failed to update category", status.HTTP_500_INTERNAL_SERVER_ERROR)

    def delete(self, request, pk):
        category = Category.objects.filter(pk=pk).first()
        if category is None:
            return not_found_response("Category not found")
        try:
            with transaction.atomic():
                category.delete()
            return success_response("Category deleted successfully")
        except ProtectedError:
            return validation_error_response(
                {"category": ["Category still has products and cannot be deleted."]},
                message="Category is in use",
            )
        except Exception:
            logger.exception("DeleteCategory #%s failed", pk)
            return error_response("Failed to delete category", status.HTTP_500_INTERNAL_SERVER_ERROR)
