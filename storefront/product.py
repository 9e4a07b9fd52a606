# Standard Library
import logging

# Django
from django.db import IntegrityError, transaction
from django.db.models import Prefetch

# Django REST Framework
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

# Local
from .exceptions import MediaError
from .media import discard_on_commit, media_batch, media_url
from .models import (
    CustomizationImage,
    CustomizationItem,
    Product,
    ProductImage,
)
from .permissions import HasCapability
from .serializers import ProductSerializer
from .utilities import (
    _as_bool,
    _money,
    _options,
    error_response,
    format_datetime,
    generate_unique_slug,
    not_found_response,
    paginate,
    success_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

MAIN_IMAGE_FOLDER = "products/main"
GALLERY_FOLDER = "products/gallery"
CUSTOMIZATION_FOLDER = "products/customizations/{relation}"

BASIC_FIELDS = ("name", "type", "price", "offer_price", "status", "short_description", "description")


# -----------------------
# Helpers
# -----------------------

def product_queryset():
    return (
        Product.objects
        .select_related("category")
        .prefetch_related(
            "images",
            Prefetch("customizations", queryset=CustomizationItem.objects.prefetch_related("images")),
        )
    )

def filter_products(qs, params, by_status=True):
    """?category_id=, ?type=, ?status=, ?search= (name, case-insensitive)."""
    category_id = (params.get("category_id") or "").strip()
    if category_id:
        qs = qs.filter(category_id=int(category_id)) if category_id.isdigit() else qs.none()
    if params.get("type"):
        qs = qs.filter(type=params["type"].strip().lower())
    if by_status and params.get("status") not in (None, ""):
        qs = qs.filter(status=_as_bool(params["status"]))
    if params.get("search"):
        qs = qs.filter(name__icontains=params["search"].strip())
    return qs

def _relation_label(relation):
    return relation.replace("_", " ").title()

def _media_error_response(e):
    return validation_error_response({e.field or "media": [str(e)]})

def _serialize_customizations(product, request):
    grouped = {relation: [] for relation in product.customization_relations()}
    for item in product.customizations.all():
        if item.relation not in grouped:
            continue
        grouped[item.relation].append({
            "id": item.id,
            "name": item.name,
            "image": media_url(request, item.image),
            "images": [
                {"id": img.id, "url": media_url(request, img.image)}
                for img in item.images.all()
            ],
        })
    return grouped

def _serialize_product(product, request):
    category = product.category
    data = {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "type": product.type,
        "price": _money(product.price),
        "offer_price": _money(product.offer_price),
        "final_price": _money(product.final_price),
        "discount_percentage": product.discount_percentage,
        "status": product.status,
        "short_description": product.short_description,
        "description": product.description,
        "image": media_url(request, product.image),
        "gallery_images": [
            {"id": img.id, "url": media_url(request, img.image), "alt": product.name}
            for img in product.images.all()
        ],
        "category": {
            "id": category.id,
            "name": category.name,
            "slug": category.slug,
        } if category else None,
        "created_at": format_datetime(product.created_at),
        "updated_at": format_datetime(product.updated_at),
    }
    if product.is_customizable:
        data["customizations"] = _serialize_customizations(product, request)
    return data


# -----------------------
# Save/Update Functions
# -----------------------

def save_product_basic(data, existing_product=None):
    """
    Create or update the product row from validated data. On update only
    the keys present in `data` are touched.
    """
    product = existing_product or Product()
    old_name = product.name
    for field in BASIC_FIELDS:
        if field in data:
            setattr(product, field, data[field])
    if "category_id" in data:
        product.category = data["category_id"]

    if data.get("slug"):
        product.slug = data["slug"]
    elif product.pk is None or product.name != old_name:
        product.slug = generate_unique_slug(Product, product.name, instance=product)

    product.save()
    return product

def save_main_image(product, value, media):
    if not value:
        return
    old_image = product.image.name if product.image else None
    product.image = media.store(value, MAIN_IMAGE_FOLDER, field="image")
    product.save(update_fields=["image", "updated_at"])
    if old_image:
        discard_on_commit(old_image)

def save_gallery_images(product, values, media, replace=False):
    if replace:
        product.images.all().delete()
    for index, value in enumerate(values or []):
        if not value or not value.strip():
            continue
        path = media.store(value, GALLERY_FOLDER, field=f"images.{index}")
        ProductImage.objects.create(product=product, image=path)

def save_customizations(product, data, media, replace=False):
    """
    Write the customization galleries present in `data`. With `replace`,
    each relation key that is present drops its existing options first, and
    options of relations the product type no longer allows are removed.
    """
    allowed = product.customization_relations()
    if replace:
        product.customizations.exclude(relation__in=allowed).delete()

    for relation in allowed:
        if relation not in data:
            continue
        if replace:
            product.customizations.filter(relation=relation).delete()

        folder = CUSTOMIZATION_FOLDER.format(relation=relation)
        for index, option in enumerate(data[relation] or []):
            field = f"{relation}.{index}"
            image = None
            if option.get("image"):
                image = media.store(option["image"], folder, field=f"{field}.image")
            item = CustomizationItem.objects.create(
                product=product,
                relation=relation,
                name=option.get("name") or f"{_relation_label(relation)} {index + 1}",
                image=image,
                order=index,
            )
            for position, value in enumerate(option.get("images") or []):
                path = media.store(value, folder, field=f"{field}.images.{position}")
                CustomizationImage.objects.create(item=item, image=path)

def delete_product(product):
    # cascades take gallery and customization rows; post_delete handlers
    # queue every owned file for removal after commit
    product.delete()


# -----------------------
# Views
# -----------------------

class ProductListCreateAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {"POST": "create-products"}

    def get(self, request):
        try:
            qs = filter_products(product_queryset(), request.query_params)
            per_page = _options().get("PRODUCTS_PER_PAGE", 15)
            products, pagination = paginate(qs, request, per_page=per_page)
            return success_response("Products retrieved successfully", {
                "data": [_serialize_product(p, request) for p in products],
                "pagination": pagination,
            })
        except Exception:
            logger.exception("ListProducts failed")
            return error_response("Failed to retrieve products", status.HTTP_500_INTERNAL_SERVER_ERROR)

    def post(self, request):
        serializer = ProductSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data

        try:
            with media_batch() as media, transaction.atomic():
                product = save_product_basic(data)
                save_main_image(product, data.get("image"), media)
                save_gallery_images(product, data.get("images"), media)
                save_customizations(product, data, media)

            product = product_queryset().get(pk=product.pk)
            return success_response(
                "Product created successfully",
                _serialize_product(product, request),
                status.HTTP_201_CREATED,
            )

        except MediaError as e:
            logger.warning("CreateProduct rejected media on %s: %s", e.field, e)
            return _media_error_response(e)

        except IntegrityError:
            logger.exception("CreateProduct IntegrityError (rolled back)")
            return error_response("Failed to create product", status.HTTP_400_BAD_REQUEST)

        except Exception:
            logger.exception("CreateProduct failed")
            return error_response("Failed to create product", status.HTTP_500_INTERNAL_SERVER_ERROR)


class ProductDetailAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {
        "PUT": "update-products",
        "PATCH": "update-products",
        "DELETE": "delete-products",
    }

    def get(self, request, pk):
        product = product_queryset().filter(pk=pk).first()
        if product is None:
            return not_found_response("Product not found")
        return success_response("Product retrieved successfully", _serialize_product(product, request))

    def put(self, request, pk):
        return self._update(request, pk, partial=False)

    def patch(self, request, pk):
        return self._update(request, pk, partial=True)

    def _update(self, request, pk, partial):
        product = Product.objects.filter(pk=pk).first()
        if product is None:
            return not_found_response("Product not found")

        serializer = ProductSerializer(product, data=request.data, partial=partial)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data

        try:
            with media_batch() as media, transaction.atomic():
                product = Product.objects.select_for_update().get(pk=pk)
                product = save_product_basic(data, existing_product=product)
                save_main_image(product, data.get("image"), media)
                if "images" in data:
                    save_gallery_images(product, data["images"], media, replace=True)
                save_customizations(product, data, media, replace=True)

            product = product_queryset().get(pk=product.pk)
            return success_response("Product updated successfully", _serialize_product(product, request))

        except Product.DoesNotExist:
            return not_found_response("Product not found")

        except MediaError as e:
            logger.warning("UpdateProduct #%s rejected media on %s: %s", pk, e.field, e)
            return _media_error_response(e)

        except IntegrityError:
            logger.exception("UpdateProduct #%s IntegrityError (rolled back)", pk)
            return error_response("Failed to update product", status.HTTP_400_BAD_REQUEST)

        except Exception:
            logger.exception("UpdateProduct #%s failed", pk)
            return error_response("Failed to update product", status.HTTP_500_INTERNAL_SERVER_ERROR)

    def delete(self, request, pk):
        try:
            with transaction.atomic():
                product = Product.objects.select_for_update().filter(pk=pk).first()
                if product is None:
                    return not_found_response("Product not found")
                delete_product(product)
            return success_response("Product deleted successfully")
        except Exception:
            logger.exception("DeleteProduct #%s failed", pk)
            return error_response("Failed to delete product", status.HTTP_500_INTERNAL_SERVER_ERROR)


# -----------------------
# Public shop
# -----------------------

class ShopListAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        qs = filter_products(product_queryset().filter(status=True), request.query_params, by_status=False)
        per_page = _options().get("PRODUCTS_PER_PAGE", 15)
        products, pagination = paginate(qs, request, per_page=per_page)
        return success_response("Products retrieved successfully", {
            "data": [_serialize_product(p, request) for p in products],
            "pagination": pagination,
        })


class ShopDetailAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, slug):
        product = product_queryset().filter(slug=slug, status=True).first()
        if product is None:
            return not_found_response("Product not found")
        return success_response("Product retrieved successfully", _serialize_product(product, request))
