# Standard Library
import random

# Django
from django.conf import settings
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.utils import timezone
from django.utils.text import slugify

# Django REST Framework
from rest_framework import status
from rest_framework.response import Response


def _options():
    return getattr(settings, "STOREFRONT", {})

def format_datetime(dt):
    return dt.strftime('%Y-%m-%d %H:%M:%S') if dt else None

def _now():
    return timezone.now()

def _as_bool(val, default=False):
    if val is None or val == "":
        return default
    s = str(val).strip().lower()
    if s in ("true", "1", "yes", "on"):
        return True
    if s in ("false", "0", "no", "off"):
        return False
    return default

def _money(val):
    return str(val) if val is not None else None

def generate_unique_slug(model, name, instance=None, field="slug"):
    """
    slugify(name); while taken by another row, append a random 4-digit
    suffix to the base slug.
    """
    base_slug = slugify(name)[:240] or "item"
    slug = base_slug
    qs = model.objects.all()
    if instance is not None and instance.pk:
        qs = qs.exclude(pk=instance.pk)
    while qs.filter(**{field: slug}).exists():
        slug = f"{base_slug}-{random.randint(1000, 9999)}"
    return slug


# -----------------------
# Response envelope
# -----------------------

def success_response(message, data=None, status_code=status.HTTP_200_OK):
    return Response({
        "success": True,
        "status": status_code,
        "message": message,
        "data": data,
    }, status=status_code)

def error_response(message, status_code=status.HTTP_400_BAD_REQUEST, errors=None):
    body = {
        "success": False,
        "status": status_code,
        "message": message,
    }
    if errors is not None:
        body["errors"] = errors
    return Response(body, status=status_code)

def validation_error_response(errors, message="Validation failed"):
    return error_response(message, status.HTTP_422_UNPROCESSABLE_ENTITY, errors=errors)

def not_found_response(message="Not found"):
    return error_response(message, status.HTTP_404_NOT_FOUND)


# -----------------------
# Pagination
# -----------------------

def paginate(queryset, request, per_page=15, max_per_page=100):
    """
    Return (page_object_list, pagination_meta) using ?page= and ?per_page=.
    Out of range pages clamp to the last page.
    """
    try:
        per_page = int(request.query_params.get("per_page", per_page))
    except (TypeError, ValueError):
        pass
    per_page = max(1, min(per_page, max_per_page))

    paginator = Paginator(queryset, per_page)
    page_number = request.query_params.get("page", 1)
    try:
        page = paginator.page(page_number)
    except PageNotAnInteger:
        page = paginator.page(1)
    except EmptyPage:
        page = paginator.page(paginator.num_pages)

    total = paginator.count
    meta = {
        "current_page": page.number,
        "last_page": paginator.num_pages,
        "per_page": per_page,
        "total": total,
        "from": page.start_index() if total else None,
        "to": page.end_index() if total else None,
        "has_more_pages": page.has_next(),
    }
    return list(page.object_list), meta
