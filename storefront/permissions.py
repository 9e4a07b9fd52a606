# storefront/permissions.py
from rest_framework.permissions import BasePermission


def _is_staff(user):
    return bool(user and user.is_authenticated and (user.is_staff or user.is_superuser))


# capability name -> predicate(user)
CAPABILITIES = {
    "create-products": _is_staff,
    "update-products": _is_staff,
    "delete-products": _is_staff,
    "manage-categories": _is_staff,
    "manage-orders": _is_staff,
    "manage-payments": _is_staff,
    "manage-contacts": _is_staff,
    "view-subscribers": _is_staff,
}


def user_can(user, capability):
    check = CAPABILITIES.get(capability)
    return bool(check and check(user))


class HasCapability(BasePermission):
    """
    Per-method capability gate. A view declares e.g.

        required_capabilities = {"POST": "create-products"}

    and methods without an entry are let through.
    """
    message = "Unauthorized access"

    def has_permission(self, request, view):
        capability = getattr(view, "required_capabilities", {}).get(request.method)
        if capability is None:
            return True
        return user_can(request.user, capability)


class IsSelfOrStaff(BasePermission):
    message = "Unauthorized access"

    def has_object_permission(self, request, view, obj):
        return _is_staff(request.user) or obj.pk == request.user.pk
