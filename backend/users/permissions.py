from rest_framework.permissions import SAFE_METHODS, BasePermission

from .models import STAFF_ROLES, UserRole


class IsStaffRole(BasePermission):
    """Allow staff, owner or superadmin (including superuser)."""

    def has_permission(self, request, view):
        user = request.user
        role = getattr(user, "role", None)
        return bool(
            user
            and user.is_authenticated
            and (user.is_superuser or role in STAFF_ROLES)
        )


class IsOwnerRoleOrReadOnly(BasePermission):
    """Reads for any authenticated user, writes for owners and superadmins."""

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if request.method in SAFE_METHODS:
            return True
        role = getattr(user, "role", None)
        return user.is_superuser or role in (UserRole.OWNER, UserRole.SUPERADMIN)


class IsStaffRoleOrReadOnly(BasePermission):
    """Reads for any authenticated user, writes for staff roles."""

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if request.method in SAFE_METHODS:
            return True
        return user.is_superuser or getattr(user, "role", None) in STAFF_ROLES
