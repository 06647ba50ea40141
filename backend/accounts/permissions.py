from rest_framework.permissions import BasePermission

from .models import User


class _RolePermission(BasePermission):
    """
    Allows access only to authenticated users with a given role.
    Keeps role check logic centralized.
    """
    role = None

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsFamily(_RolePermission):
    message = "Only families can do this"
    role = User.ROLE_FAMILY


class IsCaregiver(_RolePermission):
    message = "Only caregivers can do this"
    role = User.ROLE_CAREGIVER


class IsPlatformAdmin(BasePermission):
    """Admin role or Django staff."""
    message = "Admin access required"

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return user.is_staff or getattr(user, "role", None) == User.ROLE_ADMIN
