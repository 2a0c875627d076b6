"""
Role based permission classes for the dispatch API.

These only gate endpoints by role.  Whether the caller owns the specific
request, hospital binding or assignment is checked by the service layer.
"""
from rest_framework.permissions import BasePermission


def _has_role(request, *roles) -> bool:
    user = getattr(request, "user", None)
    return bool(user and user.is_authenticated and getattr(user, "role", None) in roles)


class IsRequesterRole(BasePermission):
    """Allow access only to users who raise emergency requests."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_role(request, "user")


class IsHospitalRole(BasePermission):
    """Allow access only to hospital accounts with a hospital profile."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_role(request, "hospital") and hasattr(request.user, "hospital")


class IsDriverRole(BasePermission):
    """Allow access only to driver accounts with a driver profile."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_role(request, "driver") and hasattr(request.user, "driver")
