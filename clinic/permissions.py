"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


def is_admin_user(user) -> bool:
    return bool(user and user.is_authenticated and (getattr(user, "role", None) == "admin" or user.is_superuser))


class IsAdminRole(BasePermission):
    """Allow access only to administrators (role ``admin`` or a Django superuser)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return is_admin_user(getattr(request, "user", None))


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "patient"


class IsDoctorRole(BasePermission):
    """Allow access only to users with the doctor role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "doctor"


class IsApprovedDoctor(BasePermission):
    """Doctor whose registration has been approved by an administrator."""
    message = "Your doctor account is awaiting approval."

    def has_permission(self, request, view) -> bool:
        return _role(request) == "doctor" and getattr(request.user, "status", None) == "approved"
