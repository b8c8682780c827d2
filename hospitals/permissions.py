"""
Permission classes for hospital-scoped endpoints.
"""
from rest_framework.permissions import BasePermission


class HasHospital(BasePermission):
    """The user must be bound to a hospital (the hospital the session acts as)."""
    message = 'Register or link a hospital first.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "hospital_id", None))

