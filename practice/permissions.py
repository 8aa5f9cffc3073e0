"""
Permission classes for the practice API.
"""
from rest_framework.permissions import BasePermission

from practice.authentication import CRON_PRINCIPAL


def _has_practitioner(user) -> bool:
    return bool(user and user.is_authenticated and hasattr(user, 'practitioner'))


class IsPractitioner(BasePermission):
    """Authenticated user with a practitioner profile."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_practitioner(getattr(request, 'user', None))


class IsCron(BasePermission):
    """Loopback scheduler holding the cron secret."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return request.auth == CRON_PRINCIPAL


class IsCronOrPractitioner(BasePermission):
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return request.auth == CRON_PRINCIPAL or _has_practitioner(getattr(request, 'user', None))
