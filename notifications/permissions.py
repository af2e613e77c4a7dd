from rest_framework.permissions import BasePermission
from notifications.models import RecipientRole

ADMIN_ROLES = {RecipientRole.ADMIN.value, RecipientRole.SUPER_ADMIN.value}


class HasIdentity(BasePermission):
    """A verified bearer token identified the caller"""
    message = 'Authentication credentials were not provided or are invalid.'

    def has_permission(self, request, view):
        return bool(getattr(request, 'user_id', None))


class IsAdminRole(HasIdentity):
    message = 'Admin role required.'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and getattr(request, 'user_role', None) in ADMIN_ROLES
