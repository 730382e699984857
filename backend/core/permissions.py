from rest_framework.permissions import BasePermission


def IsAllowed(app_label):
    """
    Permission class factory for module-level access.

    Superusers and staff always pass; other users need at least one model
    permission in ``app_label`` (directly or through a group).
    """
    class _IsAllowed(BasePermission):
        message = f'You do not have access to {app_label}.'

        def has_permission(self, request, view):
            user = request.user
            if not user or not user.is_authenticated:
                return False
            if user.is_superuser or user.is_staff:
                return True
            return user.has_module_perms(app_label)

    _IsAllowed.__name__ = f'IsAllowed[{app_label}]'
    return _IsAllowed
