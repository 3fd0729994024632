from rest_framework import permissions


class HasAlertAccess(permissions.BasePermission):
    message = "Insufficient permissions to access alerts"
    code = "INSUFFICIENT_PERMISSIONS"

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, "has_alert_access", False))
