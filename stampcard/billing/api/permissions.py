from rest_framework import permissions

from stampcard.billing.sessions import AdminSession


class HasAdminSession(permissions.BasePermission):
    """
    Staff user with a live super-admin session (see sessions.AdminSession).
    """

    message = "Admin session missing or expired. Start a new admin session."

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not (user and user.is_authenticated and user.is_staff):
            return False
        return AdminSession.load(request) is not None
