from rest_framework.permissions import BasePermission


class IsOrderStaff(BasePermission):
    """Admin / manager roles (order status updates, reports, stock adjustments)."""

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.is_order_staff
        )
