"""
Custom permission classes for deals app.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsSupplierOrReadOnly(BasePermission):
    """
    Anyone may read deals; only suppliers and staff may publish them.

    Usage:
        class DealViewSet(viewsets.ModelViewSet):
            permission_classes = [IsSupplierOrReadOnly]
    """

    message = 'Only suppliers can publish deals.'

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        user = request.user
        return bool(
            user and user.is_authenticated and (user.is_supplier or user.is_staff)
        )


class CanManageDeal(BasePermission):
    """
    Permission to update a deal or simulate its pricing.

    Allows if the user is staff or the deal's supplier.
    """

    message = 'You do not have permission to manage this deal.'

    def has_object_permission(self, request, view, obj):
        user = request.user
        if user.is_staff:
            return True
        return obj.supplier_id is not None and obj.supplier_id == user.id
