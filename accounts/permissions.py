"""
Custom permissions for role-based access
"""
from rest_framework import permissions


class IsAdmin(permissions.BasePermission):
    """Permission check for admin role"""

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'admin'
        )


class IsAdminOrViewer(permissions.BasePermission):
    """
    Admins get full access; special viewers may only read.
    """

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        if request.user.role == 'admin':
            return True
        return request.user.role == 'special_viewer' and request.method in permissions.SAFE_METHODS


class IsTrainee(permissions.BasePermission):
    """Permission check for trainee role"""

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'trainee'
        )
