"""
School-aware permissions for DRF.
"""
from rest_framework.permissions import BasePermission

from .mixins import get_request_membership


class IsSchoolMember(BasePermission):
    """The user must be an active member of the current school."""

    message = 'Vous n\'êtes pas membre de cet établissement.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return get_request_membership(request) is not None


class IsSchoolDirector(BasePermission):
    """Director or admin of the current school."""

    message = 'Accès réservé à la direction de l\'établissement.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        membership = get_request_membership(request)
        return membership is not None and membership.is_director


class IsSchoolStaff(BasePermission):
    """Director, admin or teacher of the current school."""

    message = 'Accès réservé au personnel de l\'établissement.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        membership = get_request_membership(request)
        return membership is not None and membership.is_staff_member


class IsPlatformAdmin(BasePermission):
    """Educafric platform administrator (not a school admin)."""

    message = 'Accès réservé aux administrateurs de la plateforme.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.is_staff or getattr(user, 'role', None) == 'admin'
