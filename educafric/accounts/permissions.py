"""
Account-type permissions (the role stored on the user, not the school role).
"""
from rest_framework import permissions


class IsParent(permissions.BasePermission):

    message = 'Accès réservé aux parents'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'parent'
        )


class IsStudent(permissions.BasePermission):

    message = 'Accès réservé aux élèves'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'student'
        )


class IsTeacher(permissions.BasePermission):

    message = 'Accès réservé aux enseignants'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role in ('teacher', 'freelancer')
        )
