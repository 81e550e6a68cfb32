from django.conf import settings
from rest_framework.permissions import BasePermission


class OnlineClassesEnabled(BasePermission):

    message = 'Le module cours en ligne est désactivé.'

    def has_permission(self, request, view):
        return getattr(settings, 'FEATURE_ONLINE_CLASSES', False)
