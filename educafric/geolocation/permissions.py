from django.conf import settings
from rest_framework.permissions import BasePermission

from tenants.mixins import get_request_school


class GeolocationEnabled(BasePermission):
    """Platform feature flag plus the school's own opt-in."""

    message = 'La géolocalisation n\'est pas activée pour cet établissement.'

    def has_permission(self, request, view):
        if not getattr(settings, 'FEATURE_GEOLOCATION', False):
            return False
        school = get_request_school(request)
        return school is not None and school.geolocation_enabled
