from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register('devices', views.TrackingDeviceViewSet, basename='tracking-device')
router.register('safe-zones', views.SafeZoneViewSet, basename='safe-zone')
router.register('alerts', views.GeolocationAlertViewSet, basename='geolocation-alert')

urlpatterns = [
    path('', include(router.urls)),
]
