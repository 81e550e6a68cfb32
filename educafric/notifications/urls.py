from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter()
router.register('', views.NotificationViewSet, basename='notification')

urlpatterns = [
    path('preferences/', views.NotificationPreferenceView.as_view(), name='notification-preferences'),
    path('', include(router.urls)),
]
