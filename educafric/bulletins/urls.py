from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register('templates', views.BulletinTemplateViewSet, basename='bulletin-template')

urlpatterns = [
    path('element-types/', views.ElementTypesView.as_view(), name='bulletin-element-types'),
    path('compute/', views.ComputeBulletinView.as_view(), name='bulletin-compute'),
    path('', include(router.urls)),
]
