from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register('members', views.SchoolMembershipViewSet, basename='school-member')

urlpatterns = [
    path('current/', views.CurrentSchoolView.as_view(), name='school-current'),
    path('', include(router.urls)),
]
