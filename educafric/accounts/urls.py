from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView, TokenVerifyView

from . import views

router = DefaultRouter()
router.register('parent-relations', views.ParentStudentRelationViewSet, basename='parent-relation')

urlpatterns = [
    path('register/', views.RegisterView.as_view(), name='register'),
    path('token/', views.EducafricTokenObtainPairView.as_view(), name='token-obtain'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('token/verify/', TokenVerifyView.as_view(), name='token-verify'),
    path('me/', views.MeView.as_view(), name='me'),
    path('children/', views.ChildrenView.as_view(), name='children'),
    path('', include(router.urls)),
]
