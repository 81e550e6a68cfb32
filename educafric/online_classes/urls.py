from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register('courses', views.OnlineCourseViewSet, basename='online-course')
router.register('sessions', views.ClassSessionViewSet, basename='class-session')
router.register('recurrences', views.ClassRecurrenceViewSet, basename='class-recurrence')
router.register('activations', views.OnlineClassActivationViewSet, basename='online-class-activation')

urlpatterns = [
    path('teacher-sessions/', views.TeacherSessionsView.as_view(), name='teacher-sessions'),
    path('', include(router.urls)),
]
