from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter()
router.register('conversations', views.ConversationViewSet, basename='conversation')

urlpatterns = [
    path('contacts/', views.ContactListView.as_view(), name='messaging-contacts'),
    path('unread-count/', views.UnreadCountView.as_view(), name='messaging-unread-count'),
    path('', include(router.urls)),
]
