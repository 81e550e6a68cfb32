"""
URL configuration for the Educafric backend.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path

from .health import health_check, live_check, ready_check


def root(request):
    return JsonResponse({'status': 'ok', 'service': 'educafric_backend'})


urlpatterns = [
    path('', root, name='root'),
    path('admin/', admin.site.urls),

    # Probes
    path('api/health/', health_check, name='health'),
    path('api/health/ready/', ready_check, name='health-ready'),
    path('api/health/live/', live_check, name='health-live'),

    path('api/auth/', include('accounts.urls')),
    path('api/schools/', include('tenants.urls')),
    path('api/notifications/', include('notifications.urls')),
    path('api/messaging/', include('messaging.urls')),
    path('api/online-classes/', include('online_classes.urls')),
    path('api/geolocation/', include('geolocation.urls')),
    path('api/payments/', include('payments.urls')),
    path('api/bulletins/', include('bulletins.urls')),
]
