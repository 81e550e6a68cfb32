"""
Health check endpoints used by the load balancer and the orchestrator.
"""
import os
import time

from django.conf import settings
from django.db import connection
from django.http import JsonResponse


def health_check(request):
    """
    Full health check.

    Checks the database connection, the presence of critical settings and
    whether the log directory is writable. Returns 200 or 503.
    """
    status = {
        'status': 'healthy',
        'timestamp': time.time(),
        'version': getattr(settings, 'VERSION', '1.0.0'),
        'checks': {}
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
        status['checks']['database'] = 'ok'
    except Exception as e:
        status['status'] = 'unhealthy'
        status['checks']['database'] = f'error: {str(e)[:100]}'

    missing = [name for name in ('SECRET_KEY', 'ALLOWED_HOSTS', 'AUTH_USER_MODEL') if not getattr(settings, name, None)]
    if missing:
        status['status'] = 'unhealthy'
        status['checks']['settings'] = f'missing: {", ".join(missing)}'
    else:
        status['checks']['settings'] = 'ok'

    log_dir = getattr(settings, 'LOG_DIR', os.path.join(settings.BASE_DIR, 'logs'))
    if not os.path.exists(log_dir):
        status['checks']['logs'] = 'directory missing (non-critical)'
    elif os.access(log_dir, os.W_OK):
        status['checks']['logs'] = 'ok'
    else:
        status['checks']['logs'] = 'not writable'

    http_status = 200 if status['status'] == 'healthy' else 503
    return JsonResponse(status, status=http_status)


def ready_check(request):
    """Readiness probe: the app can serve requests once the DB answers."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        return JsonResponse({'ready': True})
    except Exception:
        return JsonResponse({'ready': False}, status=503)


def live_check(request):
    return JsonResponse({'alive': True, 'timestamp': time.time()})
