"""
Celery tasks for geolocation monitoring.
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .models import LocationPing
from .services import AlertService

logger = logging.getLogger(__name__)


@shared_task
def monitor_extended_absences():
    """
    Sweep students still outside their safe zones.

    Runs every 2 minutes through Celery Beat; devices that stopped sending
    pings still produce extended-absence alerts for the guardians.
    """
    if not getattr(settings, 'FEATURE_GEOLOCATION', False):
        return {'skipped': True}

    created = AlertService.check_extended_absences()
    if created:
        logger.warning(f'[geolocation] {created} extended absence alerts raised')
    return {
        'alerts_created': created,
        'timestamp': timezone.now().isoformat(),
    }


@shared_task
def purge_location_history(days=90):
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = LocationPing.objects.filter(recorded_at__lt=cutoff).delete()
    logger.info(f'[geolocation] {deleted} location pings older than {days} days deleted')
    return {'deleted': deleted}
