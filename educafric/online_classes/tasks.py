"""
Celery tasks for online classes.
"""
import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .services import SchedulerService

logger = logging.getLogger(__name__)


@shared_task
def generate_recurring_sessions():
    """
    Keep every active recurrence filled a few weeks ahead.

    Runs daily through Celery Beat. Generation is idempotent, so a rerun
    after a failure creates nothing twice.
    """
    weeks = getattr(settings, 'RECURRENCE_WEEKS_AHEAD', 4)
    created = SchedulerService.extend_all_recurrences(weeks_ahead=weeks)
    if created:
        logger.info(f'[online_classes] {created} recurring sessions generated')
    return {
        'sessions_created': created,
        'weeks_ahead': weeks,
        'timestamp': timezone.now().isoformat(),
    }


@shared_task
def expire_online_class_activations():
    expired = SchedulerService.expire_activations()
    if expired:
        logger.info(f'[online_classes] {expired} activations expired')
    return {
        'expired': expired,
        'timestamp': timezone.now().isoformat(),
    }
