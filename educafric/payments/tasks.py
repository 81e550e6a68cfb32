"""
Celery tasks for payments.
"""
import logging

from celery import shared_task
from django.utils import timezone

from .services import PaymentService

logger = logging.getLogger(__name__)


@shared_task
def sync_pending_mobile_money_payments():
    """
    Poll MTN and Orange Money for payments whose callback never came.

    Runs every 5 minutes through Celery Beat.
    """
    stats = PaymentService.sync_pending_payments()
    if stats['succeeded'] or stats['failed'] or stats['expired']:
        logger.info(f'[payments] pending sync: {stats}')
    return {**stats, 'timestamp': timezone.now().isoformat()}


@shared_task
def expire_subscriptions():
    expired = PaymentService.expire_subscriptions()
    if expired:
        logger.info(f'[payments] {expired} subscriptions expired')
    return {
        'expired': expired,
        'timestamp': timezone.now().isoformat(),
    }
