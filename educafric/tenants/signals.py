"""
School signals: drop the middleware cache whenever a School changes.
"""
import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='tenants.School')
def school_post_save(sender, instance, **kwargs):
    from .middleware import SchoolMiddleware
    SchoolMiddleware.clear_cache()
    logger.info('School cache cleared after save: %s (slug=%s)', instance.name, instance.slug)


@receiver(post_delete, sender='tenants.School')
def school_post_delete(sender, instance, **kwargs):
    from .middleware import SchoolMiddleware
    SchoolMiddleware.clear_cache()
    logger.info('School cache cleared after delete: %s (slug=%s)', instance.name, instance.slug)
