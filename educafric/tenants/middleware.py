"""
School middleware: resolves the school from the request host.

  1. lycee-joss.educafric.com → School(slug='lycee-joss')   subdomain
  2. educafric.com             → no school (resolved later from membership)
  3. localhost:5000            → X-School-ID header (development only)

Security: on non-local hosts the X-School-ID header is IGNORED, the hostname
alone selects the school. The resolved school is also stored in a contextvar
for code that has no request (signals, services).
"""

import logging
import time

from django.conf import settings as django_settings
from django.db import DatabaseError

from .context import clear_current_school, set_current_school

logger = logging.getLogger(__name__)

_CACHE_TTL = getattr(django_settings, 'SCHOOL_CACHE_TTL', 300)


class SchoolMiddleware:
    """
    Place AFTER AuthenticationMiddleware.

    Sets request.school (School or None). Memberships are resolved lazily by
    tenants.mixins.get_request_membership, since JWT users are only known once
    DRF has authenticated the request.
    """

    # key → (school, timestamp)
    _school_cache = {}

    DEV_HOSTS = {'localhost', '127.0.0.1', '0.0.0.0'}

    SKIP_PATHS = ('/admin/', '/api/health/')

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        school = self._resolve_school(request)
        request.school = school
        set_current_school(school)

        try:
            response = self.get_response(request)
        finally:
            clear_current_school()

        return response

    def _resolve_school(self, request):
        if request.path.startswith(self.SKIP_PATHS):
            return None

        host = request.get_host().split(':')[0].lower()

        if host in self.DEV_HOSTS:
            header_slug = request.META.get('HTTP_X_SCHOOL_ID', '').strip()
            if header_slug:
                return self._cached(f'slug:{header_slug}', lambda: self._lookup_slug(header_slug))
            return None

        header_slug = request.META.get('HTTP_X_SCHOOL_ID', '')
        if header_slug:
            logger.warning(
                'X-School-ID header "%s" ignored for non-local host "%s"',
                header_slug, host,
            )

        return self._cached(f'host:{host}', lambda: self._lookup_host(host))

    def _cached(self, key, loader):
        cached = self._school_cache.get(key)
        if cached is not None:
            school, ts = cached
            if (time.monotonic() - ts) < _CACHE_TTL:
                return school
            del self._school_cache[key]

        school = loader()
        self._school_cache[key] = (school, time.monotonic())
        return school

    def _lookup_slug(self, slug):
        from .models import School
        try:
            return School.objects.filter(slug=slug, status=School.Status.ACTIVE).first()
        except DatabaseError as e:
            logger.error(f'School lookup by slug {slug} failed: {e}')
            return None

    def _lookup_host(self, host):
        platform_domains = getattr(django_settings, 'PLATFORM_DOMAINS', [])
        if host in platform_domains:
            return None

        for domain in platform_domains:
            suffix = f'.{domain}'
            if host.endswith(suffix):
                slug = host[:-len(suffix)]
                school = self._lookup_slug(slug)
                if school is None:
                    logger.warning(f'School not found for subdomain: {slug}')
                return school

        logger.info(f'Unknown host {host}, no school resolved')
        return None

    @classmethod
    def clear_cache(cls):
        cls._school_cache.clear()
