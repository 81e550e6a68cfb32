"""
Sentry integration.

init_sentry() is called at the end of settings.py. Without SENTRY_DSN it does
nothing, so local development and tests never talk to Sentry.
"""
import logging
import os

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

FILTERED_KEYS = ('password', 'token', 'secret', 'api_key', 'pin', 'card')
WEBHOOK_PATH_PREFIX = '/api/payments/'


def init_sentry():
    sentry_dsn = os.environ.get('SENTRY_DSN', '')

    if not sentry_dsn:
        logger.info("Sentry: DSN not configured, skipping initialization")
        return False

    environment = os.environ.get('DJANGO_ENV', 'production')
    if os.environ.get('DEBUG', 'False').lower() in ('true', '1', 'yes'):
        environment = 'development'

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            DjangoIntegration(transaction_style='url'),
            CeleryIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        environment=environment,
        release=os.environ.get('APP_VERSION', 'unknown'),
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1')),
        send_default_pii=False,
        ignore_errors=['django.security.DisallowedHost'],
        before_send=before_send_callback,
    )

    logger.info(f"Sentry: initialized for {environment} environment")
    return True


def before_send_callback(event, hint):
    """Drop 404s and scrub credentials and webhook payloads before sending."""
    if 'exc_info' in hint:
        exc_type, _, _ = hint['exc_info']
        if exc_type.__name__ == 'Http404':
            return None

    request_data = event.get('request')
    if not request_data:
        return event

    headers = request_data.get('headers')
    if isinstance(headers, dict):
        for header in ('Authorization', 'Stripe-Signature', 'X-Callback-Signature'):
            if header in headers:
                headers[header] = '[FILTERED]'

    # Les webhooks de paiement contiennent des numéros de téléphone et références
    url = str(request_data.get('url', ''))
    if WEBHOOK_PATH_PREFIX in url and ('webhook' in url or 'callback' in url):
        request_data['data'] = '[FILTERED]'
        return event

    data = request_data.get('data')
    if isinstance(data, dict):
        for key in list(data.keys()):
            if any(marker in key.lower() for marker in FILTERED_KEYS):
                data[key] = '[FILTERED]'

    return event
