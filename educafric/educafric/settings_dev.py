"""
Development settings - local machine
"""
from .settings import *  # noqa: F401,F403

FEATURE_MOBILE_MONEY = True
FEATURE_SMS_NOTIFICATIONS = False
ORANGE_MONEY_SIMULATION = True

DEBUG = True
ALLOWED_HOSTS = ['*']

FRONTEND_URL = 'http://localhost:5000'

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
