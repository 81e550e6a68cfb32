"""
Django settings for educafric project.

Values come from environment variables; a local .env file is loaded first
(python-dotenv). Environment-specific overrides live in settings_dev.py and
settings_staging.py.
"""
import os
from datetime import timedelta
from pathlib import Path

from celery.schedules import crontab
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def env_bool(name, default=False):
    return os.environ.get(name, str(default)).lower() in ('true', '1', 'yes')


VERSION = os.environ.get('APP_VERSION', '1.0.0')

SECRET_KEY = os.environ.get('SECRET_KEY', 'django-insecure-educafric-dev-key-change-me')

DEBUG = env_bool('DEBUG', False)

ALLOWED_HOSTS = [h.strip() for h in os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if h.strip()]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'rest_framework',
    'rest_framework_simplejwt',
    'django_celery_beat',

    'tenants',
    'accounts',
    'notifications',
    'messaging',
    'online_classes',
    'geolocation',
    'payments',
    'bulletins',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'tenants.middleware.SchoolMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'educafric.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'educafric.wsgi.application'

# Database: PostgreSQL en production, SQLite en local
if os.environ.get('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('POSTGRES_DB'),
            'USER': os.environ.get('POSTGRES_USER', 'educafric'),
            'PASSWORD': os.environ.get('POSTGRES_PASSWORD', ''),
            'HOST': os.environ.get('POSTGRES_HOST', 'localhost'),
            'PORT': os.environ.get('POSTGRES_PORT', '5432'),
            'CONN_MAX_AGE': int(os.environ.get('POSTGRES_CONN_MAX_AGE', '60')),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

AUTH_USER_MODEL = 'accounts.CustomUser'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'fr'
LANGUAGES = [('fr', 'Français'), ('en', 'English')]
TIME_ZONE = 'Africa/Douala'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ============================================================
# REST framework / JWT
# ============================================================
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_PAGINATION_CLASS': None,
    'DEFAULT_THROTTLE_RATES': {
        'anon': '100/hour',
        'user': '2000/hour',
    },
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=int(os.environ.get('JWT_ACCESS_MINUTES', '60'))),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=int(os.environ.get('JWT_REFRESH_DAYS', '7'))),
    'ROTATE_REFRESH_TOKENS': False,
    'AUTH_HEADER_TYPES': ('Bearer',),
    'USER_ID_FIELD': 'id',
    'USER_ID_CLAIM': 'user_id',
}

# ============================================================
# Multi-school (tenants)
# ============================================================
PLATFORM_DOMAINS = [d.strip() for d in os.environ.get(
    'PLATFORM_DOMAINS', 'educafric.com,www.educafric.com'
).split(',') if d.strip()]
SCHOOL_CACHE_TTL = int(os.environ.get('SCHOOL_CACHE_TTL', '300'))

SITE_URL = os.environ.get('SITE_URL', 'http://localhost:8000')
FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:5000')
DEFAULT_CURRENCY = 'XAF'

# ============================================================
# Feature flags
# ============================================================
FEATURE_ONLINE_CLASSES = env_bool('FEATURE_ONLINE_CLASSES', True)
FEATURE_GEOLOCATION = env_bool('FEATURE_GEOLOCATION', True)
FEATURE_MOBILE_MONEY = env_bool('FEATURE_MOBILE_MONEY', True)
FEATURE_STRIPE = env_bool('FEATURE_STRIPE', True)
FEATURE_SMS_NOTIFICATIONS = env_bool('FEATURE_SMS_NOTIFICATIONS', False)

# ============================================================
# Online classes (Jitsi)
# ============================================================
JITSI_BASE_URL = os.environ.get('JITSI_BASE_URL', 'https://meet.jit.si')
RECURRENCE_WEEKS_AHEAD = int(os.environ.get('RECURRENCE_WEEKS_AHEAD', '4'))

# ============================================================
# Geolocation
# ============================================================
GEOLOCATION_EXTENDED_ABSENCE_MINUTES = 15
GEOLOCATION_EXTENDED_ALERT_INTERVAL_MINUTES = 30
GEOLOCATION_LOW_BATTERY_THRESHOLD = 15

# ============================================================
# Payments
# ============================================================
STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY', '')
STRIPE_PUBLISHABLE_KEY = os.environ.get('STRIPE_PUBLISHABLE_KEY', '')
STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET', '')
STRIPE_XAF_PER_USD = int(os.environ.get('STRIPE_XAF_PER_USD', '600'))

MTN_MOMO_BASE_URL = os.environ.get('MTN_MOMO_BASE_URL', 'https://omapi.ynote.africa')
MTN_MOMO_TOKEN_URL = os.environ.get('MTN_MOMO_TOKEN_URL', 'https://omapi-token.ynote.africa/oauth2/token')
MTN_MOMO_CLIENT_ID = os.environ.get('MTN_MOMO_CLIENT_ID', '')
MTN_MOMO_CLIENT_SECRET = os.environ.get('MTN_MOMO_CLIENT_SECRET', '')
MTN_MOMO_ENVIRONMENT = os.environ.get('MTN_MOMO_ENVIRONMENT', 'sandbox')
MTN_CALLBACK_SECRET = os.environ.get('MTN_CALLBACK_SECRET', '')

ORANGE_MONEY_API_URL = os.environ.get('ORANGE_MONEY_API_URL', 'https://api-s1.orange.cm/omcoreapis/1.0.2')
ORANGE_MONEY_TOKEN_URL = os.environ.get('ORANGE_MONEY_TOKEN_URL', 'https://api.orange.com/oauth/v3/token')
ORANGE_MONEY_USERNAME = os.environ.get('ORANGE_MONEY_USERNAME', '')
ORANGE_MONEY_PASSWORD = os.environ.get('ORANGE_MONEY_PASSWORD', '')
ORANGE_MONEY_AUTH_TOKEN = os.environ.get('ORANGE_MONEY_AUTH_TOKEN', '')
ORANGE_MONEY_CHANNEL_MSISDN = os.environ.get('ORANGE_MONEY_CHANNEL_MSISDN', '')
ORANGE_MONEY_PIN = os.environ.get('ORANGE_MONEY_PIN', '')
ORANGE_MONEY_SIMULATION = env_bool('ORANGE_MONEY_SIMULATION', False)

PENDING_PAYMENT_MAX_AGE_HOURS = int(os.environ.get('PENDING_PAYMENT_MAX_AGE_HOURS', '24'))

# ============================================================
# Notifications
# ============================================================
VONAGE_API_KEY = os.environ.get('VONAGE_API_KEY', '')
VONAGE_API_SECRET = os.environ.get('VONAGE_API_SECRET', '')
VONAGE_SMS_FROM = os.environ.get('VONAGE_SMS_FROM', 'EDUCAFRIC')
VONAGE_SMS_URL = os.environ.get('VONAGE_SMS_URL', 'https://rest.nexmo.com/sms/json')

EMAIL_BACKEND = os.environ.get('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.environ.get('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', '587'))
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = env_bool('EMAIL_USE_TLS', True)
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'Educafric <no-reply@educafric.com>')

# ============================================================
# Celery
# ============================================================
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/1')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = env_bool('CELERY_TASK_ALWAYS_EAGER', False)
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'

CELERY_BEAT_SCHEDULE = {
    'generate-recurring-sessions': {
        'task': 'online_classes.tasks.generate_recurring_sessions',
        'schedule': crontab(hour=2, minute=0),
    },
    'expire-online-class-activations': {
        'task': 'online_classes.tasks.expire_online_class_activations',
        'schedule': crontab(hour=0, minute=30),
    },
    'monitor-extended-absences': {
        'task': 'geolocation.tasks.monitor_extended_absences',
        'schedule': timedelta(minutes=2),
    },
    'purge-location-history': {
        'task': 'geolocation.tasks.purge_location_history',
        'schedule': crontab(hour=3, minute=30, day_of_week='sunday'),
    },
    'sync-pending-mobile-money-payments': {
        'task': 'payments.tasks.sync_pending_mobile_money_payments',
        'schedule': timedelta(minutes=5),
    },
    'expire-subscriptions': {
        'task': 'payments.tasks.expire_subscriptions',
        'schedule': crontab(hour=1, minute=0),
    },
}

# ============================================================
# Logging
# ============================================================
LOG_DIR = BASE_DIR / 'logs'
LOG_DIR.mkdir(exist_ok=True)
LOG_LEVEL = os.environ.get('DJANGO_LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '[{asctime}] {levelname} {name} {process:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': str(LOG_DIR / 'educafric.log'),
            'maxBytes': 10 * 1024 * 1024,
            'backupCount': 5,
            'formatter': 'verbose',
            'encoding': 'utf-8',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
            'propagate': False,
        },
        **{
            app: {
                'handlers': ['console', 'file'],
                'level': LOG_LEVEL,
                'propagate': False,
            }
            for app in (
                'tenants', 'accounts', 'notifications', 'messaging', 'online_classes',
                'geolocation', 'payments', 'bulletins', 'educafric',
            )
        },
    },
}

from .sentry_config import init_sentry  # noqa: E402

init_sentry()
