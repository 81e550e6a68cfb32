"""
Staging settings - stage.educafric.com
"""
from .settings import *  # noqa: F401,F403

DEBUG = False

PLATFORM_DOMAINS = ['stage.educafric.com']
FRONTEND_URL = 'https://stage.educafric.com'
SITE_URL = 'https://stage.educafric.com'

# Passerelles en sandbox sur staging
MTN_MOMO_ENVIRONMENT = 'sandbox'
ORANGE_MONEY_SIMULATION = True

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
