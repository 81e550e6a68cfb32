"""
Orange Money (Cameroon) web payments.

Flow: OAuth token, then POST /mp/init for a payToken, then POST /mp/pay.
The final status arrives on /api/payments/orange-money/webhook/ or is
polled from /mp/paymentstatus/<payToken>.

Simulation mode applies when credentials are missing, when
ORANGE_MONEY_SIMULATION is set, or after the gateway rejected our
credentials.
"""
import logging
import re
import secrets
import time

import requests
from django.conf import settings
from django.core.cache import cache

from .exceptions import GatewayError, PaymentValidationError
from .mtn_service import normalize_phone

logger = logging.getLogger(__name__)

# 69x, 655-659, 640
ORANGE_PHONE_RE = re.compile(r'^(?:237)?(6(?:9\d|5[5-9]|40)\d{6})$')

INITIATED_STATUSES = ('PENDING', 'INITIATED', 'SUCCESS')
SUCCESS_STATUSES = ('SUCCESSFULL', 'SUCCESSFUL', 'SUCCESS')
FAILED_STATUSES = ('FAILED', 'EXPIRED', 'CANCELLED', 'CANCELED')

BASE36 = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'


def to_base36(number):
    if number == 0:
        return '0'
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(BASE36[rem])
    return ''.join(reversed(digits))


def map_status(raw):
    raw = str(raw or '').upper()
    if raw in SUCCESS_STATUSES:
        return 'SUCCESSFUL'
    if raw in FAILED_STATUSES:
        return 'FAILED'
    return 'PENDING'


class OrangeMoneyService:

    MIN_AMOUNT = 100
    MAX_AMOUNT = 1_000_000
    TOKEN_CACHE_KEY = 'payments:orange:access_token'
    TOKEN_EXPIRY_BUFFER = 60

    # Set once the gateway refuses our credentials; cleared on restart
    _auth_failed = False

    @staticmethod
    def is_configured():
        return all([
            settings.ORANGE_MONEY_USERNAME,
            settings.ORANGE_MONEY_PASSWORD,
            settings.ORANGE_MONEY_AUTH_TOKEN,
            settings.ORANGE_MONEY_CHANNEL_MSISDN,
            settings.ORANGE_MONEY_PIN,
        ])

    @classmethod
    def is_simulation(cls):
        return settings.ORANGE_MONEY_SIMULATION or cls._auth_failed or not cls.is_configured()

    @staticmethod
    def validate_phone(number):
        return bool(ORANGE_PHONE_RE.match(normalize_phone(number)))

    @staticmethod
    def format_phone(number):
        """Local 9-digit MSISDN as expected by /mp/pay."""
        match = ORANGE_PHONE_RE.match(normalize_phone(number))
        if not match:
            raise PaymentValidationError('Numéro Orange Money invalide', code='INVALID_PHONE')
        return match.group(1)

    @classmethod
    def validate_amount(cls, amount):
        if amount < cls.MIN_AMOUNT:
            raise PaymentValidationError(
                f'Montant minimum: {cls.MIN_AMOUNT} FCFA', code='AMOUNT_TOO_LOW')
        if amount > cls.MAX_AMOUNT:
            raise PaymentValidationError(
                f'Montant maximum: {cls.MAX_AMOUNT} FCFA', code='AMOUNT_TOO_HIGH')

    @staticmethod
    def generate_order_id():
        return f'EDU-OM-{to_base36(int(time.time() * 1000))}-{secrets.token_hex(4).upper()}'

    @classmethod
    def _get_token(cls):
        """Access token, or None when the gateway refused our credentials."""
        token = cache.get(cls.TOKEN_CACHE_KEY)
        if token:
            return token

        try:
            response = requests.post(
                settings.ORANGE_MONEY_TOKEN_URL,
                auth=(settings.ORANGE_MONEY_USERNAME, settings.ORANGE_MONEY_PASSWORD),
                data={'grant_type': 'client_credentials'},
                timeout=30,
            )
        except requests.RequestException as e:
            logger.exception(f'Orange Money token request failed: {e}')
            raise GatewayError('Orange Money injoignable')

        if response.status_code in (400, 401, 403):
            logger.error(f'Orange Money rejected credentials ({response.status_code}), switching to simulation')
            cls._auth_failed = True
            return None

        try:
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.exception(f'Orange Money token response invalid: {e}')
            raise GatewayError('Authentification Orange Money impossible')

        token = data['access_token']
        ttl = int(data.get('expires_in', 3600)) - cls.TOKEN_EXPIRY_BUFFER
        cache.set(cls.TOKEN_CACHE_KEY, token, max(ttl, 30))
        return token

    @staticmethod
    def _headers(token):
        return {
            'Authorization': f'Bearer {token}',
            'X-AUTH-TOKEN': settings.ORANGE_MONEY_AUTH_TOKEN,
            'Content-Type': 'application/json',
        }

    @staticmethod
    def _url(path):
        return f"{settings.ORANGE_MONEY_API_URL.rstrip('/')}{path}"

    @staticmethod
    def _simulated_payment(payment):
        logger.warning(f'Orange Money in simulation mode for {payment.external_id}')
        return {
            'success': True,
            'pay_token': f'SIM-PT-{secrets.token_hex(8).upper()}',
            'transaction_id': f'SIM-{secrets.token_hex(6).upper()}',
            'status': 'PENDING',
            'message': 'Simulation: paiement Orange Money initié',
            'simulated': True,
        }

    @classmethod
    def initiate_payment(cls, payment):
        """
        Start a web payment for ``payment``.

        Returns {'success', 'pay_token', 'transaction_id', 'status',
        'message', 'simulated'}. Raises PaymentValidationError on a bad
        amount or phone number.
        """
        cls.validate_amount(payment.amount)
        subscriber = cls.format_phone(payment.phone_number)

        if cls.is_simulation():
            return cls._simulated_payment(payment)

        token = cls._get_token()
        if token is None:
            return cls._simulated_payment(payment)
        headers = cls._headers(token)

        try:
            response = requests.post(cls._url('/mp/init'), headers=headers, timeout=30)
            response.raise_for_status()
            pay_token = response.json()['data']['payToken']

            payload = {
                'subscriberMsisdn': subscriber,
                'channelUserMsisdn': settings.ORANGE_MONEY_CHANNEL_MSISDN,
                'amount': str(payment.amount),
                'orderId': payment.external_id,
                'payToken': pay_token,
                'pin': settings.ORANGE_MONEY_PIN,
                'description': f'Educafric {payment.plan_id}',
                'notifUrl': f'{settings.SITE_URL}/api/payments/orange-money/webhook/',
            }
            response = requests.post(cls._url('/mp/pay'), json=payload, headers=headers, timeout=30)
            response.raise_for_status()
            data = response.json().get('data') or {}
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.exception(f'Orange Money payment failed for {payment.external_id}: {e}')
            return {'success': False, 'pay_token': '', 'transaction_id': '', 'status': 'FAILED',
                    'message': str(e), 'simulated': False}

        raw_status = str(data.get('status', '')).upper()
        initiated = raw_status in INITIATED_STATUSES
        if not initiated:
            logger.error(f'Orange Money refused {payment.external_id}: {raw_status} {data.get("inittxnmessage")}')
        return {
            'success': initiated,
            'pay_token': pay_token,
            'transaction_id': data.get('txnid') or '',
            'status': raw_status,
            'message': data.get('inittxnmessage') or '',
            'simulated': False,
        }

    @classmethod
    def check_status(cls, pay_token):
        """Returns {'status': SUCCESSFUL|FAILED|PENDING, 'raw_status': str}."""
        if cls.is_simulation() or str(pay_token).startswith('SIM-'):
            return {'status': 'SUCCESSFUL', 'raw_status': 'SUCCESSFULL'}

        token = cls._get_token()
        if token is None:
            return {'status': 'SUCCESSFUL', 'raw_status': 'SUCCESSFULL'}

        try:
            response = requests.get(
                cls._url(f'/mp/paymentstatus/{pay_token}'),
                headers=cls._headers(token),
                timeout=30,
            )
            response.raise_for_status()
            data = response.json().get('data') or {}
        except (requests.RequestException, ValueError) as e:
            logger.exception(f'Orange Money status check failed for {pay_token}: {e}')
            raise GatewayError(str(e))

        raw_status = str(data.get('status', '')).upper()
        return {'status': map_status(raw_status), 'raw_status': raw_status}
