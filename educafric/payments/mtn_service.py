"""
MTN Mobile Money (Cameroon) collection and disbursement.

Collection:   POST {base}/v1/requesttopay      (X-Reference-Id = our UUID)
Status:       GET  {base}/v1/requesttopay/<reference>
Disbursement: POST {base}/v1/transfer
Balance:      GET  {base}/v1/account/balance

Without credentials the service runs in simulation mode: requests are
accepted with a mock reference and stay PENDING until a callback arrives.
"""
import logging
import random
import re
import string
import time
import uuid

import requests
from django.conf import settings
from django.core.cache import cache

from .exceptions import GatewayError, PaymentValidationError

logger = logging.getLogger(__name__)

# 6XXXXXXXX with MTN prefixes 67x, 65x, 68x; optional 237 country code
MTN_PHONE_RE = re.compile(r'^(?:237)?(6[578]\d{7})$')


def normalize_phone(number):
    return re.sub(r'[\s\-\+\(\)\.]', '', str(number or ''))


class MTNMobileMoneyService:

    TOKEN_CACHE_KEY = 'payments:mtn:access_token'
    TOKEN_EXPIRY_BUFFER = 300

    @staticmethod
    def is_available():
        return bool(settings.MTN_MOMO_CLIENT_ID and settings.MTN_MOMO_CLIENT_SECRET)

    @staticmethod
    def is_simulation():
        return not MTNMobileMoneyService.is_available()

    @staticmethod
    def validate_phone(number):
        return bool(MTN_PHONE_RE.match(normalize_phone(number)))

    @staticmethod
    def format_phone(number):
        match = MTN_PHONE_RE.match(normalize_phone(number))
        if not match:
            raise PaymentValidationError('Numéro MTN invalide', code='INVALID_PHONE')
        return f'237{match.group(1)}'

    @staticmethod
    def generate_external_id(prefix='EDU'):
        rand = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
        return f'{prefix}_{int(time.time() * 1000)}_{rand}'.upper()

    @staticmethod
    def _get_token():
        token = cache.get(MTNMobileMoneyService.TOKEN_CACHE_KEY)
        if token:
            return token

        try:
            response = requests.post(
                settings.MTN_MOMO_TOKEN_URL,
                auth=(settings.MTN_MOMO_CLIENT_ID, settings.MTN_MOMO_CLIENT_SECRET),
                data={'grant_type': 'client_credentials'},
                timeout=30,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.exception(f'MTN token request failed: {e}')
            raise GatewayError('Authentification MTN impossible')

        token = data['access_token']
        ttl = int(data.get('expires_in', 3600)) - MTNMobileMoneyService.TOKEN_EXPIRY_BUFFER
        cache.set(MTNMobileMoneyService.TOKEN_CACHE_KEY, token, max(ttl, 60))
        return token

    @staticmethod
    def _headers(reference=None):
        headers = {
            'Authorization': f'Bearer {MTNMobileMoneyService._get_token()}',
            'X-Target-Environment': settings.MTN_MOMO_ENVIRONMENT,
            'Content-Type': 'application/json',
        }
        if reference:
            headers['X-Reference-Id'] = reference
        return headers

    @staticmethod
    def _url(path):
        return f"{settings.MTN_MOMO_BASE_URL.rstrip('/')}{path}"

    @staticmethod
    def request_payment(payment, message=None):
        """
        Ask the payer to approve a collection.

        Returns {'success', 'reference', 'status', 'message', 'simulated'}.
        """
        reference = str(uuid.uuid4())

        if MTNMobileMoneyService.is_simulation():
            logger.warning(f'MTN not configured, simulating request-to-pay for {payment.external_id}')
            return {
                'success': True,
                'reference': reference,
                'status': 'PENDING',
                'message': 'Simulation: confirmez le paiement sur votre téléphone',
                'simulated': True,
            }

        payload = {
            'amount': str(payment.amount),
            'currency': payment.currency,
            'externalId': payment.external_id,
            'payer': {
                'partyIdType': 'MSISDN',
                'partyId': MTNMobileMoneyService.format_phone(payment.phone_number),
            },
            'payerMessage': message or f'Educafric {payment.plan_id}',
            'payeeNote': payment.external_id,
        }
        try:
            response = requests.post(
                MTNMobileMoneyService._url('/v1/requesttopay'),
                json=payload,
                headers=MTNMobileMoneyService._headers(reference),
                timeout=30,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.exception(f'MTN request-to-pay failed for {payment.external_id}: {e}')
            return {'success': False, 'reference': reference, 'status': 'FAILED', 'message': str(e),
                    'simulated': False}

        logger.info(f'MTN request-to-pay {reference} sent for {payment.external_id}')
        return {
            'success': True,
            'reference': reference,
            'status': 'PENDING',
            'message': 'Confirmez le paiement sur votre téléphone MTN',
            'simulated': False,
        }

    @staticmethod
    def check_status(reference):
        """Returns {'status': SUCCESSFUL|FAILED|PENDING, 'reason': str}."""
        if MTNMobileMoneyService.is_simulation():
            return {'status': 'PENDING', 'reason': ''}

        try:
            response = requests.get(
                MTNMobileMoneyService._url(f'/v1/requesttopay/{reference}'),
                headers=MTNMobileMoneyService._headers(),
                timeout=30,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.exception(f'MTN status check failed for {reference}: {e}')
            raise GatewayError(str(e))

        raw = str(data.get('status', '')).upper()
        if raw == 'SUCCESSFUL':
            status = 'SUCCESSFUL'
        elif raw in ('FAILED', 'REJECTED', 'TIMEOUT'):
            status = 'FAILED'
        else:
            status = 'PENDING'
        reason = data.get('reason') or ''
        if isinstance(reason, dict):
            reason = reason.get('message') or reason.get('code') or ''
        return {'status': status, 'reason': str(reason), 'financial_transaction_id': data.get('financialTransactionId')}

    @staticmethod
    def send_payment(amount, phone, reason=''):
        """Cash-out to an MTN wallet. Platform admins only."""
        if int(amount) <= 0:
            raise PaymentValidationError('Montant invalide', code='INVALID_AMOUNT')
        party_id = MTNMobileMoneyService.format_phone(phone)
        external_id = MTNMobileMoneyService.generate_external_id('EDU_OUT')
        reference = str(uuid.uuid4())

        if MTNMobileMoneyService.is_simulation():
            logger.warning(f'MTN not configured, simulating transfer {external_id}')
            return {'success': True, 'reference': reference, 'external_id': external_id, 'simulated': True}

        payload = {
            'amount': str(int(amount)),
            'currency': settings.DEFAULT_CURRENCY,
            'externalId': external_id,
            'payee': {'partyIdType': 'MSISDN', 'partyId': party_id},
            'payerMessage': reason or 'Educafric',
            'payeeNote': reason or external_id,
        }
        try:
            response = requests.post(
                MTNMobileMoneyService._url('/v1/transfer'),
                json=payload,
                headers=MTNMobileMoneyService._headers(reference),
                timeout=30,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.exception(f'MTN transfer {external_id} failed: {e}')
            raise GatewayError(str(e))

        logger.info(f'MTN transfer {external_id} of {amount} XAF to {party_id} sent')
        return {'success': True, 'reference': reference, 'external_id': external_id, 'simulated': False}

    @staticmethod
    def get_balance():
        if MTNMobileMoneyService.is_simulation():
            return {'availableBalance': '0', 'currency': settings.DEFAULT_CURRENCY, 'simulated': True}
        try:
            response = requests.get(
                MTNMobileMoneyService._url('/v1/account/balance'),
                headers=MTNMobileMoneyService._headers(),
                timeout=30,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.exception(f'MTN balance request failed: {e}')
            raise GatewayError(str(e))
