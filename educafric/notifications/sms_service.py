"""
SMS delivery through the Vonage (Nexmo) REST SMS API.

API: https://developer.vonage.com/en/api/sms
"""
import logging
import re

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

CAMEROON_PREFIX = '237'


def normalize_cameroon_phone(phone):
    """
    237XXXXXXXXX for Cameroon mobile numbers, digits only otherwise.

    '677 12 34 56' and '6 77 12 34 56' → '237677123456'
    '+237677123456' → '237677123456'
    """
    digits = re.sub(r'\D', '', phone or '')
    if digits.startswith('00'):
        digits = digits[2:]
    if len(digits) == 9 and digits.startswith('6'):
        return CAMEROON_PREFIX + digits
    return digits


class SMSService:
    """Send SMS via Vonage. Disabled when the API key or secret is missing."""

    def __init__(self):
        self.api_key = getattr(settings, 'VONAGE_API_KEY', '')
        self.api_secret = getattr(settings, 'VONAGE_API_SECRET', '')
        self.sender = getattr(settings, 'VONAGE_SMS_FROM', 'EDUCAFRIC')
        self.api_url = getattr(settings, 'VONAGE_SMS_URL', 'https://rest.nexmo.com/sms/json')
        self.enabled = bool(self.api_key and self.api_secret)

    def send_sms(self, phone, text):
        """
        Returns:
            dict: {'success': bool, 'message_id': str} or {'success': False, 'error': str}
        """
        if not self.enabled:
            logger.warning('Vonage SMS not configured. SMS not sent.')
            return {'success': False, 'error': 'SMS service not configured'}

        to = normalize_cameroon_phone(phone)
        if not to:
            return {'success': False, 'error': 'Numéro de téléphone invalide'}

        try:
            response = requests.post(
                self.api_url,
                data={
                    'api_key': self.api_key,
                    'api_secret': self.api_secret,
                    'from': self.sender,
                    'to': to,
                    'text': text,
                    'type': 'unicode',
                },
                timeout=30,
            )
            response.raise_for_status()
            result = response.json()
        except requests.RequestException as e:
            logger.error(f'Network error sending SMS to {to[:6]}***: {e}')
            return {'success': False, 'error': f'Erreur réseau: {e}'}
        except ValueError:
            logger.error('Vonage returned a non-JSON response')
            return {'success': False, 'error': 'Réponse invalide du fournisseur SMS'}

        messages = result.get('messages') or []
        if messages and str(messages[0].get('status')) == '0':
            message_id = messages[0].get('message-id')
            logger.info(f'SMS sent, message_id={message_id}')
            return {'success': True, 'message_id': message_id}

        error = messages[0].get('error-text') if messages else 'Empty response'
        logger.error(f'Vonage SMS error: {error}')
        return {'success': False, 'error': error}
