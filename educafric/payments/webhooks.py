"""
Payment gateway webhooks.

POST /api/payments/stripe/webhook/         Stripe-Signature header
POST /api/payments/mtn/callback/           optional X-Callback-Signature (HMAC-SHA256)
POST /api/payments/orange-money/webhook/
"""
import hashlib
import hmac
import json
import logging

import stripe
from django.conf import settings
from django.db.models import Q
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .exceptions import GatewayUnavailableError
from .models import Payment
from .orange_money_service import map_status
from .services import PaymentService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

MTN_SUCCESS = ('SUCCESSFUL', 'SUCCESS')
MTN_FAILURE = ('FAILED', 'REJECTED')


@csrf_exempt
@require_http_methods(["POST"])
def stripe_webhook(request):
    if not StripeService.is_available():
        return JsonResponse({'error': 'Stripe not configured'}, status=503)

    sig_header = request.headers.get('Stripe-Signature', '')
    try:
        result = StripeService.handle_webhook(request.body, sig_header)
        return JsonResponse({'status': 'ok', **result})

    except stripe.SignatureVerificationError:
        logger.warning("Invalid Stripe webhook signature")
        return JsonResponse({'error': 'Invalid signature'}, status=400)

    except GatewayUnavailableError:
        return JsonResponse({'error': 'Stripe not configured'}, status=503)

    except ValueError:
        logger.error("Invalid JSON in Stripe webhook")
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    except Exception as e:
        logger.exception(f"Stripe webhook error: {e}")
        return JsonResponse({'error': 'Internal error'}, status=500)


def _valid_mtn_signature(request):
    secret = getattr(settings, 'MTN_CALLBACK_SECRET', '')
    if not secret:
        return True
    signature = request.headers.get('X-Callback-Signature', '')
    expected = hmac.new(secret.encode('utf-8'), request.body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, expected)


@csrf_exempt
@require_http_methods(["POST"])
def mtn_callback(request):
    """
    MTN MoMo request-to-pay callback.

    The payment is found by our externalId or by the X-Reference-Id we sent.
    """
    try:
        if not _valid_mtn_signature(request):
            logger.warning("Invalid MTN callback signature")
            return JsonResponse({'error': 'Invalid signature'}, status=400)

        payload = json.loads(request.body.decode('utf-8'))
        external_id = payload.get('externalId') or ''
        reference = payload.get('referenceId') or request.headers.get('X-Reference-Id', '')
        status = str(payload.get('status', '')).upper()

        logger.info(f"Received MTN callback: {external_id or reference} {status}")

        lookup = Q()
        if external_id:
            lookup |= Q(external_id=external_id)
        if reference:
            lookup |= Q(provider_reference=reference)
        payment = Payment.objects.filter(lookup, provider=Payment.Provider.MTN_MOMO).first() if lookup else None
        if payment is None:
            return JsonResponse({'error': 'Payment not found'}, status=404)

        event, created = PaymentService.record_webhook_event(
            Payment.Provider.MTN_MOMO,
            f'{payment.external_id}:{status}',
            status.lower(),
            payload,
        )
        if not created and event.processed:
            return JsonResponse({'status': 'ok', 'duplicate': True})

        if status in MTN_SUCCESS:
            PaymentService.mark_succeeded(payment, provider_reference=reference or None)
        elif status in MTN_FAILURE:
            reason = payload.get('reason')
            if isinstance(reason, dict):
                reason = reason.get('message') or reason.get('code')
            PaymentService.mark_failed(payment, reason or 'Refusé par MTN')
        else:
            logger.info(f"MTN callback with non-final status: {status}")

        PaymentService.finish_webhook_event(event)
        return JsonResponse({'status': 'ok'})

    except json.JSONDecodeError:
        logger.error("Invalid JSON in MTN callback")
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    except Exception as e:
        logger.exception(f"MTN callback error: {e}")
        return JsonResponse({'error': 'Internal error'}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
def orange_money_webhook(request):
    try:
        payload = json.loads(request.body.decode('utf-8'))
        data = payload.get('data') if isinstance(payload.get('data'), dict) else payload
        pay_token = data.get('payToken') or ''
        order_id = data.get('orderId') or ''
        raw_status = str(data.get('status', '')).upper()

        logger.info(f"Received Orange Money webhook: {order_id or pay_token} {raw_status}")

        lookup = Q()
        if pay_token:
            lookup |= Q(provider_reference=pay_token)
        if order_id:
            lookup |= Q(external_id=order_id)
        payment = Payment.objects.filter(lookup, provider=Payment.Provider.ORANGE_MONEY).first() if lookup else None
        if payment is None:
            return JsonResponse({'error': 'Payment not found'}, status=404)

        event, created = PaymentService.record_webhook_event(
            Payment.Provider.ORANGE_MONEY,
            f'{payment.external_id}:{raw_status}',
            raw_status.lower(),
            payload,
        )
        if not created and event.processed:
            return JsonResponse({'status': 'ok', 'duplicate': True})

        status = map_status(raw_status)
        if status == 'SUCCESSFUL':
            PaymentService.mark_succeeded(payment)
        elif status == 'FAILED':
            PaymentService.mark_failed(payment, data.get('inittxnmessage') or f'Orange Money: {raw_status}')

        PaymentService.finish_webhook_event(event)
        return JsonResponse({'status': 'ok'})

    except json.JSONDecodeError:
        logger.error("Invalid JSON in Orange Money webhook")
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    except Exception as e:
        logger.exception(f"Orange Money webhook error: {e}")
        return JsonResponse({'error': 'Internal error'}, status=500)
