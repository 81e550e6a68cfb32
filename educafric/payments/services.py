"""
Payment orchestration shared by every gateway.

Gateways only talk to their provider. Everything that touches our own
records (payment status, subscriptions, notifications) goes through
PaymentService so that webhooks, polling and the API behave the same.
"""
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from notifications.models import NotificationPriority, NotificationType
from notifications.services import NotificationService

from .exceptions import GatewayUnavailableError, PaymentError, PaymentValidationError
from .models import Payment, Subscription, WebhookEvent
from .mtn_service import MTNMobileMoneyService
from .orange_money_service import OrangeMoneyService
from .plans import add_interval, get_plan
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

MOBILE_MONEY_PROVIDERS = (Payment.Provider.MTN_MOMO, Payment.Provider.ORANGE_MONEY)


class PaymentService:

    @staticmethod
    def initiate(user, plan_id, provider, phone_number=None, school=None):
        """
        Create a payment for ``plan_id`` and hand it to the gateway.

        Returns (payment, gateway_info). Raises PlanNotFoundError,
        PaymentValidationError or GatewayUnavailableError. A GatewayError
        raised by the operator leaves the payment failed.
        """
        plan = get_plan(plan_id)

        if provider == Payment.Provider.STRIPE:
            return StripeService.create_payment_intent(user, plan.id, school=school)

        if provider not in MOBILE_MONEY_PROVIDERS:
            raise PaymentValidationError(f'Moyen de paiement non supporté: {provider}', code='INVALID_PROVIDER')
        if not getattr(settings, 'FEATURE_MOBILE_MONEY', True):
            raise GatewayUnavailableError('Mobile Money indisponible')

        if provider == Payment.Provider.MTN_MOMO:
            if not MTNMobileMoneyService.validate_phone(phone_number):
                raise PaymentValidationError('Numéro MTN invalide', code='INVALID_PHONE')
            external_id = MTNMobileMoneyService.generate_external_id()
        else:
            OrangeMoneyService.validate_amount(plan.price)
            if not OrangeMoneyService.validate_phone(phone_number):
                raise PaymentValidationError('Numéro Orange Money invalide', code='INVALID_PHONE')
            external_id = OrangeMoneyService.generate_order_id()

        payment = Payment.objects.create(
            user=user,
            school=school,
            plan_id=plan.id,
            amount=plan.price,
            currency=plan.currency,
            provider=provider,
            external_id=external_id,
            phone_number=phone_number or '',
            metadata={'user_id': str(user.id), 'plan_id': plan.id},
        )

        try:
            if provider == Payment.Provider.MTN_MOMO:
                result = MTNMobileMoneyService.request_payment(payment)
                reference = result['reference']
            else:
                result = OrangeMoneyService.initiate_payment(payment)
                reference = result['pay_token']
                if result.get('transaction_id'):
                    payment.metadata['transaction_id'] = result['transaction_id']
        except PaymentError as e:
            PaymentService.mark_failed(payment, str(e))
            raise

        payment.provider_reference = reference or ''
        payment.metadata['simulated'] = result.get('simulated', False)
        payment.save(update_fields=['provider_reference', 'metadata', 'updated_at'])

        if not result['success']:
            PaymentService.mark_failed(payment, result.get('message') or 'Refus de l\'opérateur')
            payment.refresh_from_db()

        logger.info(f'{provider} payment {payment.external_id} initiated for user {user.id}: {result.get("status")}')
        return payment, {
            'status': result.get('status'),
            'message': result.get('message', ''),
            'simulated': result.get('simulated', False),
        }

    @staticmethod
    def mark_succeeded(payment, provider_reference=None):
        """
        Settle a payment and grant the subscription it pays for.

        Safe to call several times: a payment already succeeded is returned
        unchanged and the subscription is not extended twice.
        """
        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)
            if payment.status == Payment.Status.SUCCEEDED:
                return payment

            payment.status = Payment.Status.SUCCEEDED
            payment.paid_at = timezone.now()
            payment.failure_reason = ''
            if provider_reference:
                payment.provider_reference = provider_reference
            payment.save(update_fields=['status', 'paid_at', 'failure_reason', 'provider_reference', 'updated_at'])

            subscription = PaymentService._activate_subscription(payment)

        logger.info(f'Payment {payment.external_id} succeeded, subscription {subscription.id} '
                    f'active until {subscription.expires_at}')

        plan = get_plan(payment.plan_id)
        NotificationService.notify(
            payment.user,
            title='Paiement confirmé',
            message=(f'Votre paiement de {payment.amount} {payment.currency} pour « {plan.name} » '
                     f'est confirmé. Abonnement actif jusqu\'au {timezone.localtime(subscription.expires_at):%d/%m/%Y}.'),
            notification_type=NotificationType.PAYMENT,
            priority=NotificationPriority.HIGH,
            action_url=f'{settings.FRONTEND_URL}/subscriptions',
            metadata={'payment_id': payment.id, 'subscription_id': subscription.id},
            school=payment.school,
        )
        return payment

    @staticmethod
    def _activate_subscription(payment):
        """Activate a new subscription, or extend the running one for the same plan."""
        plan = get_plan(payment.plan_id)
        now = timezone.now()

        subscription = (
            Subscription.objects.select_for_update()
            .filter(user=payment.user, plan_id=plan.id, status=Subscription.Status.ACTIVE, expires_at__gt=now)
            .order_by('-expires_at')
            .first()
        )
        if subscription is None:
            subscription = Subscription(
                user=payment.user,
                school=payment.school,
                plan_id=plan.id,
                category=plan.category,
                starts_at=now,
            )
            base = now
        else:
            base = subscription.expires_at

        subscription.status = Subscription.Status.ACTIVE
        subscription.payment_method = payment.provider
        subscription.expires_at = add_interval(base, plan.interval)
        subscription.last_payment = payment
        subscription.save()
        return subscription

    @staticmethod
    def mark_failed(payment, reason=''):
        """Fail a pending payment. Settled payments are left untouched."""
        updated = Payment.objects.filter(pk=payment.pk, status=Payment.Status.PENDING).update(
            status=Payment.Status.FAILED,
            failure_reason=(reason or '')[:255],
            updated_at=timezone.now(),
        )
        if not updated:
            return False

        logger.warning(f'Payment {payment.external_id} failed: {reason}')
        NotificationService.notify(
            payment.user,
            title='Paiement échoué',
            message=f'Votre paiement de {payment.amount} {payment.currency} n\'a pas abouti. {reason}'.strip(),
            notification_type=NotificationType.PAYMENT,
            priority=NotificationPriority.NORMAL,
            metadata={'payment_id': payment.id},
            school=payment.school,
        )
        return True

    @staticmethod
    def apply_gateway_status(payment, status, reason=''):
        """Apply a normalized gateway status (SUCCESSFUL, FAILED or PENDING)."""
        if status == 'SUCCESSFUL':
            PaymentService.mark_succeeded(payment)
        elif status == 'FAILED':
            PaymentService.mark_failed(payment, reason or 'Refusé par l\'opérateur')
        payment.refresh_from_db()
        return payment

    @staticmethod
    def refresh_status(payment):
        """Ask the gateway for the current status of a pending payment."""
        if payment.status != Payment.Status.PENDING or not payment.provider_reference:
            return payment

        if payment.provider == Payment.Provider.MTN_MOMO:
            result = MTNMobileMoneyService.check_status(payment.provider_reference)
            return PaymentService.apply_gateway_status(payment, result['status'], result.get('reason', ''))

        if payment.provider == Payment.Provider.ORANGE_MONEY:
            result = OrangeMoneyService.check_status(payment.provider_reference)
            return PaymentService.apply_gateway_status(payment, result['status'], result.get('raw_status', ''))

        if payment.provider == Payment.Provider.STRIPE and StripeService.is_available():
            intent_status = StripeService.intent_status(payment.provider_reference)
            if intent_status == 'succeeded':
                PaymentService.mark_succeeded(payment)
            elif intent_status == 'canceled':
                PaymentService.mark_failed(payment, 'Paiement annulé')
            payment.refresh_from_db()

        return payment

    @staticmethod
    def sync_pending_payments(max_age_hours=None):
        """
        Poll mobile-money gateways for pending payments.

        Payments older than ``max_age_hours`` are failed without polling.
        """
        if max_age_hours is None:
            max_age_hours = settings.PENDING_PAYMENT_MAX_AGE_HOURS
        cutoff = timezone.now() - timedelta(hours=max_age_hours)
        stats = {'checked': 0, 'succeeded': 0, 'failed': 0, 'expired': 0, 'errors': 0}

        pending = Payment.objects.filter(
            status=Payment.Status.PENDING,
            provider__in=MOBILE_MONEY_PROVIDERS,
        ).select_related('user', 'school')

        for payment in pending:
            if payment.created_at < cutoff:
                if PaymentService.mark_failed(payment, 'Délai de paiement dépassé'):
                    stats['expired'] += 1
                continue

            stats['checked'] += 1
            try:
                payment = PaymentService.refresh_status(payment)
            except PaymentError as e:
                stats['errors'] += 1
                logger.warning(f'Status sync failed for {payment.external_id}: {e}')
                continue

            if payment.status == Payment.Status.SUCCEEDED:
                stats['succeeded'] += 1
            elif payment.status == Payment.Status.FAILED:
                stats['failed'] += 1

        return stats

    @staticmethod
    def expire_subscriptions(now=None):
        now = now or timezone.now()
        expired = list(
            Subscription.objects.filter(status=Subscription.Status.ACTIVE, expires_at__lte=now)
            .select_related('user')
        )
        for subscription in expired:
            subscription.status = Subscription.Status.EXPIRED
            subscription.save(update_fields=['status', 'updated_at'])
            NotificationService.notify(
                subscription.user,
                title='Abonnement expiré',
                message=f'Votre abonnement « {get_plan(subscription.plan_id).name} » a expiré.',
                notification_type=NotificationType.PAYMENT,
                priority=NotificationPriority.HIGH,
                action_url=f'{settings.FRONTEND_URL}/subscriptions',
                metadata={'subscription_id': subscription.id},
                school=subscription.school,
            )
        return len(expired)

    @staticmethod
    def cancel_subscription(subscription):
        if subscription.status in (Subscription.Status.CANCELED, Subscription.Status.EXPIRED):
            raise PaymentValidationError('Abonnement déjà terminé', code='SUBSCRIPTION_CLOSED')
        if subscription.stripe_subscription_id:
            return StripeService.cancel_subscription(subscription)

        subscription.status = Subscription.Status.CANCELED
        subscription.auto_renew = False
        subscription.save(update_fields=['status', 'auto_renew', 'updated_at'])
        logger.info(f'Subscription {subscription.id} canceled by user {subscription.user_id}')
        return subscription

    @staticmethod
    def record_webhook_event(provider, event_id, event_type, payload):
        """Store an incoming webhook. Returns (event, created)."""
        event_id = event_id or f'anon-{secrets.token_hex(8)}'
        try:
            with transaction.atomic():
                return WebhookEvent.objects.get_or_create(
                    provider=provider,
                    event_id=event_id,
                    defaults={'event_type': event_type, 'payload': payload},
                )
        except IntegrityError:
            return WebhookEvent.objects.get(provider=provider, event_id=event_id), False

    @staticmethod
    def finish_webhook_event(event, error=''):
        event.processed = not error
        event.error = error
        event.save(update_fields=['processed', 'error'])
