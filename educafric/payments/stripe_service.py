"""
Stripe card payments.

Plans are priced in FCFA, which Stripe cannot settle for our account, so
card payments are charged in USD at a fixed rate (STRIPE_XAF_PER_USD).

Webhook: POST /api/payments/stripe/webhook/
"""
import json
import logging
import secrets
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, ROUND_HALF_UP

import stripe
from django.conf import settings
from django.utils import timezone

from .exceptions import GatewayError, GatewayUnavailableError
from .plans import get_plan

logger = logging.getLogger(__name__)


class StripeService:

    HANDLED_EVENTS = (
        'payment_intent.succeeded',
        'payment_intent.payment_failed',
        'invoice.payment_succeeded',
        'customer.subscription.created',
        'customer.subscription.updated',
        'customer.subscription.deleted',
    )

    @staticmethod
    def is_available():
        return bool(getattr(settings, 'FEATURE_STRIPE', True) and getattr(settings, 'STRIPE_SECRET_KEY', ''))

    @staticmethod
    def _configure():
        if not StripeService.is_available():
            raise GatewayUnavailableError('Paiement par carte indisponible')
        stripe.api_key = settings.STRIPE_SECRET_KEY

    @staticmethod
    def to_stripe_amount(price, currency='XAF'):
        """
        Amount in the smallest Stripe unit.

        XAF is converted to whole US dollars first (halves round up), then to cents.
        """
        if currency.upper() == 'XAF':
            dollars = (Decimal(price) / Decimal(settings.STRIPE_XAF_PER_USD)).quantize(
                Decimal('1'), rounding=ROUND_HALF_UP,
            )
            return int(dollars * 100)
        return int(price * 100)

    @staticmethod
    def stripe_currency(currency='XAF'):
        return 'usd' if currency.upper() == 'XAF' else currency.lower()

    @staticmethod
    def get_or_create_customer(user):
        StripeService._configure()
        try:
            existing = stripe.Customer.list(email=user.email, limit=1)
            if existing.data:
                return existing.data[0]
            return stripe.Customer.create(
                email=user.email,
                name=user.get_full_name(),
                metadata={'user_id': str(user.id)},
            )
        except stripe.StripeError as e:
            logger.exception(f'Stripe customer lookup failed for user {user.id}: {e}')
            raise GatewayError(str(e))

    @staticmethod
    def create_payment_intent(user, plan_id, school=None):
        """
        Create a pending Payment and the matching PaymentIntent.

        Returns (payment, {'client_secret': ..., 'payment_intent_id': ...}).
        """
        from .models import Payment

        StripeService._configure()
        plan = get_plan(plan_id)
        customer = StripeService.get_or_create_customer(user)

        payment = Payment.objects.create(
            user=user,
            school=school,
            plan_id=plan.id,
            amount=plan.price,
            currency=plan.currency,
            provider=Payment.Provider.STRIPE,
            external_id=f'EDU-ST-{secrets.token_hex(6).upper()}',
            metadata={'user_id': str(user.id), 'plan_id': plan.id},
        )

        try:
            intent = stripe.PaymentIntent.create(
                amount=StripeService.to_stripe_amount(plan.price, plan.currency),
                currency=StripeService.stripe_currency(plan.currency),
                customer=customer.id,
                description=plan.name,
                metadata={'user_id': str(user.id), 'plan_id': plan.id, 'payment_id': str(payment.id)},
                automatic_payment_methods={'enabled': True},
                idempotency_key=payment.external_id,
            )
        except stripe.StripeError as e:
            logger.exception(f'Stripe PaymentIntent creation failed for payment {payment.external_id}: {e}')
            payment.status = Payment.Status.FAILED
            payment.failure_reason = str(e)[:255]
            payment.save(update_fields=['status', 'failure_reason', 'updated_at'])
            raise GatewayError(str(e))

        payment.provider_reference = intent.id
        payment.save(update_fields=['provider_reference', 'updated_at'])
        logger.info(f'Stripe PaymentIntent {intent.id} created for user {user.id} plan {plan.id}')

        return payment, {
            'client_secret': intent.client_secret,
            'payment_intent_id': intent.id,
            'publishable_key': settings.STRIPE_PUBLISHABLE_KEY,
        }

    @staticmethod
    def confirm_payment(payment_intent_id):
        """
        Confirm a PaymentIntent after the client-side flow.

        Returns the Payment when the intent has succeeded, None otherwise.
        Confirming twice is harmless.
        """
        from .models import Payment
        from .services import PaymentService

        StripeService._configure()
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            logger.exception(f'Stripe PaymentIntent retrieve failed: {e}')
            raise GatewayError(str(e))

        if intent.status != 'succeeded':
            logger.info(f'PaymentIntent {payment_intent_id} not succeeded yet: {intent.status}')
            return None

        payment = Payment.objects.filter(
            provider=Payment.Provider.STRIPE,
            provider_reference=payment_intent_id,
        ).first()
        if payment is None:
            logger.warning(f'No payment for PaymentIntent {payment_intent_id}')
            return None

        return PaymentService.mark_succeeded(payment, provider_reference=payment_intent_id)

    @staticmethod
    def intent_status(payment_intent_id):
        StripeService._configure()
        try:
            return stripe.PaymentIntent.retrieve(payment_intent_id).status
        except stripe.StripeError as e:
            logger.exception(f'Stripe PaymentIntent retrieve failed: {e}')
            raise GatewayError(str(e))

    @staticmethod
    def cancel_subscription(subscription):
        from .models import Subscription

        if subscription.stripe_subscription_id:
            StripeService._configure()
            try:
                stripe.Subscription.cancel(subscription.stripe_subscription_id)
            except stripe.StripeError as e:
                logger.exception(f'Stripe cancel failed for {subscription.stripe_subscription_id}: {e}')
                raise GatewayError(str(e))

        subscription.status = Subscription.Status.CANCELED
        subscription.auto_renew = False
        subscription.save(update_fields=['status', 'auto_renew', 'updated_at'])
        return subscription

    @staticmethod
    def check_subscription_status(subscription):
        if not subscription.stripe_subscription_id:
            return subscription.is_active()
        StripeService._configure()
        try:
            remote = stripe.Subscription.retrieve(subscription.stripe_subscription_id)
        except stripe.StripeError as e:
            logger.exception(f'Stripe subscription retrieve failed: {e}')
            raise GatewayError(str(e))
        return remote.status in ('active', 'trialing')

    @staticmethod
    def handle_webhook(payload, sig_header):
        """
        Verify and process a Stripe webhook.

        Raises stripe.SignatureVerificationError on a bad signature and
        ValueError on an unparsable payload. Returns a short status dict.
        """
        from .models import Payment
        from .services import PaymentService

        StripeService._configure()
        stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)

        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')
        event = json.loads(payload)
        event_type = event.get('type', '')

        record, created = PaymentService.record_webhook_event(
            Payment.Provider.STRIPE, event.get('id', ''), event_type, event,
        )
        if not created and record.processed:
            logger.info(f'Duplicate Stripe event ignored: {record.event_id}')
            return {'status': 'duplicate'}

        if event_type not in StripeService.HANDLED_EVENTS:
            logger.info(f'Unhandled Stripe event: {event_type}')
            PaymentService.finish_webhook_event(record)
            return {'status': 'ignored'}

        obj = event.get('data', {}).get('object', {})
        try:
            if event_type == 'payment_intent.succeeded':
                StripeService._on_intent_succeeded(obj)
            elif event_type == 'payment_intent.payment_failed':
                StripeService._on_intent_failed(obj)
            elif event_type == 'invoice.payment_succeeded':
                StripeService._on_invoice_paid(obj)
            elif event_type == 'customer.subscription.deleted':
                StripeService._on_subscription_deleted(obj)
            else:
                StripeService._on_subscription_changed(obj)
        except Exception as e:
            PaymentService.finish_webhook_event(record, error=str(e))
            raise

        PaymentService.finish_webhook_event(record)
        return {'status': 'processed', 'type': event_type}

    @staticmethod
    def _payment_for_intent(obj):
        from .models import Payment

        payment = Payment.objects.filter(
            provider=Payment.Provider.STRIPE, provider_reference=obj.get('id', ''),
        ).first()
        if payment is None:
            payment_id = (obj.get('metadata') or {}).get('payment_id')
            if payment_id:
                payment = Payment.objects.filter(pk=payment_id, provider=Payment.Provider.STRIPE).first()
        if payment is None:
            logger.warning(f"Stripe event for unknown PaymentIntent {obj.get('id')}")
        return payment

    @staticmethod
    def _on_intent_succeeded(obj):
        from .services import PaymentService

        payment = StripeService._payment_for_intent(obj)
        if payment is not None:
            PaymentService.mark_succeeded(payment, provider_reference=obj.get('id'))

    @staticmethod
    def _on_intent_failed(obj):
        from .services import PaymentService

        payment = StripeService._payment_for_intent(obj)
        if payment is not None:
            error = obj.get('last_payment_error') or {}
            PaymentService.mark_failed(payment, error.get('message') or 'Paiement refusé')

    @staticmethod
    def _on_invoice_paid(obj):
        from .models import Subscription
        from .plans import add_interval

        sub_id = obj.get('subscription')
        if not sub_id:
            return
        subscription = Subscription.objects.filter(stripe_subscription_id=sub_id).first()
        if subscription is None:
            logger.warning(f'Invoice paid for unknown Stripe subscription {sub_id}')
            return

        now = timezone.now()
        base = subscription.expires_at if subscription.expires_at and subscription.expires_at > now else now
        subscription.expires_at = add_interval(base, get_plan(subscription.plan_id).interval)
        subscription.status = Subscription.Status.ACTIVE
        if subscription.starts_at is None:
            subscription.starts_at = now
        subscription.save(update_fields=['expires_at', 'status', 'starts_at', 'updated_at'])
        logger.info(f'Stripe subscription {sub_id} renewed until {subscription.expires_at}')

    @staticmethod
    def _on_subscription_changed(obj):
        from django.contrib.auth import get_user_model

        from .models import Payment, Subscription

        metadata = obj.get('metadata') or {}
        status_map = {
            'active': Subscription.Status.ACTIVE,
            'trialing': Subscription.Status.ACTIVE,
            'canceled': Subscription.Status.CANCELED,
            'incomplete_expired': Subscription.Status.EXPIRED,
        }
        defaults = {
            'status': status_map.get(obj.get('status'), Subscription.Status.PENDING),
            'auto_renew': not obj.get('cancel_at_period_end', False),
        }
        period_end = obj.get('current_period_end')
        if period_end:
            defaults['expires_at'] = datetime.fromtimestamp(period_end, tz=dt_timezone.utc)

        subscription = Subscription.objects.filter(stripe_subscription_id=obj.get('id', '')).first()
        if subscription is not None:
            for field, value in defaults.items():
                setattr(subscription, field, value)
            subscription.save()
            return

        user = get_user_model().objects.filter(pk=metadata.get('user_id')).first() if metadata.get('user_id') else None
        plan_id = metadata.get('plan_id')
        if user is None or not plan_id:
            logger.warning(f"Stripe subscription {obj.get('id')} without user_id/plan_id metadata")
            return

        plan = get_plan(plan_id)
        Subscription.objects.create(
            user=user,
            plan_id=plan.id,
            category=plan.category,
            payment_method=Payment.Provider.STRIPE,
            starts_at=timezone.now(),
            stripe_subscription_id=obj.get('id', ''),
            **defaults,
        )

    @staticmethod
    def _on_subscription_deleted(obj):
        from .models import Subscription

        Subscription.objects.filter(stripe_subscription_id=obj.get('id', '')).update(
            status=Subscription.Status.CANCELED,
            auto_renew=False,
            updated_at=timezone.now(),
        )
