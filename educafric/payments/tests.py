import hashlib
import hmac
import json
import re
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import mock

import requests
import stripe
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from notifications.models import Notification

from .exceptions import GatewayError, GatewayUnavailableError, PaymentValidationError
from .models import Payment, Subscription, WebhookEvent
from .mtn_service import MTNMobileMoneyService
from .orange_money_service import OrangeMoneyService
from .plans import PLANS, PlanNotFoundError, add_interval, get_plan, plans_for_category
from .services import PaymentService
from .stripe_service import StripeService

User = get_user_model()

NO_MTN = dict(MTN_MOMO_CLIENT_ID='', MTN_MOMO_CLIENT_SECRET='')
MTN_LIVE = dict(
    MTN_MOMO_CLIENT_ID='client', MTN_MOMO_CLIENT_SECRET='secret',
    MTN_MOMO_BASE_URL='https://momo.test', MTN_MOMO_TOKEN_URL='https://momo.test/token',
)
ORANGE_LIVE = dict(
    ORANGE_MONEY_USERNAME='user', ORANGE_MONEY_PASSWORD='pass', ORANGE_MONEY_AUTH_TOKEN='x-auth',
    ORANGE_MONEY_CHANNEL_MSISDN='691000000', ORANGE_MONEY_PIN='1234', ORANGE_MONEY_SIMULATION=False,
    ORANGE_MONEY_API_URL='https://om.test', ORANGE_MONEY_TOKEN_URL='https://om.test/token',
)


def fake_response(data=None, status_code=200):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = data if data is not None else {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f'{status_code} error')
    else:
        response.raise_for_status.return_value = None
    return response


class PlanCatalogueTests(SimpleTestCase):

    def test_catalogue_prices(self):
        self.assertEqual(len(PLANS), 16)
        self.assertEqual(get_plan('parent_public_monthly').price, 1000)
        self.assertEqual(get_plan('parent_private_quarterly').price, 4500)
        self.assertEqual(get_plan('school_private_complete').price, 115000)
        self.assertEqual(get_plan('freelancer_professional_semester').interval, 'semester')

    def test_unknown_plan(self):
        with self.assertRaises(PlanNotFoundError):
            get_plan('gold')

    def test_filter_by_category(self):
        school_plans = plans_for_category('school')
        self.assertEqual(len(school_plans), 6)
        self.assertTrue(all(plan.category == 'school' for plan in school_plans))
        self.assertEqual(len(plans_for_category(None)), 16)

    def test_add_interval_uses_calendar_months(self):
        start = datetime(2026, 1, 31, 10, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(add_interval(start, 'monthly'), datetime(2026, 2, 28, 10, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(add_interval(start, 'quarterly').month, 4)
        self.assertEqual(add_interval(start, 'yearly').year, 2027)
        with self.assertRaises(ValueError):
            add_interval(start, 'weekly')


class GatewayHelpersTests(SimpleTestCase):

    @override_settings(STRIPE_XAF_PER_USD=600)
    def test_stripe_amount_conversion(self):
        # 1000 XAF -> 2 USD -> 200 cents
        self.assertEqual(StripeService.to_stripe_amount(1000, 'XAF'), 200)
        self.assertEqual(StripeService.to_stripe_amount(50000, 'XAF'), 8300)
        # 1500 XAF -> 2.5 USD -> 3 USD
        self.assertEqual(StripeService.to_stripe_amount(1500, 'XAF'), 300)
        self.assertEqual(StripeService.to_stripe_amount(10, 'EUR'), 1000)
        self.assertEqual(StripeService.stripe_currency('XAF'), 'usd')

    def test_mtn_phone_numbers(self):
        self.assertTrue(MTNMobileMoneyService.validate_phone('677123456'))
        self.assertTrue(MTNMobileMoneyService.validate_phone('+237 6 77 12 34 56'))
        self.assertTrue(MTNMobileMoneyService.validate_phone('652123456'))
        self.assertFalse(MTNMobileMoneyService.validate_phone('699123456'))
        self.assertFalse(MTNMobileMoneyService.validate_phone('67712345'))
        self.assertEqual(MTNMobileMoneyService.format_phone('677 12 34 56'), '237677123456')

    def test_mtn_external_id(self):
        external_id = MTNMobileMoneyService.generate_external_id()
        self.assertRegex(external_id, r'^EDU_\d{13}_[A-Z0-9]{6}$')
        self.assertTrue(MTNMobileMoneyService.generate_external_id('edu_out').startswith('EDU_OUT_'))

    def test_orange_phone_numbers(self):
        for number in ('699123456', '237655123456', '659123456', '640123456'):
            self.assertTrue(OrangeMoneyService.validate_phone(number), number)
        for number in ('677123456', '654123456', '641123456'):
            self.assertFalse(OrangeMoneyService.validate_phone(number), number)

    def test_orange_amount_limits(self):
        with self.assertRaises(PaymentValidationError) as ctx:
            OrangeMoneyService.validate_amount(99)
        self.assertEqual(ctx.exception.code, 'AMOUNT_TOO_LOW')
        with self.assertRaises(PaymentValidationError) as ctx:
            OrangeMoneyService.validate_amount(1_000_001)
        self.assertEqual(ctx.exception.code, 'AMOUNT_TOO_HIGH')
        OrangeMoneyService.validate_amount(1_000_000)

    def test_orange_order_id(self):
        self.assertRegex(OrangeMoneyService.generate_order_id(), r'^EDU-OM-[0-9A-Z]+-[0-9A-F]{8}$')


class PaymentTestMixin:

    def setUp(self):
        cache.clear()
        OrangeMoneyService._auth_failed = False
        self.parent = User.objects.create_user(email='maman@educafric.cm', password='pass', role='parent')
        self.other = User.objects.create_user(email='papa@educafric.cm', password='pass', role='parent')

    def make_payment(self, provider=Payment.Provider.MTN_MOMO, plan_id='parent_public_monthly', **kwargs):
        plan = get_plan(plan_id)
        defaults = {
            'user': self.parent,
            'plan_id': plan.id,
            'amount': plan.price,
            'provider': provider,
            'external_id': MTNMobileMoneyService.generate_external_id(),
            'provider_reference': 'ref-1',
            'phone_number': '677123456',
        }
        defaults.update(kwargs)
        return Payment.objects.create(**defaults)


@override_settings(**NO_MTN, ORANGE_MONEY_SIMULATION=True)
class PaymentServiceTests(PaymentTestMixin, TestCase):

    def test_initiate_mtn_in_simulation(self):
        payment, gateway = PaymentService.initiate(self.parent, 'parent_public_monthly', 'mtn_momo', '677123456')
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.amount, 1000)
        self.assertTrue(gateway['simulated'])
        # X-Reference-Id is a UUID
        self.assertRegex(payment.provider_reference, r'^[0-9a-f-]{36}$')

    def test_initiate_rejects_wrong_operator_number(self):
        with self.assertRaises(PaymentValidationError) as ctx:
            PaymentService.initiate(self.parent, 'parent_public_monthly', 'orange_money', '677123456')
        self.assertEqual(ctx.exception.code, 'INVALID_PHONE')
        self.assertFalse(Payment.objects.exists())

    def test_initiate_unknown_plan(self):
        with self.assertRaises(PlanNotFoundError):
            PaymentService.initiate(self.parent, 'gold', 'mtn_momo', '677123456')

    @override_settings(STRIPE_SECRET_KEY='')
    def test_initiate_stripe_unavailable(self):
        with self.assertRaises(GatewayUnavailableError):
            PaymentService.initiate(self.parent, 'parent_public_monthly', 'stripe')

    @override_settings(FEATURE_MOBILE_MONEY=False)
    def test_mobile_money_feature_flag(self):
        with self.assertRaises(GatewayUnavailableError):
            PaymentService.initiate(self.parent, 'parent_public_monthly', 'mtn_momo', '677123456')

    def test_mark_succeeded_activates_subscription(self):
        payment = self.make_payment()
        before = timezone.now()
        PaymentService.mark_succeeded(payment)

        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.SUCCEEDED)
        self.assertIsNotNone(payment.paid_at)

        subscription = Subscription.objects.get(user=self.parent)
        self.assertEqual(subscription.status, Subscription.Status.ACTIVE)
        self.assertEqual(subscription.category, 'parent')
        self.assertEqual(subscription.last_payment, payment)
        self.assertGreater(subscription.expires_at, before + timedelta(days=27))
        self.assertLess(subscription.expires_at, before + timedelta(days=32))
        self.assertTrue(Notification.objects.filter(user=self.parent, notification_type='payment').exists())

    def test_mark_succeeded_is_idempotent(self):
        payment = self.make_payment()
        PaymentService.mark_succeeded(payment)
        expires_at = Subscription.objects.get(user=self.parent).expires_at

        PaymentService.mark_succeeded(payment)
        self.assertEqual(Subscription.objects.filter(user=self.parent).count(), 1)
        self.assertEqual(Subscription.objects.get(user=self.parent).expires_at, expires_at)

    def test_second_payment_extends_running_subscription(self):
        PaymentService.mark_succeeded(self.make_payment())
        first_expiry = Subscription.objects.get(user=self.parent).expires_at

        PaymentService.mark_succeeded(self.make_payment(provider_reference='ref-2'))
        subscription = Subscription.objects.get(user=self.parent)
        self.assertEqual(subscription.expires_at, add_interval(first_expiry, 'monthly'))

    def test_mark_failed_leaves_settled_payment_alone(self):
        payment = self.make_payment()
        PaymentService.mark_succeeded(payment)
        self.assertFalse(PaymentService.mark_failed(payment, 'late failure'))
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.SUCCEEDED)

    def test_sync_expires_stale_pending_payments(self):
        stale = self.make_payment()
        Payment.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(hours=30))

        stats = PaymentService.sync_pending_payments(max_age_hours=24)
        stale.refresh_from_db()
        self.assertEqual(stale.status, Payment.Status.FAILED)
        self.assertEqual(stats['expired'], 1)

    def test_sync_settles_simulated_orange_payment(self):
        payment, _ = PaymentService.initiate(self.parent, 'parent_public_monthly', 'orange_money', '699123456')
        self.assertTrue(payment.provider_reference.startswith('SIM-'))

        stats = PaymentService.sync_pending_payments()
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.SUCCEEDED)
        self.assertEqual(stats['succeeded'], 1)

    def test_expire_subscriptions(self):
        PaymentService.mark_succeeded(self.make_payment())
        subscription = Subscription.objects.get(user=self.parent)

        self.assertEqual(PaymentService.expire_subscriptions(now=subscription.expires_at - timedelta(days=1)), 0)
        self.assertEqual(PaymentService.expire_subscriptions(now=subscription.expires_at + timedelta(seconds=1)), 1)
        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.Status.EXPIRED)


@override_settings(**MTN_LIVE)
class MTNGatewayTests(PaymentTestMixin, TestCase):

    @mock.patch('payments.mtn_service.requests.post')
    def test_request_to_pay_headers(self, mock_post):
        mock_post.side_effect = [
            fake_response({'access_token': 'tok', 'expires_in': 3600}),
            fake_response(status_code=202),
        ]
        payment = self.make_payment(provider_reference='')

        result = MTNMobileMoneyService.request_payment(payment)
        self.assertTrue(result['success'])
        self.assertFalse(result['simulated'])

        token_call, pay_call = mock_post.call_args_list
        self.assertEqual(token_call.kwargs['auth'], ('client', 'secret'))
        self.assertEqual(token_call.kwargs['data'], {'grant_type': 'client_credentials'})
        self.assertEqual(pay_call.args[0], 'https://momo.test/v1/requesttopay')
        self.assertEqual(pay_call.kwargs['headers']['X-Reference-Id'], result['reference'])
        self.assertEqual(pay_call.kwargs['headers']['Authorization'], 'Bearer tok')
        self.assertEqual(pay_call.kwargs['json']['payer']['partyId'], '237677123456')
        self.assertEqual(pay_call.kwargs['json']['amount'], '1000')

    @mock.patch('payments.mtn_service.requests.post')
    def test_initiate_fails_payment_when_token_unavailable(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('down')

        with self.assertRaises(GatewayError):
            PaymentService.initiate(self.parent, 'parent_public_monthly', 'mtn_momo', '677123456')

        payment = Payment.objects.get(user=self.parent)
        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertEqual(payment.failure_reason, 'Authentification MTN impossible')
        self.assertTrue(Notification.objects.filter(user=self.parent, title='Paiement échoué').exists())

    @mock.patch('payments.mtn_service.requests.post')
    def test_token_is_cached(self, mock_post):
        mock_post.return_value = fake_response({'access_token': 'tok', 'expires_in': 3600})
        MTNMobileMoneyService._get_token()
        MTNMobileMoneyService._get_token()
        self.assertEqual(mock_post.call_count, 1)

    @mock.patch('payments.mtn_service.requests.get')
    @mock.patch('payments.mtn_service.requests.post')
    def test_sync_polls_status(self, mock_post, mock_get):
        mock_post.return_value = fake_response({'access_token': 'tok', 'expires_in': 3600})
        statuses = {
            'ref-ok': {'status': 'SUCCESSFUL', 'financialTransactionId': '123'},
            'ref-ko': {'status': 'REJECTED', 'reason': 'APPROVAL_REJECTED'},
        }
        mock_get.side_effect = lambda url, **kwargs: fake_response(statuses[url.rsplit('/', 1)[-1]])
        paid = self.make_payment(provider_reference='ref-ok')
        refused = self.make_payment(provider_reference='ref-ko')

        stats = PaymentService.sync_pending_payments()
        paid.refresh_from_db()
        refused.refresh_from_db()

        self.assertEqual(stats['checked'], 2)
        self.assertEqual(paid.status, Payment.Status.SUCCEEDED)
        self.assertEqual(refused.status, Payment.Status.FAILED)
        self.assertEqual(refused.failure_reason, 'APPROVAL_REJECTED')

    @mock.patch('payments.mtn_service.requests.get')
    @mock.patch('payments.mtn_service.requests.post')
    def test_gateway_error_keeps_payment_pending(self, mock_post, mock_get):
        mock_post.return_value = fake_response({'access_token': 'tok', 'expires_in': 3600})
        mock_get.side_effect = requests.ConnectionError('down')
        payment = self.make_payment()

        stats = PaymentService.sync_pending_payments()
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(stats['errors'], 1)


@override_settings(**ORANGE_LIVE)
class OrangeGatewayTests(PaymentTestMixin, TestCase):

    @mock.patch('payments.orange_money_service.requests.post')
    def test_init_then_pay(self, mock_post):
        mock_post.side_effect = [
            fake_response({'access_token': 'tok', 'expires_in': 3600}),
            fake_response({'data': {'payToken': 'MP2601'}}),
            fake_response({'data': {'status': 'PENDING', 'txnid': 'MP.1234'}}),
        ]
        payment, gateway = PaymentService.initiate(self.parent, 'parent_public_monthly', 'orange_money', '699123456')

        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.provider_reference, 'MP2601')
        self.assertEqual(payment.metadata['transaction_id'], 'MP.1234')
        self.assertFalse(gateway['simulated'])

        pay_call = mock_post.call_args_list[2]
        self.assertEqual(pay_call.kwargs['headers']['X-AUTH-TOKEN'], 'x-auth')
        self.assertEqual(pay_call.kwargs['json']['subscriberMsisdn'], '699123456')
        self.assertEqual(pay_call.kwargs['json']['orderId'], payment.external_id)
        self.assertTrue(pay_call.kwargs['json']['notifUrl'].endswith('/api/payments/orange-money/webhook/'))

    @mock.patch('payments.orange_money_service.requests.post')
    def test_auth_failure_switches_to_simulation(self, mock_post):
        mock_post.return_value = fake_response({'error': 'invalid_client'}, status_code=401)
        payment, gateway = PaymentService.initiate(self.parent, 'parent_public_monthly', 'orange_money', '699123456')

        self.assertTrue(gateway['simulated'])
        self.assertTrue(payment.provider_reference.startswith('SIM-'))
        self.assertTrue(OrangeMoneyService.is_simulation())

    @mock.patch('payments.orange_money_service.requests.post')
    def test_refused_payment_is_failed(self, mock_post):
        mock_post.side_effect = [
            fake_response({'access_token': 'tok', 'expires_in': 3600}),
            fake_response({'data': {'payToken': 'MP2602'}}),
            fake_response({'data': {'status': 'FAILED', 'inittxnmessage': 'Solde insuffisant'}}),
        ]
        payment, _ = PaymentService.initiate(self.parent, 'parent_public_monthly', 'orange_money', '699123456')
        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertEqual(payment.failure_reason, 'Solde insuffisant')


@override_settings(MTN_CALLBACK_SECRET='shh')
class MobileMoneyWebhookTests(PaymentTestMixin, TestCase):

    def post_mtn(self, payload, secret='shh'):
        body = json.dumps(payload).encode('utf-8')
        signature = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()
        return self.client.post(
            '/api/payments/mtn/callback/', data=body, content_type='application/json',
            HTTP_X_CALLBACK_SIGNATURE=signature,
        )

    def test_mtn_success(self):
        payment = self.make_payment()
        response = self.post_mtn({'externalId': payment.external_id, 'status': 'SUCCESSFUL'})
        self.assertEqual(response.status_code, 200)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.SUCCEEDED)
        self.assertTrue(Subscription.objects.filter(user=self.parent, status='active').exists())

    def test_mtn_bad_signature(self):
        payment = self.make_payment()
        response = self.post_mtn({'externalId': payment.external_id, 'status': 'SUCCESSFUL'}, secret='wrong')
        self.assertEqual(response.status_code, 400)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.PENDING)

    def test_mtn_rejected(self):
        payment = self.make_payment()
        self.post_mtn({'externalId': payment.external_id, 'status': 'REJECTED'})
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.FAILED)

    def test_mtn_duplicate_callback(self):
        payment = self.make_payment()
        self.post_mtn({'externalId': payment.external_id, 'status': 'SUCCESSFUL'})
        response = self.post_mtn({'externalId': payment.external_id, 'status': 'SUCCESSFUL'})
        self.assertTrue(response.json()['duplicate'])
        self.assertEqual(WebhookEvent.objects.filter(provider='mtn_momo').count(), 1)

    def test_mtn_unknown_reference(self):
        response = self.post_mtn({'externalId': 'EDU_0_NOPE', 'status': 'SUCCESSFUL'})
        self.assertEqual(response.status_code, 404)

    @override_settings(MTN_CALLBACK_SECRET='')
    def test_invalid_json(self):
        response = self.client.post('/api/payments/mtn/callback/', data='not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_orange_webhook(self):
        payment = self.make_payment(provider=Payment.Provider.ORANGE_MONEY, provider_reference='MP2601',
                                    phone_number='699123456')
        response = self.client.post(
            '/api/payments/orange-money/webhook/',
            data=json.dumps({'payToken': 'MP2601', 'status': 'SUCCESSFULL'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 200)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.SUCCEEDED)

    def test_orange_webhook_expired(self):
        payment = self.make_payment(provider=Payment.Provider.ORANGE_MONEY, provider_reference='MP2602',
                                    phone_number='699123456')
        self.client.post(
            '/api/payments/orange-money/webhook/',
            data=json.dumps({'data': {'payToken': 'MP2602', 'status': 'EXPIRED'}}),
            content_type='application/json',
        )
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.FAILED)

    def test_webhooks_are_post_only(self):
        self.assertEqual(self.client.get('/api/payments/orange-money/webhook/').status_code, 405)


@override_settings(STRIPE_SECRET_KEY='sk_test_123', STRIPE_WEBHOOK_SECRET='whsec_123')
class StripeWebhookTests(PaymentTestMixin, TestCase):

    def post_event(self, event):
        return self.client.post(
            '/api/payments/stripe/webhook/', data=json.dumps(event), content_type='application/json',
            HTTP_STRIPE_SIGNATURE='t=1,v1=abc',
        )

    @override_settings(STRIPE_SECRET_KEY='')
    def test_unconfigured(self):
        self.assertEqual(self.post_event({'id': 'evt_1'}).status_code, 503)

    @mock.patch('payments.stripe_service.stripe.Webhook.construct_event')
    def test_bad_signature(self, mock_construct):
        mock_construct.side_effect = stripe.SignatureVerificationError('bad', 't=1,v1=abc')
        self.assertEqual(self.post_event({'id': 'evt_1'}).status_code, 400)

    @mock.patch('payments.stripe_service.stripe.Webhook.construct_event')
    def test_payment_intent_succeeded(self, mock_construct):
        payment = self.make_payment(provider=Payment.Provider.STRIPE, provider_reference='pi_123', phone_number='')
        event = {
            'id': 'evt_ok',
            'type': 'payment_intent.succeeded',
            'data': {'object': {'id': 'pi_123', 'status': 'succeeded', 'metadata': {'payment_id': str(payment.id)}}},
        }

        self.assertEqual(self.post_event(event).status_code, 200)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.SUCCEEDED)

        response = self.post_event(event)
        self.assertEqual(response.json()['status'], 'duplicate')
        self.assertEqual(Subscription.objects.filter(user=self.parent).count(), 1)
        mock_construct.assert_called()

    @mock.patch('payments.stripe_service.stripe.Webhook.construct_event')
    def test_subscription_lifecycle(self, mock_construct):
        period_end = int((timezone.now() + timedelta(days=30)).timestamp())
        created = {
            'id': 'evt_sub_1',
            'type': 'customer.subscription.created',
            'data': {'object': {
                'id': 'sub_1', 'status': 'active', 'current_period_end': period_end,
                'metadata': {'user_id': str(self.parent.id), 'plan_id': 'parent_private_monthly'},
            }},
        }
        self.post_event(created)
        subscription = Subscription.objects.get(stripe_subscription_id='sub_1')
        self.assertEqual(subscription.status, Subscription.Status.ACTIVE)
        self.assertEqual(subscription.category, 'parent')

        deleted = {'id': 'evt_sub_2', 'type': 'customer.subscription.deleted', 'data': {'object': {'id': 'sub_1'}}}
        self.post_event(deleted)
        subscription.refresh_from_db()
        self.assertEqual(subscription.status, Subscription.Status.CANCELED)


@override_settings(**NO_MTN, STRIPE_SECRET_KEY='')
class PaymentsAPITests(PaymentTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(self.parent)

    def test_plans_are_public(self):
        anonymous = APIClient()
        response = anonymous.get('/api/payments/plans/', {'category': 'freelancer'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['id'] for p in response.data['plans']],
                         ['freelancer_professional_semester', 'freelancer_professional_annual'])
        self.assertEqual(anonymous.get('/api/payments/plans/', {'category': 'vip'}).status_code, 400)

    def test_initiate_mtn(self):
        response = self.client.post('/api/payments/initiate/', {
            'plan_id': 'parent_public_monthly', 'provider': 'mtn_momo', 'phone_number': '677123456',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['payment']['status'], 'pending')
        self.assertEqual(response.data['payment']['plan_name'], 'Parent École Publique (Mensuel)')

    def test_initiate_requires_phone_for_mobile_money(self):
        response = self.client.post('/api/payments/initiate/', {
            'plan_id': 'parent_public_monthly', 'provider': 'orange_money',
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('phone_number', response.data)

    def test_initiate_invalid_phone(self):
        response = self.client.post('/api/payments/initiate/', {
            'plan_id': 'parent_public_monthly', 'provider': 'mtn_momo', 'phone_number': '699123456',
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['code'], 'INVALID_PHONE')

    def test_initiate_stripe_unconfigured(self):
        response = self.client.post('/api/payments/initiate/', {
            'plan_id': 'parent_public_monthly', 'provider': 'stripe',
        }, format='json')
        self.assertEqual(response.status_code, 503)

    def test_payment_list_is_own(self):
        mine = self.make_payment()
        self.make_payment(user=self.other, provider_reference='ref-other')
        response = self.client.get('/api/payments/payments/')
        self.assertEqual([p['id'] for p in response.data], [mine.id])

    def test_status_refresh(self):
        payment = self.make_payment()
        response = self.client.get(f'/api/payments/payments/{payment.id}/status/')
        self.assertEqual(response.status_code, 200)
        # Simulation mode keeps MTN payments pending until the callback
        self.assertEqual(response.data['status'], 'pending')

    def test_cancel_subscription(self):
        PaymentService.mark_succeeded(self.make_payment())
        subscription = Subscription.objects.get(user=self.parent)

        response = self.client.post(f'/api/payments/subscriptions/{subscription.id}/cancel/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'canceled')
        self.assertEqual(self.client.post(f'/api/payments/subscriptions/{subscription.id}/cancel/').status_code, 400)

    def test_mtn_send_is_admin_only(self):
        payload = {'amount': 5000, 'phone_number': '677123456', 'reason': 'Remboursement'}
        self.assertEqual(self.client.post('/api/payments/mtn/send/', payload, format='json').status_code, 403)

        admin = User.objects.create_user(email='ops@educafric.cm', password='pass', role='admin', is_staff=True)
        self.client.force_authenticate(admin)
        response = self.client.post('/api/payments/mtn/send/', payload, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertTrue(re.match(r'^EDU_OUT_\d{13}_[A-Z0-9]{6}$', response.data['external_id']))

    def test_mtn_balance_is_admin_only(self):
        self.assertEqual(self.client.get('/api/payments/mtn/balance/').status_code, 403)

        admin = User.objects.create_user(email='ops@educafric.cm', password='pass', role='admin', is_staff=True)
        self.client.force_authenticate(admin)
        response = self.client.get('/api/payments/mtn/balance/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['simulated'])

    def test_local_subscription_status(self):
        PaymentService.mark_succeeded(self.make_payment())
        subscription = Subscription.objects.get(user=self.parent)
        response = self.client.get(f'/api/payments/subscriptions/{subscription.id}/status/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['active'])

    @override_settings(STRIPE_SECRET_KEY='sk_test_123')
    @mock.patch('payments.stripe_service.stripe.Subscription.retrieve')
    def test_stripe_subscription_status(self, mock_retrieve):
        mock_retrieve.return_value = mock.Mock(status='past_due')
        subscription = Subscription.objects.create(
            user=self.parent, plan_id='parent_private_monthly', category='parent',
            payment_method=Payment.Provider.STRIPE, status=Subscription.Status.ACTIVE,
            expires_at=timezone.now() + timedelta(days=10), stripe_subscription_id='sub_9',
        )
        response = self.client.get(f'/api/payments/subscriptions/{subscription.id}/status/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data['active'])
        mock_retrieve.assert_called_once_with('sub_9')

        with override_settings(STRIPE_SECRET_KEY=''):
            response = self.client.get(f'/api/payments/subscriptions/{subscription.id}/status/')
        self.assertEqual(response.status_code, 503)
