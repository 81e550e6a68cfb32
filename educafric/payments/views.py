"""
Payments API.

    GET  /api/payments/plans/?category=parent|school|freelancer
    POST /api/payments/initiate/                  {plan_id, provider, phone_number}
    POST /api/payments/stripe/confirm/            {payment_intent_id}
    GET  /api/payments/payments/
    GET  /api/payments/payments/{id}/status/      refresh from the gateway
    GET  /api/payments/subscriptions/
    GET  /api/payments/subscriptions/{id}/status/ active according to the gateway
    POST /api/payments/subscriptions/{id}/cancel/
    POST /api/payments/mtn/send/                  platform admins
    GET  /api/payments/mtn/balance/               platform admins
"""
import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from tenants.mixins import get_request_school
from tenants.permissions import IsPlatformAdmin

from .exceptions import GatewayError, GatewayUnavailableError, PaymentError
from .models import Payment, Subscription
from .mtn_service import MTNMobileMoneyService
from .plans import CATEGORIES, plans_for_category
from .serializers import (
    InitiatePaymentSerializer,
    MTNSendSerializer,
    PaymentSerializer,
    StripeConfirmSerializer,
    SubscriptionSerializer,
)
from .services import PaymentService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)


def payment_error_response(exc):
    if isinstance(exc, GatewayUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, GatewayError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({'error': str(exc), 'code': exc.code}, status=code)


class PlanListView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        category = request.query_params.get('category')
        if category and category not in CATEGORIES:
            return Response({'error': f'Catégorie inconnue: {category}'}, status=status.HTTP_400_BAD_REQUEST)
        return Response({
            'currency': 'XAF',
            'plans': [plan.to_dict() for plan in plans_for_category(category)],
        })


class InitiatePaymentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = InitiatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            payment, gateway = PaymentService.initiate(
                request.user,
                data['plan_id'],
                data['provider'],
                phone_number=data.get('phone_number'),
                school=get_request_school(request),
            )
        except PaymentError as e:
            return payment_error_response(e)

        return Response(
            {'payment': PaymentSerializer(payment).data, 'gateway': gateway},
            status=status.HTTP_201_CREATED,
        )


class StripeConfirmView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = StripeConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        intent_id = serializer.validated_data['payment_intent_id']

        if not Payment.objects.filter(user=request.user, provider_reference=intent_id).exists():
            return Response({'error': 'Paiement introuvable'}, status=status.HTTP_404_NOT_FOUND)

        try:
            payment = StripeService.confirm_payment(intent_id)
        except PaymentError as e:
            return payment_error_response(e)

        if payment is None:
            return Response({'confirmed': False}, status=status.HTTP_409_CONFLICT)
        return Response({'confirmed': True, 'payment': PaymentSerializer(payment).data})


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Payment.objects.filter(user=self.request.user)

    @action(detail=True, methods=['get'], url_path='status')
    def refresh_status(self, request, pk=None):
        payment = self.get_object()
        try:
            payment = PaymentService.refresh_status(payment)
        except PaymentError as e:
            return payment_error_response(e)
        return Response(PaymentSerializer(payment).data)


class SubscriptionViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = SubscriptionSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Subscription.objects.filter(user=self.request.user)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        subscription = self.get_object()
        try:
            subscription = PaymentService.cancel_subscription(subscription)
        except PaymentError as e:
            return payment_error_response(e)
        return Response(SubscriptionSerializer(subscription).data)

    @action(detail=True, methods=['get'], url_path='status')
    def check_status(self, request, pk=None):
        subscription = self.get_object()
        try:
            active = StripeService.check_subscription_status(subscription)
        except PaymentError as e:
            return payment_error_response(e)
        return Response({'active': active, 'subscription': SubscriptionSerializer(subscription).data})


class MTNSendView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def post(self, request):
        serializer = MTNSendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            result = MTNMobileMoneyService.send_payment(data['amount'], data['phone_number'], data['reason'])
        except PaymentError as e:
            return payment_error_response(e)

        logger.info(f"MTN cash-out {result['external_id']} by admin {request.user.id}")
        return Response(result, status=status.HTTP_201_CREATED)


class MTNBalanceView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def get(self, request):
        try:
            return Response(MTNMobileMoneyService.get_balance())
        except PaymentError as e:
            return payment_error_response(e)
