from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views, webhooks

router = DefaultRouter()
router.register('payments', views.PaymentViewSet, basename='payment')
router.register('subscriptions', views.SubscriptionViewSet, basename='subscription')

urlpatterns = [
    path('plans/', views.PlanListView.as_view(), name='payment-plans'),
    path('initiate/', views.InitiatePaymentView.as_view(), name='payment-initiate'),
    path('stripe/confirm/', views.StripeConfirmView.as_view(), name='stripe-confirm'),
    path('mtn/send/', views.MTNSendView.as_view(), name='mtn-send'),
    path('mtn/balance/', views.MTNBalanceView.as_view(), name='mtn-balance'),

    path('stripe/webhook/', webhooks.stripe_webhook, name='stripe-webhook'),
    path('mtn/callback/', webhooks.mtn_callback, name='mtn-callback'),
    path('orange-money/webhook/', webhooks.orange_money_webhook, name='orange-money-webhook'),

    path('', include(router.urls)),
]
