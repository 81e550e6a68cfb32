from django.contrib import admin

from .models import Payment, Subscription, WebhookEvent


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('external_id', 'user', 'plan_id', 'amount', 'currency', 'provider', 'status', 'created_at')
    list_filter = ('provider', 'status')
    search_fields = ('external_id', 'provider_reference', 'user__email', 'phone_number')
    date_hierarchy = 'created_at'
    raw_id_fields = ('user', 'school')
    readonly_fields = ('created_at', 'updated_at', 'paid_at')


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('user', 'plan_id', 'category', 'status', 'payment_method', 'expires_at', 'auto_renew')
    list_filter = ('status', 'category', 'payment_method')
    search_fields = ('user__email', 'plan_id', 'stripe_subscription_id')
    raw_id_fields = ('user', 'school', 'last_payment')


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ('provider', 'event_type', 'event_id', 'processed', 'received_at')
    list_filter = ('provider', 'processed')
    search_fields = ('event_id',)
    readonly_fields = ('payload', 'received_at')
