from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Payment(models.Model):

    class Provider(models.TextChoices):
        STRIPE = 'stripe', _('Carte bancaire (Stripe)')
        MTN_MOMO = 'mtn_momo', _('MTN Mobile Money')
        ORANGE_MONEY = 'orange_money', _('Orange Money')
        MANUAL = 'manual', _('Manuel')

    class Status(models.TextChoices):
        PENDING = 'pending', _('En attente')
        SUCCEEDED = 'succeeded', _('Réussi')
        FAILED = 'failed', _('Échoué')
        CANCELED = 'canceled', _('Annulé')
        REFUNDED = 'refunded', _('Remboursé')

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='payments',
    )
    school = models.ForeignKey(
        'tenants.School',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='payments',
    )
    plan_id = models.CharField(_('offre'), max_length=60)
    amount = models.PositiveIntegerField(_('montant'))
    currency = models.CharField(max_length=3, default='XAF')
    provider = models.CharField(max_length=20, choices=Provider.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)

    external_id = models.CharField(
        _('référence commande'), max_length=80, unique=True,
        help_text=_('Notre référence, transmise à l\'opérateur')
    )
    provider_reference = models.CharField(max_length=120, blank=True, default='', db_index=True)
    phone_number = models.CharField(max_length=20, blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True, default='')
    paid_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('paiement')
        verbose_name_plural = _('paiements')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['provider', 'status', 'created_at'], name='payment_provider_status_idx'),
            models.Index(fields=['user', '-created_at'], name='payment_user_created_idx'),
        ]

    def __str__(self):
        return f'{self.external_id} {self.amount} {self.currency} [{self.status}]'

    @property
    def is_final(self):
        return self.status != self.Status.PENDING


class Subscription(models.Model):

    class Status(models.TextChoices):
        PENDING = 'pending', _('En attente')
        ACTIVE = 'active', _('Active')
        CANCELED = 'canceled', _('Annulée')
        EXPIRED = 'expired', _('Expirée')

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='subscriptions',
    )
    school = models.ForeignKey(
        'tenants.School',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='subscriptions',
    )
    plan_id = models.CharField(max_length=60)
    category = models.CharField(max_length=20)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_method = models.CharField(max_length=20, choices=Payment.Provider.choices)
    starts_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    auto_renew = models.BooleanField(default=False)
    stripe_subscription_id = models.CharField(max_length=120, blank=True, default='', db_index=True)
    last_payment = models.ForeignKey(
        Payment,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('abonnement')
        verbose_name_plural = _('abonnements')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'plan_id', 'status'], name='sub_user_plan_status_idx'),
        ]

    def __str__(self):
        return f'{self.user} - {self.plan_id} [{self.status}]'

    def is_active(self):
        return (
            self.status == self.Status.ACTIVE
            and self.expires_at is not None
            and self.expires_at > timezone.now()
        )


class WebhookEvent(models.Model):
    """Every webhook received, stored before processing. Used for deduplication."""

    provider = models.CharField(max_length=20, choices=Payment.Provider.choices)
    event_id = models.CharField(max_length=120)
    event_type = models.CharField(max_length=80, blank=True, default='')
    payload = models.JSONField(default=dict)
    processed = models.BooleanField(default=False)
    error = models.TextField(blank=True, default='')
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('événement webhook')
        verbose_name_plural = _('événements webhook')
        ordering = ['-received_at']
        unique_together = ('provider', 'event_id')

    def __str__(self):
        return f'{self.provider}:{self.event_type} {self.event_id}'
