"""
Notification models.

Notification     : in-app message shown in the notification centre
NotificationPreference : per-user channel settings (one row per user)
NotificationLog  : every delivery attempt on every channel, skips included
"""
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class NotificationType(models.TextChoices):
    INFO = 'info', _('Information')
    SUCCESS = 'success', _('Succès')
    WARNING = 'warning', _('Avertissement')
    ALERT = 'alert', _('Alerte')
    PAYMENT = 'payment', _('Paiement')
    ONLINE_CLASS = 'online_class', _('Cours en ligne')
    GEOLOCATION = 'geolocation', _('Géolocalisation')
    BULLETIN = 'bulletin', _('Bulletin')
    MESSAGE = 'message', _('Message')


class NotificationPriority(models.TextChoices):
    LOW = 'low', _('Basse')
    NORMAL = 'normal', _('Normale')
    HIGH = 'high', _('Haute')
    URGENT = 'urgent', _('Urgente')


class Notification(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    school = models.ForeignKey(
        'tenants.School',
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name='notifications',
    )
    title = models.CharField(_('titre'), max_length=200)
    message = models.TextField(_('message'))
    notification_type = models.CharField(
        _('type'), max_length=20,
        choices=NotificationType.choices, default=NotificationType.INFO,
    )
    priority = models.CharField(
        _('priorité'), max_length=10,
        choices=NotificationPriority.choices, default=NotificationPriority.NORMAL,
    )
    action_url = models.CharField(max_length=500, blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(_('lu'), default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('notification')
        verbose_name_plural = _('notifications')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notif_user_read_idx'),
        ]

    def __str__(self):
        return f'{self.user} - {self.title}'


class NotificationPreference(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notification_preference',
    )
    push_enabled = models.BooleanField(_('notifications in-app/push'), default=True)
    email_enabled = models.BooleanField(_('notifications email'), default=True)
    sms_enabled = models.BooleanField(_('notifications SMS'), default=False)
    phone = models.CharField(
        _('téléphone SMS'), max_length=20, blank=True, default='',
        help_text=_('Si vide, le téléphone du compte est utilisé')
    )
    sound_enabled = models.BooleanField(default=True)
    quiet_hours_start = models.TimeField(null=True, blank=True)
    quiet_hours_end = models.TimeField(null=True, blank=True)
    muted_types = models.JSONField(
        default=list, blank=True,
        help_text=_('Types de notification désactivés, ex. ["bulletin"]')
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('préférences de notification')
        verbose_name_plural = _('préférences de notification')

    def __str__(self):
        return f'Preferences {self.user}'

    def is_muted(self, notification_type):
        return notification_type in (self.muted_types or [])

    def in_quiet_hours(self, moment):
        """True when the local time of `moment` falls inside the quiet window."""
        start, end = self.quiet_hours_start, self.quiet_hours_end
        if start is None or end is None or start == end:
            return False
        current = moment.time()
        if start < end:
            return start <= current < end
        # Fenêtre de nuit (ex. 21:00 → 06:00)
        return current >= start or current < end

    def sms_phone(self):
        return self.phone or (self.user.phone_number or '')


class NotificationLog(models.Model):
    CHANNEL_CHOICES = (
        ('in_app', 'In-app'),
        ('email', 'Email'),
        ('sms', 'SMS'),
    )
    STATUS_CHOICES = (
        ('sent', 'Envoyé'),
        ('failed', 'Échec'),
        ('skipped', 'Ignoré'),
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notification_logs',
    )
    notification = models.ForeignKey(
        Notification,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='logs',
    )
    notification_type = models.CharField(max_length=20)
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    error_message = models.CharField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('journal de notification')
        verbose_name_plural = _('journal des notifications')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'channel', 'status'], name='notif_log_user_chan_idx'),
        ]

    def __str__(self):
        return f'{self.user} {self.channel} {self.status}'
