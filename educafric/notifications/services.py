"""
Notification dispatch.

One call to NotificationService.notify() writes the in-app notification and
fans out to email and SMS according to the user's preferences. Every channel
attempt is written to NotificationLog, skips included, so support can answer
"why didn't I get the SMS?".
"""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import (
    Notification,
    NotificationLog,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
)
from .sms_service import SMSService

logger = logging.getLogger(__name__)

SMS_PRIORITIES = (NotificationPriority.HIGH, NotificationPriority.URGENT)


class NotificationService:

    @staticmethod
    def get_preferences(user):
        prefs, _ = NotificationPreference.objects.get_or_create(user=user)
        return prefs

    @staticmethod
    def _log(user, notification, notification_type, channel, status, error=''):
        NotificationLog.objects.create(
            user=user,
            notification=notification,
            notification_type=notification_type,
            channel=channel,
            status=status,
            error_message=error[:500],
        )

    @staticmethod
    def notify(
        user,
        title,
        message,
        notification_type=NotificationType.INFO,
        priority=NotificationPriority.NORMAL,
        action_url='',
        metadata=None,
        school=None,
    ):
        """
        Notify a user on every enabled channel.

        Returns the in-app Notification, or None when the type is muted.
        """
        prefs = NotificationService.get_preferences(user)

        if prefs.is_muted(notification_type):
            for channel in ('in_app', 'email', 'sms'):
                NotificationService._log(user, None, notification_type, channel, 'skipped', 'type muted by user')
            return None

        notification = Notification.objects.create(
            user=user,
            school=school,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            action_url=action_url or '',
            metadata=metadata or {},
        )
        NotificationService._log(user, notification, notification_type, 'in_app', 'sent')

        NotificationService._send_email(user, prefs, notification)
        NotificationService._send_sms(user, prefs, notification)

        return notification

    @staticmethod
    def notify_many(users, title, message, **kwargs):
        count = 0
        for user in users:
            if NotificationService.notify(user, title, message, **kwargs) is not None:
                count += 1
        return count

    @staticmethod
    def _send_email(user, prefs, notification):
        if not prefs.email_enabled:
            NotificationService._log(user, notification, notification.notification_type, 'email', 'skipped', 'email disabled')
            return False
        if not user.email:
            NotificationService._log(user, notification, notification.notification_type, 'email', 'skipped', 'no email')
            return False

        try:
            send_mail(
                subject=f'[Educafric] {notification.title}',
                message=notification.message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=False,
            )
        except Exception as e:
            logger.error(f'Email notification failed for user={user.id}: {e}')
            NotificationService._log(user, notification, notification.notification_type, 'email', 'failed', str(e))
            return False

        NotificationService._log(user, notification, notification.notification_type, 'email', 'sent')
        return True

    @staticmethod
    def _send_sms(user, prefs, notification):
        notification_type = notification.notification_type

        if not getattr(settings, 'FEATURE_SMS_NOTIFICATIONS', False):
            NotificationService._log(user, notification, notification_type, 'sms', 'skipped', 'sms feature disabled')
            return False
        if not prefs.sms_enabled:
            NotificationService._log(user, notification, notification_type, 'sms', 'skipped', 'sms disabled')
            return False
        if notification.priority not in SMS_PRIORITIES:
            NotificationService._log(user, notification, notification_type, 'sms', 'skipped', 'priority too low')
            return False
        if notification.priority != NotificationPriority.URGENT and prefs.in_quiet_hours(timezone.localtime()):
            NotificationService._log(user, notification, notification_type, 'sms', 'skipped', 'quiet hours')
            return False

        phone = prefs.sms_phone()
        if not phone:
            NotificationService._log(user, notification, notification_type, 'sms', 'skipped', 'no phone')
            return False

        result = SMSService().send_sms(phone, f'{notification.title}: {notification.message}'[:320])
        if result.get('success'):
            NotificationService._log(user, notification, notification_type, 'sms', 'sent')
            return True

        NotificationService._log(user, notification, notification_type, 'sms', 'failed', result.get('error', ''))
        return False

    @staticmethod
    def mark_all_read(user):
        return Notification.objects.filter(user=user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
