from datetime import datetime, time
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from .models import Notification, NotificationLog, NotificationPreference, NotificationPriority, NotificationType
from .services import NotificationService
from .sms_service import SMSService, normalize_cameroon_phone

User = get_user_model()

SMS_ON = dict(FEATURE_SMS_NOTIFICATIONS=True, VONAGE_API_KEY='key', VONAGE_API_SECRET='secret')


def vonage_response(status='0', error_text=''):
    response = MagicMock()
    response.json.return_value = {'messages': [{'status': status, 'message-id': 'MSG-1',
                                                'error-text': error_text}]}
    return response


class PhoneNormalizationTests(SimpleTestCase):

    def test_cameroon_formats(self):
        self.assertEqual(normalize_cameroon_phone('677 12 34 56'), '237677123456')
        self.assertEqual(normalize_cameroon_phone('+237 677-12-34-56'), '237677123456')
        self.assertEqual(normalize_cameroon_phone('00237677123456'), '237677123456')
        self.assertEqual(normalize_cameroon_phone(None), '')


class QuietHoursTests(SimpleTestCase):

    def prefs(self, start, end):
        return NotificationPreference(quiet_hours_start=start, quiet_hours_end=end)

    def test_overnight_window(self):
        prefs = self.prefs(time(21, 0), time(6, 0))
        self.assertTrue(prefs.in_quiet_hours(datetime(2026, 3, 2, 23, 30)))
        self.assertTrue(prefs.in_quiet_hours(datetime(2026, 3, 2, 5, 59)))
        self.assertFalse(prefs.in_quiet_hours(datetime(2026, 3, 2, 6, 0)))

    def test_day_window(self):
        prefs = self.prefs(time(12, 0), time(14, 0))
        self.assertTrue(prefs.in_quiet_hours(datetime(2026, 3, 2, 13, 0)))
        self.assertFalse(prefs.in_quiet_hours(datetime(2026, 3, 2, 14, 0)))

    def test_unset_window(self):
        self.assertFalse(self.prefs(None, None).in_quiet_hours(datetime(2026, 3, 2, 23, 0)))


class NotificationServiceTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='parent@joss.cm', password='pass', role='parent',
                                             phone_number='677123456')

    def channel_status(self, channel):
        return NotificationLog.objects.filter(user=self.user, channel=channel).values_list('status', flat=True).first()

    def test_notify_creates_in_app_and_email(self):
        notification = NotificationService.notify(self.user, 'Bulletin disponible', 'Le bulletin T1 est prêt.',
                                                  notification_type=NotificationType.BULLETIN)
        self.assertIsNotNone(notification)
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, '[Educafric] Bulletin disponible')
        self.assertEqual(self.channel_status('in_app'), 'sent')
        self.assertEqual(self.channel_status('email'), 'sent')
        self.assertEqual(self.channel_status('sms'), 'skipped')

    def test_muted_type_returns_none(self):
        NotificationPreference.objects.create(user=self.user, muted_types=['payment'])
        result = NotificationService.notify(self.user, 'Paiement', 'Reçu', notification_type=NotificationType.PAYMENT)
        self.assertIsNone(result)
        self.assertFalse(Notification.objects.exists())
        self.assertEqual(NotificationLog.objects.filter(status='skipped').count(), 3)

    def test_email_disabled(self):
        NotificationPreference.objects.create(user=self.user, email_enabled=False)
        NotificationService.notify(self.user, 'Info', 'Message')
        self.assertEqual(len(mail.outbox), 0)
        self.assertEqual(self.channel_status('email'), 'skipped')

    @override_settings(**SMS_ON)
    @patch('notifications.sms_service.requests.post')
    def test_urgent_sms_sent(self, mock_post):
        mock_post.return_value = vonage_response()
        NotificationPreference.objects.create(user=self.user, sms_enabled=True)

        NotificationService.notify(self.user, 'Alerte', 'Sortie de zone', priority=NotificationPriority.URGENT)

        self.assertEqual(self.channel_status('sms'), 'sent')
        self.assertEqual(mock_post.call_args.kwargs['data']['to'], '237677123456')

    @override_settings(**SMS_ON)
    @patch('notifications.sms_service.requests.post')
    def test_normal_priority_skips_sms(self, mock_post):
        NotificationPreference.objects.create(user=self.user, sms_enabled=True)
        NotificationService.notify(self.user, 'Info', 'Message')
        mock_post.assert_not_called()
        log = NotificationLog.objects.get(user=self.user, channel='sms')
        self.assertEqual(log.error_message, 'priority too low')

    @override_settings(**SMS_ON)
    @patch('notifications.sms_service.requests.post')
    def test_provider_error_logged(self, mock_post):
        mock_post.return_value = vonage_response(status='4', error_text='Bad Credentials')
        NotificationPreference.objects.create(user=self.user, sms_enabled=True)

        NotificationService.notify(self.user, 'Alerte', 'Retard', priority=NotificationPriority.HIGH)

        log = NotificationLog.objects.get(user=self.user, channel='sms')
        self.assertEqual(log.status, 'failed')
        self.assertEqual(log.error_message, 'Bad Credentials')

    def test_sms_service_disabled_without_credentials(self):
        result = SMSService().send_sms('677123456', 'test')
        self.assertFalse(result['success'])

    def test_notify_many_counts_delivered(self):
        other = User.objects.create_user(email='muted@joss.cm', password='pass')
        NotificationPreference.objects.create(user=other, muted_types=['info'])
        self.assertEqual(NotificationService.notify_many([self.user, other], 'Info', 'Message'), 1)


class NotificationAPITests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='parent@joss.cm', password='pass', role='parent')
        self.other = User.objects.create_user(email='other@joss.cm', password='pass', role='parent')
        self.mine = Notification.objects.create(user=self.user, title='A', message='a')
        Notification.objects.create(user=self.user, title='B', message='b', notification_type='payment')
        Notification.objects.create(user=self.other, title='C', message='c')
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def test_list_only_mine(self):
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual({n['title'] for n in response.data}, {'A', 'B'})

        response = self.client.get('/api/notifications/', {'type': 'payment'})
        self.assertEqual([n['title'] for n in response.data], ['B'])

    def test_read_and_unread_count(self):
        response = self.client.post(f'/api/notifications/{self.mine.id}/read/')
        self.assertTrue(response.data['is_read'])
        self.assertEqual(self.client.get('/api/notifications/unread-count/').data['unread'], 1)

        self.assertEqual(self.client.post('/api/notifications/read-all/').data['updated'], 1)
        self.assertEqual(self.client.get('/api/notifications/', {'unread': '1'}).data, [])

    def test_cannot_read_other_users_notification(self):
        foreign = Notification.objects.get(user=self.other)
        self.assertEqual(self.client.post(f'/api/notifications/{foreign.id}/read/').status_code, 404)

    def test_preferences(self):
        response = self.client.patch('/api/notifications/preferences/', {'muted_types': ['bulletin']},
                                     format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['muted_types'], ['bulletin'])

        response = self.client.patch('/api/notifications/preferences/', {'muted_types': ['spam']}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_sms_requires_phone(self):
        response = self.client.patch('/api/notifications/preferences/', {'sms_enabled': True}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('phone', response.data)

    def test_quiet_hours_go_together(self):
        response = self.client.patch('/api/notifications/preferences/', {'quiet_hours_start': '21:00'},
                                     format='json')
        self.assertEqual(response.status_code, 400)
