from datetime import date, datetime, time, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import ParentStudentRelation
from notifications.models import Notification
from tenants.models import School, SchoolMembership

from . import recurrence as rules
from .models import ClassRecurrence, ClassSession, CourseEnrollment, OnlineClassActivation, OnlineCourse
from .services import (
    ActivationRequiredError,
    InvalidRecurrenceError,
    InvalidSessionStateError,
    SchedulerService,
    SessionAccessDenied,
)

User = get_user_model()

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)


class RecurrenceRuleTests(SimpleTestCase):

    def test_daily_interval(self):
        dates = rules.occurrence_dates('daily', 2, [], MONDAY, None, MONDAY, weeks_ahead=1)
        self.assertEqual(dates, [MONDAY + timedelta(days=d) for d in (0, 2, 4, 6)])

    def test_weekly_by_day(self):
        dates = rules.occurrence_dates('weekly', 1, ['monday', 'wednesday'], MONDAY, None, MONDAY, weeks_ahead=2)
        self.assertEqual(dates, [
            date(2030, 1, 7), date(2030, 1, 9), date(2030, 1, 14), date(2030, 1, 16), date(2030, 1, 21),
        ])

    def test_weekly_every_other_week(self):
        dates = rules.occurrence_dates('weekly', 2, ['friday'], MONDAY, None, MONDAY, weeks_ahead=4)
        self.assertEqual(dates, [date(2030, 1, 11), date(2030, 1, 25)])

    def test_biweekly_defaults_to_start_weekday(self):
        dates = rules.occurrence_dates('biweekly', 1, [], MONDAY, None, MONDAY, weeks_ahead=4)
        self.assertEqual(dates, [date(2030, 1, 7), date(2030, 1, 21), date(2030, 2, 4)])

    def test_window_capped_by_end_date(self):
        dates = rules.occurrence_dates('daily', 1, [], MONDAY, date(2030, 1, 9), MONDAY, weeks_ahead=4)
        self.assertEqual(len(dates), 3)

    def test_window_starts_today_when_rule_started_earlier(self):
        today = date(2030, 1, 20)
        dates = rules.occurrence_dates('weekly', 1, ['monday'], MONDAY, None, today, weeks_ahead=1)
        self.assertEqual(dates, [date(2030, 1, 21)])

    def test_invalid_day_names_reported(self):
        self.assertEqual(rules.validate_by_day(['monday', 'lundi']), ['lundi'])


class SchedulerTestMixin:

    def setUp(self):
        self.director = User.objects.create_user(email='dir@lycee.cm', password='pass', role='director')
        self.teacher = User.objects.create_user(email='prof@lycee.cm', password='pass', role='teacher')
        self.student = User.objects.create_user(email='eleve@lycee.cm', password='pass', role='student')
        self.parent = User.objects.create_user(email='parent@lycee.cm', password='pass', role='parent')
        self.outsider = User.objects.create_user(email='autre@lycee.cm', password='pass', role='student')

        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss', owner=self.director)
        for user, role in ((self.director, 'director'), (self.teacher, 'teacher'),
                           (self.student, 'student'), (self.parent, 'parent'), (self.outsider, 'student')):
            SchoolMembership.objects.create(school=self.school, user=user, role=role)

        ParentStudentRelation.objects.create(parent=self.parent, student=self.student)

        self.course = OnlineCourse.objects.create(
            school=self.school, teacher=self.teacher, title='Mathématiques', class_name='3ème A'
        )
        CourseEnrollment.objects.create(course=self.course, user=self.student)

    def activate(self):
        return SchedulerService.activate_for_school(self.school, 'monthly', admin=self.director)

    def make_recurrence(self, **overrides):
        fields = dict(
            school=self.school, course=self.course, teacher=self.teacher, title='Maths',
            rule_type='weekly', interval=1, by_day=['monday', 'wednesday'],
            start_time=time(8, 0), duration_minutes=60, start_date=MONDAY,
            created_by=self.director, auto_notify=False,
        )
        fields.update(overrides)
        return ClassRecurrence.objects.create(**fields)


class ActivationTests(SchedulerTestMixin, TestCase):

    def test_activation_lifecycle(self):
        self.assertFalse(SchedulerService.has_active_activation(self.school))
        activation = self.activate()
        self.assertTrue(SchedulerService.has_active_activation(self.school))
        self.assertEqual((activation.end_date - activation.start_date).days, 30)

    def test_active_activation_is_extended(self):
        first = self.activate()
        end = first.end_date
        second = SchedulerService.activate_for_school(self.school, 'weekly')
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(second.end_date, end + timedelta(days=7))
        self.assertEqual(OnlineClassActivation.objects.count(), 1)

    def test_teacher_activation(self):
        activation = SchedulerService.activate_for_teacher(
            self.teacher, 'yearly', payment_reference='EDU-1', payment_method='mtn', amount_paid=50000
        )
        self.assertEqual(activation.activated_by, 'self_purchase')
        self.assertEqual((activation.end_date - activation.start_date).days, 365)

    def test_expire_activations(self):
        activation = self.activate()
        activation.end_date = timezone.now() - timedelta(minutes=1)
        activation.save()
        self.assertEqual(SchedulerService.expire_activations(), 1)
        activation.refresh_from_db()
        self.assertEqual(activation.status, OnlineClassActivation.Status.EXPIRED)


class SessionServiceTests(SchedulerTestMixin, TestCase):

    def session_data(self, **overrides):
        data = {
            'course': self.course,
            'title': 'Révision',
            'scheduled_start': timezone.now() + timedelta(days=1),
            'duration_minutes': 90,
        }
        data.update(overrides)
        return data

    def test_session_requires_activation(self):
        with self.assertRaises(ActivationRequiredError):
            SchedulerService.create_scheduled_session(self.school, self.session_data(), self.director)

    def test_create_session_notifies_students_and_parents(self):
        self.activate()
        session = SchedulerService.create_scheduled_session(self.school, self.session_data(), self.director)

        self.assertEqual(session.creator_type, 'school')
        self.assertEqual(session.duration_minutes, 90)
        self.assertTrue(session.room_name.startswith(f'school-{str(self.school.pk).replace("-", "")[:8]}-'))
        self.assertTrue(session.notifications_sent)
        notified = set(Notification.objects.values_list('user_id', flat=True))
        self.assertEqual(notified, {self.student.id, self.parent.id})

    def test_lifecycle_transitions(self):
        self.activate()
        session = SchedulerService.create_scheduled_session(
            self.school, self.session_data(auto_notify=False), self.director
        )
        with self.assertRaises(InvalidSessionStateError):
            SchedulerService.end_session(session)

        SchedulerService.start_session(session)
        self.assertEqual(session.status, 'live')
        self.assertIsNotNone(session.actual_start)

        SchedulerService.end_session(session)
        self.assertEqual(session.status, 'ended')
        with self.assertRaises(InvalidSessionStateError):
            SchedulerService.cancel_session(session)

    @override_settings(JITSI_BASE_URL='https://meet.educafric.test')
    def test_join_and_leave(self):
        self.activate()
        session = SchedulerService.create_scheduled_session(
            self.school, self.session_data(auto_notify=False), self.director
        )

        payload = SchedulerService.join_session(session, self.student)
        self.assertEqual(payload['join_url'], f'https://meet.educafric.test/{session.room_name}')
        self.assertFalse(payload['is_moderator'])
        self.assertTrue(SchedulerService.join_session(session, self.teacher)['is_moderator'])
        self.assertTrue(SchedulerService.can_join(session, self.parent))

        with self.assertRaises(SessionAccessDenied):
            SchedulerService.join_session(session, self.outsider)

        attendance = SchedulerService.leave_session(session, self.student, 'network')
        self.assertIsNotNone(attendance.left_at)
        self.assertEqual(attendance.left_reason, 'network')

    def test_cannot_join_canceled_session(self):
        self.activate()
        session = SchedulerService.create_scheduled_session(
            self.school, self.session_data(auto_notify=False), self.director
        )
        SchedulerService.cancel_session(session)
        with self.assertRaises(InvalidSessionStateError):
            SchedulerService.join_session(session, self.student)


class RecurrenceServiceTests(SchedulerTestMixin, TestCase):

    NOW = datetime(2030, 1, 6, 12, 0, tzinfo=dt_timezone.utc)

    def test_generate_is_idempotent(self):
        recurrence = self.make_recurrence()
        created = SchedulerService.generate_sessions(recurrence, weeks_ahead=2, now=self.NOW)
        self.assertEqual(len(created), 5)
        self.assertEqual(recurrence.occurrences_generated, 5)
        self.assertEqual(recurrence.next_generation_at, self.NOW + timedelta(days=7))

        again = SchedulerService.generate_sessions(recurrence, weeks_ahead=2, now=self.NOW)
        self.assertEqual(again, [])
        self.assertEqual(recurrence.sessions.count(), 5)

    def test_generated_sessions_use_school_timezone(self):
        recurrence = self.make_recurrence()
        session = SchedulerService.generate_sessions(recurrence, weeks_ahead=1, now=self.NOW)[0]
        # Africa/Douala is UTC+1
        self.assertEqual(session.scheduled_start, datetime(2030, 1, 7, 7, 0, tzinfo=dt_timezone.utc))
        self.assertIn(f'-recur-{recurrence.id}-', session.room_name)
        self.assertEqual(session.recurrence_id, recurrence.id)

    def test_past_occurrences_skipped(self):
        recurrence = self.make_recurrence(rule_type='daily', by_day=[])
        now = datetime(2030, 1, 7, 9, 0, tzinfo=dt_timezone.utc)
        created = SchedulerService.generate_sessions(recurrence, weeks_ahead=1, now=now)
        self.assertNotIn(MONDAY, [timezone.localtime(s.scheduled_start).date() for s in created])
        self.assertEqual(len(created), 7)

    def test_paused_rule_generates_nothing(self):
        recurrence = self.make_recurrence()
        SchedulerService.update_recurrence(recurrence, 'pause', self.director, reason='Congés')
        self.assertTrue(recurrence.is_paused)
        self.assertEqual(SchedulerService.generate_sessions(recurrence, now=self.NOW), [])

        SchedulerService.update_recurrence(recurrence, 'resume', self.director)
        self.assertTrue(recurrence.is_active)
        self.assertIsNone(recurrence.paused_by)
        self.assertTrue(SchedulerService.generate_sessions(recurrence, weeks_ahead=1, now=self.NOW))

    def test_end_action_sets_end_date(self):
        recurrence = self.make_recurrence()
        SchedulerService.update_recurrence(recurrence, 'end', self.director, end_date=date(2030, 3, 1))
        self.assertFalse(recurrence.is_active)
        self.assertEqual(recurrence.end_date, date(2030, 3, 1))

    def test_unknown_action_rejected(self):
        with self.assertRaises(InvalidRecurrenceError):
            SchedulerService.update_recurrence(self.make_recurrence(), 'explode', self.director)

    def test_delete_cancels_future_sessions_and_keeps_past(self):
        recurrence = self.make_recurrence()
        SchedulerService.generate_sessions(recurrence, weeks_ahead=1, now=self.NOW)
        past = ClassSession.objects.create(
            school=self.school, course=self.course, title='Passée',
            scheduled_start=timezone.now() - timedelta(days=2), room_name='past-room',
            created_by=self.director, recurrence=recurrence, status=ClassSession.Status.ENDED,
        )

        canceled = SchedulerService.delete_recurrence(recurrence)
        self.assertEqual(canceled, 3)
        past.refresh_from_db()
        self.assertIsNone(past.recurrence_id)
        self.assertEqual(past.status, 'ended')
        self.assertEqual(ClassSession.objects.filter(status='canceled').count(), 3)

    def test_create_recurrence_validates(self):
        self.activate()
        data = {
            'course': self.course, 'rule_type': 'weekly', 'by_day': [],
            'start_time': time(8, 0), 'start_date': timezone.localdate() + timedelta(days=1),
        }
        with self.assertRaises(InvalidRecurrenceError):
            SchedulerService.create_recurrence(self.school, data, self.director)

        data.update(by_day=['monday'], duration_minutes=300)
        with self.assertRaises(InvalidRecurrenceError):
            SchedulerService.create_recurrence(self.school, data, self.director)

    def test_zero_interval_and_duration_rejected(self):
        base = {
            'rule_type': 'weekly', 'by_day': ['monday'],
            'start_time': time(8, 0), 'start_date': MONDAY,
        }
        with self.assertRaises(InvalidRecurrenceError):
            SchedulerService.validate_recurrence_data(dict(base, interval=0))
        with self.assertRaises(InvalidRecurrenceError):
            SchedulerService.validate_recurrence_data(dict(base, duration_minutes=0))
        SchedulerService.validate_recurrence_data(dict(base, interval=None, duration_minutes=None))

    def test_create_recurrence_generates_four_weeks(self):
        self.activate()
        data = {
            'course': self.course, 'rule_type': 'weekly', 'by_day': ['tuesday'],
            'start_time': time(10, 0), 'start_date': timezone.localdate() + timedelta(days=1),
            'auto_notify': False,
        }
        recurrence, created = SchedulerService.create_recurrence(self.school, data, self.director)
        self.assertIn(len(created), (4, 5))
        self.assertEqual(recurrence.occurrences_generated, len(created))


class OnlineClassesAPITests(SchedulerTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.director)

    def test_missing_activation_returns_402(self):
        resp = self.client.post('/api/online-classes/sessions/', {
            'course': self.course.id,
            'scheduled_start': (timezone.now() + timedelta(days=1)).isoformat(),
        }, format='json')
        self.assertEqual(resp.status_code, 402)
        self.assertEqual(resp.json()['code'], 'ACTIVATION_REQUIRED')

    def test_director_creates_session(self):
        self.activate()
        resp = self.client.post('/api/online-classes/sessions/', {
            'course': self.course.id,
            'title': 'Géométrie',
            'scheduled_start': (timezone.now() + timedelta(days=1)).isoformat(),
            'duration_minutes': 45,
            'auto_notify': False,
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['duration_minutes'], 45)

    def test_session_list_filters_by_range(self):
        self.activate()
        session = SchedulerService.create_scheduled_session(self.school, {
            'course': self.course, 'scheduled_start': timezone.now() + timedelta(days=3), 'auto_notify': False,
        }, self.director)
        resp = self.client.get('/api/online-classes/sessions/', {
            'start': (timezone.now() + timedelta(days=1)).isoformat(),
        })
        self.assertEqual([s['id'] for s in resp.json()], [session.id])
        resp = self.client.get('/api/online-classes/sessions/', {
            'end': (timezone.now() + timedelta(days=1)).isoformat(),
        })
        self.assertEqual(resp.json(), [])

    def test_invalid_range_returns_400(self):
        resp = self.client.get('/api/online-classes/sessions/', {'start': '2025-13-01T00:00'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('start', resp.json())

        self.client.force_authenticate(user=self.teacher)
        resp = self.client.get('/api/online-classes/teacher-sessions/', {'end': 'demain'})
        self.assertEqual(resp.status_code, 400)

    def test_teacher_cannot_manage_sessions(self):
        self.client.force_authenticate(user=self.teacher)
        resp = self.client.get('/api/online-classes/sessions/')
        self.assertEqual(resp.status_code, 403)

    def test_other_school_session_is_404(self):
        other_director = User.objects.create_user(email='dir@autre.cm', password='pass', role='director')
        other = School.objects.create(slug='autre', name='Autre', owner=other_director)
        other_course = OnlineCourse.objects.create(school=other, teacher=other_director, title='Physique')
        session = ClassSession.objects.create(
            school=other, course=other_course, title='X', scheduled_start=timezone.now() + timedelta(days=1),
            room_name='other-room', created_by=other_director,
        )
        resp = self.client.delete(f'/api/online-classes/sessions/{session.id}/')
        self.assertEqual(resp.status_code, 404)

    def test_recurrence_pause_and_generate(self):
        self.activate()
        recurrence = self.make_recurrence(start_date=timezone.localdate())
        resp = self.client.patch(
            f'/api/online-classes/recurrences/{recurrence.id}/', {'action': 'pause', 'reason': 'Examens'}, format='json'
        )
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['is_paused'])

        resp = self.client.post(f'/api/online-classes/recurrences/{recurrence.id}/generate/', {'weeks_ahead': 20}, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_student_joins_session(self):
        self.activate()
        session = SchedulerService.create_scheduled_session(self.school, {
            'course': self.course, 'scheduled_start': timezone.now() + timedelta(hours=1), 'auto_notify': False,
        }, self.director)

        self.client.force_authenticate(user=self.student)
        resp = self.client.post(f'/api/online-classes/sessions/{session.id}/join/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['room_name'], session.room_name)

        resp = self.client.post(f'/api/online-classes/sessions/{session.id}/start/')
        self.assertEqual(resp.status_code, 403)

    def test_platform_admin_activates_school(self):
        admin = User.objects.create_user(email='admin@educafric.com', password='pass', role='admin', is_staff=True)
        self.client.force_authenticate(user=admin)
        resp = self.client.post('/api/online-classes/activations/', {
            'school': str(self.school.pk), 'duration_type': 'quarterly',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(SchedulerService.has_active_activation(self.school))

        self.client.force_authenticate(user=self.director)
        resp = self.client.get('/api/online-classes/activations/')
        self.assertEqual(resp.status_code, 403)

    @override_settings(FEATURE_ONLINE_CLASSES=False)
    def test_feature_flag_disables_module(self):
        resp = self.client.get('/api/online-classes/courses/')
        self.assertEqual(resp.status_code, 403)
