"""
Online class scheduling.

SchedulerService is the single entry point used by the API and Celery tasks:
activations, one-off sessions, recurrence rules and their expansion into
ClassSession rows, session lifecycle and attendance.
"""
import logging
import secrets
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.models import ParentStudentRelation
from notifications.models import NotificationType
from notifications.services import NotificationService
from tenants.models import SchoolMembership

from . import recurrence as rules
from .models import (
    ClassRecurrence,
    ClassSession,
    CourseEnrollment,
    OnlineClassActivation,
    OnlineCourse,
    SessionAttendance,
)

logger = logging.getLogger(__name__)

ACTIVATION_DAYS = {
    'daily': 1,
    'weekly': 7,
    'monthly': 30,
    'quarterly': 90,
    'semestral': 180,
    'yearly': 365,
}


class SchedulerServiceError(Exception):
    pass


class ActivationRequiredError(SchedulerServiceError):
    code = 'ACTIVATION_REQUIRED'

    def __init__(self, message='Le module cours en ligne n\'est pas activé pour cet établissement.'):
        super().__init__(message)


class InvalidRecurrenceError(SchedulerServiceError):
    pass


class InvalidSessionStateError(SchedulerServiceError):
    pass


class SessionAccessDenied(SchedulerServiceError):
    pass


def short_id(school):
    return str(school.pk).replace('-', '')[:8]


def school_tz(school):
    try:
        return ZoneInfo(school.timezone or settings.TIME_ZONE)
    except (KeyError, ValueError):
        return ZoneInfo(settings.TIME_ZONE)


def jitsi_url(room_name):
    return f"{settings.JITSI_BASE_URL.rstrip('/')}/{room_name}"


class SchedulerService:

    # ───────────────────────── activations ─────────────────────────

    @staticmethod
    def active_activation(school=None, teacher=None, now=None):
        now = now or timezone.now()
        qs = OnlineClassActivation.objects.filter(
            status=OnlineClassActivation.Status.ACTIVE,
            start_date__lte=now,
            end_date__gt=now,
        )
        if school is not None:
            qs = qs.filter(activator_type=OnlineClassActivation.ActivatorType.SCHOOL, school=school)
        elif teacher is not None:
            qs = qs.filter(activator_type=OnlineClassActivation.ActivatorType.TEACHER, teacher=teacher)
        else:
            return None
        return qs.order_by('-end_date').first()

    @staticmethod
    def has_active_activation(school):
        return SchedulerService.active_activation(school=school) is not None

    @staticmethod
    def _activate(lookup, duration_type, **fields):
        if duration_type not in ACTIVATION_DAYS:
            raise SchedulerServiceError(f'Durée inconnue: {duration_type}')

        now = timezone.now()
        days = ACTIVATION_DAYS[duration_type]
        current = SchedulerService.active_activation(now=now, **lookup)

        if current is not None:
            current.end_date = current.end_date + timedelta(days=days)
            current.duration_type = duration_type
            for key, value in fields.items():
                if value not in (None, ''):
                    setattr(current, key, value)
            current.save()
            logger.info(f'Online classes activation {current.id} extended to {current.end_date:%Y-%m-%d}')
            return current

        activation = OnlineClassActivation.objects.create(
            duration_type=duration_type,
            start_date=now,
            end_date=now + timedelta(days=days),
            **{k: v for k, v in fields.items() if v is not None},
        )
        logger.info(f'Online classes activation {activation.id} created until {activation.end_date:%Y-%m-%d}')
        return activation

    @staticmethod
    @transaction.atomic
    def activate_for_school(school, duration_type, admin=None, notes=''):
        return SchedulerService._activate(
            {'school': school},
            duration_type,
            activator_type=OnlineClassActivation.ActivatorType.SCHOOL,
            school=school,
            activated_by=OnlineClassActivation.ActivatedBy.ADMIN_MANUAL,
            admin_user=admin,
            notes=notes,
        )

    @staticmethod
    @transaction.atomic
    def activate_for_teacher(teacher, duration_type, payment_reference='', payment_method='', amount_paid=None):
        return SchedulerService._activate(
            {'teacher': teacher},
            duration_type,
            activator_type=OnlineClassActivation.ActivatorType.TEACHER,
            teacher=teacher,
            activated_by=OnlineClassActivation.ActivatedBy.SELF_PURCHASE,
            payment_reference=payment_reference,
            payment_method=payment_method,
            amount_paid=amount_paid,
        )

    @staticmethod
    def cancel_activation(activation):
        activation.status = OnlineClassActivation.Status.CANCELED
        activation.save(update_fields=['status', 'updated_at'])
        return activation

    @staticmethod
    def expire_activations(now=None):
        now = now or timezone.now()
        return OnlineClassActivation.objects.filter(
            status=OnlineClassActivation.Status.ACTIVE,
            end_date__lte=now,
        ).update(status=OnlineClassActivation.Status.EXPIRED, updated_at=now)

    # ───────────────────────── sessions ─────────────────────────

    @staticmethod
    def _require_activation(school):
        if not SchedulerService.has_active_activation(school):
            raise ActivationRequiredError()

    @staticmethod
    @transaction.atomic
    def create_scheduled_session(school, data, created_by):
        """
        Create a one-off session planned by the school direction.

        ``data`` carries course, title, scheduled_start and duration_minutes,
        plus optional teacher, description, room flags and auto_notify.
        """
        SchedulerService._require_activation(school)

        course = data['course']
        start = data['scheduled_start']
        duration = int(data.get('duration_minutes') or 60)

        session = ClassSession.objects.create(
            school=school,
            course=course,
            teacher=data.get('teacher') or course.teacher,
            title=data.get('title') or course.title,
            description=data.get('description', ''),
            scheduled_start=start,
            scheduled_end=start + timedelta(minutes=duration),
            room_name=f'school-{short_id(school)}-{secrets.token_hex(5)}',
            room_password=data.get('room_password', ''),
            max_duration=data.get('max_duration') or 120,
            lobby_enabled=data.get('lobby_enabled', True),
            chat_enabled=data.get('chat_enabled', True),
            screen_share_enabled=data.get('screen_share_enabled', True),
            created_by=created_by,
            creator_type=ClassSession.CreatorType.SCHOOL,
        )
        logger.info(f'Session {session.id} scheduled for school {school.slug} at {start.isoformat()}')

        if data.get('auto_notify', True):
            SchedulerService.notify_participants(session)

        return session

    @staticmethod
    def session_audience(session):
        """Enrolled students and the guardians of those students."""
        student_ids = list(
            CourseEnrollment.objects.filter(
                course_id=session.course_id,
                is_active=True,
                role=CourseEnrollment.Role.STUDENT,
            ).values_list('user_id', flat=True)
        )
        parent_ids = ParentStudentRelation.objects.filter(
            student_id__in=student_ids,
        ).values_list('parent_id', flat=True)

        return get_user_model().objects.filter(Q(id__in=student_ids) | Q(id__in=parent_ids), is_active=True).distinct()

    @staticmethod
    def notify_participants(session):
        local_start = timezone.localtime(session.scheduled_start, school_tz(session.school))
        sent = NotificationService.notify_many(
            SchedulerService.session_audience(session),
            title=f'Cours en ligne: {session.title}',
            message=f'Séance prévue le {local_start:%d/%m/%Y à %H:%M}.',
            notification_type=NotificationType.ONLINE_CLASS,
            action_url=f'/online-classes/sessions/{session.id}',
            metadata={'session_id': session.id},
            school=session.school,
        )
        session.notifications_sent = True
        session.save(update_fields=['notifications_sent', 'updated_at'])
        return sent

    @staticmethod
    def update_session(session, data):
        if session.status not in (ClassSession.Status.SCHEDULED,):
            raise InvalidSessionStateError('Seule une séance programmée peut être modifiée.')

        duration = data.pop('duration_minutes', None)
        for field, value in data.items():
            setattr(session, field, value)
        if duration is not None:
            session.scheduled_end = session.scheduled_start + timedelta(minutes=int(duration))
        elif 'scheduled_start' in data and session.scheduled_end is not None:
            previous = session.duration_minutes
            if previous is None or previous <= 0:
                previous = 60
            session.scheduled_end = session.scheduled_start + timedelta(minutes=previous)
        session.save()
        return session

    @staticmethod
    def cancel_session(session):
        if session.status in (ClassSession.Status.ENDED, ClassSession.Status.RECORDED):
            raise InvalidSessionStateError('Une séance terminée ne peut pas être annulée.')
        if session.status == ClassSession.Status.CANCELED:
            return session
        session.status = ClassSession.Status.CANCELED
        session.save(update_fields=['status', 'updated_at'])
        logger.info(f'Session {session.id} canceled')
        return session

    @staticmethod
    def start_session(session):
        if session.status != ClassSession.Status.SCHEDULED:
            raise InvalidSessionStateError('La séance ne peut pas être démarrée.')
        session.status = ClassSession.Status.LIVE
        session.actual_start = timezone.now()
        session.save(update_fields=['status', 'actual_start', 'updated_at'])
        return session

    @staticmethod
    def end_session(session):
        if session.status != ClassSession.Status.LIVE:
            raise InvalidSessionStateError('Seule une séance en direct peut être terminée.')
        now = timezone.now()
        session.status = ClassSession.Status.ENDED
        session.actual_end = now
        session.save(update_fields=['status', 'actual_end', 'updated_at'])

        for attendance in session.attendances.filter(left_at__isnull=True):
            SchedulerService._close_attendance(attendance, now, 'session_ended')
        return session

    # ───────────────────────── attendance ─────────────────────────

    @staticmethod
    def can_join(session, user):
        if session.teacher_id == user.id:
            return True
        if SchoolMembership.objects.filter(
            school=session.school, user=user, is_active=True,
            role__in=(SchoolMembership.Role.DIRECTOR, SchoolMembership.Role.ADMIN),
        ).exists():
            return True
        enrollments = CourseEnrollment.objects.filter(course=session.course, is_active=True)
        if enrollments.filter(user=user).exists():
            return True
        return ParentStudentRelation.objects.filter(
            parent=user,
            student_id__in=enrollments.values_list('user_id', flat=True),
        ).exists()

    @staticmethod
    def is_moderator(session, user):
        if session.teacher_id == user.id:
            return True
        return SchoolMembership.objects.filter(
            school=session.school, user=user, is_active=True,
            role__in=(SchoolMembership.Role.DIRECTOR, SchoolMembership.Role.ADMIN),
        ).exists()

    @staticmethod
    def join_session(session, user, device_type=''):
        if not SchedulerService.can_join(session, user):
            raise SessionAccessDenied('Vous n\'êtes pas autorisé à rejoindre cette séance.')
        if not session.is_joinable:
            raise InvalidSessionStateError('Cette séance n\'est plus accessible.')

        open_row = session.attendances.filter(user=user, left_at__isnull=True).first()
        if open_row is None:
            SessionAttendance.objects.create(
                session=session,
                user=user,
                joined_at=timezone.now(),
                device_type=device_type[:20],
            )

        return {
            'room_name': session.room_name,
            'join_url': jitsi_url(session.room_name),
            'is_moderator': SchedulerService.is_moderator(session, user),
        }

    @staticmethod
    def _close_attendance(attendance, now, reason):
        attendance.left_at = now
        attendance.duration_seconds += max(int((now - attendance.joined_at).total_seconds()), 0)
        attendance.left_reason = reason[:30]
        attendance.save(update_fields=['left_at', 'duration_seconds', 'left_reason'])
        return attendance

    @staticmethod
    def leave_session(session, user, reason='left'):
        attendance = session.attendances.filter(user=user, left_at__isnull=True).order_by('-joined_at').first()
        if attendance is None:
            return None
        return SchedulerService._close_attendance(attendance, timezone.now(), reason or 'left')

    # ───────────────────────── recurrences ─────────────────────────

    @staticmethod
    def _int_or_default(value, default):
        return default if value in (None, '') else int(value)

    @staticmethod
    def validate_recurrence_data(data):
        interval = SchedulerService._int_or_default(data.get('interval'), 1)
        if interval < 1:
            raise InvalidRecurrenceError('L\'intervalle doit être supérieur ou égal à 1.')

        duration = SchedulerService._int_or_default(data.get('duration_minutes'), 60)
        if not 15 <= duration <= 240:
            raise InvalidRecurrenceError('La durée doit être comprise entre 15 et 240 minutes.')

        by_day = data.get('by_day') or []
        invalid = rules.validate_by_day(by_day)
        if invalid:
            raise InvalidRecurrenceError(f'Jours invalides: {", ".join(map(str, invalid))}')
        if data.get('rule_type') in ('weekly', 'custom') and not by_day:
            raise InvalidRecurrenceError('Indiquez au moins un jour pour une récurrence hebdomadaire.')

        end_date = data.get('end_date')
        if end_date is not None and end_date < data['start_date']:
            raise InvalidRecurrenceError('La date de fin précède la date de début.')

    @staticmethod
    def create_recurrence(school, data, created_by):
        """Persist a rule and immediately generate the first weeks of sessions."""
        SchedulerService._require_activation(school)
        SchedulerService.validate_recurrence_data(data)

        course = data['course']
        with transaction.atomic():
            recurrence = ClassRecurrence.objects.create(
                school=school,
                course=course,
                teacher=data.get('teacher') or course.teacher,
                title=data.get('title') or course.title,
                description=data.get('description', ''),
                rule_type=data['rule_type'],
                interval=SchedulerService._int_or_default(data.get('interval'), 1),
                by_day=[d.lower() for d in data.get('by_day') or []],
                start_time=data['start_time'],
                duration_minutes=SchedulerService._int_or_default(data.get('duration_minutes'), 60),
                start_date=data['start_date'],
                end_date=data.get('end_date'),
                max_duration=data.get('max_duration') or 120,
                auto_notify=data.get('auto_notify', True),
                created_by=created_by,
            )

        created = SchedulerService.generate_sessions(recurrence, weeks_ahead=settings.RECURRENCE_WEEKS_AHEAD)
        logger.info(f'Recurrence {recurrence.id} created for school {school.slug}, {len(created)} sessions generated')
        return recurrence, created

    @staticmethod
    @transaction.atomic
    def generate_sessions(recurrence, weeks_ahead=4, now=None):
        """
        Expand the rule into ClassSession rows up to ``weeks_ahead`` weeks.

        Idempotent: dates that already have a session of this rule and
        occurrences already in the past are skipped.
        """
        if not recurrence.is_active:
            return []

        now = now or timezone.now()
        tz = school_tz(recurrence.school)
        today = timezone.localtime(now, tz).date()

        dates = rules.occurrence_dates(
            recurrence.rule_type,
            recurrence.interval,
            recurrence.by_day,
            recurrence.start_date,
            recurrence.end_date,
            today,
            weeks_ahead,
        )

        existing = set()
        for start in recurrence.sessions.values_list('scheduled_start', flat=True):
            existing.add(timezone.localtime(start, tz).date())

        duration = timedelta(minutes=recurrence.duration_minutes)
        created = []
        for day in dates:
            if day in existing:
                continue
            start = datetime.combine(day, recurrence.start_time).replace(tzinfo=tz)
            if start <= now:
                continue

            session = ClassSession.objects.create(
                school=recurrence.school,
                course=recurrence.course,
                teacher=recurrence.teacher,
                title=recurrence.title,
                description=recurrence.description,
                scheduled_start=start,
                scheduled_end=start + duration,
                room_name=f'school-{short_id(recurrence.school)}-recur-{recurrence.id}-{secrets.token_hex(4)}',
                max_duration=recurrence.max_duration,
                created_by=recurrence.created_by,
                creator_type=ClassSession.CreatorType.SCHOOL,
                recurrence=recurrence,
            )
            created.append(session)

        recurrence.occurrences_generated += len(created)
        recurrence.last_generated_at = now
        recurrence.next_generation_at = now + timedelta(days=7)
        recurrence.save(update_fields=[
            'occurrences_generated', 'last_generated_at', 'next_generation_at', 'updated_at',
        ])

        if recurrence.auto_notify:
            for session in created:
                transaction.on_commit(lambda s=session: SchedulerService.notify_participants(s))

        return created

    @staticmethod
    def update_recurrence(recurrence, action, user, reason=None, end_date=None):
        if action == 'pause':
            recurrence.is_active = False
            recurrence.paused_at = timezone.now()
            recurrence.paused_by = user
            recurrence.pause_reason = (reason or '')[:255]
        elif action == 'resume':
            recurrence.is_active = True
            recurrence.paused_at = None
            recurrence.paused_by = None
            recurrence.pause_reason = ''
        elif action == 'end':
            recurrence.is_active = False
            recurrence.end_date = end_date or timezone.localdate()
        else:
            raise InvalidRecurrenceError(f'Action inconnue: {action}')

        recurrence.save()
        logger.info(f'Recurrence {recurrence.id} {action} by user {user.id}')
        return recurrence

    @staticmethod
    @transaction.atomic
    def delete_recurrence(recurrence, cancel_future=True):
        """
        Delete a rule. Future scheduled sessions are canceled; past sessions
        stay and lose their link to the rule (FK SET_NULL).
        """
        canceled = 0
        if cancel_future:
            canceled = recurrence.sessions.filter(
                status=ClassSession.Status.SCHEDULED,
                scheduled_start__gt=timezone.now(),
            ).update(status=ClassSession.Status.CANCELED, updated_at=timezone.now())

        recurrence_id = recurrence.id
        recurrence.delete()
        logger.info(f'Recurrence {recurrence_id} deleted, {canceled} future sessions canceled')
        return canceled

    @staticmethod
    def extend_all_recurrences(weeks_ahead=4):
        total = 0
        for recurrence in ClassRecurrence.objects.filter(is_active=True).select_related('school'):
            if recurrence.end_date and recurrence.end_date < timezone.localdate():
                continue
            total += len(SchedulerService.generate_sessions(recurrence, weeks_ahead=weeks_ahead))
        return total

    # ───────────────────────── listings ─────────────────────────

    @staticmethod
    def school_courses(school):
        return OnlineCourse.objects.for_school(school).select_related('teacher')

    @staticmethod
    def school_sessions(school, status=None, start=None, end=None):
        qs = ClassSession.objects.for_school(school).select_related('course', 'teacher')
        if status:
            qs = qs.filter(status=status)
        if start:
            qs = qs.filter(scheduled_start__gte=start)
        if end:
            qs = qs.filter(scheduled_start__lte=end)
        return qs

    @staticmethod
    def school_recurrences(school):
        return ClassRecurrence.objects.for_school(school).select_related('course', 'teacher')

    @staticmethod
    def teacher_sessions(teacher, start=None, end=None):
        qs = ClassSession.objects.filter(teacher=teacher).select_related('course', 'school')
        if start:
            qs = qs.filter(scheduled_start__gte=start)
        if end:
            qs = qs.filter(scheduled_start__lte=end)
        return qs
