"""
Online classes: courses, Jitsi sessions, recurrence rules and activations.

A school must hold an active OnlineClassActivation (premium module) before
its direction can schedule sessions. Sessions are either created one by one
or generated from a ClassRecurrence rule.
"""
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from tenants.mixins import SchoolManager, SchoolScopedModel

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


class OnlineCourse(SchoolScopedModel):
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='online_courses',
        verbose_name=_('enseignant'),
    )
    title = models.CharField(_('titre'), max_length=200)
    description = models.TextField(_('description'), blank=True, default='')
    class_name = models.CharField(
        _('classe'), max_length=100, blank=True, default='',
        help_text=_('Ex. 6ème A, Form 2')
    )
    subject = models.CharField(_('matière'), max_length=100, blank=True, default='')
    language = models.CharField(_('langue'), max_length=2, default='fr')
    max_participants = models.PositiveIntegerField(
        _('participants max'), default=50,
        validators=[MinValueValidator(2), MaxValueValidator(500)],
    )
    allow_recording = models.BooleanField(default=True)
    require_approval = models.BooleanField(default=False)
    is_active = models.BooleanField(_('actif'), default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('cours en ligne')
        verbose_name_plural = _('cours en ligne')
        ordering = ['title']

    def __str__(self):
        return f'{self.title} ({self.class_name})' if self.class_name else self.title


class CourseEnrollment(models.Model):

    class Role(models.TextChoices):
        STUDENT = 'student', _('Élève')
        TEACHER = 'teacher', _('Enseignant')
        OBSERVER = 'observer', _('Observateur')
        PARENT = 'parent', _('Parent')

    course = models.ForeignKey(OnlineCourse, on_delete=models.CASCADE, related_name='enrollments')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='course_enrollments',
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.STUDENT)
    is_active = models.BooleanField(default=True)
    enrolled_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('inscription')
        verbose_name_plural = _('inscriptions')
        unique_together = ('course', 'user')

    def __str__(self):
        return f'{self.user} → {self.course} ({self.role})'


class ClassRecurrence(SchoolScopedModel):
    """
    Recurrence rule for school-scheduled sessions.

    The rule is expanded into ClassSession rows a few weeks ahead; a daily
    Celery task keeps the horizon filled. Pausing a rule stops generation but
    keeps already generated sessions.
    """

    class RuleType(models.TextChoices):
        DAILY = 'daily', _('Quotidien')
        WEEKLY = 'weekly', _('Hebdomadaire')
        BIWEEKLY = 'biweekly', _('Toutes les deux semaines')
        CUSTOM = 'custom', _('Personnalisé')

    course = models.ForeignKey(OnlineCourse, on_delete=models.CASCADE, related_name='recurrences')
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='class_recurrences',
    )
    title = models.CharField(_('titre'), max_length=200)
    description = models.TextField(blank=True, default='')

    rule_type = models.CharField(_('règle'), max_length=10, choices=RuleType.choices)
    interval = models.PositiveSmallIntegerField(
        _('intervalle'), default=1, validators=[MinValueValidator(1)],
        help_text=_('Tous les N jours / semaines')
    )
    by_day = models.JSONField(
        _('jours'), default=list, blank=True,
        help_text=_('Ex. ["monday", "wednesday"]')
    )
    start_time = models.TimeField(_('heure de début'))
    duration_minutes = models.PositiveSmallIntegerField(
        _('durée (minutes)'), default=60,
        validators=[MinValueValidator(15), MaxValueValidator(240)],
    )
    start_date = models.DateField(_('date de début'))
    end_date = models.DateField(_('date de fin'), null=True, blank=True)

    occurrences_generated = models.PositiveIntegerField(default=0)
    last_generated_at = models.DateTimeField(null=True, blank=True)
    next_generation_at = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(_('active'), default=True)
    paused_at = models.DateTimeField(null=True, blank=True)
    paused_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='paused_recurrences',
    )
    pause_reason = models.CharField(max_length=255, blank=True, default='')

    max_duration = models.PositiveSmallIntegerField(default=120)
    auto_notify = models.BooleanField(
        _('notifier automatiquement'), default=True,
        help_text=_('Prévenir élèves et parents à chaque séance générée')
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_recurrences',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('récurrence')
        verbose_name_plural = _('récurrences')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['school', 'is_active'], name='recurrence_school_active_idx'),
        ]

    def __str__(self):
        return f'{self.title} ({self.get_rule_type_display()})'

    @property
    def is_paused(self):
        return not self.is_active and self.paused_at is not None


class ClassSession(SchoolScopedModel):

    class Status(models.TextChoices):
        SCHEDULED = 'scheduled', _('Programmée')
        LIVE = 'live', _('En direct')
        ENDED = 'ended', _('Terminée')
        CANCELED = 'canceled', _('Annulée')
        RECORDED = 'recorded', _('Enregistrée')

    class CreatorType(models.TextChoices):
        TEACHER = 'teacher', _('Enseignant')
        SCHOOL = 'school', _('École')

    course = models.ForeignKey(OnlineCourse, on_delete=models.CASCADE, related_name='sessions')
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='taught_sessions',
    )
    title = models.CharField(_('titre'), max_length=200)
    description = models.TextField(blank=True, default='')

    scheduled_start = models.DateTimeField(_('début prévu'), db_index=True)
    scheduled_end = models.DateTimeField(_('fin prévue'), null=True, blank=True)
    actual_start = models.DateTimeField(null=True, blank=True)
    actual_end = models.DateTimeField(null=True, blank=True)

    status = models.CharField(max_length=10, choices=Status.choices, default=Status.SCHEDULED)
    room_name = models.CharField(max_length=120, unique=True)
    room_password = models.CharField(max_length=64, blank=True, default='')
    max_duration = models.PositiveSmallIntegerField(_('durée max (minutes)'), default=120)
    lobby_enabled = models.BooleanField(default=True)
    chat_enabled = models.BooleanField(default=True)
    screen_share_enabled = models.BooleanField(default=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_sessions',
    )
    creator_type = models.CharField(max_length=10, choices=CreatorType.choices, default=CreatorType.TEACHER)
    recurrence = models.ForeignKey(
        ClassRecurrence,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='sessions',
    )
    notifications_sent = models.BooleanField(default=False)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('séance')
        verbose_name_plural = _('séances')
        ordering = ['scheduled_start']
        indexes = [
            models.Index(fields=['school', 'status', 'scheduled_start'], name='session_school_status_idx'),
            models.Index(fields=['teacher', 'scheduled_start'], name='session_teacher_start_idx'),
        ]

    def __str__(self):
        return f'{self.title} - {self.scheduled_start:%d/%m/%Y %H:%M}'

    @property
    def duration_minutes(self):
        if self.scheduled_end is None:
            return None
        return int((self.scheduled_end - self.scheduled_start).total_seconds() // 60)

    @property
    def is_joinable(self):
        return self.status in (self.Status.SCHEDULED, self.Status.LIVE)


class OnlineClassActivation(models.Model):
    """
    Premium online-classes module, activated for a school (by a platform
    admin) or for an independent teacher (after payment).
    """

    class ActivatorType(models.TextChoices):
        SCHOOL = 'school', _('École')
        TEACHER = 'teacher', _('Enseignant')

    class DurationType(models.TextChoices):
        DAILY = 'daily', _('1 jour')
        WEEKLY = 'weekly', _('1 semaine')
        MONTHLY = 'monthly', _('1 mois')
        QUARTERLY = 'quarterly', _('3 mois')
        SEMESTRAL = 'semestral', _('6 mois')
        YEARLY = 'yearly', _('1 an')

    class Status(models.TextChoices):
        ACTIVE = 'active', _('Active')
        EXPIRED = 'expired', _('Expirée')
        CANCELED = 'canceled', _('Annulée')

    class ActivatedBy(models.TextChoices):
        ADMIN_MANUAL = 'admin_manual', _('Activation manuelle')
        SELF_PURCHASE = 'self_purchase', _('Achat')

    activator_type = models.CharField(max_length=10, choices=ActivatorType.choices)
    school = models.ForeignKey(
        'tenants.School',
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name='online_class_activations',
    )
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name='online_class_activations',
    )
    duration_type = models.CharField(max_length=10, choices=DurationType.choices)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField(db_index=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    activated_by = models.CharField(max_length=20, choices=ActivatedBy.choices)
    admin_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='granted_activations',
    )
    payment_reference = models.CharField(max_length=120, blank=True, default='')
    payment_method = models.CharField(max_length=20, blank=True, default='manual')
    amount_paid = models.PositiveIntegerField(null=True, blank=True, help_text=_('Montant en FCFA'))
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('activation cours en ligne')
        verbose_name_plural = _('activations cours en ligne')
        ordering = ['-end_date']
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(activator_type='school', school__isnull=False)
                    | models.Q(activator_type='teacher', teacher__isnull=False)
                ),
                name='activation_has_activator',
            ),
        ]

    def __str__(self):
        target = self.school or self.teacher
        return f'{target} [{self.duration_type}] → {self.end_date:%d/%m/%Y}'

    @property
    def is_current(self):
        now = timezone.now()
        return self.status == self.Status.ACTIVE and self.start_date <= now < self.end_date


class SessionAttendance(models.Model):
    session = models.ForeignKey(ClassSession, on_delete=models.CASCADE, related_name='attendances')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='session_attendances',
    )
    joined_at = models.DateTimeField()
    left_at = models.DateTimeField(null=True, blank=True)
    duration_seconds = models.PositiveIntegerField(default=0)
    device_type = models.CharField(max_length=20, blank=True, default='')
    left_reason = models.CharField(max_length=30, blank=True, default='')

    class Meta:
        verbose_name = _('présence')
        verbose_name_plural = _('présences')
        ordering = ['joined_at']
        indexes = [
            models.Index(fields=['session', 'user'], name='attendance_session_user_idx'),
        ]

    def __str__(self):
        return f'{self.user} @ {self.session_id}'
