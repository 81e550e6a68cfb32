from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    ClassRecurrence,
    ClassSession,
    CourseEnrollment,
    OnlineClassActivation,
    OnlineCourse,
    WEEKDAY_NAMES,
)
from .services import jitsi_url

User = get_user_model()


class SchoolScopedRelatedField(serializers.PrimaryKeyRelatedField):
    """PK field restricted to objects of the school found in the serializer context."""

    def get_queryset(self):
        school = self.context.get('school')
        qs = super().get_queryset()
        if school is None:
            return qs.none()
        return qs.filter(school=school)


class SchoolTeacherField(serializers.PrimaryKeyRelatedField):
    """A user holding an active teacher/director membership in the context school."""

    def get_queryset(self):
        school = self.context.get('school')
        if school is None:
            return User.objects.none()
        return User.objects.filter(
            school_memberships__school=school,
            school_memberships__is_active=True,
            school_memberships__role__in=('teacher', 'director', 'admin'),
        ).distinct()


class OnlineCourseSerializer(serializers.ModelSerializer):
    teacher = SchoolTeacherField()
    teacher_name = serializers.CharField(source='teacher.get_full_name', read_only=True)
    enrolled_count = serializers.SerializerMethodField()

    class Meta:
        model = OnlineCourse
        fields = [
            'id', 'teacher', 'teacher_name', 'title', 'description', 'class_name',
            'subject', 'language', 'max_participants', 'allow_recording',
            'require_approval', 'is_active', 'enrolled_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_enrolled_count(self, obj):
        return obj.enrollments.filter(is_active=True).count()


class CourseEnrollmentSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.get_full_name', read_only=True)

    class Meta:
        model = CourseEnrollment
        fields = ['id', 'user', 'user_name', 'role', 'is_active', 'enrolled_at']
        read_only_fields = ['id', 'enrolled_at']


class ClassSessionSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title', read_only=True)
    teacher_name = serializers.SerializerMethodField()
    join_url = serializers.SerializerMethodField()
    duration_minutes = serializers.IntegerField(read_only=True)

    class Meta:
        model = ClassSession
        fields = [
            'id', 'course', 'course_title', 'teacher', 'teacher_name', 'title', 'description',
            'scheduled_start', 'scheduled_end', 'actual_start', 'actual_end', 'duration_minutes',
            'status', 'room_name', 'join_url', 'max_duration', 'lobby_enabled', 'chat_enabled',
            'screen_share_enabled', 'creator_type', 'recurrence', 'notifications_sent',
            'created_at',
        ]
        read_only_fields = fields

    def get_teacher_name(self, obj):
        return obj.teacher.get_full_name() if obj.teacher else None

    def get_join_url(self, obj):
        return jitsi_url(obj.room_name)


class SessionCreateSerializer(serializers.Serializer):
    course = SchoolScopedRelatedField(queryset=OnlineCourse.objects.all())
    teacher = SchoolTeacherField(required=False, allow_null=True)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    scheduled_start = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=15, max_value=240, default=60)
    max_duration = serializers.IntegerField(min_value=15, max_value=480, required=False)
    room_password = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')
    lobby_enabled = serializers.BooleanField(default=True)
    chat_enabled = serializers.BooleanField(default=True)
    screen_share_enabled = serializers.BooleanField(default=True)
    auto_notify = serializers.BooleanField(default=True)


class SessionUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    teacher = SchoolTeacherField(required=False, allow_null=True)
    scheduled_start = serializers.DateTimeField(required=False)
    duration_minutes = serializers.IntegerField(min_value=15, max_value=240, required=False)
    lobby_enabled = serializers.BooleanField(required=False)
    chat_enabled = serializers.BooleanField(required=False)
    screen_share_enabled = serializers.BooleanField(required=False)


class ClassRecurrenceSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title', read_only=True)
    is_paused = serializers.BooleanField(read_only=True)
    upcoming_sessions = serializers.SerializerMethodField()

    class Meta:
        model = ClassRecurrence
        fields = [
            'id', 'course', 'course_title', 'teacher', 'title', 'description',
            'rule_type', 'interval', 'by_day', 'start_time', 'duration_minutes',
            'start_date', 'end_date', 'occurrences_generated', 'last_generated_at',
            'next_generation_at', 'is_active', 'is_paused', 'paused_at', 'pause_reason',
            'max_duration', 'auto_notify', 'upcoming_sessions', 'created_at',
        ]
        read_only_fields = fields

    def get_upcoming_sessions(self, obj):
        return obj.sessions.filter(status=ClassSession.Status.SCHEDULED).count()


class RecurrenceCreateSerializer(serializers.Serializer):
    course = SchoolScopedRelatedField(queryset=OnlineCourse.objects.all())
    teacher = SchoolTeacherField(required=False, allow_null=True)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    rule_type = serializers.ChoiceField(choices=ClassRecurrence.RuleType.choices)
    interval = serializers.IntegerField(min_value=1, default=1)
    by_day = serializers.ListField(
        child=serializers.ChoiceField(choices=WEEKDAY_NAMES), required=False, default=list
    )
    start_time = serializers.TimeField()
    duration_minutes = serializers.IntegerField(min_value=15, max_value=240, default=60)
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False, allow_null=True)
    max_duration = serializers.IntegerField(min_value=15, max_value=480, required=False)
    auto_notify = serializers.BooleanField(default=True)

    def validate(self, attrs):
        if attrs['rule_type'] == ClassRecurrence.RuleType.WEEKLY and not attrs.get('by_day'):
            raise serializers.ValidationError({'by_day': 'Au moins un jour est requis pour une récurrence hebdomadaire.'})
        end_date = attrs.get('end_date')
        if end_date and end_date < attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'La date de fin précède la date de début.'})
        return attrs


class RecurrenceActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['pause', 'resume', 'end'])
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    end_date = serializers.DateField(required=False, allow_null=True)


class GenerateSessionsSerializer(serializers.Serializer):
    weeks_ahead = serializers.IntegerField(min_value=1, max_value=12, default=4)


class OnlineClassActivationSerializer(serializers.ModelSerializer):
    school_name = serializers.CharField(source='school.name', read_only=True, default=None)
    is_current = serializers.BooleanField(read_only=True)

    class Meta:
        model = OnlineClassActivation
        fields = [
            'id', 'activator_type', 'school', 'school_name', 'teacher', 'duration_type',
            'start_date', 'end_date', 'status', 'activated_by', 'admin_user',
            'payment_reference', 'payment_method', 'amount_paid', 'notes', 'is_current',
            'created_at',
        ]
        read_only_fields = fields


class ActivationCreateSerializer(serializers.Serializer):
    school = serializers.UUIDField()
    duration_type = serializers.ChoiceField(choices=OnlineClassActivation.DurationType.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
