from django.contrib import admin

from .models import (
    ClassRecurrence,
    ClassSession,
    CourseEnrollment,
    OnlineClassActivation,
    OnlineCourse,
    SessionAttendance,
)


class CourseEnrollmentInline(admin.TabularInline):
    model = CourseEnrollment
    extra = 0
    raw_id_fields = ('user',)


@admin.register(OnlineCourse)
class OnlineCourseAdmin(admin.ModelAdmin):
    list_display = ('title', 'school', 'class_name', 'teacher', 'is_active')
    list_filter = ('is_active', 'school')
    search_fields = ('title', 'class_name', 'teacher__email')
    inlines = [CourseEnrollmentInline]


@admin.register(ClassSession)
class ClassSessionAdmin(admin.ModelAdmin):
    list_display = ('title', 'school', 'scheduled_start', 'status', 'creator_type', 'recurrence')
    list_filter = ('status', 'creator_type', 'school')
    search_fields = ('title', 'room_name')
    date_hierarchy = 'scheduled_start'
    raw_id_fields = ('course', 'teacher', 'created_by', 'recurrence')


@admin.register(ClassRecurrence)
class ClassRecurrenceAdmin(admin.ModelAdmin):
    list_display = ('title', 'school', 'rule_type', 'interval', 'start_date', 'end_date',
                    'occurrences_generated', 'is_active')
    list_filter = ('rule_type', 'is_active', 'school')
    search_fields = ('title',)
    readonly_fields = ('occurrences_generated', 'last_generated_at', 'next_generation_at', 'paused_at')


@admin.register(OnlineClassActivation)
class OnlineClassActivationAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'activator_type', 'duration_type', 'start_date', 'end_date', 'status', 'activated_by')
    list_filter = ('status', 'activator_type', 'duration_type')
    raw_id_fields = ('school', 'teacher', 'admin_user')


@admin.register(SessionAttendance)
class SessionAttendanceAdmin(admin.ModelAdmin):
    list_display = ('session', 'user', 'joined_at', 'left_at', 'duration_seconds')
    raw_id_fields = ('session', 'user')
