from django.contrib import admin

from .models import Notification, NotificationLog, NotificationPreference


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'title', 'notification_type', 'priority', 'is_read', 'created_at')
    list_filter = ('notification_type', 'priority', 'is_read')
    search_fields = ('user__email', 'title')
    raw_id_fields = ('user', 'school')


@admin.register(NotificationPreference)
class NotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ('user', 'push_enabled', 'email_enabled', 'sms_enabled', 'updated_at')
    raw_id_fields = ('user',)


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ('user', 'notification_type', 'channel', 'status', 'error_message', 'created_at')
    list_filter = ('channel', 'status')
    search_fields = ('user__email',)
    raw_id_fields = ('user', 'notification')
