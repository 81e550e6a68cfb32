from django.contrib import admin

from .models import GeolocationAlert, LocationPing, SafeZone, StudentZoneState, TrackingDevice


@admin.register(TrackingDevice)
class TrackingDeviceAdmin(admin.ModelAdmin):
    list_display = ('name', 'student', 'school', 'device_type', 'battery_level', 'last_seen', 'is_active')
    list_filter = ('device_type', 'is_active', 'school')
    search_fields = ('name', 'student__email', 'owner__email')
    raw_id_fields = ('student', 'owner')


@admin.register(SafeZone)
class SafeZoneAdmin(admin.ModelAdmin):
    list_display = ('name', 'student', 'zone_type', 'radius_meters', 'is_active')
    list_filter = ('zone_type', 'is_active')
    search_fields = ('name', 'student__email')
    raw_id_fields = ('student', 'created_by')


@admin.register(LocationPing)
class LocationPingAdmin(admin.ModelAdmin):
    list_display = ('device', 'student', 'latitude', 'longitude', 'battery_level', 'recorded_at')
    date_hierarchy = 'recorded_at'
    raw_id_fields = ('device', 'student')


@admin.register(StudentZoneState)
class StudentZoneStateAdmin(admin.ModelAdmin):
    list_display = ('student', 'is_outside', 'current_zone', 'last_exit_at', 'last_extended_alert_at')
    list_filter = ('is_outside',)


@admin.register(GeolocationAlert)
class GeolocationAlertAdmin(admin.ModelAdmin):
    list_display = ('alert_type', 'severity', 'student', 'school', 'is_read', 'is_resolved', 'created_at')
    list_filter = ('alert_type', 'severity', 'is_resolved', 'school')
    search_fields = ('student__email', 'message')
    raw_id_fields = ('student', 'device', 'zone', 'resolved_by')
