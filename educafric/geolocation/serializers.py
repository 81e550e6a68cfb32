from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import GeolocationAlert, LocationPing, SafeZone, TrackingDevice

User = get_user_model()


class SchoolStudentField(serializers.PrimaryKeyRelatedField):
    """
    A student of the context school. Parents may only pick their own
    children, directors any student of the school.
    """

    def get_queryset(self):
        school = self.context.get('school')
        if school is None:
            return User.objects.none()
        qs = User.objects.filter(
            school_memberships__school=school,
            school_memberships__is_active=True,
            school_memberships__role='student',
        )
        allowed = self.context.get('allowed_student_ids')
        if allowed is not None:
            qs = qs.filter(id__in=allowed)
        return qs.distinct()


class TrackingDeviceSerializer(serializers.ModelSerializer):
    student = SchoolStudentField()
    student_name = serializers.CharField(source='student.get_full_name', read_only=True)

    class Meta:
        model = TrackingDevice
        fields = [
            'id', 'student', 'student_name', 'owner', 'name', 'device_type', 'is_active',
            'current_latitude', 'current_longitude', 'location_accuracy', 'current_address',
            'battery_level', 'last_seen', 'tracking_settings', 'created_at',
        ]
        read_only_fields = [
            'id', 'owner', 'current_latitude', 'current_longitude', 'location_accuracy',
            'current_address', 'battery_level', 'last_seen', 'created_at',
        ]


class SafeZoneSerializer(serializers.ModelSerializer):
    student = SchoolStudentField()
    student_name = serializers.CharField(source='student.get_full_name', read_only=True)

    class Meta:
        model = SafeZone
        fields = [
            'id', 'student', 'student_name', 'name', 'zone_type', 'latitude', 'longitude',
            'radius_meters', 'is_active', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_by', 'created_at', 'updated_at']


class LocationUpdateSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    accuracy = serializers.FloatField(min_value=0, required=False, allow_null=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    battery_level = serializers.IntegerField(min_value=0, max_value=100, required=False, allow_null=True)
    speed = serializers.FloatField(min_value=0, required=False, allow_null=True)
    recorded_at = serializers.DateTimeField(required=False)


class LocationPingSerializer(serializers.ModelSerializer):

    class Meta:
        model = LocationPing
        fields = ['id', 'latitude', 'longitude', 'accuracy', 'address', 'battery_level', 'speed', 'recorded_at']


class GeolocationAlertSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source='student.get_full_name', read_only=True)
    zone_name = serializers.CharField(source='zone.name', read_only=True, default=None)
    device_name = serializers.CharField(source='device.name', read_only=True, default=None)

    class Meta:
        model = GeolocationAlert
        fields = [
            'id', 'student', 'student_name', 'device', 'device_name', 'alert_type', 'severity',
            'zone', 'zone_name', 'message', 'latitude', 'longitude', 'minutes_outside',
            'is_read', 'is_resolved', 'resolved_by', 'resolved_at', 'created_at',
        ]
        read_only_fields = fields


class EmergencySerializer(serializers.Serializer):
    device = serializers.IntegerField()
    message = serializers.CharField(max_length=500, required=False, allow_blank=True)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False)

    def validate(self, attrs):
        if ('latitude' in attrs) != ('longitude' in attrs):
            raise serializers.ValidationError('Latitude et longitude vont ensemble.')
        return attrs
