from rest_framework import serializers

from .models import Notification, NotificationPreference, NotificationType


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id', 'title', 'message', 'notification_type', 'priority',
            'action_url', 'metadata', 'is_read', 'read_at', 'created_at',
        ]
        read_only_fields = fields


class NotificationPreferenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationPreference
        fields = [
            'push_enabled', 'email_enabled', 'sms_enabled', 'phone',
            'sound_enabled', 'quiet_hours_start', 'quiet_hours_end',
            'muted_types', 'updated_at',
        ]
        read_only_fields = ['updated_at']

    def validate_muted_types(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Une liste est attendue.')
        unknown = [v for v in value if v not in NotificationType.values]
        if unknown:
            raise serializers.ValidationError(f'Types inconnus: {", ".join(map(str, unknown))}')
        return value

    def validate(self, attrs):
        start = attrs.get('quiet_hours_start', getattr(self.instance, 'quiet_hours_start', None))
        end = attrs.get('quiet_hours_end', getattr(self.instance, 'quiet_hours_end', None))
        if (start is None) != (end is None):
            raise serializers.ValidationError('Début et fin des heures calmes vont ensemble.')
        account_phone = self.instance.user.phone_number if self.instance else ''
        if attrs.get('sms_enabled') and not (attrs.get('phone') or getattr(self.instance, 'phone', '') or account_phone):
            raise serializers.ValidationError({'phone': 'Un numéro est requis pour les SMS.'})
        return attrs
