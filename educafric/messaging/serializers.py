from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Conversation, ConversationParticipant, Message

User = get_user_model()


class StudentSummarySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField(source='get_full_name')


class ContactSerializer(serializers.Serializer):
    id = serializers.IntegerField(source='user.id')
    name = serializers.CharField(source='user.get_full_name')
    email = serializers.EmailField(source='user.email')
    role = serializers.CharField()
    students = StudentSummarySerializer(many=True)


class ParticipantSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source='user.id')
    name = serializers.CharField(source='user.get_full_name')

    class Meta:
        model = ConversationParticipant
        fields = ['id', 'name', 'role', 'last_read_at']


class ConversationSerializer(serializers.ModelSerializer):
    participants = ParticipantSerializer(many=True, read_only=True)
    student_name = serializers.SerializerMethodField()
    other_participant = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            'id', 'subject', 'student', 'student_name', 'status', 'participants', 'other_participant',
            'unread_count', 'last_message_at', 'last_message_preview', 'created_at',
        ]

    def _viewer_id(self):
        request = self.context.get('request')
        return request.user.id if request is not None else None

    def get_student_name(self, obj):
        return obj.student.get_full_name() if obj.student_id else None

    def get_other_participant(self, obj):
        viewer = self._viewer_id()
        for participant in obj.participants.all():
            if participant.user_id != viewer:
                return ParticipantSerializer(participant).data
        return None

    def get_unread_count(self, obj):
        viewer = self._viewer_id()
        for participant in obj.participants.all():
            if participant.user_id == viewer:
                return participant.unread_count
        return 0


class ConversationCreateSerializer(serializers.Serializer):
    participant = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    student = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False, allow_null=True)
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    message = serializers.CharField(max_length=5000, required=False, allow_blank=True)


class MessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.get_full_name', read_only=True)

    class Meta:
        model = Message
        fields = [
            'id', 'conversation', 'sender', 'sender_name', 'body', 'message_type',
            'attachment_url', 'attachment_name', 'reply_to', 'created_at',
        ]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    body = serializers.CharField(max_length=5000, required=False, allow_blank=True, default='')
    attachment_url = serializers.URLField(max_length=500, required=False, allow_blank=True, default='')
    attachment_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    reply_to = serializers.IntegerField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if not attrs['body'].strip() and not attrs['attachment_url']:
            raise serializers.ValidationError({'body': 'Le message est vide.'})
        return attrs
