from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import School, SchoolMembership

User = get_user_model()


class SchoolSerializer(serializers.ModelSerializer):
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = School
        fields = [
            'id', 'name', 'slug', 'status', 'school_type', 'education_system',
            'contact_email', 'contact_phone', 'address', 'city', 'country',
            'timezone', 'locale', 'geolocation_enabled',
            'member_count', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_member_count(self, obj):
        return obj.memberships.filter(is_active=True).count()


class SchoolMembershipSerializer(serializers.ModelSerializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    user_email = serializers.EmailField(source='user.email', read_only=True)
    user_full_name = serializers.CharField(source='user.get_full_name', read_only=True)

    class Meta:
        model = SchoolMembership
        fields = [
            'id', 'school', 'user', 'role', 'is_active',
            'user_email', 'user_full_name',
            'joined_at', 'updated_at',
        ]
        read_only_fields = ['id', 'school', 'joined_at', 'updated_at']

    def validate(self, attrs):
        school = self.context.get('school')
        user = attrs.get('user')
        if self.instance is None and school is not None and user is not None:
            if SchoolMembership.objects.filter(school=school, user=user).exists():
                raise serializers.ValidationError(
                    {'user': 'Cet utilisateur est déjà membre de l\'établissement.'}
                )
        if self.instance is not None and user is not None and user != self.instance.user:
            raise serializers.ValidationError({'user': 'L\'utilisateur d\'une adhésion ne peut pas changer.'})
        return attrs
