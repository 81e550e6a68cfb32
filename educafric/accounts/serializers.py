from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import exceptions, serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import ParentStudentRelation

User = get_user_model()

SELF_REGISTER_ROLES = ('student', 'teacher', 'parent', 'director', 'freelancer')


class EducafricTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT pair with role claims and a case-insensitive email lookup."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        # Le rôle vient TOUJOURS de la base
        token['role'] = user.role
        token['email'] = user.email
        token['lang'] = user.preferred_language
        return token

    def validate(self, attrs):
        raw_email = (attrs.get(self.username_field) or '').strip()
        password = attrs.get('password') or ''
        if not raw_email or not password:
            raise exceptions.AuthenticationFailed('Identifiants invalides')

        user = User.objects.filter(email__iexact=raw_email).first()
        if user is None or not user.check_password(password):
            raise exceptions.AuthenticationFailed('Email ou mot de passe incorrect')
        if not user.is_active:
            raise exceptions.AuthenticationFailed('Compte désactivé')

        self.user = user
        refresh = self.get_token(user)
        return {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
        }


class UserProfileSerializer(serializers.ModelSerializer):

    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'phone_number',
            'first_name',
            'last_name',
            'full_name',
            'role',
            'preferred_language',
            'created_at',
        ]
        read_only_fields = ['id', 'email', 'role', 'created_at']

    def validate_phone_number(self, value):
        if not value:
            return None
        qs = User.objects.filter(phone_number=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('Ce numéro est déjà utilisé.')
        return value


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    role = serializers.ChoiceField(choices=SELF_REGISTER_ROLES, default='student')
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    preferred_language = serializers.ChoiceField(choices=('fr', 'en'), default='fr')

    def validate_email(self, value):
        email = value.strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError('Un compte existe déjà avec cet email.')
        return email

    def validate_phone_number(self, value):
        if value and User.objects.filter(phone_number=value).exists():
            raise serializers.ValidationError('Ce numéro est déjà utilisé.')
        return value or None

    def validate(self, attrs):
        candidate = User(
            email=attrs['email'],
            first_name=attrs.get('first_name', ''),
            last_name=attrs.get('last_name', ''),
        )
        try:
            validate_password(attrs['password'], user=candidate)
        except DjangoValidationError as e:
            raise serializers.ValidationError({'password': list(e.messages)})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class ParentStudentRelationSerializer(serializers.ModelSerializer):
    parent = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(role='parent'))
    student = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(role='student'))
    parent_name = serializers.CharField(source='parent.get_full_name', read_only=True)
    student_name = serializers.CharField(source='student.get_full_name', read_only=True)

    class Meta:
        model = ParentStudentRelation
        fields = [
            'id', 'parent', 'parent_name', 'student', 'student_name',
            'relationship', 'is_primary', 'can_track_location', 'created_at',
        ]
        read_only_fields = ['id', 'created_at']

    def validate(self, attrs):
        if self.instance is None:
            if ParentStudentRelation.objects.filter(parent=attrs['parent'], student=attrs['student']).exists():
                raise serializers.ValidationError('Ce lien parent-élève existe déjà.')
        return attrs


class ChildSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'full_name']
