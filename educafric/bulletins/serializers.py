from rest_framework import serializers

from .grading import SCALE, TERMS
from .models import BulletinTemplate, BulletinTemplateVersion
from .services import TemplateService, TemplateValidationError


class BulletinTemplateSerializer(serializers.ModelSerializer):
    change_note = serializers.CharField(max_length=255, required=False, allow_blank=True, write_only=True)
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = BulletinTemplate
        fields = [
            'id', 'name', 'description', 'template_type', 'is_active', 'is_default', 'version',
            'page_format', 'orientation', 'margins', 'elements', 'global_styles',
            'usage_count', 'last_used_at', 'created_by', 'created_by_name', 'created_at', 'updated_at',
            'change_note',
        ]
        read_only_fields = ['version', 'usage_count', 'last_used_at', 'created_by', 'created_at', 'updated_at']

    def get_created_by_name(self, obj):
        return obj.created_by.get_full_name() if obj.created_by else ''

    def validate_elements(self, value):
        try:
            TemplateService.validate_elements(value)
        except TemplateValidationError as e:
            raise serializers.ValidationError(e.errors)
        return value

    def validate_margins(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Objet {top, right, bottom, left} attendu')
        for key in ('top', 'right', 'bottom', 'left'):
            margin = value.get(key, 0)
            if not isinstance(margin, (int, float)) or margin < 0:
                raise serializers.ValidationError(f'Marge {key} invalide')
        return value

    def validate_global_styles(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Objet attendu')
        return value


class BulletinTemplateVersionSerializer(serializers.ModelSerializer):

    class Meta:
        model = BulletinTemplateVersion
        fields = ['id', 'version', 'elements', 'global_styles', 'change_note', 'created_by', 'created_at']
        read_only_fields = fields


class RestoreVersionSerializer(serializers.Serializer):
    version = serializers.IntegerField(min_value=1)


class DuplicateTemplateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)


class RenderSerializer(serializers.Serializer):
    context = serializers.DictField(required=False, default=dict)
    language = serializers.ChoiceField(choices=['fr', 'en'], default='fr')


class SubjectMarksSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    coefficient = serializers.FloatField(min_value=0, default=1)
    cc = serializers.FloatField(min_value=0, max_value=SCALE, allow_null=True, required=False, default=None)
    exam = serializers.FloatField(min_value=0, max_value=SCALE, allow_null=True, required=False, default=None)
    teacher_comment = serializers.CharField(required=False, allow_blank=True, default='')


class ComputeBulletinSerializer(serializers.Serializer):
    student = serializers.DictField(required=False, default=dict)
    term = serializers.ChoiceField(choices=TERMS)
    language = serializers.ChoiceField(choices=['fr', 'en'], default='fr')
    subjects = SubjectMarksSerializer(many=True)
    class_averages = serializers.DictField(
        child=serializers.FloatField(allow_null=True, min_value=0, max_value=SCALE),
        required=False,
        default=dict,
    )
