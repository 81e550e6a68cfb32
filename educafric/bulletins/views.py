"""
Bulletins API.

School staff:
    GET  /api/bulletins/templates/
    GET  /api/bulletins/templates/{id}/
    GET  /api/bulletins/templates/{id}/versions/
    POST /api/bulletins/templates/{id}/render/       {context, language}
    POST /api/bulletins/compute/                     {student, term, subjects, class_averages}
    GET  /api/bulletins/element-types/?category=

Direction:
    POST/PATCH/DELETE /api/bulletins/templates/
    POST /api/bulletins/templates/{id}/restore/      {version}
    POST /api/bulletins/templates/{id}/duplicate/    {name}
    POST /api/bulletins/templates/{id}/set-default/
"""
import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from tenants.mixins import SchoolViewSetMixin
from tenants.permissions import IsSchoolDirector, IsSchoolStaff

from .grading import GradingError, generate_bulletin
from .mapping import CATEGORIES, ELEMENT_MAPPINGS, STATIC_ELEMENT_TYPES
from .models import BulletinTemplate, BulletinTemplateVersion
from .serializers import (
    BulletinTemplateSerializer,
    BulletinTemplateVersionSerializer,
    ComputeBulletinSerializer,
    DuplicateTemplateSerializer,
    RenderSerializer,
    RestoreVersionSerializer,
)
from .services import TemplateService

logger = logging.getLogger(__name__)


class BulletinTemplateViewSet(SchoolViewSetMixin, viewsets.ModelViewSet):
    queryset = BulletinTemplate.objects.select_related('created_by')
    serializer_class = BulletinTemplateSerializer

    STAFF_ACTIONS = ('list', 'retrieve', 'versions', 'render')

    def get_permissions(self):
        if self.action in self.STAFF_ACTIONS:
            return [IsAuthenticated(), IsSchoolStaff()]
        return [IsAuthenticated(), IsSchoolDirector()]

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.query_params.get('active') == 'true':
            qs = qs.filter(is_active=True)
        return qs

    def perform_create(self, serializer):
        school = self.get_school()
        if school is None:
            raise PermissionDenied('École non déterminée.')
        data = dict(serializer.validated_data)
        data.pop('change_note', None)
        serializer.instance = TemplateService.create_template(school, self.request.user, **data)

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        change_note = data.pop('change_note', '')
        serializer.instance = TemplateService.update_template(
            serializer.instance, self.request.user, change_note, **data
        )

    @action(detail=True, methods=['get'])
    def versions(self, request, pk=None):
        template = self.get_object()
        return Response(BulletinTemplateVersionSerializer(template.versions.all(), many=True).data)

    @action(detail=True, methods=['post'])
    def restore(self, request, pk=None):
        template = self.get_object()
        serializer = RestoreVersionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            template = TemplateService.restore_version(template, serializer.validated_data['version'], request.user)
        except BulletinTemplateVersion.DoesNotExist:
            return Response({'error': 'Version introuvable'}, status=status.HTTP_404_NOT_FOUND)
        return Response(BulletinTemplateSerializer(template).data)

    @action(detail=True, methods=['post'])
    def duplicate(self, request, pk=None):
        template = self.get_object()
        serializer = DuplicateTemplateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        clone = TemplateService.duplicate(template, serializer.validated_data['name'], request.user)
        return Response(BulletinTemplateSerializer(clone).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='set-default')
    def set_default(self, request, pk=None):
        template = TemplateService.set_default(self.get_object())
        return Response(BulletinTemplateSerializer(template).data)

    @action(detail=True, methods=['post'])
    def render(self, request, pk=None):
        template = self.get_object()
        serializer = RenderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        layout = TemplateService.render(
            template,
            serializer.validated_data['context'],
            serializer.validated_data['language'],
        )
        return Response(layout)


class ElementTypesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        category = request.query_params.get('category')
        if category and category not in CATEGORIES:
            return Response({'error': f'Catégorie inconnue: {category}'}, status=status.HTTP_400_BAD_REQUEST)

        elements = [m.to_dict() for m in ELEMENT_MAPPINGS.values() if not category or m.category == category]
        if not category or category == 'layout':
            elements += [{'element_type': t, 'category': 'layout', 'data_source': None} for t in STATIC_ELEMENT_TYPES]
        return Response({'categories': list(CATEGORIES), 'elements': elements})


class ComputeBulletinView(APIView):
    permission_classes = [IsAuthenticated, IsSchoolStaff]

    def post(self, request):
        serializer = ComputeBulletinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            bulletin = generate_bulletin(
                data['student'],
                [dict(subject) for subject in data['subjects']],
                data['term'],
                data['class_averages'],
                data['language'],
            )
        except GradingError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(bulletin)
