"""
Online classes API.

Direction (school director/admin):
    CRUD   /api/online-classes/courses/
    GET    /api/online-classes/sessions/?status=&start=&end=
    POST   /api/online-classes/sessions/
    PATCH  /api/online-classes/sessions/{id}/
    DELETE /api/online-classes/sessions/{id}/          : cancel
    GET    /api/online-classes/recurrences/
    POST   /api/online-classes/recurrences/
    PATCH  /api/online-classes/recurrences/{id}/        : {action: pause|resume|end}
    POST   /api/online-classes/recurrences/{id}/generate/
    DELETE /api/online-classes/recurrences/{id}/

School members:
    POST   /api/online-classes/sessions/{id}/join/
    POST   /api/online-classes/sessions/{id}/leave/

Teachers:
    POST   /api/online-classes/sessions/{id}/start/
    POST   /api/online-classes/sessions/{id}/end/
    GET    /api/online-classes/teacher-sessions/?start=&end=

Platform admins:
    GET/POST /api/online-classes/activations/
    POST     /api/online-classes/activations/{id}/cancel/
"""
import logging

from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from tenants.mixins import SchoolViewSetMixin, get_request_membership
from tenants.models import School
from tenants.permissions import IsPlatformAdmin, IsSchoolDirector, IsSchoolMember

from .models import ClassRecurrence, ClassSession, OnlineClassActivation, OnlineCourse
from .permissions import OnlineClassesEnabled
from .serializers import (
    ActivationCreateSerializer,
    ClassRecurrenceSerializer,
    ClassSessionSerializer,
    GenerateSessionsSerializer,
    OnlineClassActivationSerializer,
    OnlineCourseSerializer,
    RecurrenceActionSerializer,
    RecurrenceCreateSerializer,
    SessionCreateSerializer,
    SessionUpdateSerializer,
)
from .services import (
    ActivationRequiredError,
    InvalidRecurrenceError,
    InvalidSessionStateError,
    SchedulerService,
    SchedulerServiceError,
    SessionAccessDenied,
)

logger = logging.getLogger(__name__)


def activation_required_response(exc):
    return Response(
        {'detail': str(exc), 'code': ActivationRequiredError.code},
        status=status.HTTP_402_PAYMENT_REQUIRED,
    )


def _parse_bound(request, name):
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        value = parse_datetime(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError({name: f'Date invalide: {raw}'})
    return value


def parse_range(request):
    return _parse_bound(request, 'start'), _parse_bound(request, 'end')


class SchoolContextMixin:

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['school'] = self.get_school()
        return context


class OnlineCourseViewSet(SchoolContextMixin, SchoolViewSetMixin, viewsets.ModelViewSet):
    queryset = OnlineCourse.objects.select_related('teacher').order_by('title')
    serializer_class = OnlineCourseSerializer
    permission_classes = [IsAuthenticated, OnlineClassesEnabled, IsSchoolDirector]

    def get_queryset(self):
        return SchedulerService.school_courses(self.get_school()).order_by('title')


class ClassSessionViewSet(SchoolContextMixin, SchoolViewSetMixin, viewsets.ModelViewSet):
    queryset = ClassSession.objects.select_related('course', 'teacher', 'school')
    serializer_class = ClassSessionSerializer
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_permissions(self):
        if self.action in ('join', 'leave', 'start', 'end_session'):
            classes = [IsAuthenticated, OnlineClassesEnabled, IsSchoolMember]
        else:
            classes = [IsAuthenticated, OnlineClassesEnabled, IsSchoolDirector]
        return [permission() for permission in classes]

    def get_queryset(self):
        school = self.get_school()
        if self.action != 'list':
            return SchedulerService.school_sessions(school)
        start, end = parse_range(self.request)
        return SchedulerService.school_sessions(
            school, status=self.request.query_params.get('status'), start=start, end=end,
        )

    def create(self, request, *args, **kwargs):
        serializer = SessionCreateSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        try:
            session = SchedulerService.create_scheduled_session(
                self.get_school(), dict(serializer.validated_data), request.user
            )
        except ActivationRequiredError as e:
            return activation_required_response(e)
        return Response(ClassSessionSerializer(session).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        session = self.get_object()
        serializer = SessionUpdateSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        try:
            session = SchedulerService.update_session(session, dict(serializer.validated_data))
        except InvalidSessionStateError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ClassSessionSerializer(session).data)

    def update(self, request, *args, **kwargs):
        return self.partial_update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        session = self.get_object()
        try:
            SchedulerService.cancel_session(session)
        except InvalidSessionStateError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ClassSessionSerializer(session).data)

    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        session = self.get_object()
        try:
            payload = SchedulerService.join_session(
                session, request.user, device_type=request.data.get('device_type', '')
            )
        except SessionAccessDenied as e:
            return Response({'detail': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except InvalidSessionStateError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(payload)

    @action(detail=True, methods=['post'])
    def leave(self, request, pk=None):
        session = self.get_object()
        attendance = SchedulerService.leave_session(session, request.user, request.data.get('reason', 'left'))
        if attendance is None:
            return Response({'detail': 'Aucune présence ouverte pour cette séance.'}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'duration_seconds': attendance.duration_seconds})

    def _check_teacher(self, session):
        membership = get_request_membership(self.request)
        return session.teacher_id == self.request.user.id or (membership and membership.is_director)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        session = self.get_object()
        if not self._check_teacher(session):
            return Response({'detail': 'Seul l\'enseignant peut démarrer la séance.'}, status=status.HTTP_403_FORBIDDEN)
        try:
            SchedulerService.start_session(session)
        except InvalidSessionStateError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ClassSessionSerializer(session).data)

    @action(detail=True, methods=['post'], url_path='end')
    def end_session(self, request, pk=None):
        session = self.get_object()
        if not self._check_teacher(session):
            return Response({'detail': 'Seul l\'enseignant peut terminer la séance.'}, status=status.HTTP_403_FORBIDDEN)
        try:
            SchedulerService.end_session(session)
        except InvalidSessionStateError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ClassSessionSerializer(session).data)


class ClassRecurrenceViewSet(SchoolContextMixin, SchoolViewSetMixin, viewsets.ModelViewSet):
    queryset = ClassRecurrence.objects.select_related('course', 'teacher', 'school')
    serializer_class = ClassRecurrenceSerializer
    permission_classes = [IsAuthenticated, OnlineClassesEnabled, IsSchoolDirector]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        return SchedulerService.school_recurrences(self.get_school())

    def create(self, request, *args, **kwargs):
        serializer = RecurrenceCreateSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        try:
            recurrence, created = SchedulerService.create_recurrence(
                self.get_school(), dict(serializer.validated_data), request.user
            )
        except ActivationRequiredError as e:
            return activation_required_response(e)
        except InvalidRecurrenceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        data = ClassRecurrenceSerializer(recurrence).data
        data['sessions_created'] = len(created)
        return Response(data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        recurrence = self.get_object()
        serializer = RecurrenceActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            SchedulerService.update_recurrence(
                recurrence, data['action'], request.user,
                reason=data.get('reason'), end_date=data.get('end_date'),
            )
        except InvalidRecurrenceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ClassRecurrenceSerializer(recurrence).data)

    def update(self, request, *args, **kwargs):
        return self.partial_update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        recurrence = self.get_object()
        cancel_future = request.query_params.get('cancel_future', '1') != '0'
        canceled = SchedulerService.delete_recurrence(recurrence, cancel_future=cancel_future)
        return Response({'canceled_sessions': canceled})

    @action(detail=True, methods=['post'])
    def generate(self, request, pk=None):
        recurrence = self.get_object()
        serializer = GenerateSessionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not SchedulerService.has_active_activation(recurrence.school):
            return activation_required_response(ActivationRequiredError())
        created = SchedulerService.generate_sessions(
            recurrence, weeks_ahead=serializer.validated_data['weeks_ahead']
        )
        return Response({
            'sessions_created': len(created),
            'occurrences_generated': recurrence.occurrences_generated,
            'sessions': ClassSessionSerializer(created, many=True).data,
        })


class TeacherSessionsView(APIView):
    permission_classes = [IsAuthenticated, OnlineClassesEnabled]

    def get(self, request):
        start, end = parse_range(request)
        sessions = SchedulerService.teacher_sessions(request.user, start, end)
        return Response(ClassSessionSerializer(sessions, many=True).data)


class OnlineClassActivationViewSet(mixins.ListModelMixin,
                                   mixins.RetrieveModelMixin,
                                   viewsets.GenericViewSet):
    queryset = OnlineClassActivation.objects.select_related('school', 'teacher').order_by('-end_date')
    serializer_class = OnlineClassActivationSerializer
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def get_queryset(self):
        qs = super().get_queryset()
        school = self.request.query_params.get('school')
        if school:
            qs = qs.filter(school_id=school)
        status_filter = self.request.query_params.get('status')
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    def create(self, request):
        serializer = ActivationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        school = get_object_or_404(School, pk=data['school'])
        try:
            activation = SchedulerService.activate_for_school(
                school, data['duration_type'], admin=request.user, notes=data['notes']
            )
        except SchedulerServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        logger.info(f'Online classes activated for school {school.slug} by admin {request.user.id}')
        return Response(OnlineClassActivationSerializer(activation).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        activation = SchedulerService.cancel_activation(self.get_object())
        return Response(OnlineClassActivationSerializer(activation).data)
