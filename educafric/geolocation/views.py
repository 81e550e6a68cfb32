"""
Geolocation API.

CRUD /api/geolocation/devices/
POST /api/geolocation/devices/{id}/location/
GET  /api/geolocation/devices/{id}/history/?limit=
CRUD /api/geolocation/safe-zones/
GET  /api/geolocation/alerts/?unresolved=1
POST /api/geolocation/alerts/{id}/read/
POST /api/geolocation/alerts/{id}/resolve/
POST /api/geolocation/alerts/emergency/

Visibility: directors see the whole school, parents see the children they
are allowed to track, students see themselves.
"""
import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from tenants.mixins import SchoolViewSetMixin, get_request_membership
from tenants.permissions import IsSchoolMember

from .models import GeolocationAlert, SafeZone, TrackingDevice
from .permissions import GeolocationEnabled
from .serializers import (
    EmergencySerializer,
    GeolocationAlertSerializer,
    LocationPingSerializer,
    LocationUpdateSerializer,
    SafeZoneSerializer,
    TrackingDeviceSerializer,
)
from .services import AlertService, GeolocationServiceError

logger = logging.getLogger(__name__)

MAX_HISTORY = 500


def visible_student_ids(request):
    """None means every student of the school (direction)."""
    membership = get_request_membership(request)
    if membership is None:
        return []
    if membership.is_director:
        return None
    user = request.user
    if user.role == 'parent':
        return list(user.children(can_track_location=True).values_list('id', flat=True))
    if user.role == 'student':
        return [user.id]
    return []


class GeolocationViewMixin(SchoolViewSetMixin):
    permission_classes = [IsAuthenticated, IsSchoolMember, GeolocationEnabled]
    student_field = 'student_id'

    def get_queryset(self):
        qs = super().get_queryset()
        allowed = visible_student_ids(self.request)
        if allowed is None:
            return qs
        return qs.filter(**{f'{self.student_field}__in': allowed})

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['school'] = self.get_school()
        context['allowed_student_ids'] = visible_student_ids(self.request)
        return context


class TrackingDeviceViewSet(GeolocationViewMixin, viewsets.ModelViewSet):
    queryset = TrackingDevice.objects.select_related('student', 'owner').order_by('name')
    serializer_class = TrackingDeviceSerializer

    def perform_create(self, serializer):
        school = self.get_school()
        serializer.save(school=school, owner=self.request.user)
        logger.info(f'Tracking device {serializer.instance.id} registered for student {serializer.instance.student_id}')

    @action(detail=True, methods=['post'])
    def location(self, request, pk=None):
        device = self.get_object()
        if request.user.id not in (device.owner_id, device.student_id):
            raise PermissionDenied('Seul le propriétaire de l\'appareil peut envoyer sa position.')
        if not device.is_active:
            return Response({'detail': 'Appareil désactivé.'}, status=status.HTTP_400_BAD_REQUEST)

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            result = AlertService.process_location(
                device,
                data['latitude'],
                data['longitude'],
                accuracy=data.get('accuracy'),
                address=data.get('address'),
                battery_level=data.get('battery_level'),
                recorded_at=data.get('recorded_at'),
                speed=data.get('speed'),
            )
        except GeolocationServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(result)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        device = self.get_object()
        try:
            limit = min(max(int(request.query_params.get('limit', 100)), 1), MAX_HISTORY)
        except ValueError:
            limit = 100
        pings = device.pings.order_by('-recorded_at')[:limit]
        return Response(LocationPingSerializer(pings, many=True).data)


class SafeZoneViewSet(GeolocationViewMixin, viewsets.ModelViewSet):
    queryset = SafeZone.objects.select_related('student').order_by('name')
    serializer_class = SafeZoneSerializer

    def check_can_manage(self):
        if self.request.user.role == 'student':
            raise PermissionDenied('Les élèves ne peuvent pas modifier leurs zones de sécurité.')

    def perform_create(self, serializer):
        self.check_can_manage()
        serializer.save(school=self.get_school(), created_by=self.request.user)

    def perform_update(self, serializer):
        self.check_can_manage()
        serializer.save()

    def perform_destroy(self, instance):
        self.check_can_manage()
        instance.delete()


class GeolocationAlertViewSet(GeolocationViewMixin,
                              mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              viewsets.GenericViewSet):
    queryset = GeolocationAlert.objects.select_related('student', 'zone', 'device')
    serializer_class = GeolocationAlertSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.query_params.get('unresolved') == '1':
            qs = qs.filter(is_resolved=False)
        alert_type = self.request.query_params.get('type')
        if alert_type:
            qs = qs.filter(alert_type=alert_type)
        return qs

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        alert = AlertService.mark_read(self.get_object())
        return Response(GeolocationAlertSerializer(alert).data)

    @action(detail=True, methods=['post'])
    def resolve(self, request, pk=None):
        alert = AlertService.resolve_alert(self.get_object(), request.user)
        return Response(GeolocationAlertSerializer(alert).data)

    @action(detail=False, methods=['post'])
    def emergency(self, request):
        serializer = EmergencySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        devices = TrackingDevice.objects.for_school(self.get_school())
        allowed = visible_student_ids(request)
        if allowed is not None:
            devices = devices.filter(student_id__in=allowed) | devices.filter(owner=request.user)
        device = devices.filter(id=data['device']).first()
        if device is None:
            return Response({'detail': 'Appareil introuvable.'}, status=status.HTTP_404_NOT_FOUND)

        try:
            alert = AlertService.raise_emergency(
                device, request.user, data.get('message', ''),
                data.get('latitude'), data.get('longitude'),
            )
        except GeolocationServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(GeolocationAlertSerializer(alert).data, status=status.HTTP_201_CREATED)
