"""
School API.

GET  /api/schools/current/         : config of the current school + my role
CRUD /api/schools/members/         : memberships (direction only)
"""
import logging

from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .mixins import SchoolViewSetMixin, get_request_membership
from .models import SchoolMembership
from .permissions import IsSchoolDirector, IsSchoolMember
from .serializers import SchoolMembershipSerializer, SchoolSerializer

logger = logging.getLogger(__name__)


class CurrentSchoolView(APIView):
    permission_classes = [IsAuthenticated, IsSchoolMember]

    def get(self, request):
        membership = get_request_membership(request)
        school = membership.school
        return Response({
            'school': SchoolSerializer(school).data,
            'config': school.to_frontend_config(),
            'role': membership.role,
        })


class SchoolMembershipViewSet(SchoolViewSetMixin, viewsets.ModelViewSet):
    """
    Memberships of the current school.

    DELETE never removes the row: it deactivates the membership so that
    history (sessions, alerts, payments) keeps its links.
    """
    queryset = SchoolMembership.objects.select_related('user', 'school').order_by('role', 'user__last_name')
    serializer_class = SchoolMembershipSerializer
    permission_classes = [IsAuthenticated, IsSchoolDirector]

    def get_queryset(self):
        qs = super().get_queryset()
        role = self.request.query_params.get('role')
        if role:
            qs = qs.filter(role=role)
        if self.request.query_params.get('active') == '1':
            qs = qs.filter(is_active=True)
        return qs

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['school'] = self.get_school()
        return context

    def perform_create(self, serializer):
        super().perform_create(serializer)
        logger.info(
            f'Membership created: school={serializer.instance.school_id}, '
            f'user={serializer.instance.user_id}, role={serializer.instance.role}'
        )

    def destroy(self, request, *args, **kwargs):
        membership = self.get_object()
        if membership.user_id == request.user.id:
            return Response(
                {'detail': 'Vous ne pouvez pas vous retirer vous-même.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        membership.is_active = False
        membership.save(update_fields=['is_active', 'updated_at'])
        logger.info(f'Membership deactivated: id={membership.id} by user={request.user.id}')
        return Response(status=status.HTTP_204_NO_CONTENT)
