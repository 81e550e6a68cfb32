"""
Accounts API.

POST /api/auth/register/            : create an account, returns a JWT pair
POST /api/auth/token/               : login (email case-insensitive)
GET/PATCH /api/auth/me/             : my profile
GET  /api/auth/children/            : my children (parents)
CRUD /api/auth/parent-relations/    : parent/student links
"""
import logging

from rest_framework import mixins, status, viewsets
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from tenants.mixins import get_request_membership
from tenants.models import SchoolMembership

from .models import ParentStudentRelation
from .permissions import IsParent
from .serializers import (
    ChildSerializer,
    EducafricTokenObtainPairSerializer,
    ParentStudentRelationSerializer,
    RegisterSerializer,
    UserProfileSerializer,
)

logger = logging.getLogger(__name__)


class EducafricTokenObtainPairView(TokenObtainPairView):
    serializer_class = EducafricTokenObtainPairSerializer
    throttle_classes = [AnonRateThrottle]


class RegisterView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [AnonRateThrottle]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        refresh = EducafricTokenObtainPairSerializer.get_token(user)
        logger.info(f'User registered: id={user.id}, role={user.role}')

        return Response({
            'user': UserProfileSerializer(user).data,
            'refresh': str(refresh),
            'access': str(refresh.access_token),
        }, status=status.HTTP_201_CREATED)


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = UserProfileSerializer(request.user).data
        membership = get_request_membership(request)
        data['school'] = membership.school.to_frontend_config() if membership else None
        data['school_role'] = membership.role if membership else None
        return Response(data)

    def patch(self, request):
        serializer = UserProfileSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class ChildrenView(APIView):
    permission_classes = [IsAuthenticated, IsParent]

    def get(self, request):
        children = request.user.children().order_by('last_name', 'first_name')
        return Response(ChildSerializer(children, many=True).data)


class ParentStudentRelationViewSet(mixins.ListModelMixin,
                                   mixins.CreateModelMixin,
                                   mixins.RetrieveModelMixin,
                                   mixins.UpdateModelMixin,
                                   mixins.DestroyModelMixin,
                                   viewsets.GenericViewSet):
    """
    Parents and students see their own links.
    The school direction manages links between members of its school.
    """
    serializer_class = ParentStudentRelationSerializer
    permission_classes = [IsAuthenticated]

    def _director_membership(self):
        membership = get_request_membership(self.request)
        if membership is not None and membership.is_director:
            return membership
        return None

    def get_queryset(self):
        user = self.request.user
        qs = ParentStudentRelation.objects.select_related('parent', 'student')

        membership = self._director_membership()
        if membership is not None:
            member_ids = SchoolMembership.objects.filter(
                school=membership.school, is_active=True
            ).values_list('user_id', flat=True)
            return qs.filter(student_id__in=member_ids)

        if user.role == 'parent':
            return qs.filter(parent=user)
        if user.role == 'student':
            return qs.filter(student=user)
        return qs.none()

    def check_permissions(self, request):
        super().check_permissions(request)
        if request.method not in ('GET', 'HEAD', 'OPTIONS') and self._director_membership() is None:
            raise PermissionDenied('Seule la direction peut gérer les liens parent-élève.')

    def perform_create(self, serializer):
        school = self._director_membership().school
        parent = serializer.validated_data['parent']
        student = serializer.validated_data['student']

        members = SchoolMembership.objects.filter(school=school, is_active=True)
        if not members.filter(user=parent, role=SchoolMembership.Role.PARENT).exists():
            raise ValidationError({'parent': 'Ce parent n\'est pas membre de l\'établissement.'})
        if not members.filter(user=student, role=SchoolMembership.Role.STUDENT).exists():
            raise ValidationError({'student': 'Cet élève n\'est pas membre de l\'établissement.'})

        relation = serializer.save()
        logger.info(f'Parent link created: parent={relation.parent_id}, student={relation.student_id}')
