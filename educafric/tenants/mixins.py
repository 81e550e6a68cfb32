"""
School mixins: reusable pieces for school-scoped models and ViewSets.
"""
from django.db import models
from rest_framework.exceptions import PermissionDenied

from .context import get_current_school, set_current_school

_UNSET = object()


# ═══════════════════════════════════════════════════════════════
# REQUEST HELPERS
# ═══════════════════════════════════════════════════════════════

def get_request_membership(request):
    """
    Active SchoolMembership of the requesting user.

    A membership in the school selected by the host wins. When the user is
    not a member there, or no school was selected, the oldest active
    membership is used. Cached on the request.
    """
    cached = getattr(request, '_school_membership', _UNSET)
    if cached is not _UNSET:
        return cached

    membership = None
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        from .models import School, SchoolMembership

        qs = SchoolMembership.objects.filter(
            user=user, is_active=True, school__status=School.Status.ACTIVE,
        ).select_related('school')

        host_school = getattr(request, 'school', None)
        if host_school is not None:
            membership = qs.filter(school=host_school).first()
        if membership is None:
            membership = qs.order_by('joined_at', 'id').first()

    request._school_membership = membership
    return membership


def get_request_school(request):
    membership = get_request_membership(request)
    return membership.school if membership else None


# ═══════════════════════════════════════════════════════════════
# MODEL MIXINS
# ═══════════════════════════════════════════════════════════════

class SchoolScopedModel(models.Model):
    """
    Abstract mixin adding the school FK.

        class SafeZone(SchoolScopedModel):
            name = models.CharField(...)
    """
    school = models.ForeignKey(
        'tenants.School',
        on_delete=models.CASCADE,
        related_name='%(app_label)s_%(class)ss',
        verbose_name='École',
        db_index=True,
    )

    class Meta:
        abstract = True


class SchoolQuerySet(models.QuerySet):

    def for_school(self, school):
        if school is None:
            return self.none()
        return self.filter(school=school)

    def for_current_school(self):
        return self.for_school(get_current_school())


class SchoolManager(models.Manager):

    def get_queryset(self):
        return SchoolQuerySet(self.model, using=self._db)

    def for_school(self, school):
        return self.get_queryset().for_school(school)

    def for_current_school(self):
        return self.get_queryset().for_current_school()


# ═══════════════════════════════════════════════════════════════
# VIEWSET / VIEW MIXINS
# ═══════════════════════════════════════════════════════════════

class SchoolViewSetMixin:
    """
    Mixin for DRF ViewSets: filters the queryset by the request's school and
    sets the school on create.

        class CourseViewSet(SchoolViewSetMixin, viewsets.ModelViewSet):
            queryset = OnlineCourse.objects.all()
    """

    school_field = 'school'

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        school = get_request_school(request)
        if school is not None:
            set_current_school(school)

    def get_school(self):
        return get_request_school(self.request)

    def get_queryset(self):
        qs = super().get_queryset()
        school = self.get_school()
        if school is None:
            return qs.none()
        return qs.filter(**{self.school_field: school})

    def perform_create(self, serializer):
        school = self.get_school()
        if school is None:
            raise PermissionDenied('École non déterminée. Impossible de créer l\'objet.')
        serializer.save(school=school)

    def perform_update(self, serializer):
        # L'école d'un objet ne change jamais
        serializer.save()


class SchoolAPIViewMixin:
    """Mixin for APIView: refuses the request when no school is resolved."""

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        school = get_request_school(request)
        if school is None:
            raise PermissionDenied('École non déterminée.')
        set_current_school(school)
        self.school = school
