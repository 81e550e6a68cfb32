"""
School models: the tenant layer.

Shared database, shared schema: every top-level model carries a FK to School.
A School is one establishment (public or private, francophone or anglophone).
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class School(models.Model):
    """
    Établissement scolaire. All data in the system is scoped to a school.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', _('Active')
        INACTIVE = 'inactive', _('Inactive')
        SUSPENDED = 'suspended', _('Suspendue')

    class SchoolType(models.TextChoices):
        PUBLIC = 'public', _('Public')
        PRIVATE = 'private', _('Privé')

    class EducationSystem(models.TextChoices):
        FRANCOPHONE = 'francophone', _('Francophone')
        ANGLOPHONE = 'anglophone', _('Anglophone')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(
        max_length=50, unique=True, db_index=True,
        help_text=_('Identifiant unique (sous-domaine)')
    )
    name = models.CharField(_('nom'), max_length=200)
    status = models.CharField(
        _('statut'), max_length=20, choices=Status.choices, default=Status.ACTIVE,
    )
    school_type = models.CharField(
        _('type'), max_length=20, choices=SchoolType.choices, default=SchoolType.PUBLIC,
    )
    education_system = models.CharField(
        _('système éducatif'), max_length=20,
        choices=EducationSystem.choices, default=EducationSystem.FRANCOPHONE,
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='owned_schools',
        null=True, blank=True,
        help_text=_('Fondateur / directeur principal'),
    )

    contact_email = models.EmailField(_('email'), blank=True)
    contact_phone = models.CharField(_('téléphone'), max_length=30, blank=True)
    address = models.CharField(_('adresse'), max_length=255, blank=True)
    city = models.CharField(_('ville'), max_length=100, blank=True)
    country = models.CharField(_('pays'), max_length=2, default='CM')

    timezone = models.CharField(max_length=50, default='Africa/Douala')
    locale = models.CharField(max_length=10, default='fr')

    geolocation_enabled = models.BooleanField(
        _('géolocalisation activée'), default=False,
        help_text=_('Suivi de sécurité des élèves pour cette école')
    )

    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = _('école')
        verbose_name_plural = _('écoles')

    def __str__(self):
        return f'{self.name} ({self.slug})'

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    def to_frontend_config(self):
        """Public config of the school for the frontend (no secrets)."""
        theme = (self.metadata or {}).get('theme', {})
        return {
            'id': str(self.id),
            'slug': self.slug,
            'name': self.name,
            'school_type': self.school_type,
            'education_system': self.education_system,
            'locale': self.locale,
            'timezone': self.timezone,
            'primary_color': theme.get('primary_color', '#0079F2'),
            'logo_url': theme.get('logo_url', ''),
            'features': {
                'geolocation': self.geolocation_enabled,
            },
        }


class SchoolMembership(models.Model):
    """
    Link between a user and a school. A user may belong to several schools
    with different roles (a teacher working in two establishments).
    """

    class Role(models.TextChoices):
        DIRECTOR = 'director', _('Directeur')
        ADMIN = 'admin', _('Administrateur')
        TEACHER = 'teacher', _('Enseignant')
        STUDENT = 'student', _('Élève')
        PARENT = 'parent', _('Parent')

    school = models.ForeignKey(
        School, on_delete=models.CASCADE,
        related_name='memberships',
        verbose_name=_('école'),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='school_memberships',
        verbose_name=_('utilisateur'),
    )
    role = models.CharField(
        _('rôle'), max_length=20, choices=Role.choices, default=Role.STUDENT,
    )
    is_active = models.BooleanField(_('actif'), default=True)
    joined_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('membre de l\'école')
        verbose_name_plural = _('membres de l\'école')
        unique_together = ['school', 'user']
        indexes = [
            models.Index(fields=['school', 'role'], name='membership_school_role_idx'),
            models.Index(fields=['user', 'is_active'], name='membership_user_active_idx'),
        ]

    def __str__(self):
        return f'{self.user} → {self.school} ({self.role})'

    @property
    def is_director(self):
        return self.role in (self.Role.DIRECTOR, self.Role.ADMIN)

    @property
    def is_staff_member(self):
        return self.role in (self.Role.DIRECTOR, self.Role.ADMIN, self.Role.TEACHER)
