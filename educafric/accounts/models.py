from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


class CustomUserManager(BaseUserManager):
    """Manager for CustomUser, where email is the unique identifier."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_('L\'email est obligatoire'))
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', 'admin')

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True'))

        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    """
    Educafric user. Login by email, username disabled.

    The role here is the account type. The role inside a given school is
    carried by tenants.SchoolMembership.
    """

    ROLE_CHOICES = (
        ('student', 'Élève'),
        ('teacher', 'Enseignant'),
        ('parent', 'Parent'),
        ('director', 'Directeur'),
        ('freelancer', 'Répétiteur'),
        ('admin', 'Administrateur'),
    )

    LANGUAGE_CHOICES = (
        ('fr', 'Français'),
        ('en', 'English'),
    )

    username = None
    email = models.EmailField(_('adresse email'), unique=True)

    phone_number = models.CharField(
        _('téléphone'),
        max_length=20,
        unique=True,
        blank=True,
        null=True,
        help_text=_('Format international, ex. 237677123456')
    )

    role = models.CharField(
        _('rôle'),
        max_length=20,
        choices=ROLE_CHOICES,
        default='student',
    )

    preferred_language = models.CharField(
        _('langue'),
        max_length=2,
        choices=LANGUAGE_CHOICES,
        default='fr',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = CustomUserManager()

    class Meta:
        verbose_name = _('utilisateur')
        verbose_name_plural = _('utilisateurs')

    def __str__(self):
        return f"{self.email} ({self.get_role_display()})"

    def get_full_name(self):
        full = ' '.join(filter(None, [self.first_name, self.last_name])).strip()
        return full or self.email

    def children(self, can_track_location=None):
        """Students linked to this parent, optionally only those it may track."""
        lookup = {'guardian_links__parent': self}
        if can_track_location is not None:
            lookup['guardian_links__can_track_location'] = can_track_location
        return CustomUser.objects.filter(**lookup).distinct()

    def guardians(self, can_track_location=None):
        """Parents linked to this student, optionally only those allowed to track."""
        lookup = {'child_links__student': self}
        if can_track_location is not None:
            lookup['child_links__can_track_location'] = can_track_location
        return CustomUser.objects.filter(**lookup).distinct()

    def is_parent_of(self, student):
        return ParentStudentRelation.objects.filter(parent=self, student=student).exists()


class ParentStudentRelation(models.Model):
    """Parent ↔ student link (a student may have several guardians)."""

    RELATIONSHIP_CHOICES = (
        ('father', 'Père'),
        ('mother', 'Mère'),
        ('guardian', 'Tuteur'),
        ('other', 'Autre'),
    )

    parent = models.ForeignKey(
        CustomUser,
        on_delete=models.CASCADE,
        related_name='child_links',
        limit_choices_to={'role': 'parent'},
        verbose_name=_('parent'),
    )
    student = models.ForeignKey(
        CustomUser,
        on_delete=models.CASCADE,
        related_name='guardian_links',
        limit_choices_to={'role': 'student'},
        verbose_name=_('élève'),
    )
    relationship = models.CharField(
        _('lien'), max_length=20, choices=RELATIONSHIP_CHOICES, default='guardian'
    )
    is_primary = models.BooleanField(_('contact principal'), default=False)
    can_track_location = models.BooleanField(
        _('suivi de localisation'), default=True,
        help_text=_('Le parent reçoit les alertes de géolocalisation de l\'élève')
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('lien parent-élève')
        verbose_name_plural = _('liens parent-élève')
        unique_together = ('parent', 'student')
        indexes = [
            models.Index(fields=['student', 'can_track_location'], name='parent_link_student_track_idx'),
        ]

    def __str__(self):
        return f'{self.parent.get_full_name()} → {self.student.get_full_name()} ({self.relationship})'
