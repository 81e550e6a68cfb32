from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from tenants.mixins import SchoolManager, SchoolScopedModel


def default_margins():
    return {'top': 20, 'right': 20, 'bottom': 20, 'left': 20}


def default_global_styles():
    return {
        'font_family': 'Arial',
        'font_size': 12,
        'line_height': 1.4,
        'color': '#000000',
        'background_color': '#FFFFFF',
    }


class BulletinTemplate(SchoolScopedModel):
    """
    Page layout for report cards, designed by the school direction.

    ``elements`` is a list of
    ``{id, type, category, position: {x, y, width, height}, properties, z_index}``.
    Every change of elements or styles bumps ``version`` and is kept in
    BulletinTemplateVersion.
    """

    class TemplateType(models.TextChoices):
        CUSTOM = 'custom', _('Personnalisé')
        DEFAULT = 'default', _('Par défaut')
        SHARED = 'shared', _('Partagé')

    class PageFormat(models.TextChoices):
        A4 = 'A4', 'A4'
        A3 = 'A3', 'A3'
        LETTER = 'Letter', 'Letter'

    class Orientation(models.TextChoices):
        PORTRAIT = 'portrait', _('Portrait')
        LANDSCAPE = 'landscape', _('Paysage')

    name = models.CharField(_('nom'), max_length=150)
    description = models.TextField(blank=True, default='')
    template_type = models.CharField(max_length=10, choices=TemplateType.choices, default=TemplateType.CUSTOM)
    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=1)

    page_format = models.CharField(max_length=10, choices=PageFormat.choices, default=PageFormat.A4)
    orientation = models.CharField(max_length=10, choices=Orientation.choices, default=Orientation.PORTRAIT)
    margins = models.JSONField(default=default_margins)
    elements = models.JSONField(default=list)
    global_styles = models.JSONField(default=default_global_styles)

    usage_count = models.PositiveIntegerField(default=0)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='bulletin_templates',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('modèle de bulletin')
        verbose_name_plural = _('modèles de bulletin')
        ordering = ['-is_default', 'name']
        indexes = [
            models.Index(fields=['school', 'is_default'], name='template_school_default_idx'),
        ]

    def __str__(self):
        return f'{self.name} v{self.version}'


class BulletinTemplateVersion(models.Model):
    template = models.ForeignKey(BulletinTemplate, on_delete=models.CASCADE, related_name='versions')
    version = models.PositiveIntegerField()
    elements = models.JSONField(default=list)
    global_styles = models.JSONField(default=dict)
    change_note = models.CharField(max_length=255, blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('version de modèle')
        verbose_name_plural = _('versions de modèle')
        ordering = ['-version']
        unique_together = ('template', 'version')

    def __str__(self):
        return f'{self.template.name} v{self.version}'
