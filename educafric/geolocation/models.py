"""
Student safety tracking: devices, safe zones, location history and alerts.
"""
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from tenants.mixins import SchoolManager, SchoolScopedModel

LATITUDE_VALIDATORS = [MinValueValidator(-90), MaxValueValidator(90)]
LONGITUDE_VALIDATORS = [MinValueValidator(-180), MaxValueValidator(180)]


class TrackingDevice(SchoolScopedModel):

    class DeviceType(models.TextChoices):
        SMARTPHONE = 'smartphone', _('Smartphone')
        SMARTWATCH = 'smartwatch', _('Montre connectée')
        TABLET = 'tablet', _('Tablette')
        GPS_TRACKER = 'gps_tracker', _('Traceur GPS')

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_devices',
        verbose_name=_('propriétaire'),
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tracking_devices',
        verbose_name=_('élève'),
    )
    name = models.CharField(_('nom'), max_length=100)
    device_type = models.CharField(
        _('type'), max_length=20, choices=DeviceType.choices, default=DeviceType.SMARTPHONE
    )
    is_active = models.BooleanField(_('actif'), default=True)

    current_latitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True, validators=LATITUDE_VALIDATORS
    )
    current_longitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True, validators=LONGITUDE_VALIDATORS
    )
    location_accuracy = models.FloatField(null=True, blank=True, help_text=_('Précision en mètres'))
    current_address = models.CharField(max_length=255, blank=True, default='')
    battery_level = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MaxValueValidator(100)]
    )
    last_seen = models.DateTimeField(null=True, blank=True)
    tracking_settings = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('appareil de suivi')
        verbose_name_plural = _('appareils de suivi')
        ordering = ['name']
        indexes = [
            models.Index(fields=['student', 'is_active'], name='device_student_active_idx'),
        ]

    def __str__(self):
        return f'{self.name} ({self.get_device_type_display()})'


class SafeZone(SchoolScopedModel):

    class ZoneType(models.TextChoices):
        HOME = 'home', _('Domicile')
        SCHOOL = 'school', _('École')
        RELATIVE = 'relative', _('Famille')
        ACTIVITY = 'activity', _('Activité')

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='safe_zones',
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='created_safe_zones',
    )
    name = models.CharField(_('nom'), max_length=100)
    zone_type = models.CharField(_('type'), max_length=10, choices=ZoneType.choices, default=ZoneType.HOME)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, validators=LATITUDE_VALIDATORS)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, validators=LONGITUDE_VALIDATORS)
    radius_meters = models.PositiveIntegerField(
        _('rayon (m)'), default=200,
        validators=[MinValueValidator(10), MaxValueValidator(50000)],
    )
    is_active = models.BooleanField(_('active'), default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('zone de sécurité')
        verbose_name_plural = _('zones de sécurité')
        ordering = ['name']
        indexes = [
            models.Index(fields=['student', 'is_active'], name='zone_student_active_idx'),
        ]

    def __str__(self):
        return f'{self.name} ({self.radius_meters} m)'


class LocationPing(models.Model):
    device = models.ForeignKey(TrackingDevice, on_delete=models.CASCADE, related_name='pings')
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='location_pings',
    )
    latitude = models.DecimalField(max_digits=9, decimal_places=6)
    longitude = models.DecimalField(max_digits=9, decimal_places=6)
    accuracy = models.FloatField(null=True, blank=True)
    address = models.CharField(max_length=255, blank=True, default='')
    battery_level = models.PositiveSmallIntegerField(null=True, blank=True)
    speed = models.FloatField(null=True, blank=True, help_text=_('km/h'))
    recorded_at = models.DateTimeField(db_index=True)

    class Meta:
        verbose_name = _('position')
        verbose_name_plural = _('positions')
        ordering = ['-recorded_at']
        indexes = [
            models.Index(fields=['device', '-recorded_at'], name='ping_device_recorded_idx'),
        ]

    def __str__(self):
        return f'{self.latitude}, {self.longitude} @ {self.recorded_at:%d/%m %H:%M}'


class StudentZoneState(models.Model):
    """Last known safe-zone status of a student, updated on every ping."""

    student = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='zone_state',
    )
    is_outside = models.BooleanField(default=False)
    current_zone = models.ForeignKey(
        SafeZone,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
    )
    last_exit_at = models.DateTimeField(null=True, blank=True)
    consecutive_outside_readings = models.PositiveIntegerField(default=0)
    last_extended_alert_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('état de zone')
        verbose_name_plural = _('états de zone')

    def __str__(self):
        return f'{self.student} {"hors zone" if self.is_outside else "en zone"}'


class GeolocationAlert(SchoolScopedModel):

    class AlertType(models.TextChoices):
        ZONE_EXIT = 'zone_exit', _('Sortie de zone')
        ZONE_ENTRY = 'zone_entry', _('Entrée en zone')
        OUT_OF_ALL_ZONES = 'out_of_all_zones', _('Hors de toutes les zones')
        EXTENDED_ABSENCE = 'extended_absence', _('Absence prolongée')
        LOW_BATTERY = 'low_battery', _('Batterie faible')
        EMERGENCY = 'emergency', _('Urgence')

    class Severity(models.TextChoices):
        LOW = 'low', _('Basse')
        MEDIUM = 'medium', _('Moyenne')
        HIGH = 'high', _('Haute')
        CRITICAL = 'critical', _('Critique')

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='geolocation_alerts',
    )
    device = models.ForeignKey(
        TrackingDevice,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='alerts',
    )
    alert_type = models.CharField(max_length=20, choices=AlertType.choices)
    severity = models.CharField(max_length=10, choices=Severity.choices, default=Severity.MEDIUM)
    zone = models.ForeignKey(
        SafeZone,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='alerts',
    )
    message = models.TextField()
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    minutes_outside = models.PositiveIntegerField(null=True, blank=True)

    is_read = models.BooleanField(default=False)
    is_resolved = models.BooleanField(default=False)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='resolved_geo_alerts',
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = SchoolManager()

    class Meta:
        verbose_name = _('alerte de géolocalisation')
        verbose_name_plural = _('alertes de géolocalisation')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['school', 'is_resolved'], name='geo_alert_school_res_idx'),
            models.Index(fields=['device', 'alert_type', 'created_at'], name='geo_alert_device_type_idx'),
        ]

    def __str__(self):
        return f'[{self.severity}] {self.get_alert_type_display()} - {self.student}'
