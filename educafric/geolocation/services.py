"""
Safe-zone monitoring.

AlertService.process_location() is called for every ping. It stores the
ping, compares the position with the student's active safe zones and the
zone state saved on the previous ping, and raises alerts to the guardians
allowed to track the student.

The zone state lives in StudentZoneState so that several web workers and the
periodic Celery sweep see the same history.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from notifications.models import NotificationPriority, NotificationType
from notifications.services import NotificationService

from .geo import find_closest_zone, find_current_zone, format_duration
from .models import GeolocationAlert, LocationPing, SafeZone, StudentZoneState, TrackingDevice

logger = logging.getLogger(__name__)

SEVERITY_PRIORITY = {
    GeolocationAlert.Severity.LOW: NotificationPriority.LOW,
    GeolocationAlert.Severity.MEDIUM: NotificationPriority.NORMAL,
    GeolocationAlert.Severity.HIGH: NotificationPriority.HIGH,
    GeolocationAlert.Severity.CRITICAL: NotificationPriority.URGENT,
}

LOW_BATTERY_ALERT_INTERVAL = timedelta(hours=1)


class GeolocationServiceError(Exception):
    pass


class InvalidCoordinatesError(GeolocationServiceError):
    pass


def extended_absence_minutes():
    return getattr(settings, 'GEOLOCATION_EXTENDED_ABSENCE_MINUTES', 15)


def extended_alert_interval():
    return timedelta(minutes=getattr(settings, 'GEOLOCATION_EXTENDED_ALERT_INTERVAL_MINUTES', 30))


def low_battery_threshold():
    return getattr(settings, 'GEOLOCATION_LOW_BATTERY_THRESHOLD', 15)


def validate_coordinates(latitude, longitude):
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise InvalidCoordinatesError('Coordonnées invalides.')
    if not -90 <= lat <= 90:
        raise InvalidCoordinatesError('La latitude doit être comprise entre -90 et 90.')
    if not -180 <= lon <= 180:
        raise InvalidCoordinatesError('La longitude doit être comprise entre -180 et 180.')
    return lat, lon


class AlertService:

    @staticmethod
    def student_zones(student):
        return list(SafeZone.objects.filter(student=student, is_active=True))

    @staticmethod
    def _position_label(latitude, longitude, address=None):
        return address or f'{float(latitude):.6f}, {float(longitude):.6f}'

    @staticmethod
    def create_alert(student, school, alert_type, severity, message, device=None, zone=None,
                     latitude=None, longitude=None, minutes_outside=None):
        alert = GeolocationAlert.objects.create(
            school=school,
            student=student,
            device=device,
            alert_type=alert_type,
            severity=severity,
            zone=zone,
            message=message,
            latitude=latitude,
            longitude=longitude,
            minutes_outside=minutes_outside,
        )
        logger.info(f'Geolocation alert {alert.id}: {alert_type} ({severity}) for student {student.id}')
        AlertService.notify_guardians(alert)
        return alert

    @staticmethod
    def notify_guardians(alert):
        guardians = alert.student.guardians(can_track_location=True)
        return NotificationService.notify_many(
            guardians,
            title=f'{alert.get_alert_type_display()}: {alert.student.get_full_name()}',
            message=alert.message,
            notification_type=NotificationType.GEOLOCATION,
            priority=SEVERITY_PRIORITY[alert.severity],
            action_url=f'/geolocation/alerts/{alert.id}',
            metadata={'alert_id': alert.id, 'alert_type': alert.alert_type},
            school=alert.school,
        )

    @staticmethod
    @transaction.atomic
    def process_location(device, latitude, longitude, accuracy=None, address=None,
                         battery_level=None, recorded_at=None, speed=None):
        """
        Record a ping and raise the zone and battery alerts it implies.

        Returns ``{'ping_id', 'inside', 'zone', 'alerts'}``.
        """
        latitude, longitude = validate_coordinates(latitude, longitude)
        now = timezone.now()
        recorded_at = recorded_at or now
        student = device.student

        ping = LocationPing.objects.create(
            device=device,
            student=student,
            latitude=round(latitude, 6),
            longitude=round(longitude, 6),
            accuracy=accuracy,
            address=address or '',
            battery_level=battery_level,
            speed=speed,
            recorded_at=recorded_at,
        )

        device.current_latitude = round(latitude, 6)
        device.current_longitude = round(longitude, 6)
        device.location_accuracy = accuracy
        device.current_address = address or ''
        if battery_level is not None:
            device.battery_level = battery_level
        device.last_seen = recorded_at
        device.save(update_fields=[
            'current_latitude', 'current_longitude', 'location_accuracy', 'current_address',
            'battery_level', 'last_seen', 'updated_at',
        ])

        alerts = []
        zones = AlertService.student_zones(student)
        current_zone = find_current_zone(latitude, longitude, zones) if zones else None

        if zones:
            alerts.extend(AlertService._evaluate_zones(
                device, student, zones, current_zone, latitude, longitude, address, now
            ))

        if battery_level is not None:
            low = AlertService._check_battery(device, battery_level, latitude, longitude, now)
            if low is not None:
                alerts.append(low)

        return {
            'ping_id': ping.id,
            'inside': current_zone is not None,
            'zone': current_zone.name if current_zone else None,
            'alerts': [{'id': a.id, 'type': a.alert_type, 'severity': a.severity} for a in alerts],
        }

    @staticmethod
    def _evaluate_zones(device, student, zones, current_zone, latitude, longitude, address, now):
        state, created = StudentZoneState.objects.select_for_update().get_or_create(student=student)
        label = AlertService._position_label(latitude, longitude, address)
        time_label = timezone.localtime(now).strftime('%H:%M')
        name = student.get_full_name()
        alerts = []

        if created and current_zone is None:
            alerts.append(AlertService.create_alert(
                student, device.school,
                GeolocationAlert.AlertType.OUT_OF_ALL_ZONES, GeolocationAlert.Severity.MEDIUM,
                f'{name} se trouve hors de toutes ses zones de sécurité ({label}) à {time_label}.',
                device=device, latitude=latitude, longitude=longitude,
            ))
            state.is_outside = True
            state.last_exit_at = now
            state.consecutive_outside_readings = 1

        elif state.is_outside and current_zone is not None:
            alerts.append(AlertService.create_alert(
                student, device.school,
                GeolocationAlert.AlertType.ZONE_ENTRY, GeolocationAlert.Severity.LOW,
                f'{name} est arrivé(e) dans la zone « {current_zone.name} » à {time_label}.',
                device=device, zone=current_zone, latitude=latitude, longitude=longitude,
            ))
            state.is_outside = False
            state.last_exit_at = None
            state.consecutive_outside_readings = 0
            state.last_extended_alert_at = None

        elif not state.is_outside and current_zone is None:
            closest = find_closest_zone(latitude, longitude, zones)
            zone_name = closest.name if closest else 'Zone de sécurité'
            alerts.append(AlertService.create_alert(
                student, device.school,
                GeolocationAlert.AlertType.ZONE_EXIT, GeolocationAlert.Severity.HIGH,
                f'{name} a quitté la zone « {zone_name} » à {time_label}. Position actuelle: {label}.',
                device=device, zone=closest, latitude=latitude, longitude=longitude,
            ))
            state.is_outside = True
            state.last_exit_at = now
            state.consecutive_outside_readings = 1

        elif state.is_outside:
            state.consecutive_outside_readings += 1
            extended = AlertService._maybe_extended_absence(state, device, latitude, longitude, address, now)
            if extended is not None:
                alerts.append(extended)

        state.current_zone = current_zone
        state.save()
        return alerts

    @staticmethod
    def _maybe_extended_absence(state, device, latitude, longitude, address, now):
        if state.last_exit_at is None:
            return None

        minutes_outside = int((now - state.last_exit_at).total_seconds() // 60)
        if minutes_outside <= extended_absence_minutes():
            return None
        if state.last_extended_alert_at and now - state.last_extended_alert_at < extended_alert_interval():
            return None

        student = state.student
        label = AlertService._position_label(latitude, longitude, address)
        alert = AlertService.create_alert(
            student, device.school,
            GeolocationAlert.AlertType.EXTENDED_ABSENCE, GeolocationAlert.Severity.CRITICAL,
            f'{student.get_full_name()} est hors de ses zones de sécurité depuis '
            f'{format_duration(minutes_outside)}. Dernière position: {label}.',
            device=device, latitude=latitude, longitude=longitude, minutes_outside=minutes_outside,
        )
        state.last_extended_alert_at = now
        return alert

    @staticmethod
    def _check_battery(device, battery_level, latitude, longitude, now):
        if battery_level >= low_battery_threshold():
            return None
        recent = GeolocationAlert.objects.filter(
            device=device,
            alert_type=GeolocationAlert.AlertType.LOW_BATTERY,
            created_at__gte=now - LOW_BATTERY_ALERT_INTERVAL,
        ).exists()
        if recent:
            return None
        return AlertService.create_alert(
            device.student, device.school,
            GeolocationAlert.AlertType.LOW_BATTERY, GeolocationAlert.Severity.MEDIUM,
            f'Batterie faible ({battery_level}%) sur l\'appareil « {device.name} » de '
            f'{device.student.get_full_name()}.',
            device=device, latitude=latitude, longitude=longitude,
        )

    @staticmethod
    def check_extended_absences(now=None):
        """
        Periodic sweep: students still outside without a fresh ping also get
        their extended-absence alert.
        """
        now = now or timezone.now()
        created = 0
        states = StudentZoneState.objects.filter(
            is_outside=True, last_exit_at__isnull=False,
        ).select_related('student')

        for state in states:
            device = (
                TrackingDevice.objects.filter(student=state.student, is_active=True)
                .select_related('school')
                .order_by('-last_seen')
                .first()
            )
            if device is None or device.current_latitude is None:
                continue
            if not device.school.geolocation_enabled:
                continue

            with transaction.atomic():
                alert = AlertService._maybe_extended_absence(
                    state, device, device.current_latitude, device.current_longitude,
                    device.current_address, now,
                )
                if alert is not None:
                    state.save(update_fields=['last_extended_alert_at', 'updated_at'])
                    created += 1
        return created

    @staticmethod
    def raise_emergency(device, user, message='', latitude=None, longitude=None):
        if latitude is not None and longitude is not None:
            latitude, longitude = validate_coordinates(latitude, longitude)
        else:
            latitude, longitude = device.current_latitude, device.current_longitude

        text = message or f'Alerte d\'urgence déclenchée par {user.get_full_name()}.'
        logger.warning(f'Emergency alert for student {device.student_id} raised by user {user.id}')
        return AlertService.create_alert(
            device.student, device.school,
            GeolocationAlert.AlertType.EMERGENCY, GeolocationAlert.Severity.CRITICAL,
            text, device=device, latitude=latitude, longitude=longitude,
        )

    @staticmethod
    def resolve_alert(alert, user):
        alert.is_resolved = True
        alert.is_read = True
        alert.resolved_by = user
        alert.resolved_at = timezone.now()
        alert.save(update_fields=['is_resolved', 'is_read', 'resolved_by', 'resolved_at'])
        return alert

    @staticmethod
    def mark_read(alert):
        if not alert.is_read:
            alert.is_read = True
            alert.save(update_fields=['is_read'])
        return alert
