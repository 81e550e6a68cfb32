from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import ParentStudentRelation
from notifications.models import Notification
from tenants.models import School, SchoolMembership

from .geo import format_duration, haversine_distance, is_within_zone
from .models import GeolocationAlert, LocationPing, SafeZone, StudentZoneState, TrackingDevice
from .services import AlertService, InvalidCoordinatesError

User = get_user_model()

# Lycée Joss, Douala
SCHOOL_LAT, SCHOOL_LON = 4.0511, 9.7679
# ~1.1 km further north
AWAY_LAT, AWAY_LON = 4.0611, 9.7679


class GeoHelpersTests(SimpleTestCase):

    def test_haversine_known_distance(self):
        # 0.01 degree of latitude is about 1112 m
        distance = haversine_distance(SCHOOL_LAT, SCHOOL_LON, AWAY_LAT, AWAY_LON)
        self.assertAlmostEqual(distance, 1112, delta=5)

    def test_same_point_is_zero(self):
        self.assertEqual(haversine_distance(SCHOOL_LAT, SCHOOL_LON, SCHOOL_LAT, SCHOOL_LON), 0)

    def test_within_zone_boundary(self):
        zone = SafeZone(latitude=SCHOOL_LAT, longitude=SCHOOL_LON, radius_meters=1200)
        self.assertTrue(is_within_zone(AWAY_LAT, AWAY_LON, zone))
        zone.radius_meters = 1000
        self.assertFalse(is_within_zone(AWAY_LAT, AWAY_LON, zone))

    def test_format_duration(self):
        self.assertEqual(format_duration(45), '45 minutes')
        self.assertEqual(format_duration(60), '1h 0min')
        self.assertEqual(format_duration(135), '2h 15min')


class GeolocationTestMixin:

    def setUp(self):
        self.director = User.objects.create_user(email='dir@joss.cm', password='pass', role='director')
        self.parent = User.objects.create_user(email='maman@joss.cm', password='pass', role='parent')
        self.other_parent = User.objects.create_user(email='papa@joss.cm', password='pass', role='parent')
        self.student = User.objects.create_user(
            email='aminata@joss.cm', password='pass', role='student', first_name='Aminata', last_name='Ngo'
        )
        self.school = School.objects.create(
            slug='lycee-joss', name='Lycée Joss', owner=self.director, geolocation_enabled=True
        )
        for user, role in ((self.director, 'director'), (self.parent, 'parent'),
                           (self.other_parent, 'parent'), (self.student, 'student')):
            SchoolMembership.objects.create(school=self.school, user=user, role=role)

        ParentStudentRelation.objects.create(parent=self.parent, student=self.student, can_track_location=True)
        ParentStudentRelation.objects.create(parent=self.other_parent, student=self.student, can_track_location=False)

        self.device = TrackingDevice.objects.create(
            school=self.school, owner=self.parent, student=self.student, name='Téléphone Aminata'
        )
        self.zone = SafeZone.objects.create(
            school=self.school, student=self.student, created_by=self.parent,
            name='École', zone_type='school', latitude=SCHOOL_LAT, longitude=SCHOOL_LON, radius_meters=300,
        )

    def alert_types(self):
        return list(GeolocationAlert.objects.order_by('id').values_list('alert_type', flat=True))


class ProcessLocationTests(GeolocationTestMixin, TestCase):

    def test_first_ping_inside_raises_nothing(self):
        result = AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON, battery_level=80)
        self.assertTrue(result['inside'])
        self.assertEqual(result['zone'], 'École')
        self.assertEqual(result['alerts'], [])
        self.device.refresh_from_db()
        self.assertEqual(self.device.battery_level, 80)
        self.assertIsNotNone(self.device.last_seen)
        self.assertEqual(LocationPing.objects.count(), 1)

    def test_first_ping_outside_all_zones(self):
        result = AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.assertFalse(result['inside'])
        self.assertEqual(result['alerts'][0]['type'], 'out_of_all_zones')
        self.assertEqual(result['alerts'][0]['severity'], 'medium')

    def test_exit_then_entry(self):
        AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON)
        exit_result = AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.assertEqual(exit_result['alerts'][0]['type'], 'zone_exit')
        self.assertEqual(exit_result['alerts'][0]['severity'], 'high')

        state = StudentZoneState.objects.get(student=self.student)
        self.assertTrue(state.is_outside)
        self.assertEqual(state.consecutive_outside_readings, 1)

        AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        state.refresh_from_db()
        self.assertEqual(state.consecutive_outside_readings, 2)

        entry = AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON)
        self.assertEqual(entry['alerts'][0]['type'], 'zone_entry')
        self.assertEqual(self.alert_types(), ['zone_exit', 'zone_entry'])

        alert = GeolocationAlert.objects.get(alert_type='zone_exit')
        self.assertEqual(alert.zone, self.zone)
        self.assertIn('École', alert.message)

    def test_only_tracking_guardians_notified(self):
        AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON)
        AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        recipients = set(Notification.objects.values_list('user_id', flat=True))
        self.assertEqual(recipients, {self.parent.id})

    def test_extended_absence_throttled(self):
        AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON)
        AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)

        state = StudentZoneState.objects.get(student=self.student)
        state.last_exit_at = timezone.now() - timedelta(minutes=20)
        state.save()

        result = AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.assertEqual(result['alerts'][0]['type'], 'extended_absence')
        alert = GeolocationAlert.objects.get(alert_type='extended_absence')
        self.assertEqual(alert.severity, 'critical')
        self.assertEqual(alert.minutes_outside, 20)
        self.assertIn('20 minutes', alert.message)

        # within 30 minutes of the previous extended alert: nothing new
        result = AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.assertEqual(result['alerts'], [])

        state.refresh_from_db()
        state.last_extended_alert_at = timezone.now() - timedelta(minutes=31)
        state.save()
        result = AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.assertEqual(result['alerts'][0]['type'], 'extended_absence')

    def test_no_extended_absence_before_threshold(self):
        AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON)
        AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        state = StudentZoneState.objects.get(student=self.student)
        state.last_exit_at = timezone.now() - timedelta(minutes=10)
        state.save()
        result = AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.assertEqual(result['alerts'], [])

    def test_low_battery_once_per_hour(self):
        first = AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON, battery_level=10)
        self.assertEqual(first['alerts'][0]['type'], 'low_battery')
        second = AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON, battery_level=8)
        self.assertEqual(second['alerts'], [])

        GeolocationAlert.objects.filter(alert_type='low_battery').update(
            created_at=timezone.now() - timedelta(hours=2)
        )
        third = AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON, battery_level=7)
        self.assertEqual(third['alerts'][0]['type'], 'low_battery')

    def test_battery_at_threshold_is_fine(self):
        result = AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON, battery_level=15)
        self.assertEqual(result['alerts'], [])

    def test_no_zones_no_zone_alerts(self):
        self.zone.delete()
        result = AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.assertEqual(result['alerts'], [])
        self.assertFalse(StudentZoneState.objects.exists())

    def test_invalid_coordinates(self):
        with self.assertRaises(InvalidCoordinatesError):
            AlertService.process_location(self.device, 95, SCHOOL_LON)

    def test_periodic_sweep(self):
        AlertService.process_location(self.device, SCHOOL_LAT, SCHOOL_LON)
        AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        StudentZoneState.objects.filter(student=self.student).update(
            last_exit_at=timezone.now() - timedelta(minutes=40)
        )
        self.assertEqual(AlertService.check_extended_absences(), 1)
        self.assertEqual(AlertService.check_extended_absences(), 0)

    def test_emergency_and_resolve(self):
        alert = AlertService.raise_emergency(self.device, self.student, 'Aidez-moi', AWAY_LAT, AWAY_LON)
        self.assertEqual(alert.severity, 'critical')
        AlertService.resolve_alert(alert, self.parent)
        alert.refresh_from_db()
        self.assertTrue(alert.is_resolved)
        self.assertEqual(alert.resolved_by, self.parent)


class GeolocationAPITests(GeolocationTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_parent_sees_child_devices(self):
        self.client.force_authenticate(user=self.parent)
        resp = self.client.get('/api/geolocation/devices/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.json()), 1)

    def test_parent_without_tracking_consent_sees_nothing(self):
        self.client.force_authenticate(user=self.other_parent)
        resp = self.client.get('/api/geolocation/devices/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), [])

        resp = self.client.get(f'/api/geolocation/devices/{self.device.id}/history/')
        self.assertEqual(resp.status_code, 404)
        resp = self.client.get('/api/geolocation/safe-zones/')
        self.assertEqual(resp.json(), [])

    def test_student_posts_location(self):
        self.client.force_authenticate(user=self.student)
        resp = self.client.post(f'/api/geolocation/devices/{self.device.id}/location/', {
            'latitude': SCHOOL_LAT, 'longitude': SCHOOL_LON, 'battery_level': 60,
        }, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['inside'])

    def test_location_rejects_bad_latitude(self):
        self.client.force_authenticate(user=self.student)
        resp = self.client.post(f'/api/geolocation/devices/{self.device.id}/location/', {
            'latitude': 120, 'longitude': SCHOOL_LON,
        }, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_director_cannot_post_location_for_device(self):
        self.client.force_authenticate(user=self.director)
        resp = self.client.post(f'/api/geolocation/devices/{self.device.id}/location/', {
            'latitude': SCHOOL_LAT, 'longitude': SCHOOL_LON,
        }, format='json')
        self.assertEqual(resp.status_code, 403)

    def test_parent_creates_zone_for_child_only(self):
        stranger = User.objects.create_user(email='autre@joss.cm', password='pass', role='student')
        SchoolMembership.objects.create(school=self.school, user=stranger, role='student')
        self.client.force_authenticate(user=self.parent)

        payload = {'student': self.student.id, 'name': 'Maison', 'zone_type': 'home',
                   'latitude': '4.050000', 'longitude': '9.760000', 'radius_meters': 150}
        resp = self.client.post('/api/geolocation/safe-zones/', payload, format='json')
        self.assertEqual(resp.status_code, 201)

        payload['student'] = stranger.id
        resp = self.client.post('/api/geolocation/safe-zones/', payload, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_zone_radius_validated(self):
        self.client.force_authenticate(user=self.director)
        resp = self.client.post('/api/geolocation/safe-zones/', {
            'student': self.student.id, 'name': 'Trop petit', 'latitude': '4.05', 'longitude': '9.76',
            'radius_meters': 5,
        }, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_unresolved_filter_and_resolve(self):
        AlertService.process_location(self.device, AWAY_LAT, AWAY_LON)
        self.client.force_authenticate(user=self.parent)
        resp = self.client.get('/api/geolocation/alerts/?unresolved=1')
        self.assertEqual(len(resp.json()), 1)

        alert_id = resp.json()[0]['id']
        resp = self.client.post(f'/api/geolocation/alerts/{alert_id}/resolve/')
        self.assertEqual(resp.status_code, 200)
        resp = self.client.get('/api/geolocation/alerts/?unresolved=1')
        self.assertEqual(resp.json(), [])

    def test_emergency_endpoint(self):
        self.client.force_authenticate(user=self.student)
        resp = self.client.post('/api/geolocation/alerts/emergency/', {
            'device': self.device.id, 'message': 'Je suis perdue',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['alert_type'], 'emergency')

    def test_disabled_for_school(self):
        self.school.geolocation_enabled = False
        self.school.save()
        self.client.force_authenticate(user=self.parent)
        resp = self.client.get('/api/geolocation/devices/')
        self.assertEqual(resp.status_code, 403)

    @override_settings(FEATURE_GEOLOCATION=False)
    def test_disabled_by_feature_flag(self):
        self.client.force_authenticate(user=self.parent)
        resp = self.client.get('/api/geolocation/alerts/')
        self.assertEqual(resp.status_code, 403)
