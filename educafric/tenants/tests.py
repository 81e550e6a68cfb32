from django.contrib.auth import get_user_model
from django.http import HttpResponse
from django.test import RequestFactory, TestCase, override_settings
from rest_framework.test import APIClient

from .context import get_current_school
from .middleware import SchoolMiddleware
from .mixins import get_request_membership
from .models import School, SchoolMembership

User = get_user_model()


class SchoolMiddlewareTests(TestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.owner = User.objects.create_user(email='owner@joss.cm', password='pass', role='director')
        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss', owner=self.owner)
        self.factory = RequestFactory()
        self.seen = {}

        def get_response(request):
            self.seen['context'] = get_current_school()
            return HttpResponse('ok')

        self.middleware = SchoolMiddleware(get_response)

    @override_settings(ALLOWED_HOSTS=['.educafric.com'])
    def test_subdomain_selects_school(self):
        request = self.factory.get('/api/schools/current/', HTTP_HOST='lycee-joss.educafric.com')
        self.middleware(request)
        self.assertEqual(request.school, self.school)
        self.assertEqual(self.seen['context'], self.school)
        self.assertIsNone(get_current_school())

    @override_settings(ALLOWED_HOSTS=['.educafric.com', 'educafric.com'])
    def test_platform_domain_has_no_school(self):
        request = self.factory.get('/api/schools/current/', HTTP_HOST='educafric.com')
        self.middleware(request)
        self.assertIsNone(request.school)

    @override_settings(ALLOWED_HOSTS=['.educafric.com'])
    def test_header_ignored_on_public_host(self):
        other = School.objects.create(slug='college-vogt', name='Collège Vogt')
        request = self.factory.get('/api/schools/current/', HTTP_HOST='lycee-joss.educafric.com',
                                   HTTP_X_SCHOOL_ID=other.slug)
        self.middleware(request)
        self.assertEqual(request.school, self.school)

    @override_settings(ALLOWED_HOSTS=['localhost'])
    def test_header_used_on_localhost(self):
        request = self.factory.get('/api/schools/current/', HTTP_HOST='localhost:8000',
                                   HTTP_X_SCHOOL_ID='lycee-joss')
        self.middleware(request)
        self.assertEqual(request.school, self.school)

    @override_settings(ALLOWED_HOSTS=['.educafric.com'])
    def test_suspended_school_not_resolved(self):
        self.school.status = School.Status.SUSPENDED
        self.school.save()
        request = self.factory.get('/api/schools/current/', HTTP_HOST='lycee-joss.educafric.com')
        self.middleware(request)
        self.assertIsNone(request.school)

    def test_health_paths_skipped(self):
        request = self.factory.get('/api/health/', HTTP_X_SCHOOL_ID='lycee-joss')
        self.middleware(request)
        self.assertIsNone(request.school)


class MembershipResolutionTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='prof@joss.cm', password='pass', role='teacher')
        self.first = School.objects.create(slug='lycee-joss', name='Lycée Joss')
        self.second = School.objects.create(slug='college-vogt', name='Collège Vogt')
        self.m1 = SchoolMembership.objects.create(school=self.first, user=self.user, role='teacher')
        self.m2 = SchoolMembership.objects.create(school=self.second, user=self.user, role='director')
        self.factory = RequestFactory()

    def request(self, school=None):
        request = self.factory.get('/')
        request.user = self.user
        request.school = school
        return request

    def test_oldest_membership_without_host_school(self):
        self.assertEqual(get_request_membership(self.request()), self.m1)

    def test_host_school_wins(self):
        self.assertEqual(get_request_membership(self.request(self.second)), self.m2)

    def test_inactive_membership_ignored(self):
        self.m1.is_active = False
        self.m1.save()
        self.assertEqual(get_request_membership(self.request()), self.m2)
        self.assertEqual(get_request_membership(self.request(self.first)), self.m2)

    def test_falls_back_when_not_member_of_host_school(self):
        host = School.objects.create(slug='lycee-bilingue', name='Lycée Bilingue')
        self.assertEqual(get_request_membership(self.request(host)), self.m1)

    def test_no_membership(self):
        self.m1.delete()
        self.m2.delete()
        self.assertIsNone(get_request_membership(self.request(self.first)))

    def test_role_helpers(self):
        self.assertTrue(self.m1.is_staff_member)
        self.assertFalse(self.m1.is_director)
        self.assertTrue(self.m2.is_director)


class SchoolAPITests(TestCase):

    def setUp(self):
        self.director = User.objects.create_user(email='dir@joss.cm', password='pass', role='director')
        self.teacher = User.objects.create_user(email='prof@joss.cm', password='pass', role='teacher')
        self.newcomer = User.objects.create_user(email='new@joss.cm', password='pass', role='student')
        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss', owner=self.director)
        SchoolMembership.objects.create(school=self.school, user=self.director, role='director')
        self.teacher_membership = SchoolMembership.objects.create(
            school=self.school, user=self.teacher, role='teacher',
        )
        self.client = APIClient()

    def test_current_school(self):
        self.client.force_authenticate(self.teacher)
        response = self.client.get('/api/schools/current/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['role'], 'teacher')
        self.assertEqual(response.data['config']['slug'], 'lycee-joss')
        self.assertEqual(response.data['school']['member_count'], 2)

    def test_current_school_requires_membership(self):
        self.client.force_authenticate(self.newcomer)
        self.assertEqual(self.client.get('/api/schools/current/').status_code, 403)

    def test_teacher_cannot_manage_members(self):
        self.client.force_authenticate(self.teacher)
        self.assertEqual(self.client.get('/api/schools/members/').status_code, 403)

    def test_director_adds_member(self):
        self.client.force_authenticate(self.director)
        response = self.client.post('/api/schools/members/', {'user': self.newcomer.id, 'role': 'student'})
        self.assertEqual(response.status_code, 201, response.data)
        self.assertTrue(SchoolMembership.objects.filter(school=self.school, user=self.newcomer).exists())

        response = self.client.post('/api/schools/members/', {'user': self.newcomer.id, 'role': 'parent'})
        self.assertEqual(response.status_code, 400)

    def test_role_filter(self):
        self.client.force_authenticate(self.director)
        response = self.client.get('/api/schools/members/', {'role': 'teacher'})
        self.assertEqual([m['user_email'] for m in response.data], ['prof@joss.cm'])

    def test_delete_deactivates(self):
        self.client.force_authenticate(self.director)
        response = self.client.delete(f'/api/schools/members/{self.teacher_membership.id}/')
        self.assertEqual(response.status_code, 204)
        self.teacher_membership.refresh_from_db()
        self.assertFalse(self.teacher_membership.is_active)

    def test_director_cannot_remove_self(self):
        self.client.force_authenticate(self.director)
        own = SchoolMembership.objects.get(user=self.director)
        self.assertEqual(self.client.delete(f'/api/schools/members/{own.id}/').status_code, 400)
