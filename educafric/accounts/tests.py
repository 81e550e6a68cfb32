from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from tenants.models import School, SchoolMembership

from .models import ParentStudentRelation

User = get_user_model()


class AuthTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_register_returns_tokens_with_role(self):
        response = self.client.post('/api/auth/register/', {
            'email': ' Awa.Fotso@Example.CM ',
            'password': 'Kribi-2026-solide',
            'first_name': 'Awa',
            'role': 'parent',
            'preferred_language': 'en',
        })
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data['user']['email'], 'awa.fotso@example.cm')

        token = AccessToken(response.data['access'])
        self.assertEqual(token['role'], 'parent')
        self.assertEqual(token['lang'], 'en')

    def test_register_rejects_admin_role(self):
        response = self.client.post('/api/auth/register/', {
            'email': 'root@example.cm', 'password': 'Kribi-2026-solide', 'role': 'admin',
        })
        self.assertEqual(response.status_code, 400)

    def test_register_rejects_duplicates(self):
        User.objects.create_user(email='awa@example.cm', password='pass', phone_number='677000111')
        response = self.client.post('/api/auth/register/', {
            'email': 'AWA@example.cm', 'password': 'Kribi-2026-solide', 'phone_number': '677000111',
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('email', response.data)
        self.assertIn('phone_number', response.data)

    def test_weak_password(self):
        response = self.client.post('/api/auth/register/', {'email': 'a@example.cm', 'password': '123'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('password', response.data)

    def test_login_is_case_insensitive(self):
        User.objects.create_user(email='prof@joss.cm', password='Kribi-2026-solide', role='teacher')
        response = self.client.post('/api/auth/token/', {'email': 'PROF@joss.cm', 'password': 'Kribi-2026-solide'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(AccessToken(response.data['access'])['role'], 'teacher')

    def test_login_failures(self):
        User.objects.create_user(email='prof@joss.cm', password='Kribi-2026-solide', is_active=False)
        response = self.client.post('/api/auth/token/', {'email': 'prof@joss.cm', 'password': 'wrong'})
        self.assertEqual(response.status_code, 401)
        response = self.client.post('/api/auth/token/', {'email': 'prof@joss.cm', 'password': 'Kribi-2026-solide'})
        self.assertEqual(response.status_code, 401)


class ProfileTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='prof@joss.cm', password='pass', role='teacher',
                                             first_name='Jean', last_name='Mbarga')
        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss')
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def test_me_without_school(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.data['full_name'], 'Jean Mbarga')
        self.assertIsNone(response.data['school'])

    def test_me_with_school(self):
        SchoolMembership.objects.create(school=self.school, user=self.user, role='teacher')
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.data['school']['slug'], 'lycee-joss')
        self.assertEqual(response.data['school_role'], 'teacher')

    def test_role_is_read_only(self):
        response = self.client.patch('/api/auth/me/', {'role': 'admin', 'preferred_language': 'en'})
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'teacher')
        self.assertEqual(self.user.preferred_language, 'en')


class ParentRelationTests(TestCase):

    def setUp(self):
        self.director = User.objects.create_user(email='dir@joss.cm', password='pass', role='director')
        self.parent = User.objects.create_user(email='parent@joss.cm', password='pass', role='parent')
        self.student = User.objects.create_user(email='eleve@joss.cm', password='pass', role='student',
                                                first_name='Paul', last_name='Etoa')
        self.outsider = User.objects.create_user(email='eleve@vogt.cm', password='pass', role='student')
        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss', owner=self.director)
        for user, role in ((self.director, 'director'), (self.parent, 'parent'), (self.student, 'student')):
            SchoolMembership.objects.create(school=self.school, user=user, role=role)
        self.client = APIClient()

    def test_director_links_parent_and_student(self):
        self.client.force_authenticate(self.director)
        response = self.client.post('/api/auth/parent-relations/', {
            'parent': self.parent.id, 'student': self.student.id, 'relationship': 'mother',
        })
        self.assertEqual(response.status_code, 201, response.data)
        self.assertTrue(self.parent.is_parent_of(self.student))

    def test_student_outside_school_rejected(self):
        self.client.force_authenticate(self.director)
        response = self.client.post('/api/auth/parent-relations/', {
            'parent': self.parent.id, 'student': self.outsider.id,
        })
        self.assertEqual(response.status_code, 400)

    def test_parent_cannot_create_links(self):
        self.client.force_authenticate(self.parent)
        response = self.client.post('/api/auth/parent-relations/', {
            'parent': self.parent.id, 'student': self.student.id,
        })
        self.assertEqual(response.status_code, 403)

    def test_children(self):
        ParentStudentRelation.objects.create(parent=self.parent, student=self.student)
        self.client.force_authenticate(self.parent)
        response = self.client.get('/api/auth/children/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([c['id'] for c in response.data], [self.student.id])

        self.client.force_authenticate(self.student)
        self.assertEqual(self.client.get('/api/auth/children/').status_code, 403)
